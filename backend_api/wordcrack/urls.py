from django.urls import path
from .views import (
    health,
    get_today_puzzle,
    get_practice_puzzle,
    start_attempt,
    use_hint,
    submit_attempt,
    give_up,
    get_attempt_detail,
    get_puzzle_leaderboard,
    get_global_rankings,
    get_recent_daily_leaderboards,
    get_my_stats,
    admin_create_puzzle,
    get_variants,
    get_modes,
)

urlpatterns = [
    path('health/', health, name='Health'),
    path('puzzle/today', get_today_puzzle, name='puzzle-today'),
    path('puzzle/practice', get_practice_puzzle, name='puzzle-practice'),
    path('attempts/start', start_attempt, name='attempt-start'),
    path('attempts/hint', use_hint, name='attempt-hint'),
    path('attempts/submit', submit_attempt, name='attempt-submit'),
    path('attempts/give-up', give_up, name='attempt-give-up'),
    path('attempts/<uuid:attempt_id>', get_attempt_detail, name='attempt-detail'),
    path('puzzles/<uuid:puzzle_id>/leaderboard', get_puzzle_leaderboard, name='puzzle-leaderboard'),
    path('leaderboards/global', get_global_rankings, name='global-rankings'),
    path('leaderboards/recent', get_recent_daily_leaderboards, name='recent-leaderboards'),
    path('me/stats', get_my_stats, name='my-stats'),
    path('admin/puzzles', admin_create_puzzle, name='admin-create-puzzle'),
    path('variants', get_variants, name='get-variants'),
    path('modes', get_modes, name='get-modes'),
]
