from __future__ import annotations

import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from django.db.models import Avg, Count, Q
from django.utils import timezone

from .models import Attempt, Entitlement, Puzzle

STATS_WINDOW = 60
SLOT_LENGTH = datetime.timedelta(hours=1)


def _ranked_daily(puzzle_id=None):
    """Completed, solved daily attempts: the only rows that are ranked."""
    qs = Attempt.objects.filter(
        mode="daily",
        is_completed=True,
        gave_up=False,
        final_time_ms__isnull=False,
    )
    if puzzle_id is not None:
        qs = qs.filter(puzzle_id=puzzle_id)
    return qs


def _premium_user_ids(user_ids: Iterable[str], now: Optional[datetime.datetime] = None) -> Set[str]:
    ids = set(user_ids)
    if not ids:
        return set()
    now = now or timezone.now()
    return set(
        Entitlement.objects.filter(user_id__in=ids, premium_until__gt=now).values_list("user_id", flat=True)
    )


# PUBLIC_INTERFACE
def rank_attempt(attempt: Attempt) -> Optional[int]:
    """Return the 1-based rank of a solved daily attempt on its puzzle.

    Order is (final_time_ms, completed_at, id) ascending, so two attempts
    never share a rank. Practice attempts, unfinished attempts and give-ups
    are not ranked and return None.
    """
    if attempt.mode != "daily" or not attempt.is_completed or attempt.gave_up or attempt.final_time_ms is None:
        return None

    ahead = _ranked_daily(attempt.puzzle_id).filter(
        Q(final_time_ms__lt=attempt.final_time_ms)
        | Q(final_time_ms=attempt.final_time_ms, completed_at__lt=attempt.completed_at)
        | Q(final_time_ms=attempt.final_time_ms, completed_at=attempt.completed_at, id__lt=attempt.id)
    )
    return ahead.count() + 1


# PUBLIC_INTERFACE
def puzzle_leaderboard(puzzle: Puzzle, limit: int = 100) -> List[Dict[str, Any]]:
    """Ranked entries for a daily puzzle, consistent with rank_attempt."""
    rows = list(_ranked_daily(puzzle.pk).order_by("final_time_ms", "completed_at", "id")[:limit])
    premium = _premium_user_ids(a.user_id for a in rows)
    return [
        {
            "rank": i,
            "user_id": a.user_id,
            "attempt_id": a.id,
            "final_time_ms": a.final_time_ms,
            "solve_time_ms": a.solve_time_ms,
            "penalty_ms": a.penalty_ms,
            "hints_used_count": a.hints_used_count,
            "completed_at": a.completed_at,
            "is_premium": a.user_id in premium,
        }
        for i, a in enumerate(rows, start=1)
    ]


# PUBLIC_INTERFACE
def global_rankings(limit: int = 50, min_solved: int = 5) -> List[Dict[str, Any]]:
    """Players ranked by their average final time over solved daily puzzles.

    Only players with at least `min_solved` solves are listed. Order is
    (average ascending, puzzles solved descending, user_id).
    """
    rows = list(
        _ranked_daily()
        .values("user_id")
        .annotate(puzzles_solved=Count("id"), avg_final_time_ms=Avg("final_time_ms"))
        .filter(puzzles_solved__gte=min_solved)
        .order_by("avg_final_time_ms", "-puzzles_solved", "user_id")[:limit]
    )
    premium = _premium_user_ids(r["user_id"] for r in rows)
    return [
        {
            "rank": i,
            "user_id": r["user_id"],
            "puzzles_solved": r["puzzles_solved"],
            "avg_final_time_ms": round(r["avg_final_time_ms"]),
            "is_premium": r["user_id"] in premium,
        }
        for i, r in enumerate(rows, start=1)
    ]


def slot_closes_at(puzzle: Puzzle) -> datetime.datetime:
    """End of the hour window a daily puzzle belongs to (UTC)."""
    start = datetime.datetime.combine(puzzle.date, datetime.time(hour=puzzle.slot), tzinfo=datetime.timezone.utc)
    return start + SLOT_LENGTH


# PUBLIC_INTERFACE
def recent_daily_leaderboards(
    limit_puzzles: int = 6,
    limit_entries: int = 50,
    date: Optional[datetime.date] = None,
    now: Optional[datetime.datetime] = None,
) -> List[Dict[str, Any]]:
    """Leaderboards of the most recent daily puzzles, newest first.

    Each section holds the puzzle and its ranked entries. The answer is only
    included once the puzzle's hour window has closed; until then
    target_word is None.
    """
    now = now or timezone.now()
    puzzles = Puzzle.objects.filter(kind="daily")
    if date is not None:
        puzzles = puzzles.filter(date=date)

    sections = []
    for puzzle in puzzles.order_by("-date", "-slot", "variant")[:limit_puzzles]:
        revealed = now >= slot_closes_at(puzzle)
        sections.append(
            {
                "puzzle": puzzle,
                "target_word": puzzle.target_word if revealed else None,
                "entries": puzzle_leaderboard(puzzle, limit=limit_entries),
            }
        )
    return sections


def _avg(values: List[int]) -> Optional[int]:
    if not values:
        return None
    return round(sum(values) / len(values))


def _summarize(rows: List[Attempt]) -> Dict[str, Any]:
    solve_times = [a.solve_time_ms for a in rows]
    return {
        "best_time_ms": min(solve_times) if solve_times else None,
        "avg_7d_ms": _avg(solve_times[:7]),
        "avg_30d_ms": _avg(solve_times[:30]),
        "hint_usage_count": sum(a.hints_used_count for a in rows),
    }


def _current_streak(days: List[datetime.date], today: datetime.date) -> int:
    """Consecutive solved days ending today; 0 if today is not solved."""
    ordered = sorted(set(days), reverse=True)
    if not ordered or ordered[0] != today:
        return 0
    streak = 1
    for prev, cur in zip(ordered, ordered[1:]):
        if (prev - cur).days != 1:
            break
        streak += 1
    return streak


# PUBLIC_INTERFACE
def player_stats(user_id: str, today: Optional[datetime.date] = None) -> Dict[str, Any]:
    """Aggregate a player's recent solved daily attempts.

    Uses the latest STATS_WINDOW completions (give-ups excluded). Times are
    raw solve times; averages cover the 7 and 30 most recent solves.
    """
    today = today or timezone.now().astimezone(datetime.timezone.utc).date()
    rows = list(
        Attempt.objects.filter(
            user_id=user_id, mode="daily", is_completed=True, gave_up=False, solve_time_ms__isnull=False
        )
        .select_related("puzzle")
        .order_by("-completed_at")[:STATS_WINDOW]
    )

    stats = _summarize(rows)
    stats["current_streak"] = _current_streak([a.puzzle.date for a in rows], today)
    for variant in ("cipher", "scramble"):
        stats[variant] = _summarize([a for a in rows if a.puzzle.variant == variant])
    return stats
