from __future__ import annotations

import hmac

from django.conf import settings
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from . import attempts as lifecycle
from .exceptions import NotFound
from .models import Puzzle
from .puzzle_store import create_daily_puzzle, create_practice_puzzle, get_daily_puzzle
from .puzzles import HINT_PENALTY_MS, VariantRegistry
from .scoring import global_rankings, player_stats, puzzle_leaderboard, recent_daily_leaderboards
from .serializers import (
    AdminCreatePuzzleSerializer,
    AdminPuzzleResponseSerializer,
    AttemptIdRequestSerializer,
    AttemptSerializer,
    GiveUpResponseSerializer,
    GlobalRankingEntrySerializer,
    HintRequestSerializer,
    HintResponseSerializer,
    LeaderboardEntrySerializer,
    PlayerStatsSerializer,
    PracticePuzzleRequestSerializer,
    PuzzlePublicSerializer,
    PuzzleQuerySerializer,
    RecentLeaderboardSectionSerializer,
    RecentLeaderboardsQuerySerializer,
    StartAttemptRequestSerializer,
    SubmitRequestSerializer,
    SubmitResponseSerializer,
)


ADMIN_KEY_HEADER = "HTTP_X_ADMIN_KEY"


class HasAdminKey(permissions.BasePermission):
    """Allow requests carrying the configured X-Admin-Key."""

    message = "Unauthorized"

    def has_permission(self, request, view):
        expected = getattr(settings, "WORDCRACK_ADMIN_KEY", "")
        provided = request.META.get(ADMIN_KEY_HEADER, "")
        return bool(expected) and hmac.compare_digest(provided.encode(), expected.encode())


def _user_id(request) -> str:
    return request.user.id


def _clamped_int(request, name: str, default: int, lo: int, hi: int) -> int:
    """Read an integer query parameter, falling back to default and clamping to [lo, hi]."""
    try:
        value = int(request.query_params.get(name, default))
    except (TypeError, ValueError):
        value = default
    return min(hi, max(lo, value))


# PUBLIC_INTERFACE
@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def health(request):
    """Health check endpoint for the API.

    Returns:
    - 200 OK with {"message": "Server is up!"}
    """
    return Response({"message": "Server is up!"})


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="get",
    operation_id="get_today_puzzle",
    operation_summary="Get the daily puzzle for a date, slot and variant",
    operation_description="""
Returns the daily puzzle for the requested UTC date and hour slot, creating it
from the puzzle bank on first request.

Query params:
- date (optional, YYYY-MM-DD, default today UTC)
- slot (optional, 0-23, default current UTC hour)
- variant (optional, cipher | scramble, default scramble)

The response never includes the answer or generation metadata.
""",
    query_serializer=PuzzleQuerySerializer,
    responses={200: PuzzlePublicSerializer},
    tags=["puzzles"],
)
@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def get_today_puzzle(request):
    """Get (or lazily create) a daily puzzle."""
    serializer = PuzzleQuerySerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    vd = serializer.validated_data

    puzzle = get_daily_puzzle(vd.get("date"), vd.get("slot"), vd["variant"])
    return Response(
        {"puzzle": PuzzlePublicSerializer(puzzle).data, "slot": puzzle.slot, "variant": puzzle.variant},
        status=status.HTTP_200_OK,
    )


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="post",
    operation_id="get_practice_puzzle",
    operation_summary="Generate a practice puzzle",
    request_body=PracticePuzzleRequestSerializer,
    responses={200: PuzzlePublicSerializer},
    tags=["puzzles"],
)
@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def get_practice_puzzle(request):
    """Generate a fresh practice puzzle of the requested variant."""
    serializer = PracticePuzzleRequestSerializer(data=request.data or {})
    serializer.is_valid(raise_exception=True)
    puzzle = create_practice_puzzle(serializer.validated_data["variant"])
    return Response({"puzzle": PuzzlePublicSerializer(puzzle).data}, status=status.HTTP_200_OK)


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="post",
    operation_id="start_attempt",
    operation_summary="Start or resume an attempt",
    operation_description="""
Daily mode returns the existing attempt for this player and puzzle when there
is one. Practice mode always creates a new attempt and counts against the
free daily practice quota.

Request body:
- puzzle_id (uuid, required)
- mode (daily | practice, default daily)
""",
    request_body=StartAttemptRequestSerializer,
    responses={200: AttemptSerializer},
    tags=["attempts"],
)
@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def start_attempt(request):
    """Start an attempt for the authenticated player."""
    serializer = StartAttemptRequestSerializer(data=request.data or {})
    serializer.is_valid(raise_exception=True)
    vd = serializer.validated_data

    attempt = lifecycle.start_attempt(_user_id(request), vd["puzzle_id"], vd["mode"])
    return Response({"attempt": AttemptSerializer(attempt).data}, status=status.HTTP_200_OK)


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="post",
    operation_id="use_hint",
    operation_summary="Use a hint on an attempt",
    operation_description="""
Spend one hint. Each kind can be used once per attempt, at most 3 hints in
total, and each adds a fixed time penalty.

Request body:
- attempt_id (uuid, required)
- hint_type (required): cipher puzzles offer check_positions | shift_amount |
  unshifted_positions; scramble puzzles offer check_positions |
  reveal_position | reveal_theme
- guess_word (required for check_positions): the current full selection
""",
    request_body=HintRequestSerializer,
    responses={200: HintResponseSerializer},
    tags=["attempts", "hints"],
)
@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def use_hint(request):
    """Use a hint, returning its message and the cumulative penalty."""
    serializer = HintRequestSerializer(data=request.data or {})
    serializer.is_valid(raise_exception=True)
    vd = serializer.validated_data

    result = lifecycle.use_hint(_user_id(request), vd["attempt_id"], vd["hint_type"], vd.get("guess_word"))
    resp = {
        "hint": {
            "kind": result.kind,
            "penalty_ms": result.penalty_ms,
            "message": result.message,
            "meta": result.meta,
        },
        "penalty_ms": result.total_penalty_ms,
        "hints_used_count": result.hints_used_count,
        "attempt": AttemptSerializer(result.attempt).data,
    }
    return Response(resp, status=status.HTTP_200_OK)


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="post",
    operation_id="submit_attempt",
    operation_summary="Submit a guess",
    operation_description="""
Wrong guesses return {"correct": false} and change nothing. A correct guess
completes the attempt with server-computed times; daily attempts also get
their rank on the puzzle. Resubmitting a solved attempt returns the stored
result.
""",
    request_body=SubmitRequestSerializer,
    responses={200: SubmitResponseSerializer},
    tags=["attempts"],
)
@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def submit_attempt(request):
    """Submit a guess for an attempt."""
    serializer = SubmitRequestSerializer(data=request.data or {})
    serializer.is_valid(raise_exception=True)
    vd = serializer.validated_data

    result = lifecycle.submit_attempt(_user_id(request), vd["attempt_id"], vd["guess_word"])
    if not result.correct:
        return Response({"correct": False}, status=status.HTTP_200_OK)
    resp = {
        "correct": True,
        "attempt": AttemptSerializer(result.attempt).data,
        "rank": result.rank,
    }
    return Response(resp, status=status.HTTP_200_OK)


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="post",
    operation_id="give_up",
    operation_summary="Give up an attempt",
    request_body=AttemptIdRequestSerializer,
    responses={200: GiveUpResponseSerializer},
    tags=["attempts"],
)
@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def give_up(request):
    """Abandon an attempt and reveal the answer."""
    serializer = AttemptIdRequestSerializer(data=request.data or {})
    serializer.is_valid(raise_exception=True)

    result = lifecycle.give_up(_user_id(request), serializer.validated_data["attempt_id"])
    return Response({"gave_up": True, "target_word": result.target_word}, status=status.HTTP_200_OK)


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="get",
    operation_id="attempt_detail",
    operation_summary="Get one of your attempts",
    responses={200: AttemptSerializer},
    tags=["attempts"],
)
@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated])
def get_attempt_detail(request, attempt_id):
    """Retrieve an attempt owned by the caller."""
    attempt = lifecycle.load_owned_attempt(_user_id(request), attempt_id)
    return Response({"attempt": AttemptSerializer(attempt).data}, status=status.HTTP_200_OK)


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="get",
    operation_id="puzzle_leaderboard",
    operation_summary="Ranked results for a daily puzzle",
    operation_description="""
Solved daily attempts ordered by final time (solve time plus hint penalties),
ties broken by earlier completion. Give-ups and practice runs are excluded.
""",
    manual_parameters=[
        openapi.Parameter("limit", openapi.IN_QUERY, type=openapi.TYPE_INTEGER, required=False),
    ],
    responses={200: LeaderboardEntrySerializer(many=True)},
    tags=["leaderboards"],
)
@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def get_puzzle_leaderboard(request, puzzle_id):
    """Leaderboard for one daily puzzle."""
    puzzle = Puzzle.objects.filter(pk=puzzle_id, kind="daily").first()
    if puzzle is None:
        raise NotFound("Puzzle not found.")
    limit = _clamped_int(request, "limit", 100, 1, 200)

    entries = puzzle_leaderboard(puzzle, limit=limit)
    return Response(
        {"puzzle_id": str(puzzle.pk), "entries": LeaderboardEntrySerializer(entries, many=True).data},
        status=status.HTTP_200_OK,
    )


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="get",
    operation_id="global_rankings",
    operation_summary="Players ranked by average final time",
    operation_description="""
Average final time over each player's solved daily puzzles, fastest first;
ties go to the player with more solves.

Query params:
- limit (optional, 1-200, default 50)
- min_solved (optional, 1-100, default 5): minimum solved puzzles to be listed
""",
    manual_parameters=[
        openapi.Parameter("limit", openapi.IN_QUERY, type=openapi.TYPE_INTEGER, required=False),
        openapi.Parameter("min_solved", openapi.IN_QUERY, type=openapi.TYPE_INTEGER, required=False),
    ],
    responses={200: GlobalRankingEntrySerializer(many=True)},
    tags=["leaderboards"],
)
@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def get_global_rankings(request):
    """Global ranking across all daily puzzles."""
    limit = _clamped_int(request, "limit", 50, 1, 200)
    min_solved = _clamped_int(request, "min_solved", 5, 1, 100)
    entries = global_rankings(limit=limit, min_solved=min_solved)
    return Response({"entries": GlobalRankingEntrySerializer(entries, many=True).data}, status=status.HTTP_200_OK)


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="get",
    operation_id="recent_daily_leaderboards",
    operation_summary="Leaderboards of the most recent daily puzzles",
    operation_description="""
Newest daily puzzles first, each with its ranked entries. The answer is only
included once the puzzle's hour window has closed.

Query params:
- limit_puzzles (optional, 1-24, default 6)
- limit_entries (optional, 1-200, default 50)
- date (optional, YYYY-MM-DD): only puzzles of that UTC day
""",
    query_serializer=RecentLeaderboardsQuerySerializer,
    manual_parameters=[
        openapi.Parameter("limit_puzzles", openapi.IN_QUERY, type=openapi.TYPE_INTEGER, required=False),
        openapi.Parameter("limit_entries", openapi.IN_QUERY, type=openapi.TYPE_INTEGER, required=False),
    ],
    responses={200: RecentLeaderboardSectionSerializer(many=True)},
    tags=["leaderboards"],
)
@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def get_recent_daily_leaderboards(request):
    """Recent daily puzzles with their leaderboards."""
    serializer = RecentLeaderboardsQuerySerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)

    sections = recent_daily_leaderboards(
        limit_puzzles=_clamped_int(request, "limit_puzzles", 6, 1, 24),
        limit_entries=_clamped_int(request, "limit_entries", 50, 1, 200),
        date=serializer.validated_data.get("date"),
    )
    return Response(
        {"sections": RecentLeaderboardSectionSerializer(sections, many=True).data},
        status=status.HTTP_200_OK,
    )


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="get",
    operation_id="my_stats",
    operation_summary="Your recent daily puzzle stats",
    responses={200: PlayerStatsSerializer},
    tags=["stats"],
)
@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated])
def get_my_stats(request):
    """Best/average times, hint usage and streak for the caller."""
    stats = player_stats(_user_id(request))
    return Response(PlayerStatsSerializer(stats).data, status=status.HTTP_200_OK)


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="post",
    operation_id="admin_create_puzzle",
    operation_summary="Create a daily puzzle from an explicit word",
    operation_description="""
Requires the X-Admin-Key header. Returns the generated puzzle including the
answer and generation metadata (shift amount and direction for cipher
puzzles); never show this response to players. Responds 409 if the slot is
already taken.
""",
    request_body=AdminCreatePuzzleSerializer,
    responses={201: AdminPuzzleResponseSerializer},
    tags=["admin"],
)
@api_view(["POST"])
@permission_classes([HasAdminKey])
def admin_create_puzzle(request):
    """Create a daily puzzle for a given date/slot."""
    serializer = AdminCreatePuzzleSerializer(data=request.data or {})
    serializer.is_valid(raise_exception=True)
    vd = dict(serializer.validated_data)

    puzzle = create_daily_puzzle(
        vd.pop("target_word"),
        variant=vd.pop("variant"),
        date=vd.pop("date", None),
        slot=vd.pop("slot", None),
        theme_hint=vd.pop("theme_hint", ""),
        **vd,
    )
    return Response({"puzzle": AdminPuzzleResponseSerializer(puzzle).data}, status=status.HTTP_201_CREATED)


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="get",
    operation_id="get_variants",
    operation_summary="List puzzle variants and their hint catalogs",
    tags=["meta"],
)
@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def get_variants(request):
    """List variants with word length and priced hint kinds."""
    data = []
    for name in VariantRegistry.names():
        spec = VariantRegistry.get(name)
        data.append(
            {
                "variant": name,
                "word_length": spec.word_length,
                "hints": [
                    {"kind": kind.value, "penalty_ms": HINT_PENALTY_MS[kind.value]} for kind in spec.hint_catalog
                ],
            }
        )
    return Response(data, status=status.HTTP_200_OK)


# PUBLIC_INTERFACE
@swagger_auto_schema(
    method="get",
    operation_id="get_modes",
    operation_summary="List available modes",
    operation_description="Returns supported attempt modes.",
    tags=["meta"],
    responses={200: openapi.Response("OK", schema=openapi.Schema(type=openapi.TYPE_ARRAY, items=openapi.Items(type=openapi.TYPE_STRING)))},
)
@api_view(["GET"])
@permission_classes([permissions.AllowAny])
def get_modes(request):
    """List available attempt modes."""
    return Response(list(lifecycle.MODES), status=status.HTTP_200_OK)
