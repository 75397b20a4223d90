from __future__ import annotations

from typing import Any, Dict

from rest_framework import serializers

from .models import Puzzle
from .puzzles import VariantRegistry


def _normalize_word(value: str) -> str:
    """Normalize incoming word inputs."""
    return (value or "").strip().upper()


def _validate_letters(value: str) -> str:
    """Ensure a word is alphabetic A-Z after normalization."""
    value = _normalize_word(value)
    if not value or not value.isascii() or not value.isalpha():
        raise serializers.ValidationError("Must be a non-empty string of letters A-Z.")
    return value


VARIANT_CHOICES = [(v, v) for v in VariantRegistry.names()]
MODE_CHOICES = [("daily", "daily"), ("practice", "practice")]


# PUBLIC_INTERFACE
class PuzzleQuerySerializer(serializers.Serializer):
    """Query parameters for today's puzzle.

    Fields:
    - date (optional, default today UTC)
    - slot (optional, default current UTC hour): 0-23
    - variant (optional, default 'scramble'): cipher | scramble
    """

    date = serializers.DateField(required=False)
    slot = serializers.IntegerField(required=False, min_value=0, max_value=23)
    variant = serializers.ChoiceField(required=False, choices=VARIANT_CHOICES, default="scramble")


# PUBLIC_INTERFACE
class PracticePuzzleRequestSerializer(serializers.Serializer):
    """Request payload for a new practice puzzle."""

    variant = serializers.ChoiceField(required=False, choices=VARIANT_CHOICES, default="scramble")


# PUBLIC_INTERFACE
class PuzzlePublicSerializer(serializers.Serializer):
    """Player-facing puzzle view.

    Never includes target_word or generation_metadata. The theme hint is only
    shown for cipher puzzles; for scramble puzzles it is sold as a hint.
    """

    id = serializers.UUIDField()
    date = serializers.DateField()
    slot = serializers.IntegerField()
    kind = serializers.CharField()
    variant = serializers.CharField()
    word_length = serializers.IntegerField()
    display_word = serializers.CharField()
    letter_menus = serializers.ListField(child=serializers.ListField(child=serializers.CharField()))
    start_indices = serializers.ListField(child=serializers.IntegerField())
    theme_hint = serializers.SerializerMethodField()

    def get_theme_hint(self, obj: Puzzle):
        if obj.variant == "cipher":
            return obj.theme_hint or None
        return None


# PUBLIC_INTERFACE
class AttemptSerializer(serializers.Serializer):
    """An attempt as returned to its owner."""

    id = serializers.UUIDField()
    puzzle_id = serializers.UUIDField()
    mode = serializers.CharField()
    status = serializers.ChoiceField(choices=["ACTIVE", "COMPLETED", "GAVE_UP"])
    started_at = serializers.DateTimeField()
    completed_at = serializers.DateTimeField(allow_null=True)
    solve_time_ms = serializers.IntegerField(allow_null=True)
    penalty_ms = serializers.IntegerField()
    final_time_ms = serializers.IntegerField(allow_null=True)
    hints_used = serializers.ListField(child=serializers.DictField())
    hints_used_count = serializers.IntegerField()
    is_completed = serializers.BooleanField()
    gave_up = serializers.BooleanField()


# PUBLIC_INTERFACE
class StartAttemptRequestSerializer(serializers.Serializer):
    """Request payload to start an attempt.

    mode is free text here so that an unknown mode surfaces as invalid_mode.
    """

    puzzle_id = serializers.UUIDField()
    mode = serializers.CharField(required=False, default="daily")


# PUBLIC_INTERFACE
class HintRequestSerializer(serializers.Serializer):
    """Request payload for a hint.

    Fields:
    - attempt_id: attempt identifier
    - hint_type: a kind from the puzzle variant's catalog
    - guess_word: current full selection (required by check_positions only)
    """

    attempt_id = serializers.UUIDField()
    hint_type = serializers.CharField()
    guess_word = serializers.CharField(required=False, allow_null=True, allow_blank=True)


# PUBLIC_INTERFACE
class HintResponseSerializer(serializers.Serializer):
    """Response payload for a hint request."""

    hint = serializers.DictField(help_text="kind, penalty_ms, message and meta of the hint just used.")
    penalty_ms = serializers.IntegerField(help_text="Cumulative penalty on the attempt.")
    hints_used_count = serializers.IntegerField()
    attempt = AttemptSerializer()


# PUBLIC_INTERFACE
class SubmitRequestSerializer(serializers.Serializer):
    """Request payload to submit a guess."""

    attempt_id = serializers.UUIDField()
    guess_word = serializers.CharField()

    def validate_guess_word(self, value: str) -> str:
        return _validate_letters(value)


# PUBLIC_INTERFACE
class SubmitResponseSerializer(serializers.Serializer):
    """Response payload after a submission."""

    correct = serializers.BooleanField()
    attempt = AttemptSerializer(required=False, allow_null=True)
    rank = serializers.IntegerField(required=False, allow_null=True)


# PUBLIC_INTERFACE
class AttemptIdRequestSerializer(serializers.Serializer):
    attempt_id = serializers.UUIDField()


# PUBLIC_INTERFACE
class GiveUpResponseSerializer(serializers.Serializer):
    gave_up = serializers.BooleanField()
    target_word = serializers.CharField()


# PUBLIC_INTERFACE
class LeaderboardEntrySerializer(serializers.Serializer):
    """Leaderboard entry."""

    rank = serializers.IntegerField()
    user_id = serializers.CharField()
    attempt_id = serializers.UUIDField()
    final_time_ms = serializers.IntegerField()
    solve_time_ms = serializers.IntegerField()
    penalty_ms = serializers.IntegerField()
    hints_used_count = serializers.IntegerField()
    completed_at = serializers.DateTimeField()
    is_premium = serializers.BooleanField()


# PUBLIC_INTERFACE
class GlobalRankingEntrySerializer(serializers.Serializer):
    """Player ranked by average final time across solved daily puzzles."""

    rank = serializers.IntegerField()
    user_id = serializers.CharField()
    puzzles_solved = serializers.IntegerField()
    avg_final_time_ms = serializers.IntegerField()
    is_premium = serializers.BooleanField()


# PUBLIC_INTERFACE
class RecentLeaderboardsQuerySerializer(serializers.Serializer):
    """Query parameters for recent daily leaderboards.

    Fields:
    - date (optional): only puzzles of this UTC day
    - limit_puzzles, limit_entries are read and clamped by the view
    """

    date = serializers.DateField(required=False)


# PUBLIC_INTERFACE
class RecentLeaderboardSectionSerializer(serializers.Serializer):
    """One recent daily puzzle with its ranked entries.

    target_word stays null until the puzzle's hour window has closed.
    """

    puzzle = PuzzlePublicSerializer()
    target_word = serializers.CharField(allow_null=True)
    entries = LeaderboardEntrySerializer(many=True)


class _VariantStatsSerializer(serializers.Serializer):
    best_time_ms = serializers.IntegerField(allow_null=True)
    avg_7d_ms = serializers.IntegerField(allow_null=True)
    avg_30d_ms = serializers.IntegerField(allow_null=True)
    hint_usage_count = serializers.IntegerField()


# PUBLIC_INTERFACE
class PlayerStatsSerializer(_VariantStatsSerializer):
    """Stats over the player's recent solved daily puzzles."""

    current_streak = serializers.IntegerField()
    cipher = _VariantStatsSerializer()
    scramble = _VariantStatsSerializer()


# PUBLIC_INTERFACE
class AdminCreatePuzzleSerializer(serializers.Serializer):
    """Request payload for creating a daily puzzle from an explicit word.

    Cipher-only options: shift_amount (1-25), direction (left|right),
    unshifted_count (0..length-1). Out-of-range values are rejected.
    """

    variant = serializers.ChoiceField(choices=VARIANT_CHOICES)
    target_word = serializers.CharField()
    date = serializers.DateField(required=False)
    slot = serializers.IntegerField(required=False, min_value=0, max_value=23)
    theme_hint = serializers.CharField(required=False, allow_blank=True, default="")
    shift_amount = serializers.IntegerField(required=False, min_value=1, max_value=25)
    direction = serializers.ChoiceField(required=False, choices=[("left", "left"), ("right", "right")])
    unshifted_count = serializers.IntegerField(required=False, min_value=0)

    def validate_target_word(self, value: str) -> str:
        return _validate_letters(value)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        spec = VariantRegistry.get(attrs["variant"])
        if len(attrs["target_word"]) != spec.word_length:
            raise serializers.ValidationError(
                {"target_word": f"{spec.name} words must be {spec.word_length} letters."}
            )
        cipher_opts = {"shift_amount", "direction", "unshifted_count"} & set(attrs)
        if cipher_opts and spec.name != "cipher":
            raise serializers.ValidationError(f"{sorted(cipher_opts)} only apply to cipher puzzles.")
        return attrs


# PUBLIC_INTERFACE
class AdminPuzzleResponseSerializer(PuzzlePublicSerializer):
    """Admin view: the public puzzle plus the answer and generation metadata."""

    target_word = serializers.CharField()
    theme_hint = serializers.CharField()
    generation_metadata = serializers.DictField()
