from __future__ import annotations

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from .exceptions import InvalidInput
from .puzzles import check_target_word


# PUBLIC_INTERFACE
class TimeStampedModel(models.Model):
    """Abstract base model providing created/updated timestamps.

    Notes:
        Keep this abstract model free of any logic that would access the Django
        app registry or execute queries at module import time.
    """
    created_at = models.DateTimeField(auto_now_add=True, help_text="Time when the record was created.")
    updated_at = models.DateTimeField(auto_now=True, help_text="Time when the record was last updated.")

    class Meta:
        abstract = True


VARIANT_CHOICES = (
    ("cipher", "Cipher"),
    ("scramble", "Scramble"),
)

MODE_CHOICES = (
    ("daily", "Daily"),
    ("practice", "Practice"),
)


# PUBLIC_INTERFACE
class PuzzleBankEntry(TimeStampedModel):
    """A curated target word waiting to become a puzzle.

    Fields:
    - variant: which puzzle variant the word is sized for
    - target_word: uppercase answer
    - theme_hint: author-supplied hint that never spells out the word
    - used_at: when a daily puzzle claimed this entry (null while unused)
    """
    variant = models.CharField(max_length=16, choices=VARIANT_CHOICES, db_index=True)
    target_word = models.CharField(max_length=16)
    theme_hint = models.CharField(max_length=200, blank=True, default="")
    used_at = models.DateTimeField(null=True, blank=True, db_index=True)

    class Meta:
        ordering = ["id"]
        verbose_name = "Puzzle bank entry"
        verbose_name_plural = "Puzzle bank entries"
        constraints = [
            models.UniqueConstraint(fields=["variant", "target_word"], name="uniq_bank_variant_word"),
        ]

    def clean(self):
        super().clean()
        self.target_word = (self.target_word or "").strip().upper()
        try:
            check_target_word(self.variant, self.target_word)
        except InvalidInput as exc:
            raise ValidationError({"target_word": exc.message}) from None

    def save(self, *args, **kwargs):
        # bulk_create skips this; ensure_seed_bank checks its words itself.
        self.clean()
        super().save(*args, **kwargs)

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.variant}:{self.target_word}"


# PUBLIC_INTERFACE
class Puzzle(TimeStampedModel):
    """A generated puzzle, immutable once created.

    Daily puzzles are unique per (date, slot, variant); practice puzzles are
    created on demand and may share a date/slot.
    """
    KIND_CHOICES = (
        ("daily", "Daily"),
        ("practice", "Practice"),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    date = models.DateField(db_index=True, help_text="UTC calendar day.")
    slot = models.PositiveSmallIntegerField(help_text="UTC hour bucket, 0-23.")
    kind = models.CharField(max_length=16, choices=KIND_CHOICES, default="daily")
    variant = models.CharField(max_length=16, choices=VARIANT_CHOICES)
    target_word = models.CharField(max_length=16)
    display_word = models.CharField(max_length=16)
    letter_menus = models.JSONField(help_text="Per-position candidate letters.")
    start_indices = models.JSONField(help_text="Per-position starting index into its menu.")
    theme_hint = models.CharField(max_length=200, blank=True, default="")
    generation_metadata = models.JSONField(default=dict, blank=True)
    bank_entry = models.ForeignKey(
        PuzzleBankEntry, null=True, blank=True, on_delete=models.SET_NULL, related_name="puzzles"
    )

    class Meta:
        ordering = ["-date", "-slot"]
        constraints = [
            models.UniqueConstraint(
                fields=["date", "slot", "variant"],
                condition=Q(kind="daily"),
                name="uniq_daily_puzzle_slot",
            ),
        ]

    @property
    def word_length(self) -> int:
        return len(self.target_word)

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.kind} {self.variant} {self.date} #{self.slot}"


# PUBLIC_INTERFACE
class Attempt(TimeStampedModel):
    """One player's run at a puzzle.

    Fields:
    - user_id: opaque identity supplied by the auth gateway
    - mode: daily (one per user and puzzle) or practice (unlimited)
    - started_at/completed_at: server timestamps; solve time is derived from them
    - penalty_ms: sum of hint penalties
    - final_time_ms: solve_time_ms + penalty_ms once solved, null for give-ups
    - hints_used: ordered list of hint events
    - version: bumped on every write, used for check-and-set updates
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.CharField(max_length=64, db_index=True)
    puzzle = models.ForeignKey(Puzzle, on_delete=models.PROTECT, related_name="attempts")
    mode = models.CharField(max_length=16, choices=MODE_CHOICES)
    started_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)
    solve_time_ms = models.PositiveIntegerField(null=True, blank=True)
    penalty_ms = models.PositiveIntegerField(default=0)
    final_time_ms = models.PositiveIntegerField(null=True, blank=True, db_index=True)
    hints_used = models.JSONField(default=list, blank=True)
    is_completed = models.BooleanField(default=False)
    gave_up = models.BooleanField(default=False)
    version = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "puzzle"],
                condition=Q(mode="daily"),
                name="uniq_daily_attempt_per_user",
            ),
        ]

    @property
    def status(self) -> str:
        if self.gave_up:
            return "GAVE_UP"
        if self.is_completed:
            return "COMPLETED"
        return "ACTIVE"

    @property
    def hints_used_count(self) -> int:
        return len(self.hints_used or [])

    def __str__(self) -> str:  # pragma: no cover
        return f"Attempt {self.pk} by {self.user_id} ({self.status})"


# PUBLIC_INTERFACE
class PracticeUsage(models.Model):
    """Practice attempts started by a user on one UTC day."""
    user_id = models.CharField(max_length=64)
    day = models.DateField()
    count = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user_id", "day"], name="uniq_practice_usage_day"),
        ]


# PUBLIC_INTERFACE
class Entitlement(TimeStampedModel):
    """Premium status written by the purchase collaborator."""
    user_id = models.CharField(max_length=64, unique=True)
    premium_until = models.DateTimeField(null=True, blank=True)

    def is_active(self, now=None) -> bool:
        now = now or timezone.now()
        return bool(self.premium_until and self.premium_until > now)

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.user_id} until {self.premium_until}"
