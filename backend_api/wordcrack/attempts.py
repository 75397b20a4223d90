"""
Attempt lifecycle: start, hint, submit and give up.

An attempt is Active until it is either solved (Completed) or abandoned
(GaveUp); both are terminal. Every handler is stateless and talks to the
database only, so concurrent retries of the same request are expected.
Writes are conditional updates (version check, or is_completed = false) so
that two racing requests can never both apply.
"""
from __future__ import annotations

import datetime
import logging
import random
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .exceptions import (
    AlreadyCompleted,
    AlreadyUsed,
    Conflict,
    Forbidden,
    InvalidInput,
    InvalidMode,
    LimitReached,
    NotFound,
)
from .models import Attempt, Entitlement, PracticeUsage, Puzzle
from .puzzles import build_hint, hint_penalty_ms, parse_hint_kind
from .scoring import rank_attempt

logger = logging.getLogger(__name__)

MODES = ("daily", "practice")
MAX_WRITE_RETRIES = 3


@dataclass
class HintResult:
    kind: str
    message: str
    meta: Dict[str, Any]
    penalty_ms: int
    attempt: Attempt

    @property
    def total_penalty_ms(self) -> int:
        return self.attempt.penalty_ms

    @property
    def hints_used_count(self) -> int:
        return self.attempt.hints_used_count


@dataclass
class SubmitResult:
    correct: bool
    attempt: Optional[Attempt] = None
    rank: Optional[int] = None


@dataclass
class GiveUpResult:
    target_word: str
    attempt: Attempt = field(repr=False)


def max_hints() -> int:
    return getattr(settings, "WORDCRACK_MAX_HINTS", 3)


def free_practice_per_day() -> int:
    return getattr(settings, "WORDCRACK_FREE_PRACTICE_PER_DAY", 3)


def _utc_today() -> datetime.date:
    return timezone.now().astimezone(datetime.timezone.utc).date()


def is_premium(user_id: str) -> bool:
    return Entitlement.objects.filter(user_id=user_id, premium_until__gt=timezone.now()).exists()


def normalize_guess(guess: Optional[str], length: int) -> str:
    """Uppercase and validate a guess of exactly `length` letters A-Z."""
    value = (guess or "").strip().upper()
    if not re.fullmatch(f"[A-Z]{{{length}}}", value):
        raise InvalidInput(f"Guess must be exactly {length} letters A-Z.")
    return value


def load_owned_attempt(user_id: str, attempt_id) -> Attempt:
    """Fetch an attempt, raising NotFound or Forbidden for other players' rows."""
    attempt = Attempt.objects.select_related("puzzle").filter(pk=attempt_id).first()
    if attempt is None:
        raise NotFound("Attempt not found.")
    if attempt.user_id != user_id:
        raise Forbidden("Attempt belongs to another player.")
    return attempt


def _find_daily_attempt(user_id: str, puzzle: Puzzle) -> Optional[Attempt]:
    return Attempt.objects.filter(user_id=user_id, puzzle=puzzle, mode="daily").first()


def _consume_practice_quota(user_id: str, day: datetime.date) -> None:
    """Count one practice start against today's free quota.

    The increment only applies while count < limit, so concurrent starts
    cannot exceed the quota.
    """
    limit = free_practice_per_day()
    usage, _ = PracticeUsage.objects.get_or_create(user_id=user_id, day=day)
    consumed = PracticeUsage.objects.filter(pk=usage.pk, count__lt=limit).update(count=F("count") + 1)
    if not consumed:
        raise LimitReached(f"Daily practice limit of {limit} reached. Upgrade for unlimited practice.")


# PUBLIC_INTERFACE
def start_attempt(user_id: str, puzzle_id, mode: str = "daily") -> Attempt:
    """Start (or, for daily puzzles, resume) an attempt.

    Daily: returns the player's existing attempt on the puzzle unchanged if
    there is one, so a repeated start never resets the clock or hints.
    Practice: always creates a new attempt, charged against the free daily
    quota unless the player is premium.

    Raises:
        InvalidMode: mode is not daily or practice.
        NotFound: the puzzle is missing, or its kind does not match the mode
            (daily attempts also require today's puzzle).
        LimitReached: the free practice quota is used up.
    """
    if mode not in MODES:
        raise InvalidMode(f"Invalid mode {mode!r} (expected daily|practice).")

    puzzle = Puzzle.objects.filter(pk=puzzle_id).first()
    if puzzle is None:
        raise NotFound("Puzzle not found.")

    if mode == "daily":
        if puzzle.kind != "daily" or puzzle.date != _utc_today():
            raise NotFound("Daily attempts can only be started for today's daily puzzle.")
        existing = _find_daily_attempt(user_id, puzzle)
        if existing is not None:
            return existing
        try:
            with transaction.atomic():
                attempt = Attempt.objects.create(user_id=user_id, puzzle=puzzle, mode="daily")
        except IntegrityError:
            return Attempt.objects.get(user_id=user_id, puzzle=puzzle, mode="daily")
        logger.info("Started daily attempt %s on puzzle %s", attempt.pk, puzzle.pk)
        return attempt

    if puzzle.kind != "practice":
        raise NotFound("Practice attempts can only be started for practice puzzles.")
    with transaction.atomic():
        if not is_premium(user_id):
            _consume_practice_quota(user_id, _utc_today())
        attempt = Attempt.objects.create(user_id=user_id, puzzle=puzzle, mode="practice")
    logger.info("Started practice attempt %s on puzzle %s", attempt.pk, puzzle.pk)
    return attempt


# PUBLIC_INTERFACE
def use_hint(
    user_id: str,
    attempt_id,
    kind: str,
    guess: Optional[str] = None,
    *,
    rng: Optional[random.Random] = None,
) -> HintResult:
    """Spend one hint on an active attempt and charge its penalty.

    Checks run in this order: ownership, terminal state, hint quota,
    duplicate kind, kind valid for the variant. check_positions additionally
    needs a full guess; without one nothing is charged.

    The hint list and penalty are written with a version check-and-set; if a
    concurrent write wins, the attempt is re-read and re-validated.

    Raises:
        NotFound, Forbidden, AlreadyCompleted, LimitReached, AlreadyUsed,
        InvalidHintKind, InvalidInput, Conflict (retries exhausted).
    """
    for _ in range(MAX_WRITE_RETRIES):
        attempt = load_owned_attempt(user_id, attempt_id)
        if attempt.is_completed:
            raise AlreadyCompleted("Attempt already completed.")
        hints = list(attempt.hints_used or [])
        if len(hints) >= max_hints():
            raise LimitReached("No hints remaining.")
        if any(h.get("kind") == kind for h in hints):
            raise AlreadyUsed("Hint already used.")

        puzzle = attempt.puzzle
        hint_kind = parse_hint_kind(puzzle.variant, kind)
        if hint_kind.value == "check_positions":
            n = puzzle.word_length
            try:
                guess = normalize_guess(guess, n)
            except InvalidInput:
                raise InvalidInput(f"Select all {n} letters first, then use this hint.") from None

        built = build_hint(hint_kind, puzzle, guess, rng=rng)
        penalty = hint_penalty_ms(hint_kind)
        event = {
            "kind": hint_kind.value,
            "penalty_ms": penalty,
            "used_at": timezone.now().isoformat(),
            "message": built["message"],
            "meta": built["meta"],
        }

        written = Attempt.objects.filter(pk=attempt.pk, version=attempt.version, is_completed=False).update(
            hints_used=hints + [event],
            penalty_ms=F("penalty_ms") + penalty,
            version=F("version") + 1,
            updated_at=timezone.now(),
        )
        if written:
            attempt.refresh_from_db()
            logger.info(
                "Attempt %s used hint %s (+%sms, total %sms)",
                attempt.pk, hint_kind.value, penalty, attempt.penalty_ms,
            )
            return HintResult(
                kind=hint_kind.value,
                message=built["message"],
                meta=built["meta"],
                penalty_ms=penalty,
                attempt=attempt,
            )
        logger.info("Hint write on attempt %s lost a concurrent update, retrying", attempt.pk)

    raise Conflict("Attempt was modified concurrently, please retry.")


def _completed_result(attempt: Attempt) -> SubmitResult:
    if attempt.gave_up:
        raise AlreadyCompleted("Attempt was given up.")
    return SubmitResult(correct=True, attempt=attempt, rank=rank_attempt(attempt))


# PUBLIC_INTERFACE
def submit_attempt(user_id: str, attempt_id, guess: str) -> SubmitResult:
    """Check a guess and complete the attempt when it is correct.

    Wrong guesses are free and change nothing. A correct guess stamps
    completed_at with the server clock and fixes solve_time_ms (never
    negative) and final_time_ms = solve_time_ms + penalty_ms. Resubmitting a
    solved attempt returns the stored times unchanged.

    Raises:
        NotFound, Forbidden, InvalidInput (malformed guess),
        AlreadyCompleted (the attempt was given up).
    """
    attempt = load_owned_attempt(user_id, attempt_id)
    puzzle = attempt.puzzle
    guess = normalize_guess(guess, puzzle.word_length)

    if attempt.is_completed:
        return _completed_result(attempt)
    if guess != puzzle.target_word:
        return SubmitResult(correct=False)

    now = timezone.now()
    solve_time_ms = max(0, (now - attempt.started_at) // datetime.timedelta(milliseconds=1))
    written = Attempt.objects.filter(pk=attempt.pk, is_completed=False).update(
        is_completed=True,
        completed_at=now,
        solve_time_ms=solve_time_ms,
        final_time_ms=F("penalty_ms") + solve_time_ms,
        version=F("version") + 1,
        updated_at=now,
    )
    attempt.refresh_from_db()
    if not written:
        return _completed_result(attempt)

    logger.info(
        "Attempt %s solved in %sms (final %sms)", attempt.pk, attempt.solve_time_ms, attempt.final_time_ms
    )
    return SubmitResult(correct=True, attempt=attempt, rank=rank_attempt(attempt))


# PUBLIC_INTERFACE
def give_up(user_id: str, attempt_id) -> GiveUpResult:
    """Abandon an active attempt and reveal the answer.

    Give-ups keep null solve/final times so they never reach rankings.
    Repeating the call returns the answer again.

    Raises:
        NotFound, Forbidden, AlreadyCompleted (the attempt was already solved).
    """
    attempt = load_owned_attempt(user_id, attempt_id)
    target_word = attempt.puzzle.target_word
    if attempt.gave_up:
        return GiveUpResult(target_word=target_word, attempt=attempt)
    if attempt.is_completed:
        raise AlreadyCompleted("Attempt already solved.")

    now = timezone.now()
    written = Attempt.objects.filter(pk=attempt.pk, is_completed=False).update(
        gave_up=True,
        is_completed=True,
        completed_at=now,
        solve_time_ms=None,
        final_time_ms=None,
        version=F("version") + 1,
        updated_at=now,
    )
    attempt.refresh_from_db()
    if not written and not attempt.gave_up:
        raise AlreadyCompleted("Attempt already solved.")

    logger.info("Attempt %s given up", attempt.pk)
    return GiveUpResult(target_word=target_word, attempt=attempt)
