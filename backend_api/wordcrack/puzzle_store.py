"""
Persistence of generated puzzles.

Daily puzzles are created lazily the first time a (date, slot, variant) is
requested, from the oldest unused puzzle-bank entry. Practice puzzles are
generated fresh on every request from a random bank entry.
"""
from __future__ import annotations

import datetime
import logging
import random
from typing import Any, Optional, Tuple

from django.db import IntegrityError, transaction
from django.utils import timezone

from .exceptions import BankEntryInvalid, Conflict, InvalidInput, NotFound
from .models import Puzzle, PuzzleBankEntry
from .puzzles import GeneratedPuzzle, default_rng, generate_puzzle, get_variant

logger = logging.getLogger(__name__)

MAX_CLAIM_RETRIES = 5


def current_slot(now: Optional[datetime.datetime] = None) -> Tuple[datetime.date, int]:
    """Return (UTC date, UTC hour) for now."""
    now = now or timezone.now()
    now = now.astimezone(datetime.timezone.utc)
    return now.date(), now.hour


def validate_slot(slot: int) -> int:
    if isinstance(slot, bool) or not isinstance(slot, int) or not 0 <= slot <= 23:
        raise InvalidInput("Invalid slot (expected 0-23).")
    return slot


def _find_daily(date: datetime.date, slot: int, variant: str) -> Optional[Puzzle]:
    return Puzzle.objects.filter(kind="daily", date=date, slot=slot, variant=variant).first()


def _save_generated(
    generated: GeneratedPuzzle,
    *,
    kind: str,
    date: datetime.date,
    slot: int,
    theme_hint: str,
    bank_entry: Optional[PuzzleBankEntry] = None,
) -> Puzzle:
    return Puzzle.objects.create(
        kind=kind,
        variant=generated.variant,
        date=date,
        slot=slot,
        target_word=generated.target_word,
        display_word=generated.display_word,
        letter_menus=generated.letter_menus,
        start_indices=generated.start_indices,
        theme_hint=theme_hint or "",
        generation_metadata=generated.metadata,
        bank_entry=bank_entry,
    )


def claim_bank_entry(variant: str) -> PuzzleBankEntry:
    """Atomically mark the oldest unused entry of a variant as used and return it.

    Raises:
        NotFound: if the bank has no unused entry for the variant.
    """
    for _ in range(MAX_CLAIM_RETRIES):
        entry = PuzzleBankEntry.objects.filter(variant=variant, used_at__isnull=True).order_by("id").first()
        if entry is None:
            break
        claimed = PuzzleBankEntry.objects.filter(pk=entry.pk, used_at__isnull=True).update(used_at=timezone.now())
        if claimed:
            entry.refresh_from_db()
            return entry
        logger.info("Bank entry %s claimed concurrently, retrying", entry.pk)
    raise NotFound(f"Puzzle bank is empty for {variant} puzzles.")


def _generate_from_entry(variant: str, entry: PuzzleBankEntry, rng: Optional[random.Random]) -> GeneratedPuzzle:
    try:
        return generate_puzzle(variant, entry.target_word, rng=rng)
    except InvalidInput as exc:
        logger.error("Bank entry %s cannot be used for %s puzzles: %s", entry.pk, variant, exc.message)
        raise BankEntryInvalid("A stored puzzle word is invalid; please try again later.") from None


# PUBLIC_INTERFACE
def get_daily_puzzle(
    date: Optional[datetime.date] = None,
    slot: Optional[int] = None,
    variant: str = "scramble",
    *,
    rng: Optional[random.Random] = None,
) -> Puzzle:
    """Return the daily puzzle for (date, slot, variant), creating it if needed.

    The bank claim, generation and insert share one transaction, so a failed
    generation or a lost insert race leaves the bank entry unused. Two
    concurrent first requests race on the unique (date, slot, variant)
    constraint; the loser re-reads the winner's row.

    Raises:
        NotFound: the bank has no unused entry for the variant.
        BankEntryInvalid: the claimed entry cannot be generated.
    """
    spec = get_variant(variant)
    today, hour = current_slot()
    date = date or today
    slot = hour if slot is None else validate_slot(slot)

    puzzle = _find_daily(date, slot, spec.name)
    if puzzle is not None:
        return puzzle

    try:
        with transaction.atomic():
            entry = claim_bank_entry(spec.name)
            generated = _generate_from_entry(spec.name, entry, rng)
            puzzle = _save_generated(
                generated, kind="daily", date=date, slot=slot, theme_hint=entry.theme_hint, bank_entry=entry
            )
    except IntegrityError:
        logger.info("Daily %s puzzle for %s #%s created concurrently, re-reading", spec.name, date, slot)
        puzzle = _find_daily(date, slot, spec.name)
        if puzzle is None:
            raise
        return puzzle

    logger.info("Generated daily %s puzzle %s for %s #%s", spec.name, puzzle.pk, date, slot)
    return puzzle


# PUBLIC_INTERFACE
def create_practice_puzzle(variant: str = "scramble", *, rng: Optional[random.Random] = None) -> Puzzle:
    """Generate a new practice puzzle from a random bank entry (used or not)."""
    spec = get_variant(variant)
    entries = PuzzleBankEntry.objects.filter(variant=spec.name)
    count = entries.count()
    if count == 0:
        raise NotFound(f"Puzzle bank is empty for {spec.name} puzzles.")
    rng = rng or default_rng()
    entry = entries.order_by("id")[rng.randrange(count)]

    date, slot = current_slot()
    puzzle = _save_generated(
        _generate_from_entry(spec.name, entry, rng),
        kind="practice",
        date=date,
        slot=slot,
        theme_hint=entry.theme_hint,
        bank_entry=entry,
    )
    logger.info("Generated practice %s puzzle %s", spec.name, puzzle.pk)
    return puzzle


# PUBLIC_INTERFACE
def create_daily_puzzle(
    target_word: str,
    *,
    variant: str,
    date: Optional[datetime.date] = None,
    slot: Optional[int] = None,
    theme_hint: str = "",
    rng: Optional[random.Random] = None,
    **options: Any,
) -> Puzzle:
    """Create a daily puzzle from an explicit word (admin path).

    Raises:
        Conflict: if a daily puzzle already exists for (date, slot, variant).
        InvalidInput: on a malformed word or generation option.
    """
    spec = get_variant(variant)
    today, hour = current_slot()
    date = date or today
    slot = hour if slot is None else validate_slot(slot)
    target_word = (target_word or "").strip().upper()

    generated = generate_puzzle(spec.name, target_word, rng=rng, **options)
    try:
        with transaction.atomic():
            puzzle = _save_generated(generated, kind="daily", date=date, slot=slot, theme_hint=theme_hint)
    except IntegrityError:
        raise Conflict(
            f"A daily {spec.name} puzzle already exists for {date.isoformat()} slot {slot}."
        ) from None

    logger.info("Admin created daily %s puzzle %s for %s #%s", spec.name, puzzle.pk, date, slot)
    return puzzle
