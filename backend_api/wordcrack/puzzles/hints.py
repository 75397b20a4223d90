from __future__ import annotations

import random
import string
from enum import Enum
from typing import Any, Dict, Optional, Protocol, Union, runtime_checkable

from wordcrack.exceptions import InvalidHintKind

from .generators import ALPHABET, default_rng


# Light-weight protocol instead of importing Django models at import time.
@runtime_checkable
class _PuzzleLike(Protocol):
    """Minimal interface required from Puzzle for hint computations."""
    variant: str
    target_word: str
    display_word: str
    theme_hint: str


class CipherHint(str, Enum):
    CHECK_POSITIONS = "check_positions"
    SHIFT_AMOUNT = "shift_amount"
    UNSHIFTED_POSITIONS = "unshifted_positions"


class ScrambleHint(str, Enum):
    CHECK_POSITIONS = "check_positions"
    REVEAL_POSITION = "reveal_position"
    REVEAL_THEME = "reveal_theme"


HintKind = Union[CipherHint, ScrambleHint]

HINT_CATALOGS = {
    "cipher": CipherHint,
    "scramble": ScrambleHint,
}

# Charged in full the moment a hint is produced.
HINT_PENALTY_MS: Dict[str, int] = {
    "check_positions": 5_000,
    "reveal_position": 8_000,
    "shift_amount": 8_000,
    "reveal_theme": 10_000,
    "unshifted_positions": 10_000,
}

MAX_REVEALED_UNSHIFTED = 2


# PUBLIC_INTERFACE
def parse_hint_kind(variant: str, kind: Union[str, HintKind]) -> HintKind:
    """Resolve a raw kind string against the catalog of the puzzle's variant.

    Raises:
        InvalidHintKind: if the variant is unknown or the kind is not in its catalog.
    """
    catalog = HINT_CATALOGS.get(variant)
    if catalog is None:
        raise InvalidHintKind(f"Unknown puzzle variant: {variant!r}")
    try:
        return catalog(kind.value if isinstance(kind, Enum) else kind)
    except ValueError:
        raise InvalidHintKind(f"Invalid hint kind for {variant} puzzle: {kind!r}") from None


def hint_penalty_ms(kind: HintKind) -> int:
    return HINT_PENALTY_MS[kind.value]


def _check_positions(puzzle: _PuzzleLike, guess: Optional[str]) -> Dict[str, Any]:
    target = puzzle.target_word
    n = len(target)
    if not guess or len(guess) != n or not all(ch in ALPHABET for ch in guess):
        return {
            "message": f"Select all {n} letters first, then use this hint.",
            "meta": {"requires_guess": True},
        }

    correct_positions = [i + 1 for i in range(n) if guess[i] == target[i]]
    count = len(correct_positions)
    if count == 0:
        message = "None of your selected letters are in the correct position."
    elif count == n:
        message = f"All {n} letters are in the correct position. Submit!"
    else:
        message = f"Correct positions: {count} ({', '.join(str(p) for p in correct_positions)})."
    return {"message": message, "meta": {"correct_count": count, "correct_positions": correct_positions}}


def _shift_amount(puzzle: _PuzzleLike) -> Dict[str, Any]:
    """Report the shift magnitude only; the direction stays hidden."""
    for cipher_ch, target_ch in zip(puzzle.display_word, puzzle.target_word):
        if cipher_ch != target_ch:
            diff = (ALPHABET.index(cipher_ch) - ALPHABET.index(target_ch)) % 26
            amount = min(diff, 26 - diff)
            return {"message": f"Shift amount: {amount} (direction hidden).", "meta": {"shift_amount": amount}}
    return {"message": "No shift detected.", "meta": {"shift_amount": None}}


def _unshifted_positions(puzzle: _PuzzleLike, rng: random.Random) -> Dict[str, Any]:
    unshifted = [
        i + 1 for i, (c, t) in enumerate(zip(puzzle.display_word, puzzle.target_word)) if c == t
    ]
    if not unshifted:
        return {
            "message": f"All {len(puzzle.target_word)} positions are shifted.",
            "meta": {"unshifted_positions": []},
        }
    picked = sorted(rng.sample(unshifted, min(MAX_REVEALED_UNSHIFTED, len(unshifted))))
    if len(picked) == 1:
        message = f"Position {picked[0]} is unshifted."
    else:
        message = f"Positions {picked[0]} and {picked[1]} are unshifted."
    return {"message": message, "meta": {"unshifted_positions": picked}}


def _reveal_position(puzzle: _PuzzleLike, rng: random.Random) -> Dict[str, Any]:
    idx = rng.randrange(len(puzzle.target_word))
    letter = puzzle.target_word[idx]
    return {"message": f"Position {idx + 1} is {letter}.", "meta": {"position": idx + 1, "letter": letter}}


def _reveal_theme(puzzle: _PuzzleLike) -> Dict[str, Any]:
    theme = (puzzle.theme_hint or "").strip()
    if not theme:
        return {"message": "No theme hint available for this puzzle.", "meta": {"theme": None}}
    theme = string.capwords(theme)
    return {"message": f"Theme hint: {theme}", "meta": {"theme": theme}}


# PUBLIC_INTERFACE
def build_hint(
    kind: Union[str, HintKind],
    puzzle: _PuzzleLike,
    guess: Optional[str] = None,
    *,
    rng: Optional[random.Random] = None,
) -> Dict[str, Any]:
    """Compute the player-facing message and metadata for one hint.

    Parameters:
        kind: hint kind; must belong to the catalog of puzzle.variant.
        puzzle: object exposing variant, target_word, display_word and theme_hint.
        guess: the player's current full guess (only read by check_positions).
        rng: random source for kinds that pick positions.

    Returns:
        {"message": str, "meta": dict}. For check_positions without a usable
        guess the meta carries {"requires_guess": True} and nothing is
        revealed; callers must not charge for that outcome.

    Raises:
        InvalidHintKind: if kind is not offered for the puzzle's variant.
    """
    hint_kind = parse_hint_kind(puzzle.variant, kind)
    rng = rng or default_rng()
    value = hint_kind.value

    if value == "check_positions":
        return _check_positions(puzzle, guess)
    if value == "shift_amount":
        return _shift_amount(puzzle)
    if value == "unshifted_positions":
        return _unshifted_positions(puzzle, rng)
    if value == "reveal_position":
        return _reveal_position(puzzle, rng)
    return _reveal_theme(puzzle)
