from __future__ import annotations

import re
import random
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from wordcrack.exceptions import InvalidInput

Variant = Literal["cipher", "scramble"]
Direction = Literal["left", "right"]

CIPHER_WORD_LENGTH = 5
SCRAMBLE_WORD_LENGTH = 6
CIPHER_MENU_SIZE = 5
MAX_SCRAMBLE_ATTEMPTS = 12

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_NEIGHBOR_OFFSETS = (-2, -1, 1, 2, -3, 3, -4, 4)


@dataclass
class GeneratedPuzzle:
    """Output of a generator: everything needed to persist a Puzzle row.

    Fields:
    - variant: "cipher" or "scramble"
    - target_word: the uppercase answer
    - display_word: disguised word shown to the player
    - letter_menus: per-position candidate letters
    - start_indices: per-position index into its menu, never all correct
    - metadata: variant-specific audit data (never shown to players)
    """

    variant: Variant
    target_word: str
    display_word: str
    letter_menus: List[List[str]]
    start_indices: List[int]
    metadata: Dict[str, Any] = field(default_factory=dict)


def default_rng() -> random.Random:
    """Cryptographically strong source used when callers do not inject one."""
    return secrets.SystemRandom()


def validate_word(word: str, length: int) -> str:
    """Return word if it is exactly `length` uppercase A-Z letters, else raise InvalidInput."""
    if not isinstance(word, str) or not re.fullmatch(f"[A-Z]{{{length}}}", word):
        raise InvalidInput(f"Word must be exactly {length} uppercase letters A-Z.")
    return word


def shift_letter(letter: str, delta: int) -> str:
    """Rotate an uppercase letter by delta with A..Z wraparound."""
    return ALPHABET[(ALPHABET.index(letter) + delta) % 26]


def _unique(letters: List[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for ch in letters:
        if ch not in seen:
            seen.add(ch)
            out.append(ch)
    return out


def _cipher_menu(target_char: str, display_char: str, delta: int, step: int, rng: random.Random) -> List[str]:
    """Build the shuffled 5-letter menu for one cipher position.

    Decoys are biased toward plausible mistakes: letters adjacent to the
    target and the cipher letter, and near-misses of the shift itself.
    """
    menu = _unique([
        target_char,
        display_char,
        shift_letter(target_char, -1),
        shift_letter(target_char, 1),
        shift_letter(display_char, -1),
        shift_letter(display_char, 1),
        shift_letter(target_char, delta),
        shift_letter(target_char, delta + step),
        shift_letter(target_char, delta - step),
    ])[:CIPHER_MENU_SIZE]

    for offset in _NEIGHBOR_OFFSETS:
        if len(menu) >= CIPHER_MENU_SIZE:
            break
        ch = shift_letter(target_char, offset)
        if ch not in menu:
            menu.append(ch)

    while len(menu) < CIPHER_MENU_SIZE:
        ch = rng.choice(ALPHABET)
        if ch not in menu:
            menu.append(ch)

    rng.shuffle(menu)
    return menu


# PUBLIC_INTERFACE
def generate_cipher(
    target: str,
    *,
    shift_amount: Optional[int] = None,
    direction: Optional[Direction] = None,
    unshifted_count: int = 1,
    word_length: int = CIPHER_WORD_LENGTH,
    rng: Optional[random.Random] = None,
) -> GeneratedPuzzle:
    """Disguise target with a single alphabetic shift.

    Parameters:
        target: uppercase word of `word_length` letters.
        shift_amount: 1..25; random when omitted.
        direction: "left" or "right"; random when omitted.
        unshifted_count: number of positions left as-is, 0..word_length-1.
        rng: random source; defaults to a cryptographically strong one.

    Raises:
        InvalidInput: on a malformed target or out-of-range parameter.
    """
    rng = rng or default_rng()
    validate_word(target, word_length)

    if shift_amount is None:
        shift_amount = rng.randint(1, 25)
    elif isinstance(shift_amount, bool) or not isinstance(shift_amount, int) or not 1 <= shift_amount <= 25:
        raise InvalidInput("shift_amount must be an integer between 1 and 25.")

    if direction is None:
        direction = rng.choice(("left", "right"))
    elif direction not in ("left", "right"):
        raise InvalidInput("direction must be 'left' or 'right'.")

    if isinstance(unshifted_count, bool) or not isinstance(unshifted_count, int) or not 0 <= unshifted_count <= word_length - 1:
        raise InvalidInput(f"unshifted_count must be between 0 and {word_length - 1}.")

    step = 1 if direction == "right" else -1
    delta = step * shift_amount
    unshifted = sorted(rng.sample(range(word_length), unshifted_count))

    display_word = "".join(
        ch if i in unshifted else shift_letter(ch, delta) for i, ch in enumerate(target)
    )

    letter_menus = [
        _cipher_menu(target[i], display_word[i], delta, step, rng) for i in range(word_length)
    ]

    start_indices = []
    for i, menu in enumerate(letter_menus):
        correct_idx = menu.index(target[i])
        start_indices.append(rng.choice([j for j in range(len(menu)) if j != correct_idx]))

    return GeneratedPuzzle(
        variant="cipher",
        target_word=target,
        display_word=display_word,
        letter_menus=letter_menus,
        start_indices=start_indices,
        metadata={
            "shift_amount": shift_amount,
            "direction": direction,
            "unshifted_positions": [i + 1 for i in unshifted],
        },
    )


# PUBLIC_INTERFACE
def generate_scramble(
    target: str,
    *,
    word_length: int = SCRAMBLE_WORD_LENGTH,
    rng: Optional[random.Random] = None,
) -> GeneratedPuzzle:
    """Disguise target as an anagram of itself.

    The shuffle is retried up to MAX_SCRAMBLE_ATTEMPTS times until it differs
    from the target order. If every retry still lands on the target (only
    plausible for highly repetitive words), the first two differing letters
    are swapped so a "solved" puzzle is never served, and metadata records
    forced_swap. Words made of a single repeated letter have no distinct
    arrangement and are rejected.

    Each position's menu is an independent shuffle of all letters of the
    word, so every column can cycle through the whole word.
    """
    rng = rng or default_rng()
    validate_word(target, word_length)
    if len(set(target)) < 2:
        raise InvalidInput("Word needs at least two distinct letters to be scrambled.")

    letters = list(target)
    attempts = 0
    while attempts < MAX_SCRAMBLE_ATTEMPTS:
        attempts += 1
        rng.shuffle(letters)
        if "".join(letters) != target:
            break
    forced_swap = "".join(letters) == target
    if forced_swap:
        j = next(k for k in range(1, word_length) if letters[k] != letters[0])
        letters[0], letters[j] = letters[j], letters[0]
    display_word = "".join(letters)

    letter_menus = []
    for _ in range(word_length):
        menu = list(target)
        rng.shuffle(menu)
        letter_menus.append(menu)

    start_indices = []
    for i, menu in enumerate(letter_menus):
        candidates = [j for j, ch in enumerate(menu) if ch != target[i]]
        start_indices.append(rng.choice(candidates) if candidates else 0)

    return GeneratedPuzzle(
        variant="scramble",
        target_word=target,
        display_word=display_word,
        letter_menus=letter_menus,
        start_indices=start_indices,
        metadata={
            "permutation_attempts": attempts,
            "differs_from_identity": display_word != target,
            "forced_swap": forced_swap,
        },
    )
