from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type

from wordcrack.exceptions import InvalidInput

from .generators import (
    CIPHER_WORD_LENGTH,
    SCRAMBLE_WORD_LENGTH,
    GeneratedPuzzle,
    generate_cipher,
    generate_scramble,
    validate_word,
)
from .hints import CipherHint, ScrambleHint


@dataclass(frozen=True)
class VariantSpec:
    """Static description of a puzzle variant."""

    name: str
    word_length: int
    generator: Callable[..., GeneratedPuzzle]
    hint_catalog: Type


# PUBLIC_INTERFACE
class VariantRegistry:
    """Registry mapping variant identifiers to their generator and hint catalog."""

    _registry: Dict[str, VariantSpec] = {
        "cipher": VariantSpec("cipher", CIPHER_WORD_LENGTH, generate_cipher, CipherHint),
        "scramble": VariantSpec("scramble", SCRAMBLE_WORD_LENGTH, generate_scramble, ScrambleHint),
    }

    @classmethod
    def get(cls, variant: str) -> VariantSpec:
        """Return the description of a variant, or raise InvalidInput."""
        key = (variant or "").strip().lower()
        if key not in cls._registry:
            raise InvalidInput(f"Invalid variant {variant!r} (expected cipher|scramble).")
        return cls._registry[key]

    @classmethod
    def names(cls):
        return list(cls._registry)


# PUBLIC_INTERFACE
def get_variant(variant: str) -> VariantSpec:
    """Convenience accessor, e.g. get_variant("cipher").word_length == 5."""
    return VariantRegistry.get(variant)


# PUBLIC_INTERFACE
def generate_puzzle(
    variant: str,
    target: str,
    *,
    rng: Optional[random.Random] = None,
    **options: Any,
) -> GeneratedPuzzle:
    """Generate a puzzle of the given variant from target.

    Extra keyword options (shift_amount, direction, unshifted_count) are only
    accepted by the cipher generator.
    """
    spec = get_variant(variant)
    if options and spec.name != "cipher":
        raise InvalidInput(f"Options {sorted(options)} are not supported for {spec.name} puzzles.")
    return spec.generator(target, word_length=spec.word_length, rng=rng, **options)


# PUBLIC_INTERFACE
def check_target_word(variant: str, word: str) -> str:
    """Validate a candidate answer for a variant without generating a puzzle.

    The word must be exactly the variant's length in A-Z, and scramble words
    need at least two distinct letters so a non-identity arrangement exists.

    Raises:
        InvalidInput: if the variant is unknown or the word cannot be used.
    """
    spec = get_variant(variant)
    validate_word(word, spec.word_length)
    if spec.name == "scramble" and len(set(word)) < 2:
        raise InvalidInput("Word needs at least two distinct letters to be scrambled.")
    return word
