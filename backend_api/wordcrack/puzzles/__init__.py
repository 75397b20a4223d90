"""
Puzzle generators, variant registry and hint catalog.

Exports:
- generate_cipher and generate_scramble puzzle generators
- VariantRegistry, get_variant and generate_puzzle for resolving variants
- build_hint, CipherHint, ScrambleHint and HINT_PENALTY_MS for hints

These modules are framework-agnostic and can be reused by views or services
without importing request objects or Django models.
"""

from .generators import GeneratedPuzzle, default_rng, generate_cipher, generate_scramble, shift_letter
from .registry import VariantRegistry, VariantSpec, check_target_word, generate_puzzle, get_variant
from .hints import (
    HINT_PENALTY_MS,
    CipherHint,
    ScrambleHint,
    build_hint,
    hint_penalty_ms,
    parse_hint_kind,
)

__all__ = [
    "GeneratedPuzzle",
    "default_rng",
    "generate_cipher",
    "generate_scramble",
    "shift_letter",
    "VariantRegistry",
    "VariantSpec",
    "check_target_word",
    "generate_puzzle",
    "get_variant",
    "HINT_PENALTY_MS",
    "CipherHint",
    "ScrambleHint",
    "build_hint",
    "hint_penalty_ms",
    "parse_hint_kind",
]
