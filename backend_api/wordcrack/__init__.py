"""
WordCrack app package.

Re-exports puzzle generators, the variant registry and hint utilities so
callers can import from wordcrack directly, e.g.:

    from wordcrack import generate_cipher, build_hint
"""

# PUBLIC_INTERFACE
from .puzzles import (
    VariantRegistry,
    build_hint,
    generate_cipher,
    generate_puzzle,
    generate_scramble,
    get_variant,
)

__all__ = [
    "VariantRegistry",
    "build_hint",
    "generate_cipher",
    "generate_puzzle",
    "generate_scramble",
    "get_variant",
]
