from typing import Dict, List, Optional, Tuple

from django.db import transaction

from .exceptions import InvalidInput
from .models import PuzzleBankEntry
from .puzzles import check_target_word, get_variant

# (target_word, theme_hint)
DEFAULT_SEED: Dict[str, List[Tuple[str, str]]] = {
    "cipher": [
        ("CRANE", "tall bird or building-site machine"),
        ("BRAVE", "facing fear"),
        ("FLAME", "candle top"),
        ("GRAPE", "vineyard fruit"),
        ("LEMON", "sour citrus"),
        ("MANGO", "tropical fruit"),
        ("OCEAN", "vast salt water"),
        ("RAVEN", "black bird"),
        ("SOLAR", "powered by the sun"),
        ("TIGER", "striped cat"),
        ("WHALE", "huge sea mammal"),
        ("ZEBRA", "striped horse"),
    ],
    "scramble": [
        ("PLANET", "orbits a star"),
        ("CASTLE", "medieval fortress"),
        ("BRIDGE", "crosses a river"),
        ("GARDEN", "where flowers grow"),
        ("SILVER", "second place metal"),
        ("ROCKET", "space launch"),
        ("FOREST", "many trees"),
        ("PENCIL", "writing tool"),
        ("WINTER", "coldest season"),
        ("JUNGLE", "dense tropical growth"),
        ("ANCHOR", "keeps a ship in place"),
        ("MARBLE", "polished stone"),
    ],
}


def _usable(variant: str, word: str) -> bool:
    try:
        check_target_word(variant, word)
    except InvalidInput:
        return False
    return True


# PUBLIC_INTERFACE
def ensure_seed_bank(seed: Optional[Dict[str, List[Tuple[str, str]]]] = None) -> int:
    """Ensure the puzzle bank has a minimal playable list for every variant.

    Variants that already have entries are left alone. Words that are not
    usable for their variant are skipped. Returns number of entries inserted.
    """
    seed = seed or DEFAULT_SEED
    inserted = 0
    with transaction.atomic():
        for variant, entries in seed.items():
            spec = get_variant(variant)
            if PuzzleBankEntry.objects.filter(variant=spec.name).exists():
                continue
            objs = [
                PuzzleBankEntry(variant=spec.name, target_word=word.upper(), theme_hint=theme)
                for word, theme in entries
                if _usable(spec.name, word.upper())
            ]
            PuzzleBankEntry.objects.bulk_create(objs, ignore_conflicts=True)
            inserted += len(objs)
    return inserted
