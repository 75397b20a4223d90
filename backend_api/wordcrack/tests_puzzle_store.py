import datetime
import random
from io import StringIO
from unittest import mock

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase

from wordcrack import puzzle_store
from wordcrack.exceptions import BankEntryInvalid, Conflict, InvalidInput, NotFound
from wordcrack.models import Puzzle, PuzzleBankEntry
from wordcrack.puzzle_store import (
    claim_bank_entry,
    create_daily_puzzle,
    create_practice_puzzle,
    current_slot,
    get_daily_puzzle,
)
from wordcrack.seed_utils import DEFAULT_SEED, ensure_seed_bank


class BankEntryValidationTests(TestCase):
    def test_word_must_fit_variant(self):
        for variant, word in (("scramble", "CRANE"), ("cipher", "CR4NE"), ("cipher", "PLANET"), ("scramble", "AAAAAA")):
            with self.assertRaises(ValidationError):
                PuzzleBankEntry.objects.create(variant=variant, target_word=word)
        self.assertFalse(PuzzleBankEntry.objects.exists())

    def test_word_is_normalized_before_validation(self):
        entry = PuzzleBankEntry(variant="scramble", target_word=" planet ")
        entry.full_clean()
        entry.save()
        self.assertEqual(entry.target_word, "PLANET")


class BankClaimTests(TestCase):
    def test_claims_oldest_unused_entry(self):
        first = PuzzleBankEntry.objects.create(variant="cipher", target_word="crane")
        PuzzleBankEntry.objects.create(variant="cipher", target_word="BRAVE")
        claimed = claim_bank_entry("cipher")
        self.assertEqual(claimed.pk, first.pk)
        self.assertEqual(claimed.target_word, "CRANE")
        self.assertIsNotNone(claimed.used_at)
        self.assertEqual(claim_bank_entry("cipher").target_word, "BRAVE")

    def test_empty_bank(self):
        with self.assertRaises(NotFound):
            claim_bank_entry("scramble")


class DailyPuzzleTests(TestCase):
    def setUp(self):
        PuzzleBankEntry.objects.create(variant="scramble", target_word="PLANET", theme_hint="orbits a star")
        PuzzleBankEntry.objects.create(variant="scramble", target_word="CASTLE")

    def test_first_request_creates_then_reuses(self):
        date = datetime.date(2024, 5, 1)
        first = get_daily_puzzle(date, 9, "scramble", rng=random.Random(1))
        again = get_daily_puzzle(date, 9, "scramble")
        self.assertEqual(first.pk, again.pk)
        self.assertEqual(first.kind, "daily")
        self.assertEqual(first.target_word, "PLANET")
        self.assertEqual(first.theme_hint, "orbits a star")
        self.assertEqual(Puzzle.objects.count(), 1)
        self.assertEqual(PuzzleBankEntry.objects.filter(used_at__isnull=True).count(), 1)

    def test_each_slot_gets_its_own_puzzle(self):
        date = datetime.date(2024, 5, 1)
        a = get_daily_puzzle(date, 9, "scramble")
        b = get_daily_puzzle(date, 10, "scramble")
        self.assertNotEqual(a.pk, b.pk)
        self.assertNotEqual(a.target_word, b.target_word)

    def test_defaults_to_current_slot(self):
        puzzle = get_daily_puzzle(variant="scramble")
        self.assertEqual((puzzle.date, puzzle.slot), current_slot())

    def test_bank_exhausted(self):
        date = datetime.date(2024, 5, 1)
        get_daily_puzzle(date, 0, "scramble")
        get_daily_puzzle(date, 1, "scramble")
        with self.assertRaises(NotFound):
            get_daily_puzzle(date, 2, "scramble")

    def test_concurrent_first_request_returns_stored_row(self):
        date = datetime.date(2024, 5, 1)
        real_find = puzzle_store._find_daily
        winner = {}

        def racing_find(d, s, v):
            if not winner:
                # Another request inserts the slot between our lookup and our insert.
                winner["puzzle"] = create_daily_puzzle("BRIDGE", variant=v, date=d, slot=s)
                return None
            return real_find(d, s, v)

        with mock.patch.object(puzzle_store, "_find_daily", side_effect=racing_find):
            puzzle = get_daily_puzzle(date, 9, "scramble")
        self.assertEqual(puzzle.pk, winner["puzzle"].pk)
        self.assertEqual(puzzle.target_word, "BRIDGE")
        self.assertFalse(PuzzleBankEntry.objects.filter(used_at__isnull=False).exists())

    def test_unusable_bank_row_is_not_consumed(self):
        PuzzleBankEntry.objects.all().delete()
        # bulk_create skips model validation, like rows written outside the app.
        PuzzleBankEntry.objects.bulk_create([PuzzleBankEntry(variant="scramble", target_word="CRANE")])
        with self.assertRaises(BankEntryInvalid):
            get_daily_puzzle(datetime.date(2024, 5, 1), 9, "scramble")
        self.assertIsNone(PuzzleBankEntry.objects.get().used_at)
        self.assertFalse(Puzzle.objects.exists())

    def test_invalid_slot_and_variant(self):
        with self.assertRaises(InvalidInput):
            get_daily_puzzle(slot=24, variant="scramble")
        with self.assertRaises(InvalidInput):
            get_daily_puzzle(variant="crossword")


class PracticePuzzleTests(TestCase):
    def test_practice_puzzles_are_fresh_and_reuse_claimed_words(self):
        entry = PuzzleBankEntry.objects.create(variant="cipher", target_word="CRANE")
        claim_bank_entry("cipher")
        a = create_practice_puzzle("cipher", rng=random.Random(3))
        b = create_practice_puzzle("cipher", rng=random.Random(4))
        self.assertNotEqual(a.pk, b.pk)
        self.assertEqual(a.kind, "practice")
        self.assertEqual(a.bank_entry_id, entry.pk)

    def test_empty_bank(self):
        with self.assertRaises(NotFound):
            create_practice_puzzle("cipher")


class AdminCreateTests(TestCase):
    def test_explicit_cipher_options_are_recorded(self):
        puzzle = create_daily_puzzle(
            "crane",
            variant="cipher",
            date=datetime.date(2024, 5, 1),
            slot=3,
            shift_amount=3,
            direction="right",
            unshifted_count=0,
        )
        self.assertEqual(puzzle.target_word, "CRANE")
        self.assertEqual(puzzle.display_word, "FUDQH")
        self.assertEqual(puzzle.generation_metadata["shift_amount"], 3)
        self.assertIsNone(puzzle.bank_entry)

    def test_taken_slot_conflicts(self):
        date = datetime.date(2024, 5, 1)
        create_daily_puzzle("CRANE", variant="cipher", date=date, slot=3)
        with self.assertRaises(Conflict):
            create_daily_puzzle("BRAVE", variant="cipher", date=date, slot=3)
        create_daily_puzzle("PLANET", variant="scramble", date=date, slot=3)

    def test_wrong_length_rejected(self):
        with self.assertRaises(InvalidInput):
            create_daily_puzzle("PLANET", variant="cipher")


class SeedBankTests(TestCase):
    def test_seed_is_idempotent(self):
        inserted = ensure_seed_bank()
        self.assertEqual(inserted, sum(len(v) for v in DEFAULT_SEED.values()))
        self.assertEqual(ensure_seed_bank(), 0)

    def test_management_command(self):
        out = StringIO()
        call_command("seed_puzzle_bank", stdout=out)
        self.assertIn("Seeded", out.getvalue())
        out = StringIO()
        call_command("seed_puzzle_bank", stdout=out)
        self.assertIn("already populated", out.getvalue())

    def test_seed_words_fit_their_variant(self):
        for variant, length in (("cipher", 5), ("scramble", 6)):
            for word, theme in DEFAULT_SEED[variant]:
                self.assertEqual(len(word), length)
                self.assertNotIn(word.lower(), theme.lower())
