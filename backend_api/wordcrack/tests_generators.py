import random

from django.test import SimpleTestCase

from wordcrack.exceptions import InvalidInput
from wordcrack.puzzles import (
    check_target_word,
    generate_cipher,
    generate_puzzle,
    generate_scramble,
    get_variant,
    shift_letter,
)
from wordcrack.puzzles.generators import MAX_SCRAMBLE_ATTEMPTS


def _start_word(puzzle):
    return "".join(menu[idx] for menu, idx in zip(puzzle.letter_menus, puzzle.start_indices))


class ShiftLetterTests(SimpleTestCase):
    def test_wraps_around_alphabet(self):
        self.assertEqual(shift_letter("Z", 1), "A")
        self.assertEqual(shift_letter("A", -1), "Z")
        self.assertEqual(shift_letter("C", 29), "F")


class CipherGeneratorTests(SimpleTestCase):
    def test_crane_shift_three_right(self):
        puzzle = generate_cipher(
            "CRANE", shift_amount=3, direction="right", unshifted_count=0, rng=random.Random(1)
        )
        self.assertEqual(puzzle.display_word, "FUDQH")
        self.assertEqual(puzzle.metadata["shift_amount"], 3)
        self.assertEqual(puzzle.metadata["direction"], "right")
        self.assertEqual(puzzle.metadata["unshifted_positions"], [])

    def test_left_shift_wraps(self):
        puzzle = generate_cipher("ABCDE", shift_amount=2, direction="left", unshifted_count=0, rng=random.Random(2))
        self.assertEqual(puzzle.display_word, "YZABC")

    def test_display_matches_shift_outside_unshifted_positions(self):
        for seed in range(50):
            rng = random.Random(seed)
            puzzle = generate_cipher("TIGER", unshifted_count=seed % 5, rng=rng)
            meta = puzzle.metadata
            delta = meta["shift_amount"] * (1 if meta["direction"] == "right" else -1)
            unshifted = {p - 1 for p in meta["unshifted_positions"]}
            self.assertEqual(len(unshifted), seed % 5)
            for i, ch in enumerate("TIGER"):
                expected = ch if i in unshifted else shift_letter(ch, delta)
                self.assertEqual(puzzle.display_word[i], expected)

    def test_menus_have_five_distinct_letters_with_target_and_display(self):
        for seed in range(50):
            puzzle = generate_cipher("WHALE", rng=random.Random(seed))
            self.assertEqual(len(puzzle.letter_menus), 5)
            for i, menu in enumerate(puzzle.letter_menus):
                self.assertEqual(len(menu), 5)
                self.assertEqual(len(set(menu)), 5)
                self.assertIn("WHALE"[i], menu)
                self.assertIn(puzzle.display_word[i], menu)

    def test_start_indices_never_point_at_correct_letter(self):
        for seed in range(50):
            puzzle = generate_cipher("OCEAN", rng=random.Random(seed))
            for i, (menu, idx) in enumerate(zip(puzzle.letter_menus, puzzle.start_indices)):
                self.assertNotEqual(menu[idx], "OCEAN"[i])
            self.assertNotEqual(_start_word(puzzle), "OCEAN")

    def test_same_seed_is_deterministic(self):
        a = generate_cipher("LEMON", rng=random.Random(99))
        b = generate_cipher("LEMON", rng=random.Random(99))
        self.assertEqual(a, b)

    def test_rejects_bad_word(self):
        for word in ("CRAN", "CRANES", "crane", "CR4NE", ""):
            with self.assertRaises(InvalidInput):
                generate_cipher(word)

    def test_rejects_out_of_range_parameters(self):
        with self.assertRaises(InvalidInput):
            generate_cipher("CRANE", shift_amount=0)
        with self.assertRaises(InvalidInput):
            generate_cipher("CRANE", shift_amount=26)
        with self.assertRaises(InvalidInput):
            generate_cipher("CRANE", direction="up")
        with self.assertRaises(InvalidInput):
            generate_cipher("CRANE", unshifted_count=5)
        with self.assertRaises(InvalidInput):
            generate_cipher("CRANE", unshifted_count=-1)


class ScrambleGeneratorTests(SimpleTestCase):
    def test_planet_is_an_anagram_not_identity(self):
        for seed in range(50):
            puzzle = generate_scramble("PLANET", rng=random.Random(seed))
            self.assertNotEqual(puzzle.display_word, "PLANET")
            self.assertEqual(sorted(puzzle.display_word), sorted("PLANET"))
            self.assertTrue(puzzle.metadata["differs_from_identity"])
            self.assertLessEqual(puzzle.metadata["permutation_attempts"], MAX_SCRAMBLE_ATTEMPTS)

    def test_each_menu_is_the_full_letter_multiset(self):
        puzzle = generate_scramble("BANANA", rng=random.Random(5))
        self.assertEqual(len(puzzle.letter_menus), 6)
        for menu in puzzle.letter_menus:
            self.assertEqual(sorted(menu), sorted("BANANA"))

    def test_start_word_is_never_the_target(self):
        for word in ("PLANET", "BANANA", "AAAAAB", "COFFEE"):
            for seed in range(30):
                puzzle = generate_scramble(word, rng=random.Random(seed))
                for i, (menu, idx) in enumerate(zip(puzzle.letter_menus, puzzle.start_indices)):
                    self.assertNotEqual(menu[idx], word[i])

    def test_repetitive_word_still_differs_from_identity(self):
        for seed in range(30):
            puzzle = generate_scramble("AAAAAB", rng=random.Random(seed))
            self.assertNotEqual(puzzle.display_word, "AAAAAB")

    def test_identity_shuffles_fall_back_to_a_recorded_swap(self):
        class NoShuffle(random.Random):
            def shuffle(self, x):
                pass

        puzzle = generate_scramble("PLANET", rng=NoShuffle(0))
        self.assertEqual(puzzle.display_word, "LPANET")
        self.assertEqual(puzzle.metadata["permutation_attempts"], MAX_SCRAMBLE_ATTEMPTS)
        self.assertTrue(puzzle.metadata["forced_swap"])
        self.assertTrue(puzzle.metadata["differs_from_identity"])

    def test_ordinary_shuffle_is_not_a_forced_swap(self):
        puzzle = generate_scramble("PLANET", rng=random.Random(1))
        self.assertFalse(puzzle.metadata["forced_swap"])

    def test_single_letter_word_is_rejected(self):
        with self.assertRaises(InvalidInput):
            generate_scramble("AAAAAA")

    def test_rejects_wrong_length(self):
        with self.assertRaises(InvalidInput):
            generate_scramble("CRANE")


class RegistryTests(SimpleTestCase):
    def test_word_lengths(self):
        self.assertEqual(get_variant("cipher").word_length, 5)
        self.assertEqual(get_variant("scramble").word_length, 6)

    def test_unknown_variant(self):
        with self.assertRaises(InvalidInput):
            get_variant("crossword")

    def test_generate_puzzle_dispatches_by_variant(self):
        cipher = generate_puzzle("cipher", "CRANE", shift_amount=3, direction="right", unshifted_count=0)
        self.assertEqual(cipher.display_word, "FUDQH")
        scramble = generate_puzzle("scramble", "PLANET", rng=random.Random(3))
        self.assertEqual(scramble.variant, "scramble")

    def test_cipher_options_rejected_for_scramble(self):
        with self.assertRaises(InvalidInput):
            generate_puzzle("scramble", "PLANET", shift_amount=3)

    def test_check_target_word(self):
        self.assertEqual(check_target_word("cipher", "CRANE"), "CRANE")
        for variant, word in (("scramble", "CRANE"), ("cipher", "CR4NE"), ("scramble", "AAAAAA"), ("cipher", "crane")):
            with self.assertRaises(InvalidInput):
                check_target_word(variant, word)
