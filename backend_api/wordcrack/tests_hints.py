import random
from types import SimpleNamespace

from django.test import SimpleTestCase

from wordcrack.exceptions import InvalidHintKind
from wordcrack.puzzles import HINT_PENALTY_MS, CipherHint, ScrambleHint, build_hint, parse_hint_kind


def cipher_puzzle(target="CRANE", display="FUDQH", theme=""):
    return SimpleNamespace(variant="cipher", target_word=target, display_word=display, theme_hint=theme)


def scramble_puzzle(target="PLANET", display="TENALP", theme="orbits a star"):
    return SimpleNamespace(variant="scramble", target_word=target, display_word=display, theme_hint=theme)


class CatalogTests(SimpleTestCase):
    def test_each_variant_has_its_own_closed_catalog(self):
        self.assertEqual(
            {k.value for k in CipherHint}, {"check_positions", "shift_amount", "unshifted_positions"}
        )
        self.assertEqual(
            {k.value for k in ScrambleHint}, {"check_positions", "reveal_position", "reveal_theme"}
        )

    def test_penalty_table(self):
        self.assertEqual(
            HINT_PENALTY_MS,
            {
                "check_positions": 5000,
                "reveal_position": 8000,
                "shift_amount": 8000,
                "reveal_theme": 10000,
                "unshifted_positions": 10000,
            },
        )

    def test_kind_from_other_variant_is_rejected(self):
        with self.assertRaises(InvalidHintKind):
            parse_hint_kind("cipher", "reveal_position")
        with self.assertRaises(InvalidHintKind):
            build_hint("shift_amount", scramble_puzzle())
        with self.assertRaises(InvalidHintKind):
            build_hint("shift_direction", cipher_puzzle())


class CheckPositionsTests(SimpleTestCase):
    def test_counts_correct_positions(self):
        result = build_hint("check_positions", cipher_puzzle(), "CRXXE")
        self.assertEqual(result["meta"], {"correct_count": 3, "correct_positions": [1, 2, 5]})
        self.assertEqual(result["message"], "Correct positions: 3 (1, 2, 5).")

    def test_none_and_all_correct(self):
        none = build_hint("check_positions", cipher_puzzle(), "XXXXX")
        self.assertEqual(none["meta"]["correct_count"], 0)
        all_ = build_hint("check_positions", scramble_puzzle(), "PLANET")
        self.assertEqual(all_["meta"]["correct_positions"], [1, 2, 3, 4, 5, 6])
        self.assertIn("Submit", all_["message"])

    def test_missing_or_short_guess_asks_to_finish(self):
        for guess in (None, "", "CRA"):
            result = build_hint("check_positions", cipher_puzzle(), guess)
            self.assertEqual(result["meta"], {"requires_guess": True})
            self.assertIn("Select all 5 letters", result["message"])


class CipherHintTests(SimpleTestCase):
    def test_shift_amount_reports_magnitude_only(self):
        result = build_hint("shift_amount", cipher_puzzle())
        self.assertEqual(result["meta"], {"shift_amount": 3})
        self.assertNotIn("right", result["message"].lower())

    def test_shift_amount_folds_large_shifts(self):
        # CRANE shifted right by 23 is the same as left by 3.
        result = build_hint("shift_amount", cipher_puzzle(display="ZOXKB"))
        self.assertEqual(result["meta"]["shift_amount"], 3)

    def test_shift_amount_skips_unshifted_positions(self):
        result = build_hint("shift_amount", cipher_puzzle(display="CUDQH"))
        self.assertEqual(result["meta"]["shift_amount"], 3)

    def test_no_shift_detected(self):
        result = build_hint("shift_amount", cipher_puzzle(display="CRANE"))
        self.assertEqual(result["meta"], {"shift_amount": None})
        self.assertEqual(result["message"], "No shift detected.")

    def test_unshifted_positions_reveals_at_most_two(self):
        puzzle = cipher_puzzle(display="CRDQE")  # positions 1, 2 and 5 unshifted
        for seed in range(20):
            result = build_hint("unshifted_positions", puzzle, rng=random.Random(seed))
            picked = result["meta"]["unshifted_positions"]
            self.assertEqual(len(picked), 2)
            self.assertTrue(set(picked) <= {1, 2, 5})

    def test_single_unshifted_position(self):
        result = build_hint("unshifted_positions", cipher_puzzle(display="CUDQH"))
        self.assertEqual(result["meta"]["unshifted_positions"], [1])
        self.assertEqual(result["message"], "Position 1 is unshifted.")

    def test_all_positions_shifted(self):
        result = build_hint("unshifted_positions", cipher_puzzle())
        self.assertEqual(result["meta"]["unshifted_positions"], [])
        self.assertEqual(result["message"], "All 5 positions are shifted.")


class ScrambleHintTests(SimpleTestCase):
    def test_reveal_position_reports_target_letter(self):
        puzzle = scramble_puzzle()
        for seed in range(20):
            result = build_hint("reveal_position", puzzle, rng=random.Random(seed))
            position = result["meta"]["position"]
            self.assertEqual(result["meta"]["letter"], "PLANET"[position - 1])

    def test_reveal_position_one_is_p(self):
        class FirstPosition(random.Random):
            def randrange(self, *args, **kwargs):
                return 0

        result = build_hint("reveal_position", scramble_puzzle(), rng=FirstPosition())
        self.assertEqual(result["meta"], {"position": 1, "letter": "P"})
        self.assertEqual(result["message"], "Position 1 is P.")

    def test_reveal_theme_is_title_cased(self):
        result = build_hint("reveal_theme", scramble_puzzle(theme="  orbits a star "))
        self.assertEqual(result["meta"], {"theme": "Orbits A Star"})
        self.assertEqual(result["message"], "Theme hint: Orbits A Star")

    def test_reveal_theme_missing(self):
        result = build_hint("reveal_theme", scramble_puzzle(theme=""))
        self.assertEqual(result["meta"], {"theme": None})
        self.assertEqual(result["message"], "No theme hint available for this puzzle.")
