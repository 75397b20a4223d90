import datetime
import random
from unittest import mock

from django.test import TestCase, override_settings
from django.utils import timezone

from wordcrack import attempts as lifecycle
from wordcrack.exceptions import (
    AlreadyCompleted,
    AlreadyUsed,
    Forbidden,
    InvalidHintKind,
    InvalidInput,
    InvalidMode,
    LimitReached,
    NotFound,
)
from wordcrack.models import Attempt, Entitlement, Puzzle
from wordcrack.puzzle_store import current_slot
from wordcrack.puzzles import generate_puzzle
from wordcrack.scoring import (
    global_rankings,
    player_stats,
    puzzle_leaderboard,
    rank_attempt,
    recent_daily_leaderboards,
)


def make_puzzle(variant="cipher", kind="daily", target=None, date=None, slot=0, theme="", **options):
    target = target or ("CRANE" if variant == "cipher" else "PLANET")
    if variant == "cipher" and not options:
        options = {"shift_amount": 3, "direction": "right", "unshifted_count": 0}
    generated = generate_puzzle(variant, target, rng=random.Random(7), **options)
    return Puzzle.objects.create(
        kind=kind,
        variant=variant,
        date=date or current_slot()[0],
        slot=slot,
        target_word=generated.target_word,
        display_word=generated.display_word,
        letter_menus=generated.letter_menus,
        start_indices=generated.start_indices,
        theme_hint=theme,
        generation_metadata=generated.metadata,
    )


class StartAttemptTests(TestCase):
    def setUp(self):
        self.puzzle = make_puzzle()

    def test_daily_start_is_idempotent(self):
        first = lifecycle.start_attempt("alice", self.puzzle.pk, "daily")
        lifecycle.use_hint("alice", first.pk, "shift_amount")
        again = lifecycle.start_attempt("alice", self.puzzle.pk, "daily")
        self.assertEqual(again.pk, first.pk)
        self.assertEqual(again.started_at, first.started_at)
        self.assertEqual(again.hints_used_count, 1)
        self.assertEqual(Attempt.objects.filter(user_id="alice").count(), 1)

    def test_daily_attempts_are_per_user(self):
        a = lifecycle.start_attempt("alice", self.puzzle.pk, "daily")
        b = lifecycle.start_attempt("bob", self.puzzle.pk, "daily")
        self.assertNotEqual(a.pk, b.pk)

    def test_concurrent_daily_start_returns_winning_row(self):
        winner = {}

        def racing_find(user_id, puzzle):
            # A parallel start inserts its row after our existence check.
            winner["attempt"] = Attempt.objects.create(user_id=user_id, puzzle=puzzle, mode="daily")
            return None

        with mock.patch.object(lifecycle, "_find_daily_attempt", side_effect=racing_find):
            attempt = lifecycle.start_attempt("alice", self.puzzle.pk, "daily")
        self.assertEqual(attempt.pk, winner["attempt"].pk)
        self.assertEqual(Attempt.objects.filter(user_id="alice").count(), 1)

    def test_invalid_mode(self):
        with self.assertRaises(InvalidMode):
            lifecycle.start_attempt("alice", self.puzzle.pk, "ranked")

    def test_mode_must_match_puzzle_kind(self):
        practice = make_puzzle(kind="practice")
        with self.assertRaises(NotFound):
            lifecycle.start_attempt("alice", self.puzzle.pk, "practice")
        with self.assertRaises(NotFound):
            lifecycle.start_attempt("alice", practice.pk, "daily")

    def test_daily_requires_todays_puzzle(self):
        old = make_puzzle(date=current_slot()[0] - datetime.timedelta(days=1))
        with self.assertRaises(NotFound):
            lifecycle.start_attempt("alice", old.pk, "daily")

    def test_missing_puzzle(self):
        with self.assertRaises(NotFound):
            lifecycle.start_attempt("alice", "00000000-0000-0000-0000-000000000000", "daily")

    @override_settings(WORDCRACK_FREE_PRACTICE_PER_DAY=2)
    def test_practice_creates_fresh_attempts_until_quota(self):
        practice = make_puzzle(kind="practice")
        a = lifecycle.start_attempt("alice", practice.pk, "practice")
        b = lifecycle.start_attempt("alice", practice.pk, "practice")
        self.assertNotEqual(a.pk, b.pk)
        with self.assertRaises(LimitReached):
            lifecycle.start_attempt("alice", practice.pk, "practice")
        self.assertEqual(Attempt.objects.filter(user_id="alice", mode="practice").count(), 2)

    @override_settings(WORDCRACK_FREE_PRACTICE_PER_DAY=1)
    def test_premium_practice_is_unlimited(self):
        Entitlement.objects.create(user_id="alice", premium_until=timezone.now() + datetime.timedelta(days=30))
        practice = make_puzzle(kind="practice")
        for _ in range(3):
            lifecycle.start_attempt("alice", practice.pk, "practice")
        self.assertEqual(Attempt.objects.filter(user_id="alice", mode="practice").count(), 3)


class UseHintTests(TestCase):
    def setUp(self):
        self.cipher = make_puzzle("cipher")
        self.scramble = make_puzzle("scramble", slot=1, theme="orbits a star")
        self.attempt = lifecycle.start_attempt("alice", self.cipher.pk, "daily")

    def test_penalties_accumulate(self):
        first = lifecycle.use_hint("alice", self.attempt.pk, "shift_amount")
        self.assertEqual(first.meta, {"shift_amount": 3})
        self.assertEqual(first.total_penalty_ms, 8000)
        second = lifecycle.use_hint("alice", self.attempt.pk, "check_positions", "CRXXE")
        self.assertEqual(second.total_penalty_ms, 13000)
        third = lifecycle.use_hint("alice", self.attempt.pk, "unshifted_positions")
        self.assertEqual(third.total_penalty_ms, 23000)
        self.assertEqual(third.hints_used_count, 3)

        attempt = Attempt.objects.get(pk=self.attempt.pk)
        self.assertEqual([h["kind"] for h in attempt.hints_used],
                         ["shift_amount", "check_positions", "unshifted_positions"])
        self.assertEqual(sum(h["penalty_ms"] for h in attempt.hints_used), attempt.penalty_ms)

    def test_duplicate_kind_rejected_without_charge(self):
        lifecycle.use_hint("alice", self.attempt.pk, "shift_amount")
        with self.assertRaises(AlreadyUsed):
            lifecycle.use_hint("alice", self.attempt.pk, "shift_amount")
        self.assertEqual(Attempt.objects.get(pk=self.attempt.pk).penalty_ms, 8000)

    @override_settings(WORDCRACK_MAX_HINTS=1)
    def test_limit_reached(self):
        lifecycle.use_hint("alice", self.attempt.pk, "shift_amount")
        with self.assertRaises(LimitReached):
            lifecycle.use_hint("alice", self.attempt.pk, "unshifted_positions")

    def test_invalid_kind_for_variant(self):
        with self.assertRaises(InvalidHintKind):
            lifecycle.use_hint("alice", self.attempt.pk, "reveal_theme")
        with self.assertRaises(InvalidHintKind):
            lifecycle.use_hint("alice", self.attempt.pk, "shift_direction")

    def test_check_positions_requires_full_guess_and_is_free_then(self):
        with self.assertRaises(InvalidInput) as ctx:
            lifecycle.use_hint("alice", self.attempt.pk, "check_positions", "CRA")
        self.assertIn("Select all 5 letters", str(ctx.exception))
        attempt = Attempt.objects.get(pk=self.attempt.pk)
        self.assertEqual(attempt.penalty_ms, 0)
        self.assertEqual(attempt.hints_used, [])

    def test_other_players_attempt_is_forbidden(self):
        with self.assertRaises(Forbidden):
            lifecycle.use_hint("mallory", self.attempt.pk, "shift_amount")

    def test_completed_attempt_rejects_hints(self):
        lifecycle.submit_attempt("alice", self.attempt.pk, "CRANE")
        with self.assertRaises(AlreadyCompleted):
            lifecycle.use_hint("alice", self.attempt.pk, "shift_amount")

    def test_scramble_hints(self):
        attempt = lifecycle.start_attempt("alice", self.scramble.pk, "daily")
        theme = lifecycle.use_hint("alice", attempt.pk, "reveal_theme")
        self.assertEqual(theme.meta, {"theme": "Orbits A Star"})
        reveal = lifecycle.use_hint("alice", attempt.pk, "reveal_position", rng=random.Random(0))
        position = reveal.meta["position"]
        self.assertEqual(reveal.meta["letter"], "PLANET"[position - 1])
        self.assertEqual(reveal.total_penalty_ms, 18000)

    def test_stale_version_write_is_retried(self):
        # Simulate a concurrent writer bumping the version after our read.
        real_load = lifecycle.load_owned_attempt
        calls = {"n": 0}

        def racing_load(user_id, attempt_id):
            attempt = real_load(user_id, attempt_id)
            calls["n"] += 1
            if calls["n"] == 1:
                Attempt.objects.filter(pk=attempt.pk).update(version=attempt.version + 1)
            return attempt

        with mock.patch.object(lifecycle, "load_owned_attempt", side_effect=racing_load):
            result = lifecycle.use_hint("alice", self.attempt.pk, "shift_amount")
        self.assertEqual(calls["n"], 2)
        self.assertEqual(result.total_penalty_ms, 8000)
        self.assertEqual(result.hints_used_count, 1)


class SubmitAttemptTests(TestCase):
    def setUp(self):
        self.puzzle = make_puzzle()
        self.attempt = lifecycle.start_attempt("alice", self.puzzle.pk, "daily")

    def test_wrong_guess_is_free(self):
        result = lifecycle.submit_attempt("alice", self.attempt.pk, "CRANK")
        self.assertFalse(result.correct)
        attempt = Attempt.objects.get(pk=self.attempt.pk)
        self.assertFalse(attempt.is_completed)
        self.assertEqual(attempt.penalty_ms, 0)
        self.assertIsNone(attempt.completed_at)

    def test_malformed_guess(self):
        with self.assertRaises(InvalidInput):
            lifecycle.submit_attempt("alice", self.attempt.pk, "CRANES")
        with self.assertRaises(InvalidInput):
            lifecycle.submit_attempt("alice", self.attempt.pk, "CR4NE")

    def test_correct_guess_computes_times_with_penalty(self):
        Attempt.objects.filter(pk=self.attempt.pk).update(
            started_at=timezone.now() - datetime.timedelta(seconds=42)
        )
        lifecycle.use_hint("alice", self.attempt.pk, "shift_amount")
        result = lifecycle.submit_attempt("alice", self.attempt.pk, "crane")
        self.assertTrue(result.correct)
        attempt = result.attempt
        self.assertTrue(attempt.is_completed)
        self.assertGreaterEqual(attempt.solve_time_ms, 42000)
        self.assertLess(attempt.solve_time_ms, 60000)
        self.assertEqual(attempt.final_time_ms, attempt.solve_time_ms + 8000)
        self.assertEqual(result.rank, 1)

    def test_resubmit_returns_stored_result(self):
        first = lifecycle.submit_attempt("alice", self.attempt.pk, "CRANE")
        second = lifecycle.submit_attempt("alice", self.attempt.pk, "CRANE")
        self.assertTrue(second.correct)
        self.assertEqual(second.attempt.final_time_ms, first.attempt.final_time_ms)
        self.assertEqual(second.attempt.completed_at, first.attempt.completed_at)

    def test_future_start_clamps_to_zero(self):
        Attempt.objects.filter(pk=self.attempt.pk).update(
            started_at=timezone.now() + datetime.timedelta(minutes=5)
        )
        result = lifecycle.submit_attempt("alice", self.attempt.pk, "CRANE")
        self.assertEqual(result.attempt.solve_time_ms, 0)

    def test_practice_attempts_are_not_ranked(self):
        practice = make_puzzle(kind="practice")
        attempt = lifecycle.start_attempt("alice", practice.pk, "practice")
        result = lifecycle.submit_attempt("alice", attempt.pk, "CRANE")
        self.assertTrue(result.correct)
        self.assertIsNone(result.rank)

    def _solved_by_parallel_request(self):
        real_load = lifecycle.load_owned_attempt

        def racing_load(user_id, attempt_id):
            attempt = real_load(user_id, attempt_id)
            Attempt.objects.filter(pk=attempt.pk).update(
                is_completed=True, completed_at=timezone.now(), solve_time_ms=4000, final_time_ms=4242
            )
            return attempt

        return mock.patch.object(lifecycle, "load_owned_attempt", side_effect=racing_load)

    def test_losing_submit_returns_stored_result(self):
        with self._solved_by_parallel_request():
            result = lifecycle.submit_attempt("alice", self.attempt.pk, "CRANE")
        self.assertTrue(result.correct)
        self.assertEqual(result.attempt.final_time_ms, 4242)
        self.assertEqual(result.rank, 1)

    def test_losing_give_up_is_already_completed(self):
        with self._solved_by_parallel_request():
            with self.assertRaises(AlreadyCompleted):
                lifecycle.give_up("alice", self.attempt.pk)
        attempt = Attempt.objects.get(pk=self.attempt.pk)
        self.assertFalse(attempt.gave_up)
        self.assertEqual(attempt.final_time_ms, 4242)

    def test_submit_after_give_up(self):
        lifecycle.give_up("alice", self.attempt.pk)
        with self.assertRaises(AlreadyCompleted):
            lifecycle.submit_attempt("alice", self.attempt.pk, "CRANE")

    def test_other_player_cannot_submit(self):
        with self.assertRaises(Forbidden):
            lifecycle.submit_attempt("mallory", self.attempt.pk, "CRANE")


class GiveUpTests(TestCase):
    def setUp(self):
        self.puzzle = make_puzzle()
        self.attempt = lifecycle.start_attempt("alice", self.puzzle.pk, "daily")

    def test_give_up_reveals_word_and_clears_times(self):
        lifecycle.use_hint("alice", self.attempt.pk, "shift_amount")
        result = lifecycle.give_up("alice", self.attempt.pk)
        self.assertEqual(result.target_word, "CRANE")
        attempt = Attempt.objects.get(pk=self.attempt.pk)
        self.assertTrue(attempt.gave_up)
        self.assertTrue(attempt.is_completed)
        self.assertIsNone(attempt.solve_time_ms)
        self.assertIsNone(attempt.final_time_ms)
        self.assertEqual(attempt.penalty_ms, 8000)
        self.assertIsNone(rank_attempt(attempt))

    def test_give_up_is_idempotent(self):
        lifecycle.give_up("alice", self.attempt.pk)
        again = lifecycle.give_up("alice", self.attempt.pk)
        self.assertEqual(again.target_word, "CRANE")

    def test_cannot_give_up_a_solved_attempt(self):
        lifecycle.submit_attempt("alice", self.attempt.pk, "CRANE")
        with self.assertRaises(AlreadyCompleted):
            lifecycle.give_up("alice", self.attempt.pk)
        self.assertFalse(Attempt.objects.get(pk=self.attempt.pk).gave_up)

    def test_missing_attempt(self):
        with self.assertRaises(NotFound):
            lifecycle.give_up("alice", "00000000-0000-0000-0000-000000000000")


class RankingTests(TestCase):
    def setUp(self):
        self.puzzle = make_puzzle()
        self.base = timezone.now()

    def _completed(self, user_id, final_time_ms, seconds_after, mode="daily", puzzle=None):
        return Attempt.objects.create(
            user_id=user_id,
            puzzle=puzzle or self.puzzle,
            mode=mode,
            started_at=self.base - datetime.timedelta(minutes=10),
            completed_at=self.base + datetime.timedelta(seconds=seconds_after),
            solve_time_ms=final_time_ms,
            final_time_ms=final_time_ms,
            is_completed=True,
        )

    def test_ties_broken_by_completion_order(self):
        early = self._completed("a", 10000, 1)
        late = self._completed("b", 10000, 2)
        fastest = self._completed("c", 9000, 3)
        self.assertEqual(rank_attempt(fastest), 1)
        self.assertEqual(rank_attempt(early), 2)
        self.assertEqual(rank_attempt(late), 3)

    def test_give_ups_practice_and_other_puzzles_are_ignored(self):
        mine = self._completed("a", 20000, 5)
        Attempt.objects.create(
            user_id="quitter", puzzle=self.puzzle, mode="daily", is_completed=True, gave_up=True,
            completed_at=self.base,
        )
        practice = make_puzzle(kind="practice")
        self._completed("p", 1000, 0, mode="practice", puzzle=practice)
        other = make_puzzle(slot=5)
        self._completed("o", 1000, 0, puzzle=other)
        self.assertEqual(rank_attempt(mine), 1)

    def test_leaderboard_matches_ranks(self):
        a = self._completed("a", 10000, 1)
        b = self._completed("b", 10000, 2)
        c = self._completed("c", 9000, 3)
        entries = puzzle_leaderboard(self.puzzle)
        self.assertEqual([e["attempt_id"] for e in entries], [c.pk, a.pk, b.pk])
        for entry in entries:
            attempt = Attempt.objects.get(pk=entry["attempt_id"])
            self.assertEqual(entry["rank"], rank_attempt(attempt))


class PlayerStatsTests(TestCase):
    def test_streak_and_best_time(self):
        today = current_slot()[0]
        now = timezone.now()
        for days_ago, solve_ms, variant in ((0, 30000, "cipher"), (1, 20000, "scramble"), (3, 10000, "cipher")):
            puzzle = make_puzzle(variant, date=today - datetime.timedelta(days=days_ago))
            Attempt.objects.create(
                user_id="alice",
                puzzle=puzzle,
                mode="daily",
                completed_at=now - datetime.timedelta(days=days_ago),
                solve_time_ms=solve_ms,
                final_time_ms=solve_ms,
                is_completed=True,
                hints_used=[{"kind": "check_positions", "penalty_ms": 0}],
            )
        stats = player_stats("alice", today=today)
        self.assertEqual(stats["current_streak"], 2)
        self.assertEqual(stats["best_time_ms"], 10000)
        self.assertEqual(stats["avg_7d_ms"], 20000)
        self.assertEqual(stats["hint_usage_count"], 3)
        self.assertEqual(stats["cipher"]["best_time_ms"], 10000)
        self.assertEqual(stats["scramble"]["best_time_ms"], 20000)

    def test_no_solves(self):
        stats = player_stats("nobody")
        self.assertEqual(stats["current_streak"], 0)
        self.assertIsNone(stats["best_time_ms"])
        self.assertIsNone(stats["cipher"]["avg_30d_ms"])


def solve(user_id, puzzle, final_time_ms, mode="daily", gave_up=False):
    return Attempt.objects.create(
        user_id=user_id,
        puzzle=puzzle,
        mode=mode,
        completed_at=timezone.now(),
        solve_time_ms=None if gave_up else final_time_ms,
        final_time_ms=None if gave_up else final_time_ms,
        is_completed=True,
        gave_up=gave_up,
    )


class GlobalRankingsTests(TestCase):
    def setUp(self):
        p1, p2, p3 = (make_puzzle(slot=s) for s in range(3))
        for puzzle, ms in ((p1, 10000), (p2, 20000), (p3, 30000)):
            solve("alice", puzzle, ms)
        solve("bob", p1, 20000)
        solve("bob", p2, 20000)
        solve("bob", p3, 0, gave_up=True)
        solve("carol", p1, 5000)
        solve("carol", make_puzzle(kind="practice"), 1000, mode="practice")
        Entitlement.objects.create(user_id="bob", premium_until=timezone.now() + datetime.timedelta(days=1))
        Entitlement.objects.create(user_id="alice", premium_until=timezone.now() - datetime.timedelta(days=1))

    def test_ties_on_average_go_to_more_solves(self):
        entries = global_rankings(min_solved=2)
        self.assertEqual([e["user_id"] for e in entries], ["alice", "bob"])
        self.assertEqual(entries[0]["avg_final_time_ms"], 20000)
        self.assertEqual(entries[0]["puzzles_solved"], 3)
        self.assertEqual(entries[1]["puzzles_solved"], 2)
        self.assertEqual([e["rank"] for e in entries], [1, 2])

    def test_premium_flag_follows_active_entitlement(self):
        flags = {e["user_id"]: e["is_premium"] for e in global_rankings(min_solved=1)}
        self.assertEqual(flags, {"alice": False, "bob": True, "carol": False})

    def test_min_solved_and_limit(self):
        entries = global_rankings(limit=1, min_solved=1)
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0]["user_id"], "carol")
        self.assertEqual(entries[0]["avg_final_time_ms"], 5000)
        self.assertEqual(global_rankings(min_solved=4), [])


class RecentLeaderboardsTests(TestCase):
    def setUp(self):
        self.day = datetime.date(2024, 5, 1)
        self.closed = make_puzzle(date=self.day, slot=9)
        self.open = make_puzzle(date=self.day, slot=10)
        self.previous = make_puzzle(date=self.day - datetime.timedelta(days=1), slot=23)
        make_puzzle(kind="practice", date=self.day, slot=11)
        solve("alice", self.closed, 12000)
        self.now = datetime.datetime(2024, 5, 1, 10, 30, tzinfo=datetime.timezone.utc)

    def test_newest_first_and_answer_hidden_until_window_closes(self):
        sections = recent_daily_leaderboards(now=self.now)
        self.assertEqual([s["puzzle"].pk for s in sections], [self.open.pk, self.closed.pk, self.previous.pk])
        self.assertIsNone(sections[0]["target_word"])
        self.assertEqual(sections[1]["target_word"], "CRANE")
        self.assertEqual(sections[2]["target_word"], "CRANE")
        self.assertEqual(sections[0]["entries"], [])
        self.assertEqual(sections[1]["entries"][0]["user_id"], "alice")
        self.assertEqual(sections[1]["entries"][0]["rank"], 1)

    def test_answer_revealed_exactly_at_window_end(self):
        at_close = datetime.datetime(2024, 5, 1, 11, 0, tzinfo=datetime.timezone.utc)
        sections = recent_daily_leaderboards(limit_puzzles=1, now=at_close)
        self.assertEqual(sections[0]["target_word"], "CRANE")

    def test_limits_and_date_filter(self):
        self.assertEqual(len(recent_daily_leaderboards(limit_puzzles=2, now=self.now)), 2)
        only_previous = recent_daily_leaderboards(date=self.previous.date, now=self.now)
        self.assertEqual([s["puzzle"].pk for s in only_previous], [self.previous.pk])
        solve("bob", self.closed, 13000)
        sections = recent_daily_leaderboards(limit_entries=1, date=self.day, now=self.now)
        self.assertEqual([len(s["entries"]) for s in sections], [0, 1])
