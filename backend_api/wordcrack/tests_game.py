from django.test import override_settings
from django.urls import reverse
from rest_framework.test import APITestCase

from wordcrack.models import Attempt, PuzzleBankEntry


@override_settings(WORDCRACK_ADMIN_KEY="test-admin-key")
class GameFlowTests(APITestCase):
    def setUp(self):
        PuzzleBankEntry.objects.create(variant="scramble", target_word="PLANET", theme_hint="orbits a star")
        PuzzleBankEntry.objects.create(variant="cipher", target_word="CRANE", theme_hint="tall bird")
        self.client.credentials(HTTP_X_USER_ID="alice")

    def _create_cipher(self):
        resp = self.client.post(
            reverse("admin-create-puzzle"),
            {
                "variant": "cipher",
                "target_word": "crane",
                "theme_hint": "tall bird",
                "shift_amount": 3,
                "direction": "right",
                "unshifted_count": 0,
            },
            format="json",
            HTTP_X_ADMIN_KEY="test-admin-key",
        )
        self.assertEqual(resp.status_code, 201)
        return resp.json()["puzzle"]

    def _start(self, puzzle_id, mode="daily"):
        resp = self.client.post(reverse("attempt-start"), {"puzzle_id": puzzle_id, "mode": mode}, format="json")
        self.assertEqual(resp.status_code, 200)
        return resp.json()["attempt"]

    def test_health(self):
        resp = self.client.get(reverse("Health"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"message": "Server is up!"})

    def test_today_puzzle_hides_answer(self):
        resp = self.client.get(reverse("puzzle-today"), {"variant": "scramble"})
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        puzzle = data["puzzle"]
        self.assertEqual(data["variant"], "scramble")
        self.assertEqual(puzzle["word_length"], 6)
        self.assertEqual(len(puzzle["letter_menus"]), 6)
        self.assertNotIn("target_word", puzzle)
        self.assertNotIn("generation_metadata", puzzle)
        self.assertIsNone(puzzle["theme_hint"])
        self.assertNotIn("PLANET", str(data))

        again = self.client.get(reverse("puzzle-today"), {"variant": "scramble"}).json()
        self.assertEqual(again["puzzle"]["id"], puzzle["id"])

    def test_today_puzzle_rejects_bad_slot(self):
        resp = self.client.get(reverse("puzzle-today"), {"slot": 24})
        self.assertEqual(resp.status_code, 400)

    def test_empty_bank_is_not_found(self):
        PuzzleBankEntry.objects.all().delete()
        resp = self.client.get(reverse("puzzle-today"), {"variant": "cipher"})
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["code"], "not_found")

    def test_requires_user_header(self):
        self.client.credentials()
        resp = self.client.post(reverse("attempt-start"), {"puzzle_id": self._create_cipher()["id"]}, format="json")
        self.assertEqual(resp.status_code, 401)

    def test_full_cipher_flow(self):
        puzzle = self._create_cipher()
        self.assertEqual(puzzle["display_word"], "FUDQH")
        attempt = self._start(puzzle["id"])
        self.assertEqual(attempt["status"], "ACTIVE")

        hint = self.client.post(
            reverse("attempt-hint"), {"attempt_id": attempt["id"], "hint_type": "shift_amount"}, format="json"
        )
        self.assertEqual(hint.status_code, 200)
        body = hint.json()
        self.assertEqual(body["hint"]["kind"], "shift_amount")
        self.assertEqual(body["hint"]["meta"], {"shift_amount": 3})
        self.assertEqual(body["hint"]["penalty_ms"], 8000)
        self.assertEqual(body["penalty_ms"], 8000)
        self.assertEqual(body["hints_used_count"], 1)

        dup = self.client.post(
            reverse("attempt-hint"), {"attempt_id": attempt["id"], "hint_type": "shift_amount"}, format="json"
        )
        self.assertEqual(dup.status_code, 409)
        self.assertEqual(dup.json()["code"], "already_used")

        wrong = self.client.post(
            reverse("attempt-submit"), {"attempt_id": attempt["id"], "guess_word": "crank"}, format="json"
        )
        self.assertEqual(wrong.status_code, 200)
        self.assertEqual(wrong.json(), {"correct": False})

        right = self.client.post(
            reverse("attempt-submit"), {"attempt_id": attempt["id"], "guess_word": "crane"}, format="json"
        )
        self.assertEqual(right.status_code, 200)
        data = right.json()
        self.assertTrue(data["correct"])
        self.assertEqual(data["rank"], 1)
        self.assertEqual(data["attempt"]["status"], "COMPLETED")
        self.assertEqual(
            data["attempt"]["final_time_ms"], data["attempt"]["solve_time_ms"] + data["attempt"]["penalty_ms"]
        )

        board = self.client.get(reverse("puzzle-leaderboard", kwargs={"puzzle_id": puzzle["id"]}))
        self.assertEqual(board.status_code, 200)
        entries = board.json()["entries"]
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0]["user_id"], "alice")
        self.assertEqual(entries[0]["rank"], 1)

        stats = self.client.get(reverse("my-stats"))
        self.assertEqual(stats.status_code, 200)
        self.assertEqual(stats.json()["current_streak"], 1)
        self.assertEqual(stats.json()["hint_usage_count"], 1)

    def test_daily_start_returns_same_attempt(self):
        puzzle = self._create_cipher()
        first = self._start(puzzle["id"])
        second = self._start(puzzle["id"])
        self.assertEqual(first["id"], second["id"])
        self.assertEqual(first["started_at"], second["started_at"])

    def test_invalid_mode_and_hint_kind(self):
        puzzle = self._create_cipher()
        resp = self.client.post(reverse("attempt-start"), {"puzzle_id": puzzle["id"], "mode": "ranked"}, format="json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["code"], "invalid_mode")

        attempt = self._start(puzzle["id"])
        resp = self.client.post(
            reverse("attempt-hint"), {"attempt_id": attempt["id"], "hint_type": "reveal_theme"}, format="json"
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["code"], "invalid_kind")

    def test_check_positions_needs_full_selection(self):
        attempt = self._start(self._create_cipher()["id"])
        resp = self.client.post(
            reverse("attempt-hint"),
            {"attempt_id": attempt["id"], "hint_type": "check_positions", "guess_word": "CR"},
            format="json",
        )
        self.assertEqual(resp.status_code, 400)
        self.assertIn("Select all 5 letters", resp.json()["error"])

        resp = self.client.post(
            reverse("attempt-hint"),
            {"attempt_id": attempt["id"], "hint_type": "check_positions", "guess_word": "CRXXE"},
            format="json",
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["hint"]["meta"]["correct_count"], 3)
        self.assertEqual(resp.json()["penalty_ms"], 5000)

    def test_give_up_reveals_answer(self):
        puzzle = self._create_cipher()
        attempt = self._start(puzzle["id"])
        resp = self.client.post(reverse("attempt-give-up"), {"attempt_id": attempt["id"]}, format="json")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"gave_up": True, "target_word": "CRANE"})

        detail = self.client.get(reverse("attempt-detail", kwargs={"attempt_id": attempt["id"]})).json()
        self.assertEqual(detail["attempt"]["status"], "GAVE_UP")
        self.assertIsNone(detail["attempt"]["final_time_ms"])

        submit = self.client.post(
            reverse("attempt-submit"), {"attempt_id": attempt["id"], "guess_word": "CRANE"}, format="json"
        )
        self.assertEqual(submit.status_code, 409)

        board = self.client.get(reverse("puzzle-leaderboard", kwargs={"puzzle_id": puzzle["id"]})).json()
        self.assertEqual(board["entries"], [])

    def test_other_players_attempt_is_forbidden(self):
        attempt = self._start(self._create_cipher()["id"])
        self.client.credentials(HTTP_X_USER_ID="mallory")
        resp = self.client.get(reverse("attempt-detail", kwargs={"attempt_id": attempt["id"]}))
        self.assertEqual(resp.status_code, 403)
        resp = self.client.post(reverse("attempt-give-up"), {"attempt_id": attempt["id"]}, format="json")
        self.assertEqual(resp.status_code, 403)
        self.assertFalse(Attempt.objects.get(pk=attempt["id"]).gave_up)

    @override_settings(WORDCRACK_FREE_PRACTICE_PER_DAY=1)
    def test_practice_quota(self):
        resp = self.client.post(reverse("puzzle-practice"), {"variant": "scramble"}, format="json")
        self.assertEqual(resp.status_code, 200)
        puzzle = resp.json()["puzzle"]
        self.assertEqual(puzzle["kind"], "practice")
        self._start(puzzle["id"], mode="practice")
        resp = self.client.post(
            reverse("attempt-start"), {"puzzle_id": puzzle["id"], "mode": "practice"}, format="json"
        )
        self.assertEqual(resp.status_code, 429)
        self.assertEqual(resp.json()["code"], "limit_reached")

        board = self.client.get(reverse("puzzle-leaderboard", kwargs={"puzzle_id": puzzle["id"]}))
        self.assertEqual(board.status_code, 404)

    def test_admin_key_required(self):
        payload = {"variant": "cipher", "target_word": "CRANE"}
        resp = self.client.post(reverse("admin-create-puzzle"), payload, format="json")
        self.assertEqual(resp.status_code, 403)
        resp = self.client.post(reverse("admin-create-puzzle"), payload, format="json", HTTP_X_ADMIN_KEY="wrong")
        self.assertEqual(resp.status_code, 403)

    def test_admin_response_includes_answer_and_metadata(self):
        puzzle = self._create_cipher()
        self.assertEqual(puzzle["target_word"], "CRANE")
        self.assertEqual(puzzle["generation_metadata"]["direction"], "right")
        self.assertEqual(puzzle["theme_hint"], "tall bird")

    def test_admin_rejects_bad_options_and_taken_slot(self):
        url = reverse("admin-create-puzzle")
        headers = {"HTTP_X_ADMIN_KEY": "test-admin-key"}
        resp = self.client.post(url, {"variant": "cipher", "target_word": "PLANET"}, format="json", **headers)
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post(
            url, {"variant": "cipher", "target_word": "CRANE", "shift_amount": 26}, format="json", **headers
        )
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post(
            url, {"variant": "scramble", "target_word": "PLANET", "shift_amount": 2}, format="json", **headers
        )
        self.assertEqual(resp.status_code, 400)

        body = {"variant": "cipher", "target_word": "CRANE", "date": "2024-05-01", "slot": 4}
        self.assertEqual(self.client.post(url, body, format="json", **headers).status_code, 201)
        resp = self.client.post(url, body, format="json", **headers)
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["code"], "conflict")

    def test_variants_and_modes(self):
        variants = self.client.get(reverse("get-variants")).json()
        by_name = {v["variant"]: v for v in variants}
        self.assertEqual(by_name["cipher"]["word_length"], 5)
        self.assertEqual(by_name["scramble"]["word_length"], 6)
        kinds = {h["kind"] for h in by_name["scramble"]["hints"]}
        self.assertEqual(kinds, {"check_positions", "reveal_position", "reveal_theme"})

        modes = self.client.get(reverse("get-modes")).json()
        self.assertEqual(modes, ["daily", "practice"])

    def test_global_and_recent_leaderboards(self):
        puzzle = self._create_cipher()
        attempt = self._start(puzzle["id"])
        self.client.post(reverse("attempt-submit"), {"attempt_id": attempt["id"], "guess_word": "CRANE"}, format="json")

        resp = self.client.get(reverse("global-rankings"), {"min_solved": 1})
        self.assertEqual(resp.status_code, 200)
        entries = resp.json()["entries"]
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0]["user_id"], "alice")
        self.assertEqual(entries[0]["puzzles_solved"], 1)
        self.assertFalse(entries[0]["is_premium"])
        self.assertEqual(self.client.get(reverse("global-rankings")).json()["entries"], [])

        resp = self.client.get(reverse("recent-leaderboards"), {"limit_puzzles": 100})
        self.assertEqual(resp.status_code, 200)
        sections = resp.json()["sections"]
        self.assertEqual(sections[0]["puzzle"]["id"], puzzle["id"])
        # The current hour's puzzle is still being played.
        self.assertIsNone(sections[0]["target_word"])
        self.assertNotIn("CRANE", str(sections))
        self.assertEqual(sections[0]["entries"][0]["user_id"], "alice")

    def test_recent_leaderboards_rejects_bad_date(self):
        resp = self.client.get(reverse("recent-leaderboards"), {"date": "yesterday"})
        self.assertEqual(resp.status_code, 400)

    def test_unusable_bank_word_is_a_server_error(self):
        PuzzleBankEntry.objects.filter(variant="scramble").delete()
        PuzzleBankEntry.objects.bulk_create([PuzzleBankEntry(variant="scramble", target_word="CRANE")])
        resp = self.client.get(reverse("puzzle-today"), {"variant": "scramble"})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["code"], "bank_entry_invalid")
        self.assertNotIn("CRANE", resp.json()["error"])
        self.assertIsNone(PuzzleBankEntry.objects.get(variant="scramble").used_at)
