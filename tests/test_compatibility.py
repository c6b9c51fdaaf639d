import json
import unittest
from datetime import timedelta

import httpx

from nomadconnect.core.errors import InvalidInput, QuotaExceeded, Unavailable
from nomadconnect.core.radar_config import COMPATIBILITY_CHECK, QuotaSettings, load_tier_limits
from nomadconnect.services.ai_client import GroqCompleter
from nomadconnect.services.compatibility import (
    FALLBACK_RESULT,
    CompatibilityChecker,
    build_prompt,
    parse_compatibility,
)
from nomadconnect.services.quota import QuotaTracker
from nomadconnect.repository.base import ProfileSummary

from support import FakeClock, FakeCompleter, seeded_repo

REPLY = {
    "score": 82,
    "strengths": ["both surf"],
    "conflicts": ["early vs late risers"],
    "icebreakers": ["best wave so far?"],
    "first_message": "Hey, saw you surf!",
    "date_idea": "Sunrise session",
}


class ParseCompatibilityTests(unittest.TestCase):
    def test_plain_json(self) -> None:
        parsed = parse_compatibility(json.dumps(REPLY))
        self.assertEqual(parsed["score"], 82)
        self.assertEqual(parsed["strengths"], ["both surf"])

    def test_markdown_fences_are_stripped(self) -> None:
        parsed = parse_compatibility("```json\n" + json.dumps(REPLY) + "\n```")
        self.assertEqual(parsed["date_idea"], "Sunrise session")

    def test_score_is_clamped(self) -> None:
        self.assertEqual(parse_compatibility('{"score": 140}')["score"], 100)
        self.assertEqual(parse_compatibility('{"score": -3}')["score"], 0)

    def test_unusable_replies(self) -> None:
        for reply in [
            "",
            "not json",
            "[1, 2]",
            '{"score": "high"}',
            '{"strengths": []}',
            '{"score": Infinity}',
            '{"score": NaN}',
            '{"score": 80, "first_message": {"text": "hi"}}',
            '{"score": 80, "date_idea": ["hike", "swim"]}',
        ]:
            self.assertIsNone(parse_compatibility(reply), reply)

    def test_numeric_text_fields_are_stringified(self) -> None:
        parsed = parse_compatibility('{"score": 80, "first_message": 42, "date_idea": null}')
        self.assertEqual(parsed["first_message"], "42")
        self.assertIsNone(parsed["date_idea"])

    def test_prompt_mentions_both_profiles(self) -> None:
        prompt = build_prompt(
            ProfileSummary(id="a", name="Ana", interests=["surf"]),
            ProfileSummary(id="b", name="Ben", age=31),
        )
        self.assertIn("Name: Ana", prompt)
        self.assertIn('["surf"]', prompt)
        self.assertIn("Age: 31", prompt)


class CompatibilityCheckerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.repo = seeded_repo("ana", "ben")
        self.completer = FakeCompleter(reply="```json\n" + json.dumps(REPLY) + "\n```")
        self.checker = self._checker(self.completer)

    def _checker(self, completer, limit: int = 2) -> CompatibilityChecker:
        limits = load_tier_limits(None)
        limits[COMPATIBILITY_CHECK]["starter"] = limit
        quota = QuotaTracker(self.repo, QuotaSettings(tier_limits=limits), clock=self.clock)
        return CompatibilityChecker(self.repo, quota, completer, clock=self.clock)

    def _used(self) -> int:
        record = self.repo.get_quota("ana", COMPATIBILITY_CHECK)
        return record.count if record else 0

    def test_fresh_check_calls_model_and_stores_result(self) -> None:
        outcome = self.checker.check("ana", "ben")

        self.assertFalse(outcome.cached)
        self.assertEqual(outcome.result.score, 82)
        self.assertEqual(len(self.completer.calls), 1)
        self.assertEqual(self.completer.calls[0][0]["role"], "system")
        self.assertIn("name-ana", self.completer.calls[0][1]["content"])
        self.assertEqual(len(self.repo.compatibility), 1)
        self.assertEqual(self._used(), 1)

    def test_recent_result_is_served_from_history(self) -> None:
        first = self.checker.check("ana", "ben")
        self.clock.advance(hours=23)
        second = self.checker.check("ben", "ana")

        self.assertTrue(second.cached)
        self.assertEqual(second.result.id, first.result.id)
        self.assertEqual(len(self.completer.calls), 1)
        self.assertEqual(self._used(), 1)

    def test_history_expires(self) -> None:
        self.checker.check("ana", "ben")
        self.clock.advance(hours=25)

        outcome = self.checker.check("ana", "ben")

        self.assertFalse(outcome.cached)
        self.assertEqual(len(self.completer.calls), 2)
        self.assertEqual(len(self.repo.compatibility), 1)
        self.assertEqual(self.repo.compatibility[0].created_at, self.clock.now)

    def test_old_results_are_evicted_from_memory(self) -> None:
        self.checker.check("ana", "ben")
        self.clock.advance(hours=12)
        self.repo.upsert_location("ana", 1.0, 2.0, self.clock.now)
        self.assertEqual(len(self.repo.compatibility), 1)

        self.clock.advance(hours=13)
        self.repo.upsert_location("ana", 1.0, 2.0, self.clock.now)

        self.assertEqual(self.repo.compatibility, [])
        self.assertIsNone(self.repo.latest_compatibility("ana", "ben", since=self.clock.now - timedelta(days=7)))

    def test_unparsable_reply_uses_fallback(self) -> None:
        checker = self._checker(FakeCompleter(reply="I think they'd get along!"))
        outcome = checker.check("ana", "ben")

        self.assertEqual(outcome.result.score, FALLBACK_RESULT["score"])
        self.assertEqual(outcome.result.first_message, FALLBACK_RESULT["first_message"])
        self.assertEqual(self._used(), 1)

    def test_structured_message_falls_back_and_is_served_from_cache(self) -> None:
        checker = self._checker(FakeCompleter(reply='{"score": 80, "first_message": {"text": "hi"}}'))

        first = checker.check("ana", "ben")
        second = checker.check("ana", "ben")

        self.assertEqual(first.result.score, FALLBACK_RESULT["score"])
        self.assertIsInstance(first.result.first_message, str)
        self.assertTrue(second.cached)
        self.assertEqual(second.result.first_message, FALLBACK_RESULT["first_message"])

    def test_model_failure_consumes_no_quota(self) -> None:
        checker = self._checker(FakeCompleter(error=Unavailable("AI service unreachable")))

        with self.assertRaises(Unavailable):
            checker.check("ana", "ben")
        self.assertEqual(self._used(), 0)
        self.assertEqual(self.repo.compatibility, [])

    def test_quota_limit(self) -> None:
        checker = self._checker(self.completer, limit=1)
        checker.check("ana", "ben")
        self.repo.add_profile(ProfileSummary(id="cy"))

        with self.assertRaises(QuotaExceeded):
            checker.check("ana", "cy")

    def test_self_check_is_invalid(self) -> None:
        with self.assertRaises(InvalidInput):
            self.checker.check("ana", "ana")


class GroqCompleterTests(unittest.TestCase):
    def _completer(self, handler, api_key: str = "test-key") -> GroqCompleter:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return GroqCompleter(api_key=api_key, url="https://ai.example/v1/chat/completions",
                             model="test-model", client=client)

    def test_posts_chat_completion_and_returns_content(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "hello"}}]})

        reply = self._completer(handler).complete([{"role": "user", "content": "hi"}])

        self.assertEqual(reply, "hello")
        self.assertEqual(seen["auth"], "Bearer test-key")
        self.assertEqual(seen["body"]["model"], "test-model")
        self.assertEqual(seen["body"]["temperature"], 0.6)

    def test_http_error_status_is_unavailable(self) -> None:
        completer = self._completer(lambda request: httpx.Response(500, text="boom"))
        with self.assertRaises(Unavailable):
            completer.complete([])

    def test_transport_error_is_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with self.assertRaises(Unavailable):
            self._completer(handler).complete([])

    def test_missing_key_is_unavailable(self) -> None:
        completer = self._completer(lambda request: httpx.Response(200, json={}), api_key="")
        with self.assertRaises(Unavailable):
            completer.complete([])

    def test_list_body_is_unavailable(self) -> None:
        completer = self._completer(lambda request: httpx.Response(200, json=[{"choices": []}]))
        with self.assertRaises(Unavailable):
            completer.complete([])

    def test_malformed_choice_returns_empty_text(self) -> None:
        for body in (
            {"choices": ["oops"]},
            {"choices": [{"message": "oops"}]},
            {"choices": [{"message": {"content": 7}}]},
        ):
            completer = self._completer(lambda request, body=body: httpx.Response(200, json=body))
            self.assertEqual(completer.complete([]), "", body)

    def test_empty_choices_returns_empty_text(self) -> None:
        completer = self._completer(lambda request: httpx.Response(200, json={"choices": []}))
        self.assertEqual(completer.complete([]), "")


if __name__ == "__main__":
    unittest.main()
