import json

import pytest

from services import hint_service
from services.hint_service import (
    HintService,
    extract_all_hints,
    get_max_hints,
    parse_hints_from_message,
    unlocked_hint_count,
)
from services.atcoder_service import AtCoderService


METADATA = {
    "title": "A - Sum",
    "problem_statement": "Print A+B.",
    "constraint": "1 <= A, B <= 100",
    "input": "A B",
    "output": "A+B",
    "samples": [{"input": "1 2", "output": "3"}],
    "task_url": "https://atcoder.jp/contests/abc100/tasks/abc100_a",
}


class TestParseHints:
    def test_hint_blocks_are_collected_and_removed(self):
        text = 'Think about parity.\n{"type": "hint", "content": "Look at A mod 2"}\nGood luck!'
        hints, remaining = parse_hints_from_message(text)
        assert hints == ["Look at A mod 2"]
        assert "Look at A mod 2" not in remaining
        assert remaining.startswith("Think about parity.")
        assert remaining.endswith("Good luck!")

    def test_response_block_is_replaced_by_its_content(self):
        hints, remaining = parse_hints_from_message('{"type": "response", "content": "Plain answer"}')
        assert hints is None
        assert remaining == "Plain answer"

    def test_braces_inside_strings_do_not_break_scanning(self):
        text = '{"type": "hint", "content": "use a map {key: count}"} then {"type": "hint", "content": "sort"}'
        hints, remaining = parse_hints_from_message(text)
        assert hints == ["use a map {key: count}", "sort"]
        assert remaining == "then"

    def test_invalid_json_is_left_alone(self):
        text = "for (int i = 0; i < n; i++) { sum += a[i]; }"
        hints, remaining = parse_hints_from_message(text)
        assert hints is None
        assert remaining == text

    def test_blocks_without_content_are_ignored(self):
        hints, _ = parse_hints_from_message('{"type": "hint"}')
        assert hints is None

    def test_non_string_content_is_serialized(self):
        hints, remaining = parse_hints_from_message(
            'Sure. {"type": "response", "content": 42} {"type": "hint", "content": ["sort", "scan"]}'
        )
        assert remaining == "Sure. 42"
        assert hints == ['["sort", "scan"]']

    def test_non_string_hint_survives_extraction(self):
        messages = [{"role": "assistant", "content": '{"type": "hint", "content": {"step": "dp"}}'}]
        assert extract_all_hints(messages) == [{"step": 1, "content": '{"step": "dp"}'}]


class TestExtractAllHints:
    def test_only_assistant_messages_numbered_in_order(self):
        messages = [
            {"role": "user", "content": '{"type": "hint", "content": "not mine"}'},
            {"role": "assistant", "parts": [{"type": "text", "text": '{"type": "hint", "content": "first"}'}]},
            {"role": "assistant", "content": 'x {"type": "hint", "content": "second"} y'},
        ]
        assert extract_all_hints(messages) == [
            {"step": 1, "content": "first"},
            {"step": 2, "content": "second"},
        ]

    def test_no_hints_gives_none(self):
        assert extract_all_hints([{"role": "assistant", "content": "hello"}]) is None


@pytest.mark.parametrize(
    "rating,difficulty,expected",
    [
        (None, 1000, 3),
        (1000, None, 3),
        (1500, 1000, 1),
        (1000, 1050, 2),
        (1000, 900, 2),
        (1000, 1250, 4),
        (1000, 1500, 5),
    ],
)
def test_max_hints_follow_rating_gap(rating, difficulty, expected):
    assert get_max_hints(rating, difficulty) == expected


class TestUnlockedHintCount:
    def test_thresholds(self):
        limit = 1000
        assert unlocked_hint_count(0, limit, 5, 5) == 0
        assert unlocked_hint_count(199, limit, 5, 5) == 0
        assert unlocked_hint_count(200, limit, 5, 5) == 1
        assert unlocked_hint_count(600, limit, 5, 5) == 3
        assert unlocked_hint_count(900, limit, 5, 5) == 5

    def test_capped_by_available_and_max(self):
        assert unlocked_hint_count(1000, 1000, 2, 5) == 2
        assert unlocked_hint_count(1000, 1000, 5, 3) == 3

    def test_never_decreases_with_elapsed_time(self):
        for limit in (60, 300, 1800, 5400):
            previous = 0
            for elapsed in range(0, limit + 120, 7):
                current = unlocked_hint_count(elapsed, limit, 5, 4)
                assert current >= previous
                previous = current

    def test_zero_budget_unlocks_everything_allowed(self):
        assert unlocked_hint_count(0, 0, 4, 3) == 3


class TestPracticeHints:
    @pytest.mark.asyncio
    async def test_stored_hints_are_returned_without_generation(self, fake_db, fake_router):
        stored = [{"step": 1, "content": "stored"}]
        fake_db.seed("problems", [{"id": "abc100_a", "title": "Sum", "difficulty": 20, "hints": stored}])
        router = fake_router()

        result = await HintService.get_practice_hints("abc100_a", user_id="u1", llm_router=router)

        assert result["hints"] == stored
        assert result["contest_id"] == "abc100"
        assert router.calls == []

    @pytest.mark.asyncio
    async def test_generation_stores_hints_editorial_and_usage(self, fake_db, fake_router, monkeypatch):
        fake_db.tables["problems"].append({"id": "abc100_a", "title": "Sum", "difficulty": 20})

        async def fake_editorial(url):
            return "<p>Just add them.</p>"

        async def fake_metadata(url):
            return METADATA

        monkeypatch.setattr(AtCoderService, "get_editorial", staticmethod(fake_editorial))
        monkeypatch.setattr(AtCoderService, "get_task_metadata", staticmethod(fake_metadata))

        reply = "```json\n" + json.dumps({"hints": [{"step": i, "content": f"hint {i}"} for i in range(1, 7)]}) + "\n```"
        router = fake_router(reply)

        result = await HintService.get_practice_hints("abc100_a", user_id="u1", llm_router=router)

        assert [h["step"] for h in result["hints"]] == [1, 2, 3, 4, 5]
        assert "error" not in result
        row = fake_db.tables["problems"][0]
        assert row["editorial"] == "<p>Just add them.</p>"
        assert row["hints"] == result["hints"]
        assert router.calls[0]["model"] == hint_service.HINT_MODEL
        usage = fake_db.tables["token_usage"]
        assert len(usage) == 1 and usage[0]["feature"] == "hints"

    @pytest.mark.asyncio
    async def test_missing_statement_reports_error(self, fake_db, fake_router, monkeypatch):
        async def nothing(url):
            return None

        monkeypatch.setattr(AtCoderService, "get_editorial", staticmethod(nothing))
        monkeypatch.setattr(AtCoderService, "get_task_metadata", staticmethod(nothing))

        result = await HintService.get_practice_hints("abc999_z", llm_router=fake_router())

        assert result["hints"] == []
        assert result["error"] == "Failed to fetch problem"

    @pytest.mark.asyncio
    async def test_generate_false_skips_generation(self, fake_db, fake_router):
        router = fake_router("unused")
        result = await HintService.get_practice_hints("abc100_a", generate=False, llm_router=router)
        assert result["hints"] == []
        assert router.calls == []
