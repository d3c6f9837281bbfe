import json
from datetime import datetime, timezone

import pytest

from services.chat_service import (
    ChatNotFoundError,
    ChatReplyError,
    ChatService,
    QuotaExceededError,
    detect_tool,
    generate_title,
    serialize_message,
)


def user_msg(text, msg_id=None):
    return {"id": msg_id, "role": "user", "parts": [{"type": "text", "text": text}]}


def seed_chat(fake_db, chat_id, user_id, messages=None, **extra):
    fake_db.seed("chat_history", [{
        "id": chat_id,
        "user_id": user_id,
        "title": "Existing",
        "messages": json.dumps(messages or []),
        **extra,
    }])


class TestHelpers:
    def test_title_is_first_user_text_truncated(self):
        messages = [
            {"role": "assistant", "content": "Hi!"},
            user_msg("x" * 80),
        ]
        assert generate_title(messages) == "x" * 50

    def test_title_defaults(self):
        assert generate_title([{"role": "assistant", "content": "Hi"}]) == "New Chat"

    def test_serialize_flattens_text_and_keeps_parts(self):
        stored = serialize_message({"role": "user", "content": "hello"})
        assert stored["content"] == "hello"
        assert stored["parts"] == [{"type": "text", "text": "hello"}]
        assert stored["id"]

    def test_detect_tool(self):
        assert detect_tool("Any upcoming contests?") == "upcoming_contests"
        assert detect_tool("이 문제 해설 보여줘") == "editorial"
        assert detect_tool("How do I solve this?") is None


class TestOwnership:
    def test_load_is_scoped_to_owner(self, fake_db):
        seed_chat(fake_db, "chat-1", "owner")
        assert ChatService.load_chat("chat-1", "owner") is not None
        assert ChatService.load_chat("chat-1", "intruder") is None

    def test_delete_by_other_user_does_nothing(self, fake_db):
        seed_chat(fake_db, "chat-1", "owner")
        assert ChatService.delete_chat("chat-1", "intruder") is False
        assert len(fake_db.tables["chat_history"]) == 1
        assert ChatService.delete_chat("chat-1", "owner") is True
        assert fake_db.tables["chat_history"] == []

    def test_list_only_returns_own_chats(self, fake_db):
        seed_chat(fake_db, "chat-1", "owner")
        seed_chat(fake_db, "chat-2", "someone-else")
        assert [c["id"] for c in ChatService.list_chats("owner")] == ["chat-1"]

    def test_link_problem_clears_hints(self, fake_db):
        seed_chat(fake_db, "chat-1", "owner", hints=[{"step": 1, "content": "old"}])
        fake_db.tables["problems"].append({"id": "abc100_a", "title": "Sum"})

        assert ChatService.link_problem("chat-1", "intruder", "abc100_a") is None

        linked = ChatService.link_problem("chat-1", "owner", "abc100_a")
        assert linked == {
            "problem_url": "https://atcoder.jp/contests/abc100/tasks/abc100_a",
            "problem_id": "abc100_a",
            "title": "Sum",
        }
        row = fake_db.tables["chat_history"][0]
        assert row["hints"] is None
        assert row["title"] == "Sum"

    @pytest.mark.asyncio
    async def test_chat_rejects_foreign_chat_id(self, fake_db, fake_router):
        seed_chat(fake_db, "chat-1", "owner")
        router = fake_router("should not be used")
        with pytest.raises(ChatNotFoundError):
            await ChatService.chat("intruder", [user_msg("hi")], chat_id="chat-1", llm_router=router)
        assert router.calls == []
        assert fake_db.tables["chat_history"][0]["messages"] == "[]"


class TestChat:
    @pytest.mark.asyncio
    async def test_new_chat_is_created_and_saved(self, fake_db, fake_router):
        router = fake_router('Try sorting.\n{"type": "hint", "content": "Sort the array"}', total_tokens=321)

        result = await ChatService.chat("u1", [user_msg("How should I start?")], llm_router=router)

        assert result["text"] == "Try sorting."
        assert result["hints"] == [{"step": 1, "content": "Sort the array"}]
        assert result["total_tokens"] == 321

        rows = fake_db.tables["chat_history"]
        assert len(rows) == 1
        row = rows[0]
        assert row["id"] == result["chat_id"]
        assert row["user_id"] == "u1"
        assert row["title"] == "How should I start?"
        assert row["last_total_tokens"] == 321
        assert row["hints"] == [{"step": 1, "content": "Sort the array"}]
        stored = json.loads(row["messages"])
        assert [m["role"] for m in stored] == ["user", "assistant"]

        usage = fake_db.tables["token_usage"]
        assert [u["feature"] for u in usage] == ["chat"]

        system_prompt = router.calls[0]["messages"][0]
        assert system_prompt["role"] == "system"

    @pytest.mark.asyncio
    async def test_quota_exceeded(self, fake_db, fake_router):
        fake_db.seed("user_info", [{"id": "u1", "daily_token_limit": 100}])
        fake_db.seed("token_usage", [{
            "user_id": "u1",
            "feature": "chat",
            "total_tokens": 150,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }])
        with pytest.raises(QuotaExceededError):
            await ChatService.chat("u1", [user_msg("hi")], llm_router=fake_router("hello"))

    @pytest.mark.asyncio
    async def test_provider_failure_raises(self, fake_db, fake_router):
        with pytest.raises(ChatReplyError):
            await ChatService.chat("u1", [user_msg("hi")], llm_router=fake_router())

    @pytest.mark.asyncio
    async def test_long_chat_is_summarized_before_sending(self, fake_db, fake_router):
        history = []
        for i in range(5):
            history.append(user_msg(f"question {i}", msg_id=f"q{i}"))
            history.append({"id": f"a{i}", "role": "assistant", "parts": [{"type": "text", "text": f"answer {i}"}]})
        seed_chat(fake_db, "chat-1", "u1", messages=history, last_total_tokens=9000)
        messages = history + [user_msg("question 5", msg_id="q5")]

        router = fake_router("SUMMARY", "reply")
        await ChatService.chat("u1", messages, chat_id="chat-1", llm_router=router)

        assert len(router.calls) == 2
        sent = router.calls[1]["messages"]
        assert "SUMMARY" in sent[0]["content"]
        assert [m["content"] for m in sent[1:]][-1] == "question 5"
        assert len(sent) == 1 + 6

        row = fake_db.tables["chat_history"][0]
        assert row["summary"] == "SUMMARY"
        assert row["summary_message_count"] == len(messages) - 6
        assert len(json.loads(row["messages"])) == len(messages) + 1
        assert sorted(u["feature"] for u in fake_db.tables["token_usage"]) == ["chat", "summary"]


class TestChatByProblem:
    def test_latest_chat_for_problem(self, fake_db):
        url = "https://atcoder.jp/contests/abc100/tasks/abc100_a"
        seed_chat(fake_db, "old", "u1", problem_url=url, updated_at="2024-01-01T00:00:00+00:00")
        seed_chat(fake_db, "new", "u1", problem_url=url, updated_at="2024-02-01T00:00:00+00:00")
        seed_chat(fake_db, "other", "u2", problem_url=url, updated_at="2024-03-01T00:00:00+00:00")
        assert ChatService.get_chat_by_problem_url("u1", url)["id"] == "new"
