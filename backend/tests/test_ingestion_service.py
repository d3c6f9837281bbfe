import pytest

from services import ingestion_service
from services.atcoder_service import AtCoderService
from services.ingestion_service import IngestionService
from services.kenkoo_service import KenkooService


def returning(value):
    async def _fn(*args, **kwargs):
        return value
    return staticmethod(_fn)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(ingestion_service, "CONTEST_DELAY", 0)
    monkeypatch.setattr(ingestion_service, "PROBLEM_DELAY", 0)


@pytest.mark.asyncio
async def test_problems_from_kenkoo_in_batches(fake_db, monkeypatch):
    problems = [{"id": f"abc{i:03d}_a", "name": f"Problem {i}"} for i in range(2500)]
    problems.append({"id": "abc999_z", "title": "Only title"})
    problems.append({"id": "abc999_y"})
    monkeypatch.setattr(KenkooService, "get_problems", returning(problems))
    monkeypatch.setattr(KenkooService, "get_all_problem_models", returning({"abc000_a": {"difficulty": 123.6}}))

    result = await IngestionService.collect_all_problems_from_kenkoo()

    assert result == {"processed": 2502, "saved": 2502}
    assert [c for c in fake_db.calls if c[0] == "upsert"] == [("upsert", "problems")] * 3
    rows = {r["id"]: r for r in fake_db.tables["problems"]}
    assert rows["abc000_a"]["difficulty"] == 124
    assert rows["abc001_a"]["difficulty"] is None
    assert rows["abc999_z"]["title"] == "Only title"
    assert rows["abc999_y"]["title"] == "abc999_y"


@pytest.mark.asyncio
async def test_rerun_is_idempotent(fake_db, monkeypatch):
    monkeypatch.setattr(KenkooService, "get_contests", returning([
        {"id": "abc100", "start_epoch_second": 1, "duration_second": 6000, "title": "ABC 100", "rate_change": " ~ 1199"},
    ]))
    await IngestionService.populate_contests()
    result = await IngestionService.populate_contests()
    assert result == {"processed": 1, "saved": 1}
    assert len(fake_db.tables["contests"]) == 1


@pytest.mark.asyncio
async def test_contest_problems_only_for_known_problems(fake_db, monkeypatch):
    fake_db.tables["problems"] += [{"id": "abc100_a", "title": "A"}]
    monkeypatch.setattr(KenkooService, "get_contest_problems", returning([
        {"contest_id": "abc100", "problem_id": "abc100_a", "problem_index": "A"},
        {"contest_id": "abc100", "problem_id": "abc100_b", "problem_index": "B"},
    ]))

    result = await IngestionService.populate_contest_problems()

    assert result == {"processed": 1, "saved": 1}
    assert [r["problem_id"] for r in fake_db.tables["contest_problems"]] == ["abc100_a"]


@pytest.mark.asyncio
async def test_failed_batch_is_skipped(fake_db, monkeypatch):
    fake_db.failing.add("contests")
    monkeypatch.setattr(KenkooService, "get_contests", returning([{"id": "abc100"}]))
    assert await IngestionService.populate_contests() == {"processed": 0, "saved": 0}


@pytest.mark.asyncio
async def test_difficulty_prefers_database(fake_db, monkeypatch):
    fake_db.tables["problems"] += [{"id": "abc100_a", "difficulty": 50}, {"id": "abc100_b", "difficulty": None}]
    monkeypatch.setattr(KenkooService, "get_model_difficulty", returning(777))

    assert await IngestionService.get_problem_difficulty("abc100_a") == 50
    assert await IngestionService.get_problem_difficulty("abc100_b") == 777


@pytest.mark.asyncio
async def test_archive_crawl(fake_db, monkeypatch):
    seen = {}

    async def contest_links(limit, start_from):
        seen["args"] = (limit, start_from)
        return ["https://atcoder.jp/contests/abc100", "https://atcoder.jp/contests/abc101"]

    async def task_links(contest_url):
        if contest_url.endswith("abc101"):
            return []
        return [
            "https://atcoder.jp/contests/abc100/tasks/abc100_a",
            "https://atcoder.jp/contests/abc100/tasks/abc100_b",
        ]

    async def problem_info(url):
        if url.endswith("_b"):
            return None
        return {"title": "A - Happy Birthday!", "summary": "Eat cake."}

    monkeypatch.setattr(AtCoderService, "get_all_contest_links", staticmethod(contest_links))
    monkeypatch.setattr(AtCoderService, "get_task_link_list", staticmethod(task_links))
    monkeypatch.setattr(AtCoderService, "get_problem_info", staticmethod(problem_info))
    monkeypatch.setattr(KenkooService, "get_model_difficulty", returning(None))

    result = await IngestionService.collect_all_problems(limit=2, start_from=5)

    assert seen["args"] == (2, 5)
    assert result == {"processed": 2, "saved": 1}
    row = fake_db.tables["problems"][0]
    assert row["id"] == "abc100_a"
    assert row["summary"] == "Eat cake."
    assert row["difficulty"] is None
