from datetime import datetime, timezone

import httpx
import pytest

from services import kenkoo_service
from services.kenkoo_service import SUBMISSIONS_PAGE_SIZE, KenkooService


def epoch(*args):
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


@pytest.fixture
def api(monkeypatch, mock_client):
    """Serve kenkoooo endpoints from a dict of path -> callable(request)."""
    routes = {}
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404)
        return route(request)

    monkeypatch.setattr(kenkoo_service, "_http_client", mock_client(handler))
    monkeypatch.setattr(kenkoo_service, "SUBMISSION_PAGE_DELAY", 0)
    kenkoo_service._problem_models.clear()
    routes["calls"] = calls
    return routes


def submission(sid, when, result="AC", problem_id="abc100_a"):
    return {"id": sid, "epoch_second": when, "result": result, "problem_id": problem_id}


@pytest.mark.asyncio
async def test_problem_models_are_cached(api):
    api["/atcoder/resources/problem-models.json"] = lambda r: httpx.Response(
        200, json={"abc100_a": {"difficulty": -1016.4}, "abc100_b": {"slope": 0.1}}
    )

    assert await KenkooService.get_model_difficulty("abc100_a") == -1016
    assert await KenkooService.get_model_difficulty("abc100_b") is None
    assert await KenkooService.get_model_difficulty("missing") is None
    assert len(api["calls"]) == 1


@pytest.mark.asyncio
async def test_problem_models_failure_gives_empty_dict(api):
    assert await KenkooService.get_all_problem_models() == {}


@pytest.mark.asyncio
async def test_year_submissions_page_through_and_dedupe(api):
    start = epoch(2024, 1, 1)
    first_page = [submission(i, start + i) for i in range(SUBMISSIONS_PAGE_SIZE)]
    second_page = [
        submission(SUBMISSIONS_PAGE_SIZE - 1, start + SUBMISSIONS_PAGE_SIZE - 1),
        submission(9000, epoch(2024, 6, 1), result="WA"),
        submission(9001, epoch(2025, 1, 1, 0, 0, 1)),
    ]
    requested_from = []

    def submissions(request):
        from_second = int(request.url.params["from_second"])
        requested_from.append(from_second)
        assert request.url.params["user"] == "tourist"
        return httpx.Response(200, json=first_page if len(requested_from) == 1 else second_page)

    api["/atcoder/atcoder-api/v3/user/submissions"] = submissions

    result = await KenkooService.get_year_submissions("tourist", 2024)

    assert requested_from == [start, start + SUBMISSIONS_PAGE_SIZE]
    assert [s["id"] for s in result] == list(range(SUBMISSIONS_PAGE_SIZE)) + [9000]
    assert [s["epoch_second"] for s in result] == sorted(s["epoch_second"] for s in result)


@pytest.mark.asyncio
async def test_year_submissions_stop_on_failure(api):
    assert await KenkooService.get_year_submissions("tourist", 2024) == []


def test_group_by_date_counts_accepted_only():
    submissions = [
        submission(1, epoch(2024, 3, 1, 23, 59)),
        submission(2, epoch(2024, 3, 1, 1, 0)),
        submission(3, epoch(2024, 3, 1, 2, 0), result="WA"),
        submission(4, epoch(2024, 3, 2, 0, 0)),
    ]
    assert KenkooService.group_submissions_by_date(submissions) == {"2024-03-01": 2, "2024-03-02": 1}
