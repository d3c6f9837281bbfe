from datetime import datetime, timedelta, timezone

import pytest

from services.rating_service import (
    RatingService,
    compute_leaderboard,
    get_rating_color,
    get_rating_rank_name,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def sample(user_id, rating, days_ago, handle=None):
    return {
        "user_id": user_id,
        "atcoder_handle": handle or user_id,
        "rating": rating,
        "recorded_at": (NOW - timedelta(days=days_ago)).isoformat(),
    }


@pytest.mark.parametrize(
    "rating,name,color",
    [
        (0, "Gray", "#6b7280"),
        (399, "Gray", "#6b7280"),
        (400, "Brown", "#92400e"),
        (1199, "Green", "#16a34a"),
        (1600, "Blue", "#2563eb"),
        (2799, "Orange", "#ea580c"),
        (3500, "Red", "#dc2626"),
    ],
)
def test_rating_tiers(rating, name, color):
    assert get_rating_rank_name(rating) == name
    assert get_rating_color(rating) == color


class TestLeaderboard:
    def test_baseline_is_latest_sample_before_window(self):
        records = [
            sample("a", 1000, 30),
            sample("a", 1100, 10),
            sample("a", 1300, 1),
        ]
        board = compute_leaderboard(records, now=NOW)
        assert board["top_gainers"][0]["previous_rating"] == 1100
        assert board["top_gainers"][0]["rating_change"] == 200

    def test_users_without_old_sample_are_excluded(self):
        records = [sample("fresh", 1500, 2), sample("fresh", 1600, 1)]
        board = compute_leaderboard(records, user_id="fresh", now=NOW)
        assert board == {"top_gainers": [], "top_losers": [], "my_rank": None}

    def test_gainers_losers_and_own_rank(self):
        records = []
        for i in range(12):
            records.append(sample(f"up{i}", 1000, 8))
            records.append(sample(f"up{i}", 1000 + 10 * (i + 1), 1))
        records += [
            sample("down", 1500, 9),
            sample("down", 1400, 0),
            sample("worse", 1500, 9),
            sample("worse", 1200, 0),
            sample("flat", 800, 9),
            sample("flat", 800, 0),
        ]
        board = compute_leaderboard(records, avatars={"up11": "http://img/up11.png"}, user_id="flat", now=NOW)

        gainers = board["top_gainers"]
        assert len(gainers) == 10
        assert gainers[0]["user_id"] == "up11"
        assert gainers[0]["avatar_url"] == "http://img/up11.png"
        assert [g["rating_change"] for g in gainers] == sorted((g["rating_change"] for g in gainers), reverse=True)

        assert [l["user_id"] for l in board["top_losers"]] == ["worse", "down"]

        assert board["my_rank"] == {
            "rank": 13,
            "total_users": 15,
            "rating_change": 0,
            "current_rating": 800,
        }

    def test_sample_exactly_a_week_old_counts_as_baseline(self):
        records = [sample("a", 1000, 7), sample("a", 1050, 0)]
        board = compute_leaderboard(records, now=NOW)
        assert board["top_gainers"][0]["rating_change"] == 50


class TestRatingStorage:
    def test_record_sample(self, fake_db):
        assert RatingService.record_rating_sample("u1", "alice", 1234) is True
        row = fake_db.tables["rating_history"][0]
        assert row["atcoder_handle"] == "alice"
        assert row["rating"] == 1234

    def test_leaderboard_reads_history_and_avatars(self, fake_db):
        now = datetime.now(timezone.utc)
        fake_db.seed("rating_history", [
            {"user_id": "u1", "atcoder_handle": "alice", "rating": 1000,
             "recorded_at": (now - timedelta(days=8)).isoformat()},
            {"user_id": "u1", "atcoder_handle": "alice", "rating": 1100,
             "recorded_at": now.isoformat()},
        ])
        fake_db.seed("user_info", [{"id": "u1", "avatar_url": "http://img/a.png"}])

        board = RatingService.get_rating_leaderboard("u1")

        assert board["top_gainers"][0]["avatar_url"] == "http://img/a.png"
        assert board["my_rank"]["rank"] == 1

    def test_leaderboard_survives_database_failure(self, fake_db):
        fake_db.failing.add("rating_history")
        assert RatingService.get_rating_leaderboard("u1")["top_gainers"] == []
