import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from pomotrack.models.session import Session
from pomotrack.models.user import User
from pomotrack.services.leaderboard_service import (
    UserTotals,
    aggregate_sessions,
    fallback_leaderboard,
    get_leaderboard,
    rank_totals,
    rank_users,
)
from tests.factories import make_session, make_user

UTC = timezone.utc
NOW = datetime(2026, 10, 14, 12, 0, tzinfo=UTC)


def test_rank_users_empty():
    assert rank_users([], [], NOW, UTC) == []


def test_rank_users_orders_by_focus_minutes():
    alice, bob, carol = make_user("Alice"), make_user("Bob"), make_user("Carol")
    sessions = [
        make_session(NOW, duration=25, user_id=alice.id),
        make_session(NOW, duration=50, user_id=bob.id),
        make_session(NOW, duration=50, user_id=bob.id),
        make_session(NOW, duration=60, user_id=carol.id),
    ]
    entries = rank_users(sessions, [alice, bob, carol], NOW, UTC)
    assert [e.name for e in entries] == ["Bob", "Carol", "Alice"]
    assert [e.rank for e in entries] == [1, 2, 3]
    assert entries[0].total_focus_minutes == 100
    assert entries[0].completed_pomodoros == 2


def test_rank_users_ignores_breaks_for_minutes_but_not_for_score():
    user = make_user("Dana")
    sessions = [
        make_session(NOW, duration=25, user_id=user.id),
        make_session(NOW, session_type="break", duration=5, user_id=user.id),
        make_session(NOW, session_type="longBreak", duration=15, user_id=user.id),
        make_session(NOW - timedelta(days=1), duration=25, user_id=user.id),
    ]
    [entry] = rank_users(sessions, [user], NOW, UTC)
    assert entry.total_focus_minutes == 50
    assert entry.completed_pomodoros == 2
    assert entry.productivity_score == 50
    assert entry.current_streak == 2
    assert entry.last_activity == NOW


def test_rank_users_streak_is_work_only():
    user = make_user()
    sessions = [
        make_session(NOW, session_type="break", duration=5, user_id=user.id),
        make_session(NOW - timedelta(days=1), user_id=user.id),
    ]
    [entry] = rank_users(sessions, [user], NOW, UTC)
    assert entry.current_streak == 0


def test_rank_users_skips_users_with_only_breaks():
    user = make_user()
    sessions = [make_session(NOW, session_type="break", duration=5, user_id=user.id)]
    assert rank_users(sessions, [user], NOW, UTC) == []


def test_rank_users_drops_unknown_users():
    known = make_user("Known")
    sessions = [
        make_session(NOW, duration=25, user_id=known.id),
        make_session(NOW, duration=500, user_id=uuid.uuid4()),
    ]
    entries = rank_users(sessions, [known], NOW, UTC)
    assert [e.name for e in entries] == ["Known"]
    assert entries[0].rank == 1


def test_rank_users_truncates_at_fifty():
    users = [make_user(f"User {i}") for i in range(60)]
    sessions = [
        make_session(NOW, duration=10 + i, user_id=user.id)
        for i, user in enumerate(users)
    ]
    entries = rank_users(sessions, users, NOW, UTC, limit=50)
    assert len(entries) == 50
    assert entries[0].name == "User 59"
    assert entries[0].rank == 1
    assert entries[-1].rank == 50
    minutes = [e.total_focus_minutes for e in entries]
    assert minutes == sorted(minutes, reverse=True)


def test_rank_users_ties_prefer_recent_activity():
    early, late = make_user("Early"), make_user("Late")
    sessions = [
        make_session(NOW - timedelta(hours=3), duration=25, user_id=early.id),
        make_session(NOW, duration=25, user_id=late.id),
    ]
    entries = rank_users(sessions, [early, late], NOW, UTC)
    assert [e.name for e in entries] == ["Late", "Early"]


def test_productivity_score_always_in_range():
    users = [make_user() for _ in range(5)]
    sessions = []
    for i, user in enumerate(users):
        sessions += [make_session(NOW, user_id=user.id) for _ in range(i + 1)]
        sessions += [make_session(NOW, session_type="break", duration=5, user_id=user.id) for _ in range(i * 3)]
    for entry in rank_users(sessions, users, NOW, UTC):
        assert 0 <= entry.productivity_score <= 100


def test_fallback_leaderboard_single_entry():
    user = make_user("Solo")
    sessions = [
        make_session(NOW, duration=25, user_id=user.id),
        make_session(NOW, session_type="break", duration=5, user_id=user.id),
    ]
    [entry] = fallback_leaderboard(user, sessions, NOW, UTC)
    assert entry.rank == 1
    assert entry.user_id == user.id
    assert entry.total_focus_minutes == 25
    assert entry.completed_pomodoros == 1
    assert entry.productivity_score == 50
    assert entry.current_streak == 1


def test_fallback_leaderboard_empty_sessions():
    user = make_user("Fresh")
    [entry] = fallback_leaderboard(user, [], NOW, UTC)
    assert entry.rank == 1
    assert entry.total_focus_minutes == 0
    assert entry.current_streak == 0
    assert entry.productivity_score == 0


def test_fallback_leaderboard_never_raises():
    user = make_user("Broken")
    garbage = [object()]
    [entry] = fallback_leaderboard(user, garbage, NOW, UTC)
    assert entry.rank == 1
    assert entry.total_focus_minutes == 0


async def _add_user(db_session, name: str) -> User:
    user = User(
        id=uuid.uuid4(),
        email=f"{name.lower()}@example.com",
        name=name,
        password_hash="not-a-real-hash",
    )
    db_session.add(user)
    await db_session.flush()
    return user


@pytest.mark.asyncio
async def test_leaderboard_endpoint(client, db_session, test_user):
    now = datetime.now(timezone.utc)
    other = await _add_user(db_session, "Other")
    db_session.add_all([
        Session(user_id=test_user.id, session_type="work", duration=25, completed_at=now),
        Session(user_id=other.id, session_type="work", duration=50, completed_at=now),
        Session(user_id=other.id, session_type="break", duration=5, completed_at=now),
    ])
    await db_session.commit()

    response = await client.get("/users/leaderboard")
    assert response.status_code == 200
    data = response.json()
    assert data["fallback"] is False
    users = data["users"]
    assert [u["name"] for u in users] == ["Other", "Test User"]
    assert users[0]["rank"] == 1
    assert users[0]["total_focus_minutes"] == 50
    assert users[0]["productivity_score"] == 50
    assert users[1]["current_streak"] == 1


@pytest.mark.asyncio
async def test_leaderboard_endpoint_empty(client):
    response = await client.get("/users/leaderboard")
    assert response.status_code == 200
    assert response.json() == {"users": [], "fallback": False}


@pytest.mark.asyncio
async def test_leaderboard_endpoint_limit(client, db_session):
    now = datetime.now(timezone.utc)
    for i in range(60):
        user = await _add_user(db_session, f"Member{i}")
        db_session.add(Session(user_id=user.id, session_type="work", duration=10 + i, completed_at=now))
    await db_session.commit()

    response = await client.get("/users/leaderboard")
    users = response.json()["users"]
    assert len(users) == 50
    assert users[0]["name"] == "Member59"

    response = await client.get("/users/leaderboard?limit=51")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_leaderboard_endpoint_falls_back_when_query_fails(client, db_session, test_user):
    db_session.add(Session(
        user_id=test_user.id, session_type="work", duration=25,
        completed_at=datetime.now(timezone.utc),
    ))
    await db_session.commit()

    failing = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("store down")))
    with patch("pomotrack.services.leaderboard_service.get_leaderboard", failing):
        response = await client.get("/users/leaderboard")

    assert response.status_code == 200
    data = response.json()
    assert data["fallback"] is True
    assert len(data["users"]) == 1
    entry = data["users"][0]
    assert entry["rank"] == 1
    assert entry["user_id"] == str(test_user.id)
    assert entry["total_focus_minutes"] == 25


def test_aggregate_sessions_matches_grouping():
    user = make_user()
    sessions = [
        make_session(NOW - timedelta(hours=2), duration=25, user_id=user.id),
        make_session(NOW, duration=50, user_id=user.id),
        make_session(NOW, session_type="break", duration=5, user_id=user.id),
    ]
    [row] = aggregate_sessions(sessions)
    assert row == UserTotals(user.id, 75, 2, 3, NOW)


def test_rank_totals_from_aggregated_rows():
    alice, bob = make_user("Alice"), make_user("Bob")
    totals = [
        UserTotals(alice.id, 40, 2, 4, NOW - timedelta(days=1)),
        UserTotals(bob.id, 90, 3, 3, NOW),
        UserTotals(uuid.uuid4(), 500, 9, 9, NOW),
    ]
    work_times = {bob.id: [NOW, NOW - timedelta(days=1)], alice.id: [NOW - timedelta(days=1)]}

    entries = rank_totals(totals, [alice, bob], work_times, NOW, UTC)
    assert [e.name for e in entries] == ["Bob", "Alice"]
    assert entries[0].current_streak == 2
    assert entries[0].productivity_score == 100
    assert entries[1].current_streak == 0
    assert entries[1].productivity_score == 50


@pytest.mark.asyncio
async def test_get_leaderboard_groups_in_database(db_session, test_user):
    now = datetime.now(timezone.utc)
    ranked = [await _add_user(db_session, f"Ranked{i}") for i in range(3)]
    idle = [await _add_user(db_session, f"Idle{i}") for i in range(20)]

    for i, user in enumerate(ranked):
        for day in range(i + 1):
            db_session.add(Session(
                user_id=user.id, session_type="work", duration=30,
                completed_at=now - timedelta(days=day),
            ))
        db_session.add(Session(
            user_id=user.id, session_type="break", duration=5, completed_at=now,
        ))
    for user in idle:
        db_session.add_all([
            Session(user_id=user.id, session_type="break", duration=5, completed_at=now)
            for _ in range(10)
        ])
    db_session.add(Session(
        user_id=test_user.id, session_type="work", duration=10,
        completed_at=now - timedelta(days=3),
    ))
    await db_session.commit()

    entries = await get_leaderboard(db_session, limit=3, now=now, tz=UTC)

    assert [e.name for e in entries] == ["Ranked2", "Ranked1", "Ranked0"]
    assert [e.total_focus_minutes for e in entries] == [90, 60, 30]
    assert [e.completed_pomodoros for e in entries] == [3, 2, 1]
    assert [e.current_streak for e in entries] == [3, 2, 1]
    assert entries[0].productivity_score == 75
    assert entries[2].productivity_score == 50
    assert all(e.last_activity is not None for e in entries)

    full = await get_leaderboard(db_session, now=now, tz=UTC)
    assert [e.name for e in full] == ["Ranked2", "Ranked1", "Ranked0", "Test User"]
    assert full[-1].current_streak == 0


@pytest.mark.asyncio
async def test_leaderboard_endpoint_falls_back_on_any_error(client, db_session, test_user):
    db_session.add(Session(
        user_id=test_user.id, session_type="work", duration=25,
        completed_at=datetime.now(timezone.utc),
    ))
    await db_session.commit()

    failing = AsyncMock(side_effect=ValueError("bad user row"))
    with patch("pomotrack.services.leaderboard_service.get_leaderboard", failing):
        response = await client.get("/users/leaderboard")

    assert response.status_code == 200
    data = response.json()
    assert data["fallback"] is True
    assert data["users"][0]["user_id"] == str(test_user.id)
