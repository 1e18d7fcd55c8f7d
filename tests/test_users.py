import asyncio
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from portfolio_monitor.core import Conflict, ServiceUnavailable
from portfolio_monitor.services import UserDirectory
from portfolio_monitor.services.users import to_public


def test_create_and_look_up(engine):
    users = UserDirectory(engine)

    async def scenario():
        created = await users.create("alice", "hash-a")
        return created, await users.get_by_id(created.id), await users.get_by_username("alice")

    created, by_id, by_name = asyncio.run(scenario())

    assert created.id
    assert created.created_at is not None
    assert by_id.username == "alice"
    assert by_name.id == created.id
    assert by_name.password_hash == "hash-a"


def test_absent_user_is_none(engine):
    users = UserDirectory(engine)

    assert asyncio.run(users.get_by_id("nope")) is None
    assert asyncio.run(users.get_by_username("nobody")) is None


def test_duplicate_username_conflicts(engine):
    users = UserDirectory(engine)
    asyncio.run(users.create("alice", "hash-a"))

    with pytest.raises(Conflict):
        asyncio.run(users.create("alice", "hash-b"))

    assert len(asyncio.run(users.list_all())) == 1


def test_unique_index_race_maps_to_conflict(engine, monkeypatch):
    users = UserDirectory(engine)

    def raced(*_):
        raise IntegrityError("INSERT INTO user", {}, Exception("UNIQUE constraint failed"))

    monkeypatch.setattr(users, "_create_sync", raced)

    with pytest.raises(Conflict):
        asyncio.run(users.create("alice", "hash-a"))


def test_list_all_is_public_projection(engine):
    users = UserDirectory(engine)
    asyncio.run(users.create("alice", "hash-a"))
    asyncio.run(users.create("bob", "hash-b"))

    listed = asyncio.run(users.list_all())

    assert [u.username for u in listed] == ["alice", "bob"]
    for user in listed:
        assert "password_hash" not in user.model_dump()


def test_database_failure_maps_to_service_unavailable(engine, monkeypatch):
    users = UserDirectory(engine)

    def broken(*_):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(users, "_get_by_username_sync", broken)

    with pytest.raises(ServiceUnavailable):
        asyncio.run(users.get_by_username("alice"))


def test_created_at_round_trips_as_aware_utc(engine):
    users = UserDirectory(engine)
    created = asyncio.run(users.create("alice", "hash-a"))

    public = to_public(created)
    (listed,) = asyncio.run(users.list_all())
    stored = to_public(asyncio.run(users.get_by_id(created.id)))

    assert public.created_at.utcoffset() == timedelta(0)
    assert listed.created_at.utcoffset() == timedelta(0)
    assert stored.created_at == public.created_at
