import asyncio

import pytest

from common.db.context import (
    is_readonly_forced,
    get_current_session,
    set_current_session,
    reset_current_session,
    in_transaction,
    readonly,
)
from common.db.scoped import transaction


class TestSessionSlots:
    def test_no_session_outside_transaction(self):
        assert is_readonly_forced() is False
        assert get_current_session(readonly=False) is None
        assert get_current_session(readonly=True) is None
        assert in_transaction() is False

    async def test_write_and_read_slots_are_separate(self, test_db):
        token = set_current_session(test_db, readonly=True)
        try:
            assert get_current_session(readonly=True) is test_db
            assert get_current_session(readonly=False) is None
        finally:
            reset_current_session(token, readonly=True)

        assert get_current_session(readonly=True) is None

    async def test_concurrent_tasks_do_not_share_sessions(self, test_db):
        seen = {}

        async def worker(name: str, bind: bool):
            token = set_current_session(test_db) if bind else None
            await asyncio.sleep(0.01)
            seen[name] = get_current_session()
            if token is not None:
                reset_current_session(token)

        await asyncio.gather(worker("bound", True), worker("unbound", False))

        assert seen["bound"] is test_db
        assert seen["unbound"] is None


class TestReadonlyDecorator:
    async def test_forces_readonly_for_the_call(self):
        @readonly
        async def count(user_id: str, *, minimum: int = 0):
            return user_id, minimum, is_readonly_forced()

        assert await count("u1", minimum=2) == ("u1", 2, True)
        assert is_readonly_forced() is False

    async def test_resets_on_exception(self):
        @readonly
        async def failing():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await failing()

        assert is_readonly_forced() is False

    async def test_routes_lookups_to_read_slot_inside_write_transaction(self):
        @readonly
        async def lookup():
            return get_current_session()

        async with transaction() as write_session:
            assert get_current_session() is write_session
            assert await lookup() is None
