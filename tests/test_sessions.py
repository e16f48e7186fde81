"""Tests for the in-memory session store and its timeouts."""

import asyncio

import pytest

from clan.sessions import ConversationState, ConversationStep, InMemorySessionStore, SessionActiveError


def state(step=ConversationStep.MENU_CHOICE):
    return ConversationState(step=step, channel_id="chan", player_id="p1", player_name="Ana")


class ExpiryRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, user_id, expired_state):
        self.calls.append((user_id, expired_state.step))


async def test_start_get_delete():
    store = InMemorySessionStore(timeout_seconds=60)
    store.start("u1", state())

    assert store.get("u1").player_name == "Ana"
    assert len(store) == 1
    assert store.delete("u1")
    assert store.get("u1") is None
    assert not store.delete("u1")


async def test_second_flow_is_refused():
    store = InMemorySessionStore(timeout_seconds=60)
    store.start("u1", state())
    with pytest.raises(SessionActiveError) as excinfo:
        store.start("u1", state(ConversationStep.UPDATE_LEVEL))
    assert excinfo.value.step == ConversationStep.MENU_CHOICE
    store.clear()


async def test_expiry_removes_state_and_notifies_once():
    recorder = ExpiryRecorder()
    store = InMemorySessionStore(timeout_seconds=0.05, on_expire=recorder)
    store.start("u1", state())

    await asyncio.sleep(0.15)

    assert store.get("u1") is None
    assert recorder.calls == [("u1", ConversationStep.MENU_CHOICE)]


async def test_touch_restarts_the_timer():
    recorder = ExpiryRecorder()
    store = InMemorySessionStore(timeout_seconds=0.1, on_expire=recorder)
    store.start("u1", state())

    for _ in range(3):
        await asyncio.sleep(0.06)
        store.touch("u1")

    assert store.get("u1") is not None
    assert recorder.calls == []
    store.clear()


async def test_deleted_session_never_expires():
    recorder = ExpiryRecorder()
    store = InMemorySessionStore(timeout_seconds=0.05, on_expire=recorder)
    store.start("u1", state())
    store.delete("u1")

    await asyncio.sleep(0.1)
    assert recorder.calls == []


async def test_new_session_is_not_expired_by_old_timer():
    recorder = ExpiryRecorder()
    store = InMemorySessionStore(timeout_seconds=0.1, on_expire=recorder)
    store.start("u1", state())
    await asyncio.sleep(0.06)
    store.delete("u1")
    store.start("u1", state(ConversationStep.UPDATE_LEVEL))

    await asyncio.sleep(0.06)
    assert store.get("u1").step == ConversationStep.UPDATE_LEVEL
    assert recorder.calls == []
    store.clear()


async def test_failing_notice_is_logged_not_raised(caplog):
    async def broken(user_id, expired_state):
        raise RuntimeError("channel gone")

    store = InMemorySessionStore(timeout_seconds=0.02, on_expire=broken)
    store.start("u1", state())
    await asyncio.sleep(0.08)

    assert store.get("u1") is None
    assert "Failed to send expiry notice" in caplog.text
