"""Tests for the in-memory session store."""

import asyncio

import pytest

from database.session_store import HISTORY_LIMIT, Session, SessionState, SessionStore, mask_phone


class TestSessionStore:
    def test_same_session_for_same_sender(self):
        store = SessionStore()

        first = store.get("971501234567")
        first.state = SessionState.COLLECTING_ADDRESS

        assert store.get("971501234567") is first
        assert store.get("971501234567").state is SessionState.COLLECTING_ADDRESS
        assert len(store) == 1

    def test_new_session_starts_in_greeting(self):
        session = SessionStore().get("971500000000")

        assert session.state is SessionState.GREETING
        assert session.order_in_progress is None

    def test_snapshot_masks_phone_numbers(self):
        store = SessionStore()
        store.get("971501234567")

        snapshot = store.snapshot()

        assert snapshot[0]["phone"] == "97150123****"
        assert snapshot[0]["state"] == "greeting"
        assert "971501234567" not in str(snapshot)

    def test_mask_short_and_empty(self):
        assert mask_phone("") == "****"
        assert mask_phone("12345") == "12345****"

    @pytest.mark.asyncio
    async def test_same_sender_is_serialized(self):
        store = SessionStore()
        events = []

        async def handle(label):
            async with store.session("971501234567") as session:
                events.append(f"{label}-start")
                await asyncio.sleep(0.01)
                session.record("user", label)
                events.append(f"{label}-end")

        await asyncio.gather(handle("a"), handle("b"))

        assert events == ["a-start", "a-end", "b-start", "b-end"]
        assert [turn["message"] for turn in store.get("971501234567").conversation_history] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_different_senders_run_concurrently(self):
        store = SessionStore()
        events = []

        async def handle(sender):
            async with store.session(sender):
                events.append(f"{sender}-start")
                await asyncio.sleep(0.01)
                events.append(f"{sender}-end")

        await asyncio.gather(handle("1"), handle("2"))

        assert events[:2] == ["1-start", "2-start"]


class TestSession:
    def test_history_keeps_last_turns(self):
        session = Session()

        for i in range(HISTORY_LIMIT + 5):
            session.record("user", f"message {i}")

        assert len(session.conversation_history) == HISTORY_LIMIT
        assert session.conversation_history[0]["message"] == "message 5"

    def test_reset(self):
        session = Session(state=SessionState.CONFIRMING_ORDER)

        session.reset()

        assert session.state is SessionState.GREETING
        assert session.order_in_progress is None
