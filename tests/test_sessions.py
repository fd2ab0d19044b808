from __future__ import annotations

import pytest

from rn_ios_simulator_mcp.sessions import SessionState, SessionStore, SimulatorSession


def test_new_session_is_inactive_with_unique_id() -> None:
    first = SimulatorSession(udid="ABC", name="iPhone 15 Pro")
    second = SimulatorSession(udid="ABC", name="iPhone 15 Pro")

    assert first.state == SessionState.INACTIVE
    assert first.id != second.id


def test_transitions_only_move_forward() -> None:
    session = SimulatorSession(udid="ABC", name="iPhone 15 Pro")
    session.transition(SessionState.ACTIVE)
    session.transition(SessionState.ACTIVE)
    session.transition(SessionState.TERMINATED)

    with pytest.raises(ValueError):
        session.transition(SessionState.ACTIVE)


def test_store_put_get_delete() -> None:
    store = SessionStore()
    session = SimulatorSession(udid="ABC", name="iPhone 15 Pro", bundle_id="com.example.app")
    store.put(session)

    assert store.get(session.id) is session
    assert session.id in store
    assert list(store) == [session]
    assert store.delete(session.id)
    assert not store.delete(session.id)
    assert len(store) == 0


def test_to_dict() -> None:
    session = SimulatorSession(udid="ABC", name="iPhone 15 Pro", project_path="/work/app")
    data = session.to_dict()

    assert data["udid"] == "ABC"
    assert data["state"] == "inactive"
    assert data["project_path"] == "/work/app"
    assert data["bundle_id"] is None
