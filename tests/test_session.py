import time

import pytest

from conftest import FakeStore, make_config, make_store
from sheetvault.errors import (
    AccessDeniedError,
    PermissionDeniedError,
    RemoteStoreError,
    TokenExpiredError,
)
from sheetvault.session import Session


def _session(tmp_path, store, email="owner@example.com", **config_overrides) -> Session:
    return Session(
        make_config(tmp_path, **config_overrides),
        store_factory=lambda token: store,
        identity=lambda token: email,
    )


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_login_loads_a_snapshot(tmp_path) -> None:
    store = make_store()
    session = _session(tmp_path, store)

    snapshot = session.login("tok", start_refresh=False)

    assert session.is_authenticated
    assert session.user_email == "owner@example.com"
    assert session.created_sheets == []
    assert [p.partner_id for p in snapshot.partners] == ["P001", "P002", "P003"]
    assert session.snapshot is snapshot
    assert not session.is_refreshing


def test_cached_token_is_reused(tmp_path) -> None:
    store = make_store()
    _session(tmp_path, store).login("tok", start_refresh=False)

    seen = []
    session = Session(
        make_config(tmp_path),
        store_factory=lambda token: store,
        identity=lambda token: seen.append(token) or "owner@example.com",
    )
    session.login(start_refresh=False)

    assert seen == ["tok"]


def test_login_without_token(tmp_path) -> None:
    session = _session(tmp_path, make_store())

    with pytest.raises(TokenExpiredError):
        session.login(start_refresh=False)

    assert not session.is_authenticated
    assert session.auth_error


def test_email_outside_allow_list_is_rejected(tmp_path) -> None:
    store = make_store()
    session = _session(tmp_path, store, email="intruder@example.com")

    with pytest.raises(AccessDeniedError):
        session.login("tok", start_refresh=False)

    assert session.auth_error == "Access Denied: Email intruder@example.com is not authorized."
    assert session.token_cache.load() is None
    assert not session.is_authenticated
    assert store.reads == 0


def test_login_provisions_an_empty_spreadsheet(tmp_path, frozen_now) -> None:
    store = FakeStore()
    session = _session(tmp_path, store)
    snapshot = session.login("tok", start_refresh=False)

    assert len(session.created_sheets) == 6
    assert [p.name for p in snapshot.partners] == ["Partner 1", "Partner 2", "Business Account"]


def test_refresh_rereads_everything(tmp_path) -> None:
    store = make_store()
    session = _session(tmp_path, store)
    session.login("tok", start_refresh=False)
    reads = store.reads

    store.sheets["Partners"][1][2] = "4242"
    snapshot = session.refresh()

    assert store.reads == reads + 6
    assert snapshot.partners[0].balance == 4242


def test_permission_loss_during_refresh_signs_out(tmp_path) -> None:
    store = make_store()
    session = _session(tmp_path, store)
    session.login("tok", start_refresh=False)

    store.fail_with = PermissionDeniedError()
    with pytest.raises(PermissionDeniedError):
        session.refresh()

    assert not session.is_authenticated
    assert session.snapshot is None
    assert "share it with your email" in session.auth_error
    assert session.token_cache.load() is None


def test_refresh_requires_login(tmp_path) -> None:
    with pytest.raises(TokenExpiredError):
        _session(tmp_path, make_store()).refresh()


def test_logout_keeps_preferences(tmp_path) -> None:
    session = _session(tmp_path, make_store())
    session.login("tok", start_refresh=False)
    assert session.toggle_dark_mode() is True

    session.logout()

    assert not session.is_authenticated
    assert session.user_email is None
    assert session.token_cache.load() is None
    assert session.dark_mode is True


def test_background_refresh(tmp_path) -> None:
    store = make_store()
    with _session(tmp_path, store, refresh_interval_seconds=0.01) as session:
        session.login("tok")
        assert session.is_refreshing
        reads = store.reads

        assert _wait_for(lambda: store.reads >= reads + 12)

        store.fail_with = RemoteStoreError("backend down", 503)
        assert _wait_for(lambda: session.last_refresh_error == "backend down")
        assert session.is_authenticated

        store.fail_with = PermissionDeniedError()
        assert _wait_for(lambda: not session.is_authenticated)
        assert _wait_for(lambda: not session.is_refreshing)


def test_close_stops_background_refresh(tmp_path) -> None:
    session = _session(tmp_path, make_store(), refresh_interval_seconds=60)
    session.login("tok")
    assert session.is_refreshing

    session.close()

    assert not session.is_refreshing


def test_unexpected_refresh_error_keeps_the_loop_running(tmp_path) -> None:
    store = make_store()
    with _session(tmp_path, store, refresh_interval_seconds=0.01) as session:
        session.login("tok")

        store.fail_with = RuntimeError("decoder exploded")
        assert _wait_for(lambda: session.last_refresh_error == "decoder exploded")
        assert session.is_refreshing

        store.fail_with = None
        assert _wait_for(lambda: session.last_refresh_error is None)
        assert session.is_authenticated
