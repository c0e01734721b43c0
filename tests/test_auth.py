import json

import pytest

from conftest import FakeHTTPSession, FakeResponse
from sheetvault.auth import TokenCache, TokenData, ensure_allowed, fetch_user_email
from sheetvault.errors import AccessDeniedError, RemoteStoreError, TokenExpiredError


def test_token_is_reused_until_expiry_buffer(tmp_path, clock) -> None:
    cache = TokenCache(tmp_path / "token.json", buffer_seconds=60, clock=clock)
    cache.save("tok", 3600)

    clock.advance(3539)
    assert cache.load().access_token == "tok"

    clock.advance(1)
    assert cache.load() is None
    # Expired tokens are removed from the file.
    assert "token" not in json.loads((tmp_path / "token.json").read_text())


def test_token_expiry_rule() -> None:
    token = TokenData("tok", expires_in=120, issued_at=0)
    assert not token.is_expired(59, buffer_seconds=60)
    assert token.is_expired(60, buffer_seconds=60)


def test_require_raises_without_token(tmp_path) -> None:
    cache = TokenCache(tmp_path / "missing" / "token.json")
    with pytest.raises(TokenExpiredError):
        cache.require()


def test_malformed_token_is_cleared(tmp_path, clock) -> None:
    path = tmp_path / "token.json"
    path.write_text(json.dumps({"token": {"access_token": "tok"}}))
    cache = TokenCache(path, clock=clock)

    assert cache.load() is None
    assert json.loads(path.read_text()) == {}


def test_unreadable_file_is_ignored(tmp_path) -> None:
    path = tmp_path / "token.json"
    path.write_text("{not json")
    assert TokenCache(path).load() is None


def test_dark_mode_survives_clear(tmp_path, clock) -> None:
    cache = TokenCache(tmp_path / "token.json", clock=clock)
    assert cache.dark_mode is False

    cache.dark_mode = True
    cache.save("tok", 3600)
    cache.clear()

    assert cache.load() is None
    assert cache.dark_mode is True


def test_allow_list_is_case_insensitive() -> None:
    ensure_allowed("Owner@Example.com", ["owner@example.com"])

    with pytest.raises(AccessDeniedError) as excinfo:
        ensure_allowed("intruder@example.com", ["owner@example.com"])
    assert str(excinfo.value) == "Access Denied: Email intruder@example.com is not authorized."


def test_empty_allow_list_denies_everyone() -> None:
    with pytest.raises(AccessDeniedError):
        ensure_allowed("owner@example.com", [])


def test_fetch_user_email() -> None:
    session = FakeHTTPSession([FakeResponse(200, {"email": "owner@example.com"})])

    assert fetch_user_email("tok", session=session, url="https://id.test") == "owner@example.com"
    call = session.calls[0]
    assert call["url"] == "https://id.test"
    assert call["headers"] == {"Authorization": "Bearer tok"}


def test_fetch_user_email_rejected_token() -> None:
    session = FakeHTTPSession([FakeResponse(401, {"error": "invalid_token"})])
    with pytest.raises(TokenExpiredError):
        fetch_user_email("tok", session=session)


def test_fetch_user_email_without_email() -> None:
    session = FakeHTTPSession([FakeResponse(200, {"sub": "123"})])
    with pytest.raises(RemoteStoreError):
        fetch_user_email("tok", session=session)
