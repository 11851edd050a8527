"""Tests for signed-cookie sessions."""

from __future__ import annotations

import base64
import json

import pytest
from starlette.responses import Response

from signon.auth.errors import (
    EmptyIdentityError,
    InvalidSessionError,
    NoSessionError,
    SessionExpiredError,
)
from signon.auth.session import SESSION_TTL_SECONDS, SessionManager

from tests.helpers import SECRET, make_request, set_cookies

COOKIE = "app_session"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _issue(manager: SessionManager, user_id: str) -> str:
    response = Response()
    manager.create_session(response, user_id)
    return set_cookies(response)[COOKIE].value


class TestCreateAndValidate:
    @pytest.mark.parametrize("user_id", ["alice", "dummyuser", "user@example.com", "ユーザー"])
    def test_round_trip(self, user_id: str) -> None:
        manager = SessionManager(SECRET)
        value = _issue(manager, user_id)
        assert manager.validate_session(make_request({COOKIE: value})) == user_id

    def test_cookie_attributes(self) -> None:
        manager = SessionManager(SECRET, secure=True)
        response = Response()
        manager.create_session(response, "alice")

        morsel = set_cookies(response)[COOKIE]
        assert morsel["max-age"] == str(SESSION_TTL_SECONDS)
        assert morsel["path"] == "/"
        assert morsel["httponly"]
        assert morsel["secure"]
        assert morsel["samesite"].lower() == "lax"

    def test_custom_cookie_name(self) -> None:
        manager = SessionManager(SECRET, cookie_name="my_session")
        response = Response()
        manager.create_session(response, "alice")
        value = set_cookies(response)["my_session"].value
        assert manager.validate_session(make_request({"my_session": value})) == "alice"

    def test_valid_until_expiry(self) -> None:
        clock = FakeClock()
        manager = SessionManager(SECRET, clock=clock)
        value = _issue(manager, "alice")

        clock.now += SESSION_TTL_SECONDS - 1
        assert manager.validate_session(make_request({COOKIE: value})) == "alice"

        clock.now += 2
        with pytest.raises(SessionExpiredError):
            manager.validate_session(make_request({COOKIE: value}))

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            SessionManager("")


class TestValidateRejects:
    def test_no_cookie(self) -> None:
        with pytest.raises(NoSessionError):
            SessionManager(SECRET).validate_session(make_request())

    def test_other_secret(self) -> None:
        value = _issue(SessionManager(SECRET), "alice")
        other = SessionManager("a-completely-different-secret-value!!")
        with pytest.raises(InvalidSessionError):
            other.validate_session(make_request({COOKIE: value}))

    def test_tampered_payload(self) -> None:
        manager = SessionManager(SECRET)
        header, payload, sig = _issue(manager, "alice").split(".")

        claims = json.loads(base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)))
        claims["sub"] = "admin"
        forged = base64.urlsafe_b64encode(json.dumps(claims).encode()).rstrip(b"=").decode()

        with pytest.raises(InvalidSessionError):
            manager.validate_session(make_request({COOKIE: f"{header}.{forged}.{sig}"}))

    @pytest.mark.parametrize("value", ["garbage", "a.b", "a.b.c", "...."])
    def test_malformed(self, value: str) -> None:
        with pytest.raises(InvalidSessionError):
            SessionManager(SECRET).validate_session(make_request({COOKIE: value}))

    def test_empty_identity(self) -> None:
        manager = SessionManager(SECRET)
        value = manager.encode("")
        with pytest.raises(EmptyIdentityError):
            manager.validate_session(make_request({COOKIE: value}))


class TestClearSession:
    def test_clear_valid_session(self) -> None:
        manager = SessionManager(SECRET)
        value = _issue(manager, "alice")

        response = Response()
        assert manager.clear_session(make_request({COOKIE: value}), response) == "alice"

        morsel = set_cookies(response)[COOKIE]
        assert morsel.value == ""
        assert morsel["max-age"] == "0"

    def test_clear_fails_on_undecodable_cookie(self) -> None:
        value = _issue(SessionManager("old-secret-old-secret-old-secret!"), "alice")
        manager = SessionManager(SECRET)

        with pytest.raises(InvalidSessionError):
            manager.clear_session(make_request({COOKIE: value}), Response())

    def test_expire_cookie_is_unconditional(self) -> None:
        manager = SessionManager(SECRET)
        response = Response()
        manager.expire_cookie(response)

        morsel = set_cookies(response)[COOKIE]
        assert morsel.value == ""
        assert morsel["max-age"] == "0"
        assert morsel["path"] == "/"
