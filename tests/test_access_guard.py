from datetime import timedelta

import pytest
from werkzeug.test import EnvironBuilder
from werkzeug.wrappers import Request

from services.errors import Forbidden, Unauthenticated
from utils.decorators import AccessGuard, token_from_request
from utils.tokens import TokenCodec

from .conftest import ACCESS_SECRET, REFRESH_SECRET


@pytest.fixture
def guard(codec):
    return AccessGuard(codec)


def test_authenticate_valid_token(guard, codec):
    identity = guard.authenticate(codec.issue_access("user-1", "a@x.com"))
    assert identity.user_id == "user-1"
    assert identity.email == "a@x.com"


@pytest.mark.parametrize("token", [None, "", "   "])
def test_missing_token_is_unauthenticated(guard, token):
    with pytest.raises(Unauthenticated):
        guard.authenticate(token)


def test_bad_token_is_forbidden(guard, codec):
    with pytest.raises(Forbidden):
        guard.authenticate("garbage")
    with pytest.raises(Forbidden):
        guard.authenticate(codec.issue_refresh("user-1"))


def test_expired_token_is_forbidden():
    codec = TokenCodec(ACCESS_SECRET, REFRESH_SECRET, access_ttl=timedelta(seconds=-10))
    with pytest.raises(Forbidden):
        AccessGuard(codec).authenticate(codec.issue_access("user-1", "a@x.com"))


def test_optional_authenticate(guard, codec):
    assert guard.optional_authenticate(None) is None
    assert guard.optional_authenticate("garbage") is None
    assert guard.optional_authenticate(codec.issue_access("user-1", "a@x.com")).user_id == "user-1"


def _request(headers=None, cookie=None):
    builder = EnvironBuilder(headers=headers or {})
    if cookie:
        builder.headers["Cookie"] = f"access_token={cookie}"
    return Request(builder.get_environ())


def test_token_from_header_then_cookie():
    assert token_from_request(_request({"Authorization": "Bearer abc"}, cookie="xyz")) == "abc"
    assert token_from_request(_request(cookie="xyz")) == "xyz"
    assert token_from_request(_request({"Authorization": "Basic abc"})) is None
    assert token_from_request(_request()) is None
