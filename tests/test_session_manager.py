"""Session manager state machine: sign-up, sign-in, rotation, sign-out."""
import threading
from datetime import timedelta

import pytest

from api.config import TestingConfig
from services.container import build_auth_components
from services.email import OutboxEmailSender
from services.errors import DuplicateEmail, InvalidCredentials, InvalidRefreshToken, NotFound
from services.session_manager import SessionManager, UserView
from utils.tokens import TokenCodec

from .conftest import ACCESS_SECRET, REFRESH_SECRET


def test_sign_up_returns_user_without_digest(sessions):
    result = sessions.sign_up("A@x.com", "secret1", "A")

    assert isinstance(result.user, UserView)
    assert result.user.email == "a@x.com"
    assert not hasattr(result.user, "password_hash")
    assert "password" not in str(result.user)
    assert result.tokens.access_token and result.tokens.refresh_token


def test_sign_up_persists_refresh_token(sessions, store):
    result = sessions.sign_up("a@x.com", "secret1", "A")
    assert store.find_by_refresh_token(result.user.id, result.tokens.refresh_token) is not None


def test_duplicate_sign_up(sessions, store):
    sessions.sign_up("a@x.com", "secret1", "A")
    with pytest.raises(DuplicateEmail):
        sessions.sign_up(" A@X.com", "secret2", "Again")


def test_sign_in_errors_are_indistinguishable(sessions):
    sessions.sign_up("a@x.com", "secret1", "A")

    with pytest.raises(InvalidCredentials) as wrong_password:
        sessions.sign_in("a@x.com", "wrong-pass")
    with pytest.raises(InvalidCredentials) as unknown_user:
        sessions.sign_in("nobody@x.com", "secret1")
    assert wrong_password.value.message == unknown_user.value.message


def test_unknown_email_still_runs_a_password_check(sessions, store, monkeypatch):
    checked = []
    verify = store.hasher.verify

    def recording_verify(plaintext, digest):
        checked.append(digest)
        return verify(plaintext, digest)

    monkeypatch.setattr(store.hasher, "verify", recording_verify)
    with pytest.raises(InvalidCredentials):
        sessions.sign_in("nobody@x.com", "secret1")

    assert len(checked) == 1
    assert checked[0].startswith("$argon2")


def test_sign_in_issues_a_new_pair(sessions, store):
    signed_up = sessions.sign_up("a@x.com", "secret1", "A")
    signed_in = sessions.sign_in("a@x.com", "secret1")

    assert signed_in.tokens.refresh_token != signed_up.tokens.refresh_token
    assert signed_in.tokens.access_token != signed_up.tokens.access_token
    assert store.count_refresh_tokens(signed_in.user.id) == 2


def test_refresh_rotates_and_blocks_replay(sessions, store):
    result = sessions.sign_up("a@x.com", "secret1", "A")
    old = result.tokens.refresh_token

    pair = sessions.refresh(old)

    assert pair.refresh_token != old
    assert store.find_by_refresh_token(result.user.id, old) is None
    assert store.find_by_refresh_token(result.user.id, pair.refresh_token) is not None
    with pytest.raises(InvalidRefreshToken) as replay:
        sessions.refresh(old)
    assert replay.value.clear_tokens is True


def test_refresh_rejects_garbage_and_missing_tokens(sessions):
    with pytest.raises(InvalidRefreshToken):
        sessions.refresh("garbage")
    with pytest.raises(InvalidRefreshToken):
        sessions.refresh(None)


def test_refresh_rejects_access_token(sessions):
    result = sessions.sign_up("a@x.com", "secret1", "A")
    with pytest.raises(InvalidRefreshToken):
        sessions.refresh(result.tokens.access_token)


def test_refresh_rejects_validly_signed_but_unknown_token(sessions, components):
    result = sessions.sign_up("a@x.com", "secret1", "A")
    never_stored = components.codec.issue_refresh(result.user.id)
    with pytest.raises(InvalidRefreshToken):
        sessions.refresh(never_stored)


def test_sign_out_revokes_and_is_idempotent(sessions, store):
    result = sessions.sign_up("a@x.com", "secret1", "A")
    token = result.tokens.refresh_token

    sessions.sign_out(token)
    sessions.sign_out(token)
    sessions.sign_out(None)
    sessions.sign_out("garbage")

    assert store.count_refresh_tokens(result.user.id) == 0
    with pytest.raises(InvalidRefreshToken):
        sessions.refresh(token)


def test_sign_out_with_forged_token_leaves_sessions_alone(sessions, store):
    result = sessions.sign_up("a@x.com", "secret1", "A")
    forger = TokenCodec("forged-access-secret-0123456789", "forged-refresh-secret-0123456789")

    sessions.sign_out(forger.issue_refresh(result.user.id))

    assert store.count_refresh_tokens(result.user.id) == 1


def test_sign_out_removes_expired_refresh_row(components):
    codec = TokenCodec(ACCESS_SECRET, REFRESH_SECRET, refresh_ttl=timedelta(seconds=-10))
    manager = SessionManager(components.store, codec)
    user = components.store.create_user("a@x.com", "secret1", "A")
    token = codec.issue_refresh(user.id)
    components.store.store_refresh_token(user.id, token)

    manager.sign_out(token)
    assert components.store.remove_refresh_token(user.id, token) is False


def test_current_user_and_revoke_all(sessions):
    result = sessions.sign_up("a@x.com", "secret1", "A")
    sessions.sign_in("a@x.com", "secret1")

    assert sessions.current_user(result.user.id).email == "a@x.com"
    assert sessions.revoke_all(result.user.id) == 2
    with pytest.raises(InvalidRefreshToken):
        sessions.refresh(result.tokens.refresh_token)
    with pytest.raises(NotFound):
        sessions.current_user("missing")


@pytest.fixture
def file_backed(tmp_path):
    """Components on a file database so several threads get their own connections."""
    settings = {
        key: getattr(TestingConfig, key) for key in dir(TestingConfig) if key.isupper()
    }
    settings["DATABASE_URL"] = f"sqlite:///{tmp_path / 'race.db'}"
    components = build_auth_components(settings, email_sender=OutboxEmailSender())
    yield components
    components.close()


def _race(fn, args_list):
    barrier = threading.Barrier(len(args_list))
    outcomes = []
    lock = threading.Lock()

    def run(args):
        barrier.wait()
        try:
            value = fn(*args)
        except Exception as exc:
            value = exc
        with lock:
            outcomes.append(value)

    threads = [threading.Thread(target=run, args=(args,)) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


def test_concurrent_refresh_has_one_winner(file_backed):
    sessions = file_backed.sessions
    token = sessions.sign_up("a@x.com", "secret1", "A").tokens.refresh_token

    outcomes = _race(sessions.refresh, [(token,), (token,)])

    failures = [o for o in outcomes if isinstance(o, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], InvalidRefreshToken)


def test_concurrent_sign_up_stores_one_user(file_backed):
    sessions = file_backed.sessions

    outcomes = _race(sessions.sign_up, [("race@x.com", "secret1", "A"), ("RACE@x.com", "secret2", "B")])

    failures = [o for o in outcomes if isinstance(o, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], DuplicateEmail)
    assert file_backed.store.find_by_email("race@x.com") is not None
