"""
Tests for the code stores, token repositories and token codec in isolation.
"""
from datetime import datetime, timedelta, timezone

import pytest

from runner_auth.codes import InMemoryAuthorizationCodeStore, SqlAuthorizationCodeStore
from runner_auth.database import SessionLocal, init_db
from runner_auth.errors import InvalidCode, InvalidToken, UserNotFound
from runner_auth.keys import generate_key
from runner_auth.token_store import InMemoryTokenRepository, SqlTokenRepository
from runner_auth.tests.helpers import ensure_user
from runner_auth.tokens import ACCESS, REFRESH, TokenCodec

_KEY = generate_key()


class FakeClock:
    def __init__(self):
        self.now = datetime(2030, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        ensure_user(session, "storeUser", "storepass")
        yield session
    finally:
        session.close()


@pytest.fixture(params=["memory", "sql"])
def code_store_and_clock(request, db):
    clock = FakeClock()
    if request.param == "memory":
        return InMemoryAuthorizationCodeStore(ttl_seconds=600, clock=clock), clock
    return SqlAuthorizationCodeStore(db, ttl_seconds=600, clock=clock), clock


@pytest.fixture(params=["memory", "sql"])
def repo(request, db):
    if request.param == "memory":
        return InMemoryTokenRepository()
    return SqlTokenRepository(db)


# --- authorization codes ---


def test_code_consumed_once(code_store_and_clock):
    store, _ = code_store_and_clock
    code = store.issue("storeUser", "c1")
    assert store.consume(code, "c1") == "storeUser"
    with pytest.raises(InvalidCode):
        store.consume(code, "c1")


def test_code_client_mismatch_keeps_code(code_store_and_clock):
    store, _ = code_store_and_clock
    code = store.issue("storeUser", "c1")
    with pytest.raises(InvalidCode):
        store.consume(code, "c2")
    assert store.consume(code, "c1") == "storeUser"


def test_code_expires_after_ttl(code_store_and_clock):
    store, clock = code_store_and_clock
    code = store.issue("storeUser", "c1")
    clock.advance(599)
    fresh = store.issue("storeUser", "c1")
    assert store.consume(fresh, "c1") == "storeUser"
    clock.advance(1)
    with pytest.raises(InvalidCode):
        store.consume(code, "c1")


def test_purge_expired(code_store_and_clock):
    store, clock = code_store_and_clock
    store.purge_expired()
    store.issue("storeUser", "c1")
    store.issue("storeUser", "c2")
    clock.advance(601)
    live = store.issue("storeUser", "c1")  # issuing sweeps the two stale codes
    assert store.purge_expired() == 0
    assert store.consume(live, "c1") == "storeUser"


def test_in_memory_issue_sweeps_stale_codes():
    clock = FakeClock()
    store = InMemoryAuthorizationCodeStore(ttl_seconds=10, clock=clock)
    store.issue("storeUser", "c1")
    store.issue("storeUser", "c1")
    clock.advance(11)
    store.issue("storeUser", "c1")
    assert len(store) == 1


# --- token repositories ---


def test_repository_upsert_and_verify(repo):
    repo.upsert("storeUser", "c1", "a1", "r1")
    assert repo.verify("storeUser", "c1", "a1", ACCESS)
    assert repo.verify("storeUser", "c1", "r1", REFRESH)
    assert not repo.verify("storeUser", "c1", "r1", ACCESS)
    assert not repo.verify("storeUser", "c2", "a1", ACCESS)


def test_repository_upsert_overwrites_whole_pair(repo):
    repo.upsert("storeUser", "c1", "a1", "r1")
    repo.upsert("storeUser", "c1", "a2", "r2")
    assert not repo.verify("storeUser", "c1", "a1", ACCESS)
    assert not repo.verify("storeUser", "c1", "r1", REFRESH)
    assert repo.verify("storeUser", "c1", "r2", REFRESH)


def test_repository_rotate_is_compare_and_swap(repo):
    repo.upsert("storeUser", "c1", "a1", "r1")
    assert repo.rotate("storeUser", "c1", "r1", "a2", "r2")
    assert not repo.rotate("storeUser", "c1", "r1", "a3", "r3")
    assert repo.verify("storeUser", "c1", "a2", ACCESS)
    assert repo.verify("storeUser", "c1", "r2", REFRESH)


def test_repository_rotate_without_record(repo):
    repo.remove("storeUser", "c1")
    assert not repo.rotate("storeUser", "c1", "r1", "a2", "r2")


def test_repository_remove_is_idempotent(repo):
    repo.upsert("storeUser", "c1", "a1", "r1")
    repo.remove("storeUser", "c1")
    repo.remove("storeUser", "c1")
    assert not repo.verify("storeUser", "c1", "a1", ACCESS)


def test_sql_repository_keeps_one_record_per_client(db):
    repo = SqlTokenRepository(db)
    repo.upsert("storeUser", "c1", "a1", "r1")
    repo.upsert("storeUser", "c1", "a2", "r2")
    repo.upsert("storeUser", "c2", "b1", "s1")
    user = ensure_user(db, "storeUser", "storepass")
    db.refresh(user)
    assert set(user.tokens) >= {"c1", "c2"}
    assert user.tokens["c1"].access_token == "a2"


def test_sql_repository_unknown_user(db):
    repo = SqlTokenRepository(db)
    with pytest.raises(UserNotFound):
        repo.upsert("ghost", "c1", "a1", "r1")
    assert not repo.verify("ghost", "c1", "a1", ACCESS)
    repo.remove("ghost", "c1")


# --- codec ---


def test_codec_round_trip_claims():
    codec = TokenCodec(_KEY, "k1")
    claims = codec.verify(codec.issue_refresh_token("storeUser", "c1"), REFRESH)
    assert claims.username == "storeUser"
    assert claims.client_id == "c1"
    assert claims.kind == REFRESH
    assert claims.expires_at > claims.issued_at


def test_codec_kind_mismatch():
    codec = TokenCodec(_KEY, "k1")
    with pytest.raises(InvalidToken):
        codec.verify(codec.issue_access_token("storeUser", "c1"), REFRESH)
    with pytest.raises(InvalidToken):
        codec.verify(codec.issue_refresh_token("storeUser", "c1"), ACCESS)


def test_codec_expired_token():
    codec = TokenCodec(_KEY, "k1", access_expires=-10)
    with pytest.raises(InvalidToken):
        codec.verify(codec.issue_access_token("storeUser", "c1"))


def test_codec_wrong_issuer():
    token = TokenCodec(_KEY, "k1", issuer="https://elsewhere").issue_access_token("storeUser", "c1")
    with pytest.raises(InvalidToken):
        TokenCodec(_KEY, "k1").verify(token)


def test_codec_unknown_kid():
    token = TokenCodec(_KEY, "k1").issue_access_token("storeUser", "c1")
    with pytest.raises(InvalidToken):
        TokenCodec(_KEY, "k2").verify(token)


def test_codec_previous_key_still_verifies():
    old_key = generate_key()
    old = TokenCodec(old_key, "old")
    token = old.issue_access_token("storeUser", "c1")
    current = TokenCodec(_KEY, "new", public_key_for_kid=lambda kid: old_key.public_key() if kid == "old" else None)
    assert current.verify(token, ACCESS).username == "storeUser"


def test_codec_tokens_differ_within_same_second():
    codec = TokenCodec(_KEY, "k1")
    assert codec.issue_access_token("storeUser", "c1") != codec.issue_access_token("storeUser", "c1")
