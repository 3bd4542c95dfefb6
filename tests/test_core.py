import asyncio
from datetime import timedelta

import pytest
from fakes import ROOT  # noqa: F401

from stockaudit.core.config import AppSettings
from stockaudit.core.errors import (
    PermanentDataSourceError,
    PermissionDenied,
    TransientDataSourceError,
    describe,
    is_transient,
)
from stockaudit.core.permissions import Identity, require_mutation_rights
from stockaudit.core.security import decode_token, issue_access_token
from stockaudit.services.inflight import InFlightRegistry
from stockaudit.services.retry import RetryPolicy


def test_mutation_rights_return_acting_email():
    assert require_mutation_rights(Identity(email="a@example.com", role="Admin")) == "a@example.com"


@pytest.mark.parametrize(
    "identity, message",
    [
        (None, "No signed-in user; sign in to update asset checks"),
        (Identity(role="Admin"), "No signed-in user; sign in to update asset checks"),
        (Identity(email="a@example.com"), "User a@example.com has no role assigned"),
        (Identity(email="a@example.com", role="Viewer"), "Role Viewer may not update asset checks"),
    ],
)
def test_mutation_rights_denied(identity, message):
    with pytest.raises(PermissionDenied) as excinfo:
        require_mutation_rights(identity)
    assert str(excinfo.value) == message


def test_allowed_roles_can_be_narrowed():
    with pytest.raises(PermissionDenied):
        require_mutation_rights(Identity(email="a@example.com", role="Operator"), allowed_roles=["Admin"])


def test_token_round_trip_carries_role():
    payload = decode_token(issue_access_token("a@example.com", role="Admin"))

    assert payload.sub == "a@example.com"
    assert payload.role == "Admin"


def test_expired_token_is_rejected():
    token = issue_access_token("a@example.com", expires_delta=timedelta(seconds=-5))

    with pytest.raises(ValueError):
        decode_token(token)


def test_error_helpers():
    assert is_transient(TransientDataSourceError("reset"))
    assert not is_transient(PermanentDataSourceError("bad"))
    assert not is_transient(RuntimeError("boom"))
    assert describe(TransientDataSourceError("")) == "TransientDataSourceError"


def test_list_settings_accept_comma_strings(monkeypatch):
    monkeypatch.setenv("MUTATION_ROLES", "Admin, Auditor")
    monkeypatch.setenv("AUDIT_CHUNK_SIZE", "25")

    config = AppSettings()

    assert config.MUTATION_ROLES == ["Admin", "Auditor"]
    assert config.AUDIT_CHUNK_SIZE == 25


def test_retry_policy_validates_bounds():
    with pytest.raises(ValueError):
        RetryPolicy(attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(backoff=-1)


def test_retry_policy_stops_after_attempts():
    calls = []

    async def flaky():
        calls.append(1)
        raise TransientDataSourceError("timeout")

    outcome = asyncio.run(RetryPolicy(attempts=3, backoff=0).run(flaky))

    assert not outcome.ok
    assert outcome.attempts == 3
    assert len(calls) == 3


def test_retry_policy_lets_unexpected_errors_through():
    async def broken():
        raise KeyError("bug")

    with pytest.raises(KeyError):
        asyncio.run(RetryPolicy(attempts=3, backoff=0).run(broken))


def test_registry_hold_releases_claimed_ids():
    registry = InFlightRegistry()
    registry.claim([1])

    with registry.hold([1, 2]) as (claimed, busy):
        assert claimed == [2]
        assert busy == [1]
        assert registry.is_busy(2)

    assert not registry.is_busy(2)
    assert registry.is_busy(1)


def test_retry_policy_pauses_between_attempts_only(monkeypatch):
    pauses = []

    async def record_pause(seconds):
        pauses.append(seconds)

    async def flaky():
        raise TransientDataSourceError("timeout")

    monkeypatch.setattr("stockaudit.services.retry.asyncio.sleep", record_pause)

    outcome = asyncio.run(RetryPolicy(attempts=3, backoff=1.0).run(flaky))

    assert outcome.attempts == 3
    assert pauses == [1.0, 1.0]


def test_retry_policy_does_not_pause_after_success(monkeypatch):
    pauses = []
    results = iter([TransientDataSourceError("reset"), "done"])

    async def record_pause(seconds):
        pauses.append(seconds)

    async def recovers():
        result = next(results)
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr("stockaudit.services.retry.asyncio.sleep", record_pause)

    outcome = asyncio.run(RetryPolicy(attempts=3, backoff=1.0).run(recovers))

    assert outcome.value == "done"
    assert pauses == [1.0]


def test_retry_policy_defaults_come_from_settings():
    policy = RetryPolicy.from_settings()

    assert (policy.attempts, policy.backoff) == (3, 1.0)
    assert AppSettings().AUDIT_CHUNK_SIZE == 50
