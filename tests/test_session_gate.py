# tests/test_session_gate.py

from __future__ import annotations

import asyncio
import time

import pytest

from tasksync.auth.identity import Identity
from tasksync.auth.session_gate import AuthMode, GateState, SessionGate
from tasksync.core.errors import AuthError

from .fakes import FakeBackend


@pytest.mark.asyncio
async def test_starts_loading_then_resolves_unauthenticated(backend: FakeBackend) -> None:
    gate = SessionGate(backend)
    assert gate.state == GateState.LOADING
    assert gate.identity is None

    identity = await gate.start()

    assert identity is None
    assert gate.state == GateState.UNAUTHENTICATED
    gate.close()


@pytest.mark.asyncio
async def test_resolves_existing_session(backend: FakeBackend, identity: Identity) -> None:
    backend.session = identity

    async with SessionGate(backend) as gate:
        assert gate.state == GateState.AUTHENTICATED
        assert gate.identity == identity
        assert gate.is_authenticated


@pytest.mark.asyncio
async def test_expired_session_resolves_unauthenticated(backend: FakeBackend) -> None:
    backend.session = Identity(user_id="u1", expires_at=time.time() - 10)

    async with SessionGate(backend) as gate:
        assert gate.state == GateState.UNAUTHENTICATED
        assert gate.identity is None


@pytest.mark.asyncio
async def test_session_query_error_resolves_unauthenticated(backend: FakeBackend) -> None:
    backend.fail_next("get_session", "network error")

    async with SessionGate(backend) as gate:
        assert gate.state == GateState.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_notification_during_loading_wins_over_initial_query(
    backend: FakeBackend, identity: Identity
) -> None:
    backend.hold("get_session")
    gate = SessionGate(backend)
    starting = asyncio.create_task(gate.start())
    await asyncio.sleep(0)
    assert gate.state == GateState.LOADING

    backend.emit(identity)
    backend.release("get_session")
    await starting

    # The query answered "no session", but the notification is newer.
    assert gate.state == GateState.AUTHENTICATED
    assert gate.identity == identity
    gate.close()


@pytest.mark.asyncio
async def test_sign_in_waits_for_backend_notification(backend: FakeBackend, identity: Identity) -> None:
    async with SessionGate(backend) as gate:
        await gate.submit_credentials("ann@example.com", "secret123", AuthMode.SIGN_IN)

        assert backend.ops()[-1] == "sign_in"
        assert gate.state == GateState.UNAUTHENTICATED

        backend.emit(identity)
        assert gate.state == GateState.AUTHENTICATED
        assert gate.identity == identity


@pytest.mark.asyncio
async def test_sign_in_rejected_raises_auth_error(backend: FakeBackend) -> None:
    async with SessionGate(backend) as gate:
        backend.fail_next("sign_in", "Invalid login credentials", code="invalid_credentials")

        with pytest.raises(AuthError) as exc:
            await gate.submit_credentials("ann@example.com", "wrongpass", AuthMode.SIGN_IN)

        assert exc.value.message == "Invalid login credentials"
        assert exc.value.code == "invalid_credentials"
        assert gate.state == GateState.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_sign_up_marks_verification_pending(backend: FakeBackend) -> None:
    async with SessionGate(backend) as gate:
        await gate.submit_credentials(" new@example.com ", "secret123", AuthMode.SIGN_UP)

        assert backend.calls[-1] == ("sign_up", "new@example.com")
        assert gate.pending_verification == "new@example.com"
        assert gate.state == GateState.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_sign_up_duplicate_raises(backend: FakeBackend) -> None:
    async with SessionGate(backend) as gate:
        backend.fail_next("sign_up", "User already registered")

        with pytest.raises(AuthError, match="already registered"):
            await gate.submit_credentials("ann@example.com", "secret123", AuthMode.SIGN_UP)
        assert gate.pending_verification is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("email", "password", "match"),
    [
        ("", "secret123", "required"),
        ("ann@example.com", "", "required"),
        ("   ", "secret123", "required"),
        ("ann@example.com", "12345", "at least 6"),
    ],
)
async def test_form_validation_issues_no_request(
    backend: FakeBackend, email: str, password: str, match: str
) -> None:
    async with SessionGate(backend) as gate:
        backend.calls.clear()
        for mode in AuthMode:
            with pytest.raises(AuthError, match=match):
                await gate.submit_credentials(email, password, mode)
        assert backend.calls == []


@pytest.mark.asyncio
async def test_sign_out_observed_through_notification(backend: FakeBackend, identity: Identity) -> None:
    backend.session = identity
    async with SessionGate(backend) as gate:
        await gate.sign_out()
        assert gate.state == GateState.AUTHENTICATED

        backend.emit(None)
        assert gate.state == GateState.UNAUTHENTICATED
        assert gate.identity is None


@pytest.mark.asyncio
async def test_sign_out_error_raises(backend: FakeBackend, identity: Identity) -> None:
    backend.session = identity
    async with SessionGate(backend) as gate:
        backend.fail_next("sign_out", "network error")
        with pytest.raises(AuthError):
            await gate.sign_out()


@pytest.mark.asyncio
async def test_expired_identity_in_notification_counts_as_signed_out(
    backend: FakeBackend, identity: Identity
) -> None:
    backend.session = identity
    async with SessionGate(backend) as gate:
        backend.emit(Identity(user_id="u1", expires_at=time.time() - 1))
        assert gate.state == GateState.UNAUTHENTICATED


@pytest.mark.asyncio
async def test_listeners_receive_transitions_until_released(backend: FakeBackend, identity: Identity) -> None:
    async with SessionGate(backend) as gate:
        seen: list[Identity | None] = []
        sub = gate.on_auth_state_change(seen.append)

        backend.emit(identity)
        backend.emit(None)
        sub.unsubscribe()
        sub.unsubscribe()
        backend.emit(identity)

        assert seen == [identity, None]
        assert sub.active is False


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_others(backend: FakeBackend, identity: Identity) -> None:
    async with SessionGate(backend) as gate:
        seen: list[Identity | None] = []

        def broken(_identity: Identity | None) -> None:
            raise RuntimeError("listener bug")

        gate.on_auth_state_change(broken)
        gate.on_auth_state_change(seen.append)

        backend.emit(identity)

        assert seen == [identity]
        assert gate.is_authenticated


@pytest.mark.asyncio
async def test_backend_subscription_released_exactly_once(backend: FakeBackend) -> None:
    gate = SessionGate(backend)
    async with gate:
        assert len(backend.subscriptions) == 1
        assert backend.listeners

    gate.close()

    (sub,) = backend.subscriptions
    assert sub.release_count == 1
    assert backend.listeners == []


@pytest.mark.asyncio
async def test_start_twice_subscribes_once(backend: FakeBackend) -> None:
    gate = SessionGate(backend)
    await gate.start()
    await gate.start()

    assert len(backend.subscriptions) == 1
    gate.close()
