# src/tasksync/auth/session_gate.py

from __future__ import annotations

"""
Session gate.

Owns the authentication state machine:

    LOADING -> UNAUTHENTICATED | AUTHENTICATED   (initial session query settles)
    UNAUTHENTICATED <-> AUTHENTICATED            (backend notifications only)

The gate never trusts the return value of a sign-in: the state only moves when
the backend reports the change through the subscription. Sign-in may need a
confirmation step outside this component.
"""

import logging
from collections.abc import Callable
from enum import StrEnum

from ..core.errors import AuthError
from ..core.ports import AuthBackend, AuthCallback, BackendResult, Subscription
from .identity import Identity

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class GateState(StrEnum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class AuthMode(StrEnum):
    SIGN_IN = "sign_in"
    SIGN_UP = "sign_up"


class ListenerSubscription:
    """Registration of one listener on the gate. Releasing twice is a no-op."""

    def __init__(self, release: Callable[[], None]) -> None:
        self._release: Callable[[], None] | None = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def unsubscribe(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release()


def _raise_for_error(result: BackendResult, fallback: str) -> None:
    if result.error is not None:
        raise AuthError(result.error.message or fallback, code=result.error.code)


class SessionGate:
    """
    Decides whether the auth form or the task view is shown.

    Use as an async context manager so the backend subscription is released
    exactly once on scope exit:

        async with SessionGate(backend) as gate:
            ...
    """

    def __init__(self, auth: AuthBackend) -> None:
        self._auth = auth
        self._state = GateState.LOADING
        self._identity: Identity | None = None
        self._listeners: dict[int, AuthCallback] = {}
        self._next_listener_id = 0
        self._backend_sub: Subscription | None = None
        self._notified_while_loading = False
        self.pending_verification: str | None = None

    # ---- state ----

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._state == GateState.AUTHENTICATED

    # ---- lifecycle ----

    async def start(self) -> Identity | None:
        """Subscribe to backend auth events, then resolve the initial session."""
        if self._backend_sub is None:
            self._backend_sub = self._auth.on_auth_state_change(self._handle_backend_event)
        return await self.resolve_initial_session()

    def close(self) -> None:
        sub, self._backend_sub = self._backend_sub, None
        if sub is not None:
            sub.unsubscribe()
            logger.debug("Auth subscription released.")
        self._listeners.clear()

    async def __aenter__(self) -> SessionGate:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    async def resolve_initial_session(self) -> Identity | None:
        """
        Query the backend once for an existing session.

        Errors are logged and treated as "no session". If a backend notification
        arrived while this query was in flight, the notification wins.
        """
        result = await self._auth.get_current_session()

        if self._notified_while_loading or self._state != GateState.LOADING:
            logger.debug("Initial session result discarded: newer auth event already applied.")
            return self._identity

        identity: Identity | None = None
        if result.error is not None:
            logger.warning("Initial session query failed: %s", result.error.message)
        elif result.data is not None and result.data.is_expired():
            logger.info("Stored session is expired; starting unauthenticated.")
        else:
            identity = result.data

        self._set_identity(identity)
        logger.info("Initial session resolved: state=%s", self._state.value)
        return identity

    # ---- listeners ----

    def on_auth_state_change(self, listener: AuthCallback) -> ListenerSubscription:
        """Register a listener; it receives the new Identity or None on every transition."""
        listener_id = self._next_listener_id
        self._next_listener_id += 1
        self._listeners[listener_id] = listener

        def release() -> None:
            self._listeners.pop(listener_id, None)

        return ListenerSubscription(release)

    def _handle_backend_event(self, identity: Identity | None) -> None:
        if self._state == GateState.LOADING:
            self._notified_while_loading = True

        if identity is not None and identity.is_expired():
            identity = None

        self._set_identity(identity)
        logger.info("Auth state changed: state=%s", self._state.value)

        for listener in list(self._listeners.values()):
            try:
                listener(identity)
            except Exception:
                logger.exception("Auth listener failed.")

    def _set_identity(self, identity: Identity | None) -> None:
        self._identity = identity
        self._state = GateState.AUTHENTICATED if identity is not None else GateState.UNAUTHENTICATED
        if identity is not None:
            self.pending_verification = None

    # ---- actions ----

    async def submit_credentials(self, email: str, password: str, mode: AuthMode) -> None:
        """
        Sign in or sign up. Raises AuthError on rejection.

        SIGN_UP success only means "verification pending"; SIGN_IN success is
        applied when the backend notifies, not here.
        """
        email = (email or "").strip()
        if not email or not password:
            raise AuthError("Email and password are required.")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters.")

        if mode == AuthMode.SIGN_UP:
            result = await self._auth.sign_up(email, password)
            _raise_for_error(result, "Sign up failed.")
            self.pending_verification = email
            logger.info("Sign up accepted; verification pending.")
            return

        result = await self._auth.sign_in_with_password(email, password)
        _raise_for_error(result, "Sign in failed.")
        logger.debug("Sign in accepted; waiting for auth state notification.")

    async def sign_out(self) -> None:
        result = await self._auth.sign_out()
        _raise_for_error(result, "Sign out failed.")
        logger.debug("Sign out requested; waiting for auth state notification.")
