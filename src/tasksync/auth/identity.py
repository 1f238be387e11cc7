# src/tasksync/auth/identity.py

from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Identity:
    """
    Authenticated session handle.

    Only user_id is required; the rest is whatever the backend reports.
    access_token is excluded from repr so it never ends up in logs.
    """

    user_id: str
    email: str | None = None
    expires_at: float | None = None  # epoch seconds
    access_token: str | None = field(default=None, repr=False)

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        if now is None:
            now = time.time()
        return self.expires_at <= now
