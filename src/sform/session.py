"""Shared Salesforce session with lazy, de-duplicated renewal.

One SessionManager owns one SOAP session handle. Every remote operation
awaits :meth:`SessionManager.ensure_ready` first; the handle is reused until
its local deadline passes, then a new login is made. Concurrent callers that
arrive while a login is running all wait on that same login.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional

from .config import DEFAULT_RENEWAL_MINUTES, SESSION_LIFETIME_MINUTES, SFConfig
from .exceptions import AuthError, ConfigError, SformError, TransportError
from .transport import SoapClient, Transport

_logger = logging.getLogger(__name__)

RENEWAL_WINDOW = DEFAULT_RENEWAL_MINUTES * 60.0
SESSION_LIFETIME = SESSION_LIFETIME_MINUTES * 60.0


class SessionManager:
    """Owns the session handle and its renewal deadline."""

    def __init__(
        self,
        transport: Transport,
        *,
        renewal_window: float = RENEWAL_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not 0 < renewal_window < SESSION_LIFETIME:
            raise ConfigError(
                f"renewal_window must be between 0 and {SESSION_LIFETIME:.0f}s "
                f"(exclusive), got {renewal_window}"
            )
        self.transport = transport
        self.renewal_window = renewal_window
        self._clock = clock
        self._handle: Optional[SoapClient] = None
        self._expires_at: float = 0.0
        self._login_task: Optional[asyncio.Task] = None
        self.login_count = 0

    @classmethod
    def from_config(cls, transport: Transport, cfg: SFConfig) -> SessionManager:
        return cls(transport, renewal_window=cfg.renewal_seconds)

    # --------------------------- State --------------------------------

    @property
    def handle(self) -> Optional[SoapClient]:
        return self._handle

    @property
    def expires_at(self) -> float:
        return self._expires_at

    @property
    def is_ready(self) -> bool:
        """True when a handle is set and its deadline has not passed."""
        return self._handle is not None and self._clock() < self._expires_at

    def invalidate(self) -> None:
        """Forget the current handle; the next ensure_ready() logs in again."""
        _logger.debug("Session invalidated")
        self._handle = None
        self._expires_at = 0.0

    # --------------------------- Public methods -----------------------

    async def ensure_ready(self) -> SoapClient:
        """Return a usable session handle, logging in only when needed."""
        handle = self._handle
        if handle is not None and self._clock() < self._expires_at:
            return handle

        if self._login_task is None:
            task = asyncio.ensure_future(self._login())
            task.add_done_callback(self._forget_login_task)
            self._login_task = task
        else:
            _logger.debug("Login already in flight; waiting for it")

        # shield: one waiter being cancelled must not cancel the shared login
        return await asyncio.shield(self._login_task)

    async def execute(self, operation: str, *args: Any) -> Any:
        """Ensure the session is ready, then run one blocking client call in a thread."""
        client = await self.ensure_ready()
        method = getattr(client, operation)
        _logger.debug("Dispatching %s", operation)
        try:
            return await asyncio.to_thread(method, *args)
        except SformError as e:
            _logger.warning("%s failed: %s", operation, e)
            raise
        except Exception as e:
            _logger.warning("%s failed: %s", operation, e)
            raise TransportError(f"{operation} failed: {e}") from e

    # --------------------------- Internal helpers --------------------

    async def _login(self) -> SoapClient:
        renewing = self._handle is not None
        _logger.info("%s Salesforce session", "Renewing" if renewing else "Opening")
        self.login_count += 1
        try:
            handle = await asyncio.to_thread(self.transport.login)
        except AuthError as e:
            _logger.warning("Login rejected: %s", e)
            self.invalidate()
            raise
        except Exception as e:
            _logger.warning("Login failed: %s", e)
            self.invalidate()
            raise AuthError(f"Login failed: {e}") from e

        self._handle = handle
        self._expires_at = self._clock() + self.renewal_window
        _logger.debug("Session valid for %.0f more seconds", self.renewal_window)
        return handle

    def _forget_login_task(self, task: asyncio.Task) -> None:
        if self._login_task is task:
            self._login_task = None
