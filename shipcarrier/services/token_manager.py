"""Access-token lifecycle for the carrier API.

Owns the only shared mutable state of the client: the bearer credential.
Token acquisition is single-flighted: concurrent callers that find the
credential absent or expired share one in-flight login and receive the
same credential (or the same error).

Two refresh paths coexist:
- Proactive: refresh_if_expiring() / force_refresh(), driven by an
  external scheduler ahead of expiry.
- Reactive: call_with_reauth() retries the originating call exactly once
  after the carrier answers 401.

Example:
    manager = TokenManager(authenticate=lambda: login(transport, email, password))
    result = await call_with_reauth(manager, lambda token: fetch(token))
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Awaitable, Callable, TypeVar

from shipcarrier.errors.domain import (
    AuthenticationError,
    CarrierError,
    ClientDisposedError,
)
from shipcarrier.services.carrier_constants import (
    AUTH_LOGIN_PATH,
    DEFAULT_TOKEN_LIFETIME_HOURS,
)
from shipcarrier.services.transport import CarrierTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Credential:
    """Bearer credential issued by the carrier.

    Attributes:
        access_token: Bearer token string.
        expires_at: When the token must no longer be used, or None if unknown.
    """

    access_token: str
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """Whether the credential is past its expiry at ``now``."""
        return self.expires_at is not None and now >= self.expires_at


Authenticator = Callable[[], Awaitable[Credential]]


async def login(
    transport: CarrierTransport,
    email: str,
    password: str,
    *,
    lifetime: timedelta = timedelta(hours=DEFAULT_TOKEN_LIFETIME_HOURS),
    clock: Callable[[], datetime] = _utcnow,
) -> Credential:
    """Authenticate against the carrier and build a credential.

    Args:
        transport: Shared carrier transport.
        email: Carrier account email.
        password: Carrier account password.
        lifetime: How long the token is treated as valid.
        clock: Source of the current time.

    Returns:
        Freshly issued Credential.

    Raises:
        AuthenticationError: Login rejected, failed, or returned no token.
    """
    try:
        data = await transport.request(
            "POST", AUTH_LOGIN_PATH, json={"email": email, "password": password},
        )
    except AuthenticationError:
        raise
    except CarrierError as e:
        raise AuthenticationError(
            f"Authentication failed: {e.message}",
            status_code=e.status_code,
            details=e.details,
        ) from e

    token = data.get("token") if isinstance(data, dict) else None
    if not token:
        raise AuthenticationError("No token received in authentication response")

    return Credential(access_token=str(token), expires_at=clock() + lifetime)


def _consume_exception(task: "asyncio.Task[Credential]") -> None:
    # Waiters may all have been cancelled; keep asyncio from warning.
    if not task.cancelled():
        task.exception()


class TokenManager:
    """Single-flight owner of the carrier credential.

    Attributes:
        _authenticate: Coroutine factory performing the login call.
        _clock: Source of the current time.
        _credential: Currently held credential, if any.
        _inflight: Login task shared by concurrent callers while it runs.
    """

    def __init__(
        self,
        authenticate: Authenticator,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize with an authenticator.

        Args:
            authenticate: Coroutine factory that logs in and returns a Credential.
            clock: Source of the current time (injectable for tests).
        """
        self._authenticate = authenticate
        self._clock = clock
        self._credential: Credential | None = None
        self._inflight: asyncio.Task[Credential] | None = None
        self._lock = asyncio.Lock()
        self._disposed = False
        self._authentication_count = 0

    @property
    def credential(self) -> Credential | None:
        """Currently held credential, if any."""
        return self._credential

    @property
    def disposed(self) -> bool:
        """Whether dispose() has been called."""
        return self._disposed

    @property
    def authentication_count(self) -> int:
        """Number of login calls issued by this manager."""
        return self._authentication_count

    def raise_if_disposed(self) -> None:
        """Raise ClientDisposedError once the manager has been disposed."""
        if self._disposed:
            raise ClientDisposedError("Cannot use a disposed carrier client")

    async def ensure_valid(self) -> Credential:
        """Return a usable credential, logging in if absent or expired.

        Raises:
            AuthenticationError: Login failed.
            ClientDisposedError: Manager disposed before or during the call.
        """
        self.raise_if_disposed()
        credential = self._credential
        if credential is not None and not credential.is_expired(self._clock()):
            return credential
        return await self._refresh(force=False)

    async def force_refresh(self) -> Credential:
        """Re-authenticate now, regardless of the held credential's expiry.

        Entry point for the scheduled token-refresh job. Joins an in-flight
        login instead of starting a second one.
        """
        self.raise_if_disposed()
        return await self._refresh(force=True)

    async def refresh_if_expiring(self, horizon: timedelta) -> bool:
        """Refresh ahead of expiry when the credential expires within ``horizon``.

        Args:
            horizon: How far ahead of expiry a refresh is wanted.

        Returns:
            True if a refresh was performed.
        """
        self.raise_if_disposed()
        credential = self._credential
        if credential is not None:
            if credential.expires_at is None:
                return False
            if credential.expires_at - self._clock() > horizon:
                return False
        await self._refresh(force=True)
        return True

    def invalidate(self, stale_token: str | None = None) -> None:
        """Drop the held credential.

        Args:
            stale_token: When given, only drop the credential if it still
                holds this token; a concurrent caller may already have
                replaced it with a fresh one.
        """
        credential = self._credential
        if credential is None:
            return
        if stale_token is None or credential.access_token == stale_token:
            self._credential = None
            logger.debug("Carrier credential invalidated")

    def dispose(self) -> None:
        """Clear the credential and refuse any further authentication."""
        if self._disposed:
            return
        self._disposed = True
        self._credential = None
        logger.info("Carrier token manager disposed")

    async def _refresh(self, force: bool) -> Credential:
        async with self._lock:
            task = self._inflight
            if task is None:
                if not force:
                    credential = self._credential
                    if credential is not None and not credential.is_expired(self._clock()):
                        return credential
                task = asyncio.get_running_loop().create_task(self._run_authentication())
                task.add_done_callback(_consume_exception)
                self._inflight = task

        credential = await asyncio.shield(task)
        self.raise_if_disposed()
        return credential

    async def _run_authentication(self) -> Credential:
        try:
            self.raise_if_disposed()
            self._authentication_count += 1
            credential = await self._authenticate()
            self.raise_if_disposed()
            self._credential = credential
            logger.info("Carrier token obtained, expires at %s", credential.expires_at)
            return credential
        except AuthenticationError:
            logger.error("Carrier authentication failed")
            raise
        finally:
            self._inflight = None


async def call_with_reauth(
    token_manager: TokenManager,
    call: Callable[[str], Awaitable[T]],
) -> T:
    """Run ``call`` with a valid token, re-authenticating once after a 401.

    The originating call is retried exactly once with a fresh token. A
    second consecutive AuthenticationError propagates to the caller.

    Args:
        token_manager: Owner of the credential.
        call: Coroutine factory receiving the bearer token.

    Returns:
        Whatever ``call`` returns.

    Raises:
        AuthenticationError: Token rejected twice, or re-login failed.
        ClientDisposedError: Client disposed while the call was in flight.
    """
    credential = await token_manager.ensure_valid()
    try:
        result = await call(credential.access_token)
    except AuthenticationError:
        logger.info("Carrier rejected the access token; re-authenticating once")
        token_manager.invalidate(credential.access_token)
        credential = await token_manager.ensure_valid()
        result = await call(credential.access_token)

    token_manager.raise_if_disposed()
    return result
