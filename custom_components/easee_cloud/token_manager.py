"""Shared cache of Easee cloud access tokens.

One TokenManager serves every config entry of the integration. Tokens are
cached per username, issued at most once at a time, and renewed in the
background shortly before they expire. All cache reads and writes,
including the ones made by renewal timers, happen while holding a single
lock that is also held across the network call, so two callers can never
issue tokens for the same account concurrently.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

from .const import MAX_RENEWAL_RETRIES, MIN_TOKEN_AGE_SECONDS, TOKEN_REFRESH_MARGIN_SECONDS
from .easee_api import EaseeToken

_LOGGER = logging.getLogger(__name__)

CancelCallback = Callable[[], None]
TimerAction = Callable[[], Awaitable[None]]
Scheduler = Callable[[float, TimerAction], CancelCallback]


class AuthEndpoint(Protocol):
    async def login(self, username: str, password: str) -> EaseeToken: ...

    async def refresh_token(self, token: EaseeToken) -> EaseeToken: ...


class AsyncioScheduler:
    """Run an async action once after a delay on the running event loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def __call__(self, delay: float, action: TimerAction) -> CancelCallback:
        loop = asyncio.get_running_loop()

        def _fire() -> None:
            task = loop.create_task(action())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return loop.call_later(delay, _fire).cancel


def renewal_delay(token: EaseeToken) -> float:
    return float(max(token.expires_in - TOKEN_REFRESH_MARGIN_SECONDS, 0))


class RenewalState(StrEnum):
    ARMED = "armed"
    REFRESHING = "refreshing"
    RETRYING = "retrying"
    STOPPED = "stopped"


class RenewalTimer:
    """Background renewal owned by a single TokenEntry."""

    def __init__(self, scheduler: Scheduler, action: TimerAction) -> None:
        self._scheduler = scheduler
        self._action = action
        self._cancel: CancelCallback | None = None
        self.interval = 0.0
        self.state = RenewalState.ARMED

    def arm(self, interval: float) -> None:
        """Schedule a renewal and remember the interval for retries."""
        self.interval = interval
        self._schedule(interval, RenewalState.ARMED)

    def retry(self) -> None:
        self._schedule(self.interval, RenewalState.RETRYING)

    def stop(self) -> None:
        if self._cancel is not None:
            self._cancel()
            self._cancel = None
        self.state = RenewalState.STOPPED

    @property
    def active(self) -> bool:
        return self.state is not RenewalState.STOPPED

    def _schedule(self, delay: float, state: RenewalState) -> None:
        if self._cancel is not None:
            self._cancel()
        self.state = state
        self._cancel = self._scheduler(delay, self._fire)

    async def _fire(self) -> None:
        self._cancel = None
        await self._action()


@dataclass
class TokenEntry:
    username: str
    password: str = field(repr=False)
    token: EaseeToken = field(repr=False)
    issued_at: float
    retry_count: int = 0
    timer: RenewalTimer | None = field(default=None, repr=False, compare=False)


class TokenManager:
    def __init__(
        self,
        api: AuthEndpoint,
        *,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] | None = None,
        max_retries: int = MAX_RENEWAL_RETRIES,
    ) -> None:
        self._api = api
        self._scheduler = scheduler or AsyncioScheduler()
        self._clock = clock or time.monotonic
        self._max_retries = max_retries
        self._lock = asyncio.Lock()
        self._entries: dict[str, TokenEntry] = {}
        self._closed = False

    def get_entry(self, username: str) -> TokenEntry | None:
        return self._entries.get(username)

    async def get_token(
        self, username: str, password: str, force_refresh: bool = False
    ) -> EaseeToken:
        """Return a valid token for the account, logging in when needed.

        A cached token is returned unless there is none, the password has
        changed, or a refresh is forced on a token older than
        MIN_TOKEN_AGE_SECONDS. Errors from the cloud propagate and leave
        the cache as it was.
        """
        async with self._lock:
            entry = self._entries.get(username)
            if entry is None or entry.password != password:
                return await self._async_issue(username, password)

            if force_refresh:
                age = self._clock() - entry.issued_at
                if age > MIN_TOKEN_AGE_SECONDS:
                    _LOGGER.debug("Forced token refresh for '%s'", username)
                    return await self._async_issue(username, password)
                _LOGGER.debug(
                    "Ignoring forced refresh for '%s', token is only %.0f seconds old",
                    username,
                    age,
                )

            return entry.token

    async def async_shutdown(self) -> None:
        """Stop every renewal timer and forget all cached tokens.

        Waits for an issuance in progress, so no timer is armed afterwards.
        Tokens issued after shutdown are returned but never cached.
        """
        async with self._lock:
            self._closed = True
            for entry in self._entries.values():
                if entry.timer is not None:
                    entry.timer.stop()
            self._entries.clear()

    def diagnostics(self) -> dict[str, Any]:
        now = self._clock()
        return {
            username: {
                "token_age_seconds": round(now - entry.issued_at),
                "expires_in": entry.token.expires_in,
                "retry_count": entry.retry_count,
                "renewal_state": str(entry.timer.state) if entry.timer else None,
            }
            for username, entry in self._entries.items()
        }

    async def _async_issue(self, username: str, password: str) -> EaseeToken:
        _LOGGER.info("Generating new access token for '%s'", username)
        token = await self._api.login(username, password)
        if self._closed:
            _LOGGER.debug("Token manager is shut down, not caching token for '%s'", username)
            return token

        previous = self._entries.get(username)
        if previous is not None and previous.timer is not None:
            previous.timer.stop()

        entry = TokenEntry(
            username=username,
            password=password,
            token=token,
            issued_at=self._clock(),
        )
        entry.timer = RenewalTimer(self._scheduler, functools.partial(self._async_renew, entry))
        self._entries[username] = entry
        entry.timer.arm(renewal_delay(token))
        return token

    async def _async_renew(self, entry: TokenEntry) -> None:
        async with self._lock:
            timer = entry.timer
            if self._entries.get(entry.username) is not entry or timer is None or not timer.active:
                return

            timer.state = RenewalState.REFRESHING
            _LOGGER.debug("Refreshing access token for '%s'", entry.username)
            try:
                token = await self._api.refresh_token(entry.token)
            except Exception as err:  # noqa: BLE001
                _LOGGER.warning(
                    "Failed to refresh token for '%s', logging in again: %s",
                    entry.username,
                    err,
                )
                try:
                    token = await self._api.login(entry.username, entry.password)
                except Exception as login_err:  # noqa: BLE001
                    self._renewal_failed(entry, login_err)
                    return

            entry.token = token
            entry.issued_at = self._clock()
            entry.retry_count = 0
            timer.arm(renewal_delay(token))
            _LOGGER.debug(
                "Renewed access token for '%s', next renewal in %.0f seconds",
                entry.username,
                timer.interval,
            )

    def _renewal_failed(self, entry: TokenEntry, err: Exception) -> None:
        entry.retry_count += 1
        if entry.retry_count >= self._max_retries:
            entry.timer.stop()
            _LOGGER.error(
                "Giving up renewing access token for '%s' after %d attempts: %s",
                entry.username,
                entry.retry_count,
                err,
            )
            return

        _LOGGER.warning(
            "Failed to renew access token for '%s' (attempt %d of %d), retrying in %.0f seconds: %s",
            entry.username,
            entry.retry_count,
            self._max_retries,
            entry.timer.interval,
            err,
        )
        entry.timer.retry()
