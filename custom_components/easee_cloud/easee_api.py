from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import aiohttp
from aiohttp import ClientSession

from .const import (
    API_TIMEOUT_SECONDS,
    CHARGER_COMMANDS,
    COMMAND_POLL_INTERVAL_SECONDS,
    COMMAND_POLL_MAX_ATTEMPTS,
    DEFAULT_BASE_URL,
    DEFAULT_TOKEN_LIFETIME_SECONDS,
    USER_AGENT,
)
from .observations import decode_command_result
from .stats import ApiStats, endpoint_key

_LOGGER = logging.getLogger(__name__)

INVALID_CREDENTIALS_CODE = "InvalidUserPassword"
FAILED_COMMAND_RESULTS = (2, 3, 4)


class ErrorKind(StrEnum):
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCESS_DENIED = "access_denied"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    COMMAND_FAILED = "command_failed"
    INVALID_REQUEST = "invalid_request"
    INVALID_RESPONSE = "invalid_response"


class EaseeApiError(Exception):
    """Raised when the Easee cloud rejects a call or cannot be reached."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        status: int | None = None,
        code_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status = status
        self.code_name = code_name

    @property
    def is_transient(self) -> bool:
        return self.kind in (ErrorKind.TRANSIENT, ErrorKind.RATE_LIMITED)


def classify_response(status: int, body: Any) -> ErrorKind:
    """Map a failed HTTP response onto an ErrorKind."""
    if isinstance(body, dict) and body.get("errorCodeName") == INVALID_CREDENTIALS_CODE:
        return ErrorKind.INVALID_CREDENTIALS
    if status == 401:
        return ErrorKind.ACCESS_DENIED
    if status in (429, 502):
        return ErrorKind.RATE_LIMITED
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status >= 500:
        return ErrorKind.TRANSIENT
    return ErrorKind.INVALID_REQUEST


def friendly_message(err: EaseeApiError, base: str = "") -> str:
    """Text suitable for showing to a user."""
    if err.kind is ErrorKind.ACCESS_DENIED:
        return "Access token expired"
    if err.kind is ErrorKind.RATE_LIMITED:
        return "The Easee Cloud API rejected the call due to a rate limit"
    if err.kind is ErrorKind.INVALID_CREDENTIALS:
        return "Username or password is invalid"
    return f"{base} {err}".strip()


@dataclass(frozen=True)
class EaseeToken:
    access_token: str
    refresh_token: str
    expires_in: int


def _is_int(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return number.is_integer()


class EaseeApiClient:
    def __init__(
        self,
        session: ClientSession,
        base_url: str = DEFAULT_BASE_URL,
        stats: ApiStats | None = None,
        command_poll_interval: float = COMMAND_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self.stats = stats or ApiStats()
        self._command_poll_interval = command_poll_interval

    async def login(self, username: str, password: str) -> EaseeToken:
        _LOGGER.debug("Requesting new access token for '%s'", username)
        _, data = await self._request(
            "post",
            "/api/accounts/token",
            json_data={"userName": username, "password": password},
        )
        return self._parse_token(data, "login")

    async def refresh_token(self, token: EaseeToken) -> EaseeToken:
        _, data = await self._request(
            "post",
            "/api/accounts/refresh_token",
            json_data={
                "accessToken": token.access_token,
                "refreshToken": token.refresh_token,
            },
        )
        return self._parse_token(data, "refresh")

    async def get_products(self, access_token: str) -> list[dict[str, Any]]:
        _, data = await self._request("get", "/api/accounts/products", access_token)
        return data if isinstance(data, list) else []

    async def get_chargers(self, access_token: str) -> list[dict[str, Any]]:
        chargers: list[dict[str, Any]] = []
        for site in await self.get_products(access_token):
            # circuits and chargers can both be null
            for circuit in site.get("circuits") or []:
                chargers.extend(circuit.get("chargers") or [])
        return chargers

    async def get_equalizers(self, access_token: str) -> list[dict[str, Any]]:
        equalizers: list[dict[str, Any]] = []
        for site in await self.get_products(access_token):
            equalizers.extend(site.get("equalizers") or [])
        return equalizers

    async def get_charger_state(self, access_token: str, charger_id: str) -> dict[str, Any]:
        return await self._get_dict(f"/api/chargers/{charger_id}/state", access_token)

    async def get_charger_config(self, access_token: str, charger_id: str) -> dict[str, Any]:
        return await self._get_dict(f"/api/chargers/{charger_id}/config", access_token)

    async def get_charger_site(self, access_token: str, charger_id: str) -> dict[str, Any]:
        return await self._get_dict(f"/api/chargers/{charger_id}/site", access_token)

    async def get_equalizer_state(self, access_token: str, equalizer_id: str) -> dict[str, Any]:
        return await self._get_dict(f"/api/equalizers/{equalizer_id}/state", access_token)

    async def get_equalizer_config(self, access_token: str, equalizer_id: str) -> dict[str, Any]:
        return await self._get_dict(f"/api/equalizers/{equalizer_id}/config", access_token)

    async def send_command(self, access_token: str, charger_id: str, command: str) -> bool:
        if command not in CHARGER_COMMANDS:
            raise EaseeApiError(f"Unknown charger command '{command}'", ErrorKind.INVALID_REQUEST)
        return await self._post_and_wait(
            access_token, f"/api/chargers/{charger_id}/commands/{command}"
        )

    async def set_charger_settings(
        self, access_token: str, charger_id: str, **settings: Any
    ) -> bool:
        return await self._post_and_wait(
            access_token, f"/api/chargers/{charger_id}/settings", settings
        )

    async def set_dynamic_charger_current(
        self, access_token: str, charger_id: str, current: int
    ) -> bool:
        return await self.set_charger_settings(
            access_token, charger_id, dynamicChargerCurrent=current
        )

    async def set_max_charger_current(
        self, access_token: str, charger_id: str, current: int
    ) -> bool:
        return await self.set_charger_settings(access_token, charger_id, maxChargerCurrent=current)

    async def set_charger_enabled(self, access_token: str, charger_id: str, enabled: bool) -> bool:
        return await self.set_charger_settings(access_token, charger_id, enabled=enabled)

    async def set_smart_charging(self, access_token: str, charger_id: str, enabled: bool) -> bool:
        return await self.set_charger_settings(
            access_token, charger_id, smartCharging=enabled, smartButtonEnabled=enabled
        )

    async def set_circuit_dynamic_current(
        self,
        access_token: str,
        site_id: Any,
        circuit_id: Any,
        current_p1: Any,
        current_p2: Any,
        current_p3: Any,
    ) -> bool:
        """Limit the circuit current per phase.

        Only applies on the master charger of a circuit, and is reset to the
        rated current whenever the charger restarts.
        """
        if not _is_int(site_id) or not _is_int(circuit_id):
            raise EaseeApiError(
                "Site id and/or circuit id is empty", ErrorKind.INVALID_REQUEST
            )
        if not all(_is_int(value) for value in (current_p1, current_p2, current_p3)):
            raise EaseeApiError(
                f"Invalid current values '{current_p1}/{current_p2}/{current_p3}'",
                ErrorKind.INVALID_REQUEST,
            )
        payload = {
            "dynamicCircuitCurrentP1": int(float(current_p1)),
            "dynamicCircuitCurrentP2": int(float(current_p2)),
            "dynamicCircuitCurrentP3": int(float(current_p3)),
        }
        return await self._post_and_wait(
            access_token,
            f"/api/sites/{int(float(site_id))}/circuits/{int(float(circuit_id))}/settings",
            payload,
        )

    async def _post_and_wait(
        self, access_token: str, path: str, payload: dict[str, Any] | None = None
    ) -> bool:
        status, data = await self._request("post", path, access_token, payload)
        if status != 202:
            return True

        commands = data if isinstance(data, list) else [data]
        for command in commands:
            if isinstance(command, dict):
                await self._wait_for_command(access_token, command)
        return True

    async def _wait_for_command(self, access_token: str, command: dict[str, Any]) -> None:
        path = f"/api/commands/{command.get('device')}/{command.get('commandId')}/{command.get('ticks')}"
        for attempt in range(1, COMMAND_POLL_MAX_ATTEMPTS + 1):
            await asyncio.sleep(self._command_poll_interval)
            try:
                _, result = await self._request("get", path, access_token)
            except EaseeApiError as err:
                # the status endpoint answers 404 until the charger has reported back
                if err.kind is ErrorKind.NOT_FOUND:
                    _LOGGER.debug("Command status not available yet, attempt %d", attempt)
                    continue
                raise

            if not isinstance(result, dict):
                continue
            if result.get("wasAccepted"):
                _LOGGER.debug("Command %s accepted", command.get("commandId"))
                return
            result_code = result.get("resultCode")
            if result_code in FAILED_COMMAND_RESULTS:
                raise EaseeApiError(
                    f"Easee Cloud: command {decode_command_result(result_code).lower()}",
                    ErrorKind.COMMAND_FAILED,
                )

        raise EaseeApiError(
            f"Command didn't return a state after {COMMAND_POLL_MAX_ATTEMPTS} attempts",
            ErrorKind.COMMAND_FAILED,
        )

    async def _get_dict(self, path: str, access_token: str) -> dict[str, Any]:
        _, data = await self._request("get", path, access_token)
        return data if isinstance(data, dict) else {}

    async def _request(
        self,
        method: str,
        path: str,
        access_token: str | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> tuple[int, Any]:
        endpoint = endpoint_key(method, path)
        self.stats.count_invocation(endpoint)

        headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        url = f"{self._base_url}{path}"
        try:
            async with self._session.request(
                method.upper(),
                url,
                headers=headers,
                json=json_data,
                timeout=aiohttp.ClientTimeout(total=API_TIMEOUT_SECONDS),
            ) as resp:
                status = resp.status
                text = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            self.stats.count_error(endpoint, type(err).__name__)
            raise EaseeApiError(
                f"{method.upper()} {path} failed: {str(err) or type(err).__name__}",
                ErrorKind.TRANSIENT,
            ) from err

        data = self._decode(text)
        if 200 <= status < 300:
            return status, data

        kind = classify_response(status, data)
        code_name = data.get("errorCodeName") if isinstance(data, dict) else None
        self.stats.count_error(endpoint, f"{status} ({kind})")
        raise EaseeApiError(
            f"{method.upper()} {path} failed ({status}): {str(text)[:200]}",
            kind,
            status=status,
            code_name=code_name,
        )

    @staticmethod
    def _decode(text: str) -> Any:
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text

    @staticmethod
    def _parse_token(data: Any, operation: str) -> EaseeToken:
        if not isinstance(data, dict) or not data.get("accessToken"):
            raise EaseeApiError(
                f"Missing access token in {operation} response", ErrorKind.INVALID_RESPONSE
            )
        return EaseeToken(
            access_token=data["accessToken"],
            refresh_token=data.get("refreshToken") or "",
            expires_in=int(data.get("expiresIn") or DEFAULT_TOKEN_LIFETIME_SECONDS),
        )
