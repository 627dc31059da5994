from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_PASSWORD, CONF_SCAN_INTERVAL, CONF_USERNAME
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryAuthFailed, HomeAssistantError
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .const import (
    CONF_PRODUCT_ID,
    CONF_PRODUCT_NAME,
    DEFAULT_SCAN_INTERVAL,
    DOMAIN,
)
from .easee_api import EaseeApiClient, EaseeApiError, ErrorKind, friendly_message
from .observations import (
    charger_state_to_data,
    decode_node_type,
    decode_phase_mode,
    decode_power_grid_type,
    equalizer_state_to_data,
)
from .token_manager import TokenManager

_LOGGER = logging.getLogger(__name__)


class EaseeCoordinator(DataUpdateCoordinator[dict[str, Any]], ABC):
    """Polls one Easee product with tokens from the shared TokenManager."""

    def __init__(
        self,
        hass: HomeAssistant,
        entry: ConfigEntry,
        token_manager: TokenManager,
        api: EaseeApiClient,
    ) -> None:
        self.entry = entry
        config = {**entry.data, **entry.options}

        self.product_id: str = config[CONF_PRODUCT_ID]
        self.product_name: str = config.get(CONF_PRODUCT_NAME) or self.product_id
        self._username: str = config[CONF_USERNAME]
        self._password: str = config[CONF_PASSWORD]
        self._token_manager = token_manager
        self._api = api
        self._access_token: str | None = None

        super().__init__(
            hass,
            logger=_LOGGER,
            config_entry=entry,
            name=f"{DOMAIN}_{self.product_id}",
            update_interval=timedelta(
                seconds=int(config.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL))
            ),
        )

    async def _async_get_access_token(self, force_refresh: bool = False) -> str:
        try:
            token = await self._token_manager.get_token(
                self._username, self._password, force_refresh
            )
        except EaseeApiError as err:
            if err.kind is ErrorKind.INVALID_CREDENTIALS:
                raise ConfigEntryAuthFailed(
                    "Username or password is invalid, please re-authenticate"
                ) from err
            raise UpdateFailed(friendly_message(err, "Failed to get access token:")) from err

        if token.access_token != self._access_token:
            _LOGGER.debug("[%s] Using new access token from token manager", self.product_name)
            self._access_token = token.access_token
        return token.access_token

    async def _async_call(self, method: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """Call the API, forcing one token refresh when the cloud answers 401."""
        access_token = await self._async_get_access_token()
        try:
            return await method(access_token, *args)
        except EaseeApiError as err:
            if err.kind is not ErrorKind.ACCESS_DENIED:
                raise
            _LOGGER.debug("[%s] Access token rejected, forcing refresh", self.product_name)

        access_token = await self._async_get_access_token(force_refresh=True)
        return await method(access_token, *args)

    async def _async_update_data(self) -> dict[str, Any]:
        try:
            return await self._async_fetch()
        except EaseeApiError as err:
            if err.kind is ErrorKind.INVALID_CREDENTIALS:
                raise ConfigEntryAuthFailed(friendly_message(err)) from err
            raise UpdateFailed(friendly_message(err, "Update failed:")) from err

    @abstractmethod
    async def _async_fetch(self) -> dict[str, Any]:
        """Return the entity values for the product."""


class EaseeChargerCoordinator(EaseeCoordinator):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.site_id: int | None = None
        self.circuit_id: int | None = None
        self._settings: dict[str, Any] | None = None

    async def _async_fetch(self) -> dict[str, Any]:
        if self._settings is None:
            self._settings = await self._async_fetch_settings()

        state = await self._async_call(self._api.get_charger_state, self.product_id)
        return {**self._settings, **charger_state_to_data(state)}

    async def _async_fetch_settings(self) -> dict[str, Any]:
        config = await self._async_call(self._api.get_charger_config, self.product_id)
        site = await self._async_call(self._api.get_charger_site, self.product_id)

        circuits = site.get("circuits") or [{}]
        self.circuit_id = circuits[0].get("id")
        self.site_id = circuits[0].get("siteId", site.get("id"))

        return {
            "phase_mode": decode_phase_mode(config.get("phaseMode")),
            "node_type": decode_node_type(config.get("localNodeType")),
            "enabled": bool(config.get("isEnabled", True)),
            "max_charger_current": config.get("maxChargerCurrent"),
            "main_fuse": site.get("ratedCurrent"),
            "circuit_fuse": circuits[0].get("ratedCurrent"),
        }

    async def _async_apply(
        self, action: str, method: Callable[..., Awaitable[Any]], *args: Any
    ) -> None:
        try:
            await self._async_call(method, *args)
        except EaseeApiError as err:
            raise HomeAssistantError(friendly_message(err, f"{action} failed:")) from err

    def _update_setting(self, key: str, value: Any) -> None:
        if self._settings is not None:
            self._settings[key] = value

    async def async_send_command(self, command: str) -> None:
        await self._async_apply(command, self._api.send_command, self.product_id, command)
        await self.async_request_refresh()

    async def async_set_dynamic_charger_current(self, current: int) -> None:
        await self._async_apply(
            "Setting dynamic charger current",
            self._api.set_dynamic_charger_current,
            self.product_id,
            current,
        )
        await self.async_request_refresh()

    async def async_set_max_charger_current(self, current: int) -> None:
        await self._async_apply(
            "Setting max charger current",
            self._api.set_max_charger_current,
            self.product_id,
            current,
        )
        self._update_setting("max_charger_current", current)
        await self.async_request_refresh()

    async def async_set_enabled(self, enabled: bool) -> None:
        await self._async_apply(
            "Enabling charger" if enabled else "Disabling charger",
            self._api.set_charger_enabled,
            self.product_id,
            enabled,
        )
        self._update_setting("enabled", enabled)
        await self.async_request_refresh()

    async def async_set_smart_charging(self, enabled: bool) -> None:
        await self._async_apply(
            "Changing smart charging",
            self._api.set_smart_charging,
            self.product_id,
            enabled,
        )
        await self.async_request_refresh()

    async def async_set_circuit_current(self, current: int) -> int:
        """Limit all three phases of the circuit, never above the circuit fuse."""
        fuse = (self._settings or {}).get("circuit_fuse")
        if fuse:
            current = min(current, int(fuse))
        _LOGGER.debug("[%s] Setting circuit current to %d A", self.product_name, current)
        await self._async_apply(
            "Setting circuit current",
            self._api.set_circuit_dynamic_current,
            self.site_id,
            self.circuit_id,
            current,
            current,
            current,
        )
        return current


class EaseeEqualizerCoordinator(EaseeCoordinator):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._grid_type: str | None = None

    async def _async_fetch(self) -> dict[str, Any]:
        if self._grid_type is None:
            config = await self._async_call(self._api.get_equalizer_config, self.product_id)
            self._grid_type = decode_power_grid_type(config.get("gridType"))

        state = await self._async_call(self._api.get_equalizer_state, self.product_id)
        return {"grid_type": self._grid_type, **equalizer_state_to_data(state)}
