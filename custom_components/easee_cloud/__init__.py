"""The Easee Cloud integration."""
from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.event import async_call_later

from .const import (
    CONF_PRODUCT_TYPE,
    DATA_API,
    DATA_TOKEN_MANAGER,
    DOMAIN,
    PLATFORMS,
    PRODUCT_EQUALIZER,
)
from .coordinator import EaseeChargerCoordinator, EaseeEqualizerCoordinator
from .easee_api import EaseeApiClient
from .token_manager import CancelCallback, TimerAction, TokenManager

_LOGGER = logging.getLogger(__name__)


def _hass_scheduler(hass: HomeAssistant):
    def schedule(delay: float, action: TimerAction) -> CancelCallback:
        async def _run(_now) -> None:
            await action()

        return async_call_later(hass, delay, _run)

    return schedule


def get_api_client(hass: HomeAssistant) -> EaseeApiClient:
    data = hass.data.setdefault(DOMAIN, {})
    if DATA_API not in data:
        data[DATA_API] = EaseeApiClient(async_get_clientsession(hass))
    return data[DATA_API]


def get_token_manager(hass: HomeAssistant) -> TokenManager:
    """Return the token manager shared by all entries, creating it on first use."""
    data = hass.data.setdefault(DOMAIN, {})
    if DATA_TOKEN_MANAGER not in data:
        data[DATA_TOKEN_MANAGER] = TokenManager(
            get_api_client(hass), scheduler=_hass_scheduler(hass)
        )
    return data[DATA_TOKEN_MANAGER]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up an Easee charger or equalizer from a config entry."""
    token_manager = get_token_manager(hass)
    api = get_api_client(hass)

    if entry.data.get(CONF_PRODUCT_TYPE) == PRODUCT_EQUALIZER:
        coordinator = EaseeEqualizerCoordinator(hass, entry, token_manager, api)
    else:
        coordinator = EaseeChargerCoordinator(hass, entry, token_manager, api)

    try:
        await coordinator.async_config_entry_first_refresh()
    except Exception:
        # a failed setup is never unloaded
        await _async_release_token_manager(hass)
        raise
    hass.data[DOMAIN][entry.entry_id] = coordinator

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    entry.async_on_unload(entry.add_update_listener(async_reload_entry))
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if not unload_ok:
        return False

    hass.data[DOMAIN].pop(entry.entry_id, None)
    await _async_release_token_manager(hass)
    return True


async def _async_release_token_manager(hass: HomeAssistant) -> None:
    """Shut the token manager down once no entry is set up any more."""
    data = hass.data.get(DOMAIN, {})
    if any(key not in (DATA_API, DATA_TOKEN_MANAGER) for key in data):
        return
    if DATA_TOKEN_MANAGER in data:
        _LOGGER.debug("No Easee entry left, stopping token renewal")
        await data[DATA_TOKEN_MANAGER].async_shutdown()
    hass.data.pop(DOMAIN, None)


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the entry when its options change."""
    await hass.config_entries.async_reload(entry.entry_id)
