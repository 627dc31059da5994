"""Diagnostics support for Easee Cloud."""
from __future__ import annotations

from typing import Any

from homeassistant.components.diagnostics import async_redact_data
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_PASSWORD, CONF_USERNAME
from homeassistant.core import HomeAssistant

from .const import DATA_API, DATA_TOKEN_MANAGER, DOMAIN

TO_REDACT = {CONF_USERNAME, CONF_PASSWORD}


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    data = hass.data[DOMAIN]
    coordinator = data[entry.entry_id]
    token_state = data[DATA_TOKEN_MANAGER].diagnostics().get(entry.data[CONF_USERNAME])

    return {
        "entry": async_redact_data(dict(entry.data), TO_REDACT),
        "options": dict(entry.options),
        "data": coordinator.data,
        "token": token_state,
        "api_stats": data[DATA_API].stats.as_dict(),
    }
