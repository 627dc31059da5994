from __future__ import annotations

from typing import Any

from homeassistant.components.switch import SwitchEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import CONF_PRODUCT_TYPE, DOMAIN, PRODUCT_EQUALIZER


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    if entry.data.get(CONF_PRODUCT_TYPE) == PRODUCT_EQUALIZER:
        return

    coordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        [
            EaseeSettingSwitch(
                coordinator,
                entry,
                "enabled",
                "Charger Enabled",
                "mdi:ev-station",
                coordinator.async_set_enabled,
            ),
            EaseeSettingSwitch(
                coordinator,
                entry,
                "smart_charging",
                "Smart Charging",
                "mdi:auto-fix",
                coordinator.async_set_smart_charging,
            ),
        ]
    )


class EaseeSettingSwitch(CoordinatorEntity, SwitchEntity):
    _attr_has_entity_name = True

    def __init__(self, coordinator, entry: ConfigEntry, key: str, name: str, icon: str, setter) -> None:
        super().__init__(coordinator)
        self._key = key
        self._setter = setter
        self._attr_name = name
        self._attr_icon = icon
        self._attr_unique_id = f"{entry.entry_id}_{key}"
        self._attr_device_info = DeviceInfo(identifiers={(DOMAIN, coordinator.product_id)})

    @property
    def is_on(self) -> bool | None:
        value = self.coordinator.data.get(self._key)
        return None if value is None else bool(value)

    async def async_turn_on(self, **kwargs: Any) -> None:
        await self._setter(True)

    async def async_turn_off(self, **kwargs: Any) -> None:
        await self._setter(False)
