from __future__ import annotations

from homeassistant.components.button import ButtonEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import CONF_PRODUCT_TYPE, DOMAIN, PRODUCT_EQUALIZER

CHARGER_BUTTONS = [
    ("start_charging", "Start Charging", "mdi:play"),
    ("stop_charging", "Stop Charging", "mdi:stop"),
    ("pause_charging", "Pause Charging", "mdi:pause"),
    ("resume_charging", "Resume Charging", "mdi:play-pause"),
    ("toggle_charging", "Toggle Charging", "mdi:ev-plug-type2"),
    ("override_schedule", "Override Schedule", "mdi:calendar-remove"),
    ("reboot", "Reboot", "mdi:restart"),
]


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    if entry.data.get(CONF_PRODUCT_TYPE) == PRODUCT_EQUALIZER:
        return

    coordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        EaseeCommandButton(coordinator, entry, command, name, icon)
        for command, name, icon in CHARGER_BUTTONS
    )


class EaseeCommandButton(CoordinatorEntity, ButtonEntity):
    _attr_has_entity_name = True

    def __init__(self, coordinator, entry: ConfigEntry, command: str, name: str, icon: str) -> None:
        super().__init__(coordinator)
        self._command = command
        self._attr_name = name
        self._attr_icon = icon
        self._attr_unique_id = f"{entry.entry_id}_{command}"
        self._attr_device_info = DeviceInfo(identifiers={(DOMAIN, coordinator.product_id)})

    async def async_press(self) -> None:
        await self.coordinator.async_send_command(self._command)
