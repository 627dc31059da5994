from __future__ import annotations

from homeassistant.components.number import NumberDeviceClass, NumberEntity, NumberMode
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import UnitOfElectricCurrent
from homeassistant.core import HomeAssistant
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import CONF_PRODUCT_TYPE, DOMAIN, MAX_CURRENT_AMPS, PRODUCT_EQUALIZER


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
            EaseeChargerCurrentNumber(
                coordinator,
                entry,
                "dynamic_charger_current",
                "Dynamic Charger Current",
                coordinator.async_set_dynamic_charger_current,
            ),
            EaseeChargerCurrentNumber(
                coordinator,
                entry,
                "max_charger_current",
                "Max Charger Current",
                coordinator.async_set_max_charger_current,
            ),
            EaseeCircuitCurrentNumber(coordinator, entry),
        ]
    )


class EaseeCurrentNumber(CoordinatorEntity, NumberEntity):
    _attr_has_entity_name = True
    _attr_device_class = NumberDeviceClass.CURRENT
    _attr_native_unit_of_measurement = UnitOfElectricCurrent.AMPERE
    _attr_native_min_value = 0
    _attr_native_max_value = MAX_CURRENT_AMPS
    _attr_native_step = 1
    _attr_mode = NumberMode.BOX

    def __init__(self, coordinator, entry: ConfigEntry, key: str, name: str) -> None:
        super().__init__(coordinator)
        self._key = key
        self._attr_name = name
        self._attr_unique_id = f"{entry.entry_id}_{key}"
        self._attr_device_info = DeviceInfo(identifiers={(DOMAIN, coordinator.product_id)})


class EaseeChargerCurrentNumber(EaseeCurrentNumber):
    def __init__(self, coordinator, entry: ConfigEntry, key: str, name: str, setter) -> None:
        super().__init__(coordinator, entry, key, name)
        self._setter = setter

    @property
    def native_value(self) -> float | None:
        return self.coordinator.data.get(self._key)

    async def async_set_native_value(self, value: float) -> None:
        await self._setter(int(value))


class EaseeCircuitCurrentNumber(EaseeCurrentNumber):
    """Dynamic current of the charger's circuit, applied to all three phases.

    The cloud doesn't report the value back, so the entity shows the last
    current it set. The charger resets it to the circuit fuse on restart.
    """

    _attr_icon = "mdi:current-ac"

    def __init__(self, coordinator, entry: ConfigEntry) -> None:
        super().__init__(coordinator, entry, "circuit_dynamic_current", "Circuit Current")
        self._attr_native_value = None

    @property
    def native_max_value(self) -> float:
        return self.coordinator.data.get("circuit_fuse") or MAX_CURRENT_AMPS

    async def async_set_native_value(self, value: float) -> None:
        self._attr_native_value = await self.coordinator.async_set_circuit_current(int(value))
        self.async_write_ha_state()
