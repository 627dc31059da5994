from __future__ import annotations

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity, SensorStateClass
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import (
    EntityCategory,
    UnitOfElectricCurrent,
    UnitOfElectricPotential,
    UnitOfEnergy,
    UnitOfPower,
)
from homeassistant.core import HomeAssistant
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import CONF_PRODUCT_TYPE, DOMAIN, PRODUCT_EQUALIZER

POWER = (UnitOfPower.WATT, SensorDeviceClass.POWER, SensorStateClass.MEASUREMENT)
CURRENT = (UnitOfElectricCurrent.AMPERE, SensorDeviceClass.CURRENT, SensorStateClass.MEASUREMENT)
VOLTAGE = (UnitOfElectricPotential.VOLT, SensorDeviceClass.VOLTAGE, SensorStateClass.MEASUREMENT)
ENERGY = (UnitOfEnergy.KILO_WATT_HOUR, SensorDeviceClass.ENERGY, SensorStateClass.TOTAL_INCREASING)
TEXT = (None, None, None)

CHARGER_SENSORS = [
    ("status", "Charger Status", TEXT),
    ("power", "Power", POWER),
    ("offered_current", "Offered Current", CURRENT),
    ("current_used", "Current Used", CURRENT),
    ("voltage", "Voltage", VOLTAGE),
    ("session_energy", "Session Energy", ENERGY),
    ("lifetime_energy", "Lifetime Energy", ENERGY),
    ("reason_for_no_current", "Reason For No Current", TEXT),
    ("phase_mode", "Phase Mode", TEXT),
    ("three_phase", "Three Phase", TEXT),
    ("node_type", "Node Type", TEXT),
    ("main_fuse", "Main Fuse", CURRENT),
    ("circuit_fuse", "Circuit Fuse", CURRENT),
    ("firmware", "Firmware", TEXT),
    ("latest_firmware", "Latest Firmware", TEXT),
]

EQUALIZER_SENSORS = [
    ("power_import", "Import Power", POWER),
    ("power_export", "Export Power", POWER),
    ("current_l1", "Current L1", CURRENT),
    ("current_l2", "Current L2", CURRENT),
    ("current_l3", "Current L3", CURRENT),
    ("voltage_l1", "Voltage L1", VOLTAGE),
    ("voltage_l2", "Voltage L2", VOLTAGE),
    ("voltage_l3", "Voltage L3", VOLTAGE),
    ("energy_import", "Imported Energy", ENERGY),
    ("energy_export", "Exported Energy", ENERGY),
    ("grid_type", "Grid Type", TEXT),
]

DIAGNOSTIC_SENSORS = {"node_type", "main_fuse", "circuit_fuse", "firmware", "latest_firmware"}


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    coordinator = hass.data[DOMAIN][entry.entry_id]
    if entry.data.get(CONF_PRODUCT_TYPE) == PRODUCT_EQUALIZER:
        sensors = EQUALIZER_SENSORS
    else:
        sensors = CHARGER_SENSORS

    async_add_entities(
        EaseeSensor(coordinator, entry, key, name, kind) for key, name, kind in sensors
    )


class EaseeSensor(CoordinatorEntity, SensorEntity):
    _attr_has_entity_name = True

    def __init__(self, coordinator, entry: ConfigEntry, key: str, name: str, kind) -> None:
        super().__init__(coordinator)
        self._key = key
        self._attr_name = name
        self._attr_unique_id = f"{entry.entry_id}_{key}"
        unit, device_class, state_class = kind
        self._attr_native_unit_of_measurement = unit
        self._attr_device_class = device_class
        self._attr_state_class = state_class
        if key in DIAGNOSTIC_SENSORS:
            self._attr_entity_category = EntityCategory.DIAGNOSTIC
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, coordinator.product_id)},
            name=coordinator.product_name,
            manufacturer="Easee",
        )

    @property
    def available(self) -> bool:
        return super().available and bool(self.coordinator.data.get("online", True))

    @property
    def native_value(self):
        return self.coordinator.data.get(self._key)
