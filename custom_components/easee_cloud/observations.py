"""Lookup tables and state mapping for Easee chargers and equalizers.

The cloud reports most enumerations as plain integers. The tables below
turn them into names, and the ``*_state_to_data`` helpers flatten a REST
state payload into the values exposed by the entities.
"""
from __future__ import annotations

from typing import Any

CHARGER_OP_MODES = {
    0: "Offline",
    # the app says 'No car connected', easee.cloud says 'Standby'
    1: "Standby",
    2: "Paused",
    3: "Charging",
    4: "Completed",
    5: "Error",
    6: "Car connected",
    7: "Awaiting authorization",
    8: "De-authorizing",
}

PHASE_MODES = {
    1: "Locked to single phase",
    2: "Auto",
    3: "Locked to three phase",
}

NODE_TYPES = {
    1: "Master",
    2: "Extender",
}

POWER_GRID_TYPES = {
    0: "Unknown",
    1: "TN 3-phase",
    2: "TN 2-phase",
    3: "TN 1-phase",
    4: "IT 3-phase",
    5: "IT 1-phase",
}

COMMAND_RESULTS = {
    0: "Waiting",
    1: "Executed",
    2: "Expired",
    3: "Not accepted",
    4: "Rejected",
}

REASONS_FOR_NO_CURRENT = {
    0: "OK",
    1: "Max circuit current too low",
    2: "Max dynamic circuit current too low",
    3: "Max dynamic offline fallback circuit current too low",
    4: "Circuit fuse too low",
    5: "Waiting in queue",
    6: "Waiting in fully charged queue",
    7: "Illegal grid type",
    8: "Primary unit has not received current request from secondary unit",
    9: "Master communication lost",
    10: "No current from equalizer",
    11: "No current, phase not connected",
    25: "Current limited by circuit fuse",
    26: "Current limited by circuit max current",
    27: "Current limited by dynamic circuit current",
    28: "Current limited by equalizer",
    29: "Current limited by circuit load balancing",
    30: "Current limited by offline settings",
    50: "Secondary unit not requesting current",
    51: "Max charger current too low",
    52: "Max dynamic charger current too low",
    53: "Charger disabled",
    54: "Pending scheduled charging",
    55: "Pending authorization",
    56: "Charger in error state",
    79: "Car not charging",
    100: "Undefined",
}


def _decode(table: dict[int, str], code: Any) -> str:
    try:
        return table[int(code)]
    except (KeyError, TypeError, ValueError):
        return f"UNKNOWN ({code})"


def decode_charger_op_mode(code: Any) -> str:
    return _decode(CHARGER_OP_MODES, code)


def decode_phase_mode(code: Any) -> str:
    return _decode(PHASE_MODES, code)


def decode_node_type(code: Any) -> str:
    return _decode(NODE_TYPES, code)


def decode_power_grid_type(code: Any) -> str:
    return _decode(POWER_GRID_TYPES, code)


def decode_command_result(code: Any) -> str:
    return _decode(COMMAND_RESULTS, code)


def decode_reason_for_no_current(code: Any) -> str:
    return _decode(REASONS_FOR_NO_CURRENT, code)


def _float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _round(value: Any, digits: int = 2) -> float | None:
    number = _float(value)
    return round(number, digits) if number is not None else None


def _watts(kilowatts: Any) -> int | None:
    number = _float(kilowatts)
    return round(number * 1000) if number is not None else None


def is_three_phase(currents: list[float]) -> bool:
    """True when more than two input terminals carry above-average current."""
    if not currents:
        return False
    avg = sum(currents) / len(currents)
    return len([current for current in currents if current > avg]) > 2


def charger_state_to_data(state: dict[str, Any]) -> dict[str, Any]:
    currents = [
        _round(state.get(key)) or 0.0
        for key in ("inCurrentT2", "inCurrentT3", "inCurrentT4", "inCurrentT5")
    ]
    voltage = _float(state.get("voltage"))

    return {
        "status": decode_charger_op_mode(state.get("chargerOpMode")),
        "online": bool(state.get("isOnline")),
        "power": _watts(state.get("totalPower")),
        "offered_current": _round(state.get("outputCurrent")),
        "current_used": max(currents),
        "three_phase": is_three_phase(currents),
        "voltage": round(voltage) if voltage is not None else None,
        "session_energy": _round(state.get("sessionEnergy")),
        "lifetime_energy": _round(state.get("lifetimeEnergy")),
        "dynamic_charger_current": _round(state.get("dynamicChargerCurrent")),
        "reason_for_no_current": decode_reason_for_no_current(state.get("reasonForNoCurrent")),
        "smart_charging": state.get("smartCharging"),
        "firmware": state.get("chargerFirmware"),
        "latest_firmware": state.get("latestFirmware"),
    }


def equalizer_state_to_data(state: dict[str, Any]) -> dict[str, Any]:
    return {
        "online": bool(state.get("isOnline", True)),
        "power_import": _watts(state.get("activePowerImport")),
        "power_export": _watts(state.get("activePowerExport")),
        "current_l1": _round(state.get("currentL1")),
        "current_l2": _round(state.get("currentL2")),
        "current_l3": _round(state.get("currentL3")),
        "voltage_l1": _round(state.get("voltageNL1"), 1),
        "voltage_l2": _round(state.get("voltageNL2"), 1),
        "voltage_l3": _round(state.get("voltageNL3"), 1),
        "energy_import": _round(state.get("cumulativeActivePowerImport")),
        "energy_export": _round(state.get("cumulativeActivePowerExport")),
    }
