from unittest.mock import AsyncMock, MagicMock

import pytest
from homeassistant.const import CONF_PASSWORD, CONF_USERNAME
from homeassistant.exceptions import ConfigEntryAuthFailed, HomeAssistantError
from homeassistant.helpers.update_coordinator import UpdateFailed
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.easee_cloud.const import (
    CONF_PRODUCT_ID,
    CONF_PRODUCT_NAME,
    CONF_PRODUCT_TYPE,
    DOMAIN,
    PRODUCT_CHARGER,
    PRODUCT_EQUALIZER,
)
from custom_components.easee_cloud.coordinator import (
    EaseeChargerCoordinator,
    EaseeCoordinator,
    EaseeEqualizerCoordinator,
)
from custom_components.easee_cloud.easee_api import EaseeApiError, ErrorKind
from custom_components.easee_cloud.token_manager import TokenManager

CHARGER_STATE = {
    "chargerOpMode": 3,
    "isOnline": True,
    "totalPower": 7.4,
    "inCurrentT2": 0,
    "inCurrentT3": 16.0,
    "inCurrentT4": 16.0,
    "inCurrentT5": 16.0,
    "voltage": 230.2,
}


def _entry(hass, product_type=PRODUCT_CHARGER, product_id="EH1"):
    entry = MockConfigEntry(
        domain=DOMAIN,
        data={
            CONF_USERNAME: "user",
            CONF_PASSWORD: "secret",
            CONF_PRODUCT_ID: product_id,
            CONF_PRODUCT_TYPE: product_type,
            CONF_PRODUCT_NAME: "Garage",
        },
    )
    entry.add_to_hass(hass)
    return entry


def _cloud_api():
    api = MagicMock()
    api.get_charger_config = AsyncMock(return_value={"phaseMode": 2, "localNodeType": 1, "isEnabled": True, "maxChargerCurrent": 32})
    api.get_charger_site = AsyncMock(
        return_value={"id": 7, "ratedCurrent": 25, "circuits": [{"id": 9, "siteId": 7, "ratedCurrent": 20}]}
    )
    api.get_charger_state = AsyncMock(return_value=CHARGER_STATE)
    api.send_command = AsyncMock(return_value=True)
    api.set_max_charger_current = AsyncMock(return_value=True)
    api.set_charger_enabled = AsyncMock(return_value=True)
    api.set_smart_charging = AsyncMock(return_value=True)
    api.set_circuit_dynamic_current = AsyncMock(return_value=True)
    return api


@pytest.fixture
def token_manager(auth_api, scheduler, clock):
    return TokenManager(auth_api, scheduler=scheduler, clock=clock)


async def test_charger_update_maps_state(hass, token_manager, auth_api):
    api = _cloud_api()
    coordinator = EaseeChargerCoordinator(hass, _entry(hass), token_manager, api)

    data = await coordinator._async_update_data()

    assert data["status"] == "Charging"
    assert data["power"] == 7400
    assert data["three_phase"] is True
    assert data["phase_mode"] == "Auto"
    assert data["node_type"] == "Master"
    assert data["main_fuse"] == 25
    assert coordinator.site_id == 7
    assert coordinator.circuit_id == 9
    api.get_charger_state.assert_awaited_once_with("access-user-1", "EH1")

    await coordinator._async_update_data()
    api.get_charger_site.assert_awaited_once()
    assert len(auth_api.login_calls) == 1


async def test_entries_for_same_account_share_token(hass, token_manager, auth_api):
    api = _cloud_api()
    first = EaseeChargerCoordinator(hass, _entry(hass, product_id="EH1"), token_manager, api)
    second = EaseeChargerCoordinator(hass, _entry(hass, product_id="EH2"), token_manager, api)

    await first._async_update_data()
    await second._async_update_data()

    assert len(auth_api.login_calls) == 1


async def test_invalid_credentials_request_reauth(hass, token_manager, auth_api):
    auth_api.login_error = EaseeApiError(
        "rejected", ErrorKind.INVALID_CREDENTIALS, status=400, code_name="InvalidUserPassword"
    )
    coordinator = EaseeChargerCoordinator(hass, _entry(hass), token_manager, _cloud_api())

    with pytest.raises(ConfigEntryAuthFailed):
        await coordinator._async_update_data()


async def test_transient_failure_marks_update_failed(hass, token_manager):
    api = _cloud_api()
    api.get_charger_state.side_effect = EaseeApiError("timeout", ErrorKind.TRANSIENT)
    coordinator = EaseeChargerCoordinator(hass, _entry(hass), token_manager, api)

    with pytest.raises(UpdateFailed):
        await coordinator._async_update_data()


async def test_login_outage_marks_update_failed(hass, token_manager, auth_api):
    auth_api.login_error = EaseeApiError("bad gateway", ErrorKind.RATE_LIMITED, status=502)
    coordinator = EaseeChargerCoordinator(hass, _entry(hass), token_manager, _cloud_api())

    with pytest.raises(UpdateFailed, match="rate limit"):
        await coordinator._async_update_data()


async def test_access_denied_forces_token_refresh(hass, token_manager, auth_api, clock):
    api = _cloud_api()
    coordinator = EaseeChargerCoordinator(hass, _entry(hass), token_manager, api)
    await coordinator._async_update_data()

    clock.advance(600)
    api.get_charger_state.side_effect = [
        EaseeApiError("expired", ErrorKind.ACCESS_DENIED, status=401),
        CHARGER_STATE,
    ]
    data = await coordinator._async_update_data()

    assert data["status"] == "Charging"
    assert len(auth_api.login_calls) == 2
    assert api.get_charger_state.await_args_list[-1].args == ("access-user-2", "EH1")


async def test_access_denied_on_young_token_fails(hass, token_manager, auth_api):
    api = _cloud_api()
    coordinator = EaseeChargerCoordinator(hass, _entry(hass), token_manager, api)
    await coordinator._async_update_data()

    api.get_charger_state.side_effect = EaseeApiError("expired", ErrorKind.ACCESS_DENIED, status=401)

    with pytest.raises(UpdateFailed, match="Access token expired"):
        await coordinator._async_update_data()
    assert len(auth_api.login_calls) == 1


async def test_send_command_refreshes_state(hass, token_manager):
    api = _cloud_api()
    coordinator = EaseeChargerCoordinator(hass, _entry(hass), token_manager, api)
    coordinator.async_request_refresh = AsyncMock()

    await coordinator.async_send_command("pause_charging")

    api.send_command.assert_awaited_once_with("access-user-1", "EH1", "pause_charging")
    coordinator.async_request_refresh.assert_awaited_once()


async def test_send_command_failure_is_user_visible(hass, token_manager):
    api = _cloud_api()
    api.send_command.side_effect = EaseeApiError("slow down", ErrorKind.RATE_LIMITED, status=429)
    coordinator = EaseeChargerCoordinator(hass, _entry(hass), token_manager, api)

    with pytest.raises(HomeAssistantError, match="rate limit"):
        await coordinator.async_send_command("start_charging")


async def test_equalizer_update(hass, token_manager):
    api = MagicMock()
    api.get_equalizer_config = AsyncMock(return_value={"gridType": 1})
    api.get_equalizer_state = AsyncMock(
        return_value={"activePowerImport": 2.5, "currentL1": 10.0, "cumulativeActivePowerImport": 100.0}
    )
    coordinator = EaseeEqualizerCoordinator(
        hass, _entry(hass, PRODUCT_EQUALIZER, "QP1"), token_manager, api
    )

    data = await coordinator._async_update_data()

    assert data["grid_type"] == "TN 3-phase"
    assert data["power_import"] == 2500
    assert data["current_l1"] == 10.0
    api.get_equalizer_state.assert_awaited_once_with("access-user-1", "QP1")


async def test_setting_changes_update_cached_config(hass, token_manager):
    api = _cloud_api()
    coordinator = EaseeChargerCoordinator(hass, _entry(hass), token_manager, api)
    coordinator.async_request_refresh = AsyncMock()
    data = await coordinator._async_update_data()
    assert data["enabled"] is True
    assert data["max_charger_current"] == 32

    await coordinator.async_set_max_charger_current(20)
    await coordinator.async_set_enabled(False)
    data = await coordinator._async_update_data()

    api.set_max_charger_current.assert_awaited_once_with("access-user-1", "EH1", 20)
    api.set_charger_enabled.assert_awaited_once_with("access-user-1", "EH1", False)
    assert data["max_charger_current"] == 20
    assert data["enabled"] is False
    api.get_charger_config.assert_awaited_once()
    assert coordinator.async_request_refresh.await_count == 2


async def test_circuit_current_limited_by_circuit_fuse(hass, token_manager):
    api = _cloud_api()
    coordinator = EaseeChargerCoordinator(hass, _entry(hass), token_manager, api)
    await coordinator._async_update_data()

    applied = await coordinator.async_set_circuit_current(32)

    assert applied == 20
    api.set_circuit_dynamic_current.assert_awaited_once_with("access-user-1", 7, 9, 20, 20, 20)


async def test_setting_failure_is_user_visible(hass, token_manager):
    api = _cloud_api()
    api.set_smart_charging.side_effect = EaseeApiError("rejected", ErrorKind.COMMAND_FAILED)
    coordinator = EaseeChargerCoordinator(hass, _entry(hass), token_manager, api)
    coordinator.async_request_refresh = AsyncMock()

    with pytest.raises(HomeAssistantError, match="Changing smart charging failed"):
        await coordinator.async_set_smart_charging(True)
    coordinator.async_request_refresh.assert_not_awaited()


async def test_base_coordinator_is_abstract(hass, token_manager):
    with pytest.raises(TypeError):
        EaseeCoordinator(hass, _entry(hass), token_manager, _cloud_api())
