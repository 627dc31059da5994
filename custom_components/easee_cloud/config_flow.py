from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.const import CONF_PASSWORD, CONF_SCAN_INTERVAL, CONF_USERNAME
from homeassistant.core import callback

from . import get_api_client
from .const import (
    CONF_PRODUCT_ID,
    CONF_PRODUCT_NAME,
    CONF_PRODUCT_TYPE,
    DEFAULT_SCAN_INTERVAL,
    DOMAIN,
    MIN_SCAN_INTERVAL,
    PRODUCT_CHARGER,
    PRODUCT_EQUALIZER,
)
from .easee_api import EaseeApiError, ErrorKind

_LOGGER = logging.getLogger(__name__)


def _error_key(err: EaseeApiError) -> str:
    if err.kind is ErrorKind.INVALID_CREDENTIALS:
        return "invalid_auth"
    if err.kind is ErrorKind.RATE_LIMITED:
        return "rate_limited"
    return "cannot_connect"


class EaseeConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    VERSION = 1

    def __init__(self) -> None:
        self._credentials: dict[str, str] = {}
        self._products: dict[str, dict[str, str]] = {}

    async def async_step_user(self, user_input: dict[str, Any] | None = None):
        errors: dict[str, str] = {}

        if user_input is not None:
            username = user_input[CONF_USERNAME].strip()
            password = user_input[CONF_PASSWORD]

            # validation only, token renewal belongs to entries that are set up
            api = get_api_client(self.hass)
            try:
                token = await api.login(username, password)
                chargers = await api.get_chargers(token.access_token)
                equalizers = await api.get_equalizers(token.access_token)
            except EaseeApiError as err:
                _LOGGER.debug("Login for '%s' failed: %s", username, err)
                errors["base"] = _error_key(err)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Unexpected error while logging in to Easee")
                errors["base"] = "unknown"
            else:
                self._products = {}
                for charger in chargers:
                    self._add_product(PRODUCT_CHARGER, charger)
                for equalizer in equalizers:
                    self._add_product(PRODUCT_EQUALIZER, equalizer)

                if not self._products:
                    errors["base"] = "no_products"
                else:
                    self._credentials = {CONF_USERNAME: username, CONF_PASSWORD: password}
                    return await self.async_step_product()

        schema = vol.Schema(
            {
                vol.Required(CONF_USERNAME): str,
                vol.Required(CONF_PASSWORD): str,
            }
        )
        return self.async_show_form(step_id="user", data_schema=schema, errors=errors)

    def _add_product(self, product_type: str, product: dict[str, Any]) -> None:
        product_id = product.get("id")
        if not product_id:
            return
        name = product.get("name") or str(product_id)
        self._products[str(product_id)] = {
            CONF_PRODUCT_ID: str(product_id),
            CONF_PRODUCT_TYPE: product_type,
            CONF_PRODUCT_NAME: name,
        }

    async def async_step_product(self, user_input: dict[str, Any] | None = None):
        if user_input is not None:
            product = self._products[user_input[CONF_PRODUCT_ID]]
            await self.async_set_unique_id(f"{DOMAIN}_{product[CONF_PRODUCT_ID]}")
            self._abort_if_unique_id_configured()

            return self.async_create_entry(
                title=f"Easee {product[CONF_PRODUCT_NAME]}",
                data={**self._credentials, **product},
            )

        choices = {
            product_id: f"{product[CONF_PRODUCT_NAME]} ({product[CONF_PRODUCT_TYPE]})"
            for product_id, product in self._products.items()
        }
        schema = vol.Schema({vol.Required(CONF_PRODUCT_ID): vol.In(choices)})
        return self.async_show_form(step_id="product", data_schema=schema)

    async def async_step_reauth(self, entry_data: Mapping[str, Any]):
        self._credentials = {CONF_USERNAME: entry_data[CONF_USERNAME]}
        return await self.async_step_reauth_confirm()

    async def async_step_reauth_confirm(self, user_input: dict[str, Any] | None = None):
        errors: dict[str, str] = {}
        username = self._credentials[CONF_USERNAME]

        if user_input is not None:
            password = user_input[CONF_PASSWORD]
            try:
                await get_api_client(self.hass).login(username, password)
            except EaseeApiError as err:
                errors["base"] = _error_key(err)
            else:
                return self.async_update_reload_and_abort(
                    self._get_reauth_entry(),
                    data_updates={CONF_PASSWORD: password},
                )

        schema = vol.Schema({vol.Required(CONF_PASSWORD): str})
        return self.async_show_form(
            step_id="reauth_confirm",
            data_schema=schema,
            errors=errors,
            description_placeholders={CONF_USERNAME: username},
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        return EaseeOptionsFlow()


class EaseeOptionsFlow(config_entries.OptionsFlow):
    async def async_step_init(self, user_input: dict[str, Any] | None = None):
        if user_input is not None:
            return self.async_create_entry(title="", data=user_input)

        current = self.config_entry.options.get(
            CONF_SCAN_INTERVAL,
            self.config_entry.data.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL),
        )
        schema = vol.Schema(
            {
                vol.Optional(CONF_SCAN_INTERVAL, default=current): vol.All(
                    vol.Coerce(int), vol.Range(min=MIN_SCAN_INTERVAL)
                ),
            }
        )
        return self.async_show_form(step_id="init", data_schema=schema)
