DOMAIN = "easee_cloud"
PLATFORMS = ["sensor", "button", "number", "switch"]
VERSION = "0.1.0"

CONF_PRODUCT_ID = "product_id"
CONF_PRODUCT_TYPE = "product_type"
CONF_PRODUCT_NAME = "product_name"

PRODUCT_CHARGER = "charger"
PRODUCT_EQUALIZER = "equalizer"

DATA_API = "api"
DATA_TOKEN_MANAGER = "token_manager"

DEFAULT_BASE_URL = "https://api.easee.cloud"
DEFAULT_SCAN_INTERVAL = 60
MIN_SCAN_INTERVAL = 15
MAX_CURRENT_AMPS = 32
API_TIMEOUT_SECONDS = 20
USER_AGENT = f"easee_cloud/{VERSION}"

DEFAULT_TOKEN_LIFETIME_SECONDS = 86400
TOKEN_REFRESH_MARGIN_SECONDS = 120
MIN_TOKEN_AGE_SECONDS = 120
MAX_RENEWAL_RETRIES = 10

COMMAND_POLL_INTERVAL_SECONDS = 0.5
COMMAND_POLL_MAX_ATTEMPTS = 50

CHARGER_COMMANDS = [
    "start_charging",
    "stop_charging",
    "pause_charging",
    "resume_charging",
    "toggle_charging",
    "reboot",
    "override_schedule",
    "poll_lifetimeenergy",
]
