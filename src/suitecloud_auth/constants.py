"""
Fixed endpoints, ports and identifiers used by the authentication core.
"""

# ============================================================================
# SDK HOME AND CREDENTIAL STORE
# ============================================================================
DEFAULT_SDK_HOME_FOLDER = ".suitecloud-sdk"
SDK_SETTINGS_FILE = "suitecloud-sdk-settings.json"
STORE_FOLDER = "auth"
STORE_FILE = "auth-store.json"
STORE_VERSION = 1

PASSKEY_ENV_VARS = ("SUITECLOUD_CI_PASSKEY", "SUITECLOUD_FALLBACK_PASSKEY")

# ============================================================================
# DOMAINS AND ENDPOINTS
# ============================================================================
PRODUCTION_DOMAIN = "system.netsuite.com"
DATACENTER_URLS_PATH = "/rest/datacenterurls"
TOKEN_PATH = "/services/rest/auth/oauth2/v1/token"
TOKEN_INFO_PATH = "/rest/tokeninfo"
AUTHORIZE_PATH = "/app/login/oauth2/authorize.nl"

# ============================================================================
# OAUTH
# ============================================================================
DEFAULT_SCOPE = "rest_webservices"
JWT_BEARER_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"
DEFAULT_ASSERTION_TTL_SECONDS = 300
EXPIRY_SAFETY_MARGIN_SECONDS = 60

PRODUCTION_INTEGRATION_CLIENT_ID = (
    "6da57bf05a6247fc876c6d228184ff487760a382a43ac7e93eaff743803d22ac"
)
DEVELOPMENT_INTEGRATION_CLIENT_ID = (
    "a3f34eae0e4ab97240fb221ea91623e790b7cb577421e0185bf5d108837c7bd1"
)

CI_ROLE_FALLBACK = "OAuth2 (CI)"
PKCE_ROLE_FALLBACK = "OAuth2 (PKCE)"

# ============================================================================
# LOOPBACK CALLBACK SERVER
# ============================================================================
CALLBACK_HOST = "127.0.0.1"
CALLBACK_PATH = "/suitecloud-auth"
CALLBACK_PORT_MIN = 52300
CALLBACK_PORT_MAX = 52315
DEFAULT_CALLBACK_TIMEOUT_MS = 300_000

SETUP_COMMAND = "suitecloud account:setup"

OAUTH_SUCCESS_HTML = (
    '<!doctype html><html><head><meta charset="utf-8" /></head><body>'
    "<h2>Authentication completed.</h2>"
    "<p>You can close this window and return to SuiteCloud CLI.</p>"
    "</body></html>"
)
OAUTH_FAILURE_HTML = (
    '<!doctype html><html><head><meta charset="utf-8" /></head><body>'
    "<h2>Authentication failed.</h2>"
    "<p>Please return to SuiteCloud CLI and retry.</p>"
    "</body></html>"
)
