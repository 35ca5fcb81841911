"""
spacetimectl Constants

Centralized constants for magic values, defaults, and CLI conventions.
"""

# Wrapped program
DEFAULT_PROGRAM = "spacetime"

# Server defaults
LOCAL_SERVER_NAME = "local"
TESTNET_SERVER_NAME = "testnet"
DEFAULT_PORT = 3000
LOCAL_HOST_URL = f"http://127.0.0.1:{DEFAULT_PORT}"
TESTNET_HOST_URL = "https://testnet.spacetimedb.com"

# Process timing (seconds)
POLL_INTERVAL = 0.1
TERMINATE_GRACE_PERIOD = 5.0
STREAM_DRAIN_TIMEOUT = 2.0
PING_TIMEOUT = 0.2
PING_ITERATION_TIMEOUT = 0.1
SERVER_START_TIMEOUT = 2.0

# Result conventions
CANCELED_SENTINEL = "Canceled"
DEFAULT_MARKER = "***"
MAX_AUTO_RETRIES = 1
MAX_LOGGED_ERROR_SUMMARIES = 5

# Client code generation
DEFAULT_CLIENT_LANGUAGE = "csharp"
AUTOGEN_DIR_NAME = "SpacetimeDbAutogen"

# Remediation links
DOCS_URL = "https://spacetimedb.com/install"
MODULE_DOCS_URL = "https://spacetimedb.com/docs/modules"
DOTNET_INSTALL_URL = "https://dotnet.microsoft.com/en-us/download/dotnet/8.0"
INSTALL_WASM_OPT_URL = "https://github.com/WebAssembly/binaryen/releases"

# Config / state locations
CONFIG_ENV_VAR = "SPACETIMECTL_CONFIG"
DEFAULT_CONFIG_PATH = "~/.config/spacetimectl/config.yml"
DEFAULT_STATE_PATH = "~/.config/spacetimectl/state.yml"

# Log Configuration
LOG_DATE_FORMAT = "%Y-%m-%d"
LOG_TIME_FORMAT = "%H-%M-%S"
