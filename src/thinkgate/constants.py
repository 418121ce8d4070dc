"""Application-wide constants for thinkgate.

Constants that define application behavior.
For user-configurable settings per deployment, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    "APP_CONFIG_DIR",
    # Ports
    "DEFAULT_PROXY_PORT",
    "DEFAULT_BACKEND_PORT",
    "DEFAULT_API_PORT",
    "BACKEND_HOST",
    # Backend binary
    "BACKEND_BINARY_NAME",
    "BACKEND_CONFIG_FILENAME",
    "BACKEND_DEFAULT_CONFIG_FILENAME",
    # Supervisor timings
    "START_SETTLE_SECONDS",
    "STOP_TIMEOUT_SECONDS",
    "HEALTH_CHECK_TIMEOUT_SECONDS",
    "ORPHAN_CLEANUP_WAIT_SECONDS",
    "BACKEND_READY_ATTEMPTS",
    "BACKEND_READY_POLL_SECONDS",
    "PROXY_BIND_SETTLE_SECONDS",
    # Log buffer
    "DEFAULT_LOG_BUFFER_CAPACITY",
    "LOG_SUBSCRIBER_QUEUE_SIZE",
    # Thinking transform
    "MODEL_PREFIX",
    "THINKING_DELIMITER",
    "THINKING_HARD_CAP",
    "THINKING_MIN_HEADROOM",
    "MAX_TOKENS_FIELD",
    "MAX_OUTPUT_TOKENS_FIELD",
    # Proxy I/O
    "STREAM_CHUNK_SIZE",
    "MAX_HEADER_LINE_BYTES",
    "EXCLUDED_FORWARD_HEADERS",
    # Status API
    "API_SERVER_SHUTDOWN_TIMEOUT_SECONDS",
    "CLI_HTTP_TIMEOUT_SECONDS",
]

from platformdirs import user_config_dir

# ============================================================================
# Application Identity
# ============================================================================

# Application name used for directory names, logger names, etc.
APP_NAME: str = "thinkgate"

# Platform-specific settings directory:
# - macOS: ~/Library/Application Support/thinkgate/
# - Linux: ~/.config/thinkgate/
# - Windows: %APPDATA%\thinkgate\
APP_CONFIG_DIR: str = user_config_dir(APP_NAME)

# ============================================================================
# Ports
# ============================================================================

# Client-facing port (requests are rewritten here)
DEFAULT_PROXY_PORT: int = 8317

# Port the backend listens on (dial target, health probe)
DEFAULT_BACKEND_PORT: int = 8318

# Status API port
DEFAULT_API_PORT: int = 8319

# Backend is always local
BACKEND_HOST: str = "127.0.0.1"

# ============================================================================
# Backend Binary
# ============================================================================

# Executable name, also used to find orphaned instances
BACKEND_BINARY_NAME: str = "cli-proxy-api"

# Backend config file created in the app directory when none is configured
BACKEND_CONFIG_FILENAME: str = "backend.yaml"

# Template looked up beside the binary before falling back to the built-in one
BACKEND_DEFAULT_CONFIG_FILENAME: str = "backend.default.yaml"

# ============================================================================
# Supervisor Timings
# ============================================================================

# Wait after spawning so an immediate crash fails start() (seconds)
START_SETTLE_SECONDS: float = 1.0

# Grace period between SIGTERM and SIGKILL (seconds)
STOP_TIMEOUT_SECONDS: float = 2.0

# TCP connect timeout for the backend health probe (seconds)
HEALTH_CHECK_TIMEOUT_SECONDS: float = 0.5

# Wait after killing orphaned backends so their port is released (seconds)
ORPHAN_CLEANUP_WAIT_SECONDS: float = 0.5

# Startup readiness polling: 30 x 0.5s = 15s
BACKEND_READY_ATTEMPTS: int = 30
BACKEND_READY_POLL_SECONDS: float = 0.5

# Pause between binding the proxy and spawning the backend (seconds)
PROXY_BIND_SETTLE_SECONDS: float = 0.1

# ============================================================================
# Log Buffer
# ============================================================================

DEFAULT_LOG_BUFFER_CAPACITY: int = 1000

# Lines queued per live subscriber before new lines are dropped for it
LOG_SUBSCRIBER_QUEUE_SIZE: int = 1000

# ============================================================================
# Thinking Transform
# ============================================================================

# Only models with this prefix are rewritten
MODEL_PREFIX: str = "claude-"

# "<model>-thinking-<budget>"; the last occurrence wins
THINKING_DELIMITER: str = "-thinking-"

# Budgets are clamped strictly below this; max token ceilings never exceed it
THINKING_HARD_CAP: int = 32000

# Minimum room left for the visible answer on top of the thinking budget
THINKING_MIN_HEADROOM: int = 1024

MAX_TOKENS_FIELD: str = "max_tokens"
MAX_OUTPUT_TOKENS_FIELD: str = "max_output_tokens"

# ============================================================================
# Proxy I/O
# ============================================================================

# Read size when streaming backend responses (bytes)
STREAM_CHUNK_SIZE: int = 65536

# StreamReader limit for request line and header lines (bytes)
MAX_HEADER_LINE_BYTES: int = 65536

# Headers dropped from the client request (lowercase); rebuilt by the proxy
EXCLUDED_FORWARD_HEADERS: frozenset[str] = frozenset({"content-length", "host", "transfer-encoding"})

# ============================================================================
# Status API
# ============================================================================

# Max time to wait for uvicorn to stop during shutdown (seconds)
API_SERVER_SHUTDOWN_TIMEOUT_SECONDS: float = 5.0

# Timeout for CLI requests against the status API (seconds)
CLI_HTTP_TIMEOUT_SECONDS: float = 30.0
