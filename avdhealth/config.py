"""
Design (config.py)
- Purpose: Centralize constants and configuration defaults.
- Inputs: None.
- Outputs: Constants (file names, app identity, probe timeouts, default thresholds).
- Side effects: None.
- Thread-safety: N/A (read-only constants).
"""

# Application identity (used for the platform config directory)
APP_NAME = "AVDHealthMonitor"
APP_TITLE = "AVD Health Monitor"

# Persisted files, all resolved inside the settings directory (see storage module)
SETTINGS_FILENAME = "settings.json"
SESSIONHOST_ENDPOINTS_FILENAME = "sessionhost-endpoints.json"
ENDUSER_ENDPOINTS_FILENAME = "enduser-endpoints.json"

# Current settings document version
SETTINGS_VERSION = 1

# Portable detection: write-probe file name and install-root markers (lowercase)
PORTABLE_PROBE_FILENAME = ".portable_test"
INSTALL_ROOT_MARKERS = ("program files",)

# Bundled resources live in this subfolder of the resource/exe directory
RESOURCES_SUBDIR = "resources"

# Default AppConfig values
DEFAULT_TEST_INTERVAL_SEC = 10
DEFAULT_RETENTION_DAYS = 30
DEFAULT_THEME = "system"
DEFAULT_ALERT_THRESHOLD = 3     # consecutive alerting cycles before a notification
DEFAULT_ALERT_COOLDOWN_MIN = 5  # minutes between notifications
DEFAULT_GRAPH_TIME_RANGE_H = 1

# Latency thresholds (ms)
DEFAULT_EXCELLENT_MS = 30
DEFAULT_GOOD_MS = 80
DEFAULT_WARNING_MS = 150

# Endpoint defaults
DEFAULT_PORT = 443
CUSTOM_CATEGORY = "Custom"
CUSTOM_PURPOSE = "Custom endpoint"

# Probe behavior
TCP_TIMEOUT_SEC = 5.0
HTTP_TIMEOUT_SEC = 10.0

# FSLogix storage is reached over SMB
SMB_PORT = 445
FSLOGIX_CATEGORY = "FSLogix Storage"

# maximum number of log lines kept in the Logs panel (oldest trimmed)
LOG_MAX_LINES = 1000

# successful measurements kept per endpoint (newest win)
HISTORY_MAX_ENTRIES = 100
HISTORY_FILENAME_PREFIX = "avd-health-history"
