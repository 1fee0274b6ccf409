"""
Design (models.py)
- Purpose: Define the data structures for the settings document, the bundled endpoint
           catalogs, and the resolved endpoint view consumed by the monitor and UI.
- Inputs: Field values / parsed JSON.
- Outputs: pydantic documents (persisted, camelCase on disk) and dataclasses (ephemeral).
- Side effects: None.
- Thread-safety: Plain containers; the storage layer serializes access to the files.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .config import (
    CUSTOM_CATEGORY,
    DEFAULT_ALERT_COOLDOWN_MIN,
    DEFAULT_ALERT_THRESHOLD,
    DEFAULT_EXCELLENT_MS,
    DEFAULT_GOOD_MS,
    DEFAULT_GRAPH_TIME_RANGE_H,
    DEFAULT_PORT,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_TEST_INTERVAL_SEC,
    DEFAULT_THEME,
    DEFAULT_WARNING_MS,
    SETTINGS_VERSION,
)


class AppMode(str, Enum):
    """Selects which bundled catalog applies."""
    SESSION_HOST = "sessionhost"
    END_USER = "enduser"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AppMode":
        """Lenient lookup used by request-style callers; anything unknown is SessionHost."""
        if isinstance(value, AppMode):
            return value
        if value == cls.END_USER.value:
            return cls.END_USER
        return cls.SESSION_HOST


class IconStatus(Enum):
    """Ordered health tiers. UNKNOWN means "no measurement yet"."""
    EXCELLENT = 0
    GOOD = 1
    WARNING = 2
    CRITICAL = 3
    UNKNOWN = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()


class _Document(BaseModel):
    """Shared pydantic config: snake_case attributes, camelCase JSON keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


# ---------- settings.json ----------

class LatencyThresholds(_Document):
    excellent: int = Field(DEFAULT_EXCELLENT_MS, ge=0)
    good: int = Field(DEFAULT_GOOD_MS, ge=0)
    warning: int = Field(DEFAULT_WARNING_MS, ge=0)

    def is_ordered(self) -> bool:
        """True when excellent < good < warning (assumed by the UI, never enforced)."""
        return self.excellent < self.good < self.warning


class AppConfig(_Document):
    mode: AppMode = AppMode.SESSION_HOST
    test_interval: int = Field(DEFAULT_TEST_INTERVAL_SEC, ge=0)
    retention_days: int = Field(DEFAULT_RETENTION_DAYS, ge=0)
    thresholds: LatencyThresholds = Field(default_factory=LatencyThresholds)
    notifications_enabled: bool = True
    auto_start: bool = False
    theme: str = DEFAULT_THEME
    alert_threshold: int = Field(DEFAULT_ALERT_THRESHOLD, ge=0)
    alert_cooldown: int = Field(DEFAULT_ALERT_COOLDOWN_MIN, ge=0)
    graph_time_range: int = Field(DEFAULT_GRAPH_TIME_RANGE_H, ge=0)


class CustomEndpoint(_Document):
    """User-added endpoint, persisted inside settings.json."""
    id: str
    name: str
    url: str
    port: Optional[int] = Field(DEFAULT_PORT, ge=0, le=65535)
    protocol: Optional[str] = None
    category: Optional[str] = CUSTOM_CATEGORY
    enabled: bool = True
    latency_critical: bool = True


class PathState(_Document):
    """Persisted mute flag for something outside the catalog (e.g. an FSLogix share)."""
    id: str
    muted: bool


class SettingsFile(_Document):
    version: int = Field(SETTINGS_VERSION, ge=0)
    config: AppConfig = Field(default_factory=AppConfig)
    custom_endpoints: List[CustomEndpoint] = Field(default_factory=list)
    fslogix_path_states: List[PathState] = Field(default_factory=list)


# ---------- <mode>-endpoints.json ----------

class EndpointDefinition(_Document):
    id: str
    name: str
    url: str
    port: Optional[int] = Field(DEFAULT_PORT, ge=0, le=65535)
    protocol: Optional[str] = None
    required: bool = True
    purpose: Optional[str] = None
    enabled: bool = True
    latency_critical: Optional[bool] = None
    muted: Optional[bool] = None
    # e.g. "*.wvd.microsoft.com"; expanded with known_subdomains at resolution time
    wildcard_pattern: Optional[str] = None
    known_subdomains: Optional[List[str]] = None


class EndpointCategory(_Document):
    name: str
    description: Optional[str] = None
    endpoints: List[EndpointDefinition] = Field(default_factory=list)


class EndpointCatalog(_Document):
    name: str
    description: Optional[str] = None
    source: Optional[str] = None
    categories: List[EndpointCategory] = Field(default_factory=list)


# ---------- resolved view ----------

@dataclass(frozen=True)
class Endpoint:
    """
    Design (Endpoint)
    - Purpose: Read-only merged view of a catalog definition (possibly wildcard-expanded)
               or a custom endpoint. Consumers never write these back.
    - Fields: the union of both sources; everything past `enabled` may be None.
    """
    id: str
    name: str
    url: str
    enabled: bool = True
    muted: Optional[bool] = None
    port: Optional[int] = None
    protocol: Optional[str] = None
    category: Optional[str] = None
    required: Optional[bool] = None
    purpose: Optional[str] = None
    latency_critical: Optional[bool] = None
    wildcard_pattern: Optional[str] = None
    known_subdomains: Optional[List[str]] = None


@dataclass(frozen=True)
class ModeInfo:
    name: str
    description: Optional[str] = None
    source: Optional[str] = None


@dataclass
class ResolvedEndpoints:
    mode_info: ModeInfo
    endpoints: List[Endpoint] = field(default_factory=list)


@dataclass
class SettingsView:
    """What the dashboard consumes: config (mode replaced by the requested one) + endpoints."""
    version: int
    config: AppConfig
    endpoints: List[Endpoint]
    mode_info: ModeInfo
