"""
Design (fslogix.py)
- Purpose: Discover FSLogix profile / Office (ODFC) container storage hosts from the registry
           and attach the user's persisted mute state to them.
- Inputs: Registry (Windows only); SettingsStore for mute states.
- Outputs: list[StoragePath].
- Side effects: Reads HKLM on Windows. Mute changes persist via SettingsStore.set_path_muted().
- Thread-safety: Stateless; persistence goes through SettingsStore's locked update.
"""

import logging
import sys
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional

from .config import FSLOGIX_CATEGORY, SMB_PORT
from .models import Endpoint, PathState
from .storage import SettingsStore

log = logging.getLogger(__name__)

# (container type, registry key under HKLM)
REGISTRY_SOURCES = (
    ("profile", r"SOFTWARE\FSLogix\Profiles"),
    ("odfc", r"SOFTWARE\Policies\FSLogix\ODFC"),
)
VHD_LOCATIONS_VALUE = "VHDLocations"


@dataclass(frozen=True)
class StoragePath:
    """
    Design (StoragePath)
    - Fields:
        id: "fslogix-<type>-<index>", stable across runs for the same registry order
        type: "profile" or "odfc"
        path: full UNC path (\\\\host\\share)
        hostname: host part used for the SMB connectivity probe
        port: 445
        muted: persisted alert suppression (None = never set)
    """
    id: str
    type: str
    path: str
    hostname: str
    port: int = SMB_PORT
    muted: Optional[bool] = None


def extract_hostname(unc_path: str) -> Optional[str]:
    """\\\\host\\share\\sub -> host; None when there is no host part."""
    host = unc_path.lstrip("\\").split("\\")[0]
    return host or None


def parse_vhd_locations(value: str) -> List[str]:
    """VHDLocations may hold several UNC paths separated by ';'. Non-UNC entries are dropped."""
    return [p.strip() for p in value.split(";") if p.strip().startswith("\\\\")]


def _read_vhd_locations(key_path: str) -> List[str]:
    import winreg

    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, key_path) as key:
            value, _kind = winreg.QueryValueEx(key, VHD_LOCATIONS_VALUE)
    except OSError:
        return []
    # REG_SZ gives a str, REG_MULTI_SZ a list of str
    values = value if isinstance(value, list) else [value]
    locations: List[str] = []
    for v in values:
        if isinstance(v, str):
            locations.extend(parse_vhd_locations(v))
    return locations


def build_paths(container_type: str, locations: Iterable[str]) -> List[StoragePath]:
    paths = []
    for index, location in enumerate(locations):
        hostname = extract_hostname(location)
        if hostname:
            paths.append(StoragePath(
                id=f"fslogix-{container_type}-{index}",
                type=container_type,
                path=location,
                hostname=hostname,
            ))
    return paths


def discover_paths() -> List[StoragePath]:
    """FSLogix is Windows-only; other platforms report nothing."""
    if sys.platform != "win32":
        return []
    paths: List[StoragePath] = []
    for container_type, key_path in REGISTRY_SOURCES:
        paths.extend(build_paths(container_type, _read_vhd_locations(key_path)))
    log.debug(f"Discovered {len(paths)} FSLogix storage path(s)")
    return paths


def apply_muted_states(paths: Iterable[StoragePath], states: Iterable[PathState]) -> List[StoragePath]:
    muted_by_id = {s.id: s.muted for s in states}
    return [
        replace(p, muted=muted_by_id[p.id]) if p.id in muted_by_id else p
        for p in paths
    ]


def storage_paths(store: SettingsStore) -> List[StoragePath]:
    """Discovered paths with persisted mute states applied."""
    return apply_muted_states(discover_paths(), store.load().fslogix_path_states)


def to_endpoint(path: StoragePath) -> Endpoint:
    """SMB reachability target for the monitor; storage hosts count as latency-critical."""
    container = "Profile" if path.type == "profile" else "Office"
    return Endpoint(
        id=path.id,
        name=f"FSLogix {container} ({path.hostname})",
        url=path.hostname,
        muted=path.muted,
        port=path.port,
        category=FSLOGIX_CATEGORY,
        required=True,
        purpose=path.path,
        latency_critical=True,
    )


def is_storage_endpoint(endpoint: Endpoint) -> bool:
    return endpoint.category == FSLOGIX_CATEGORY and endpoint.id.startswith("fslogix-")
