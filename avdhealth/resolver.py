"""
Design (resolver.py)
- Purpose: Merge the mode catalog (with wildcard expansion) and the user's custom endpoints
           into the ordered, read-only endpoint list the monitor and UI operate on.
- Inputs: AppMode; EndpointCatalogLoader; SettingsStore.
- Outputs: ResolvedEndpoints / SettingsView.
- Side effects: Only what the loader/store do on load (first-run bootstrap).
- Thread-safety: Stateless between calls; each call re-reads the files.

Ordering is part of the contract: catalog category order, then definition (or expansion)
order, then custom endpoints in insertion order. Consumers rely on it for stable display.
"""

import logging
from typing import Iterable, Iterator, List, Optional

from .catalog import EndpointCatalogLoader
from .config import CUSTOM_CATEGORY, CUSTOM_PURPOSE
from .models import (
    AppMode,
    CustomEndpoint,
    Endpoint,
    EndpointCatalog,
    EndpointDefinition,
    ModeInfo,
    ResolvedEndpoints,
    SettingsFile,
    SettingsView,
)
from .storage import SettingsStore

log = logging.getLogger(__name__)


def base_domain(pattern: str) -> str:
    """Strip every leading "*." label: "*.*.example.com" -> "example.com"."""
    while pattern.startswith("*."):
        pattern = pattern[2:]
    return pattern


def expand_definition(definition: EndpointDefinition, category: str) -> Iterator[Endpoint]:
    """
    Purpose: Turn one catalog definition into concrete probe targets.
    Outputs: One Endpoint per known subdomain when the definition is a wildcard with a
             non-empty subdomain list (id "{id}-{sub}", url "{sub}.{base domain}");
             otherwise a single Endpoint copying the definition.
    """
    pattern = definition.wildcard_pattern
    subdomains = definition.known_subdomains
    if pattern and subdomains:
        domain = base_domain(pattern)
        for sub in subdomains:
            yield Endpoint(
                id=f"{definition.id}-{sub}",
                name=f"{definition.name} ({sub})",
                url=f"{sub}.{domain}",
                enabled=definition.enabled,
                muted=definition.muted,
                port=definition.port,
                protocol=definition.protocol,
                category=category,
                required=definition.required,
                purpose=definition.purpose,
                latency_critical=definition.latency_critical,
                # kept so an expanded entry can be traced back to its pattern
                wildcard_pattern=pattern,
                known_subdomains=None,
            )
        return

    yield Endpoint(
        id=definition.id,
        name=definition.name,
        url=definition.url,
        enabled=definition.enabled,
        muted=definition.muted,
        port=definition.port,
        protocol=definition.protocol,
        category=category,
        required=definition.required,
        purpose=definition.purpose,
        latency_critical=definition.latency_critical,
    )


def definition_id(endpoint: Endpoint) -> str:
    """
    Catalog id behind a resolved endpoint. Expanded entries carry "{id}-{sub}" and
    url "{sub}.{base domain}", so the subdomain is recovered from the url.
    """
    pattern = endpoint.wildcard_pattern
    if not pattern:
        return endpoint.id
    suffix = "." + base_domain(pattern)
    if not endpoint.url.endswith(suffix):
        return endpoint.id
    sub = endpoint.url[: -len(suffix)]
    if endpoint.id.endswith("-" + sub):
        return endpoint.id[: -(len(sub) + 1)]
    return endpoint.id


def endpoints_from_catalog(catalog: EndpointCatalog) -> List[Endpoint]:
    return [
        endpoint
        for category in catalog.categories
        for definition in category.endpoints
        for endpoint in expand_definition(definition, category.name)
    ]


def endpoint_from_custom(custom: CustomEndpoint) -> Endpoint:
    return Endpoint(
        id=custom.id,
        name=custom.name,
        url=custom.url,
        enabled=custom.enabled,
        muted=None,
        port=custom.port,
        protocol=custom.protocol,
        category=custom.category or CUSTOM_CATEGORY,
        required=False,
        purpose=CUSTOM_PURPOSE,
        latency_critical=custom.latency_critical,
    )


def merge_endpoints(catalog: EndpointCatalog, customs: Iterable[CustomEndpoint]) -> List[Endpoint]:
    """Catalog entries then customs; ids stay unique, the first occurrence of an id wins."""
    candidates = endpoints_from_catalog(catalog)
    candidates.extend(endpoint_from_custom(c) for c in customs)

    endpoints: List[Endpoint] = []
    seen = set()
    for endpoint in candidates:
        if endpoint.id in seen:
            log.warning(f"Duplicate endpoint id '{endpoint.id}' ({endpoint.name}, {endpoint.url}) ignored")
            continue
        seen.add(endpoint.id)
        endpoints.append(endpoint)
    return endpoints


class EndpointResolver:
    """
    Design (EndpointResolver)
    - Composes EndpointCatalogLoader (catalog per mode) and SettingsStore (custom endpoints,
      persisted mode).
    - Public methods:
        resolve(mode): ResolvedEndpoints
        resolve_settings(mode=None): SettingsView for the dashboard
    """

    def __init__(self, loader: EndpointCatalogLoader, store: SettingsStore):
        self.loader = loader
        self.store = store

    def _resolve(self, settings: SettingsFile, mode: AppMode) -> ResolvedEndpoints:
        catalog = self.loader.load(mode)
        return ResolvedEndpoints(
            mode_info=ModeInfo(name=catalog.name, description=catalog.description, source=catalog.source),
            endpoints=merge_endpoints(catalog, settings.custom_endpoints),
        )

    def resolve(self, mode: AppMode) -> ResolvedEndpoints:
        """Raises NotFoundError/ParseError/StorageIOError from either source; never defaults."""
        return self._resolve(self.store.load(), AppMode.parse(mode))

    def resolve_settings(self, mode: Optional[AppMode] = None) -> SettingsView:
        settings = self.store.load()
        mode = settings.config.mode if mode is None else AppMode.parse(mode)
        resolved = self._resolve(settings, mode)
        config = settings.config.model_copy(deep=True)
        config.mode = mode
        return SettingsView(
            version=settings.version,
            config=config,
            endpoints=resolved.endpoints,
            mode_info=resolved.mode_info,
        )
