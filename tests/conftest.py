"""
conftest.py: Shared pytest fixtures for the avdhealth test suite.
"""

import json

import pytest

from avdhealth.catalog import EndpointCatalogLoader, EndpointStateUpdater
from avdhealth.config import ENDUSER_ENDPOINTS_FILENAME, SESSIONHOST_ENDPOINTS_FILENAME
from avdhealth.resolver import EndpointResolver
from avdhealth.storage import SettingsStore


def sessionhost_catalog():
    return {
        "name": "Session Host",
        "description": "Endpoints required by AVD session hosts",
        "source": "https://learn.microsoft.com/azure/virtual-desktop/required-fqdn-endpoint",
        "categories": [
            {
                "name": "Core",
                "endpoints": [
                    {"id": "login", "name": "Login", "url": "login.microsoftonline.com", "port": 443},
                    {
                        "id": "wvd",
                        "name": "WVD",
                        "url": "*.wvd.microsoft.com",
                        "port": 443,
                        "wildcardPattern": "*.wvd.microsoft.com",
                        "knownSubdomains": ["rdbroker", "rdweb"],
                    },
                ],
            },
            {
                "name": "Licensing",
                "endpoints": [
                    {"id": "kms", "name": "KMS", "url": "azkms.core.windows.net", "port": 1688,
                     "latencyCritical": False},
                ],
            },
        ],
    }


def enduser_catalog():
    return {
        "name": "End User",
        "categories": [
            {
                "name": "Service",
                "endpoints": [
                    {"id": "eu-login", "name": "Login", "url": "login.microsoftonline.com"},
                ],
            },
        ],
    }


def write_json(path, document):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def settings_dir(tmp_path):
    """Temporary settings directory (settings.json + catalog copies)."""
    d = tmp_path / "settings"
    d.mkdir()
    return d


@pytest.fixture
def bundled_dir(tmp_path):
    """Fake bundled-resource directory holding both catalogs."""
    d = tmp_path / "bundle"
    write_json(d / SESSIONHOST_ENDPOINTS_FILENAME, sessionhost_catalog())
    write_json(d / ENDUSER_ENDPOINTS_FILENAME, enduser_catalog())
    return d


@pytest.fixture
def store(settings_dir):
    return SettingsStore(settings_dir)


@pytest.fixture
def loader(settings_dir, bundled_dir):
    return EndpointCatalogLoader(settings_dir, candidates=[bundled_dir])


@pytest.fixture
def updater(loader):
    return EndpointStateUpdater(loader)


@pytest.fixture
def resolver(loader, store):
    return EndpointResolver(loader, store)
