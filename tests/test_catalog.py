"""
test_catalog.py: Unit tests for avdhealth/catalog.py

Covers first-run bootstrap from bundled resources, the candidate search order,
and per-endpoint overrides written by EndpointStateUpdater.
"""

import json
import threading

import pytest

from avdhealth.catalog import EndpointCatalogLoader, EndpointStateUpdater, default_resource_candidates
from avdhealth.config import ENDUSER_ENDPOINTS_FILENAME, SESSIONHOST_ENDPOINTS_FILENAME
from avdhealth.errors import NotFoundError, ParseError
from avdhealth.models import AppMode

from conftest import enduser_catalog, sessionhost_catalog, write_json


def _all_definitions(catalog):
    return [d for c in catalog.categories for d in c.endpoints]


class TestBootstrap:
    def test_load_copies_bundled_catalog(self, loader, settings_dir):
        """Loading a mode with no local copy pulls the bundled file into the settings dir."""
        catalog = loader.load(AppMode.SESSION_HOST)
        assert catalog.name == "Session Host"
        assert (settings_dir / SESSIONHOST_ENDPOINTS_FILENAME).is_file()

    def test_existing_copy_is_not_overwritten(self, loader, settings_dir):
        doc = sessionhost_catalog()
        doc["name"] = "Edited by user"
        write_json(settings_dir / SESSIONHOST_ENDPOINTS_FILENAME, doc)
        assert loader.load(AppMode.SESSION_HOST).name == "Edited by user"

    def test_first_matching_candidate_wins(self, settings_dir, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        first = tmp_path / "first"
        second = tmp_path / "second"
        a = enduser_catalog()
        a["name"] = "from first"
        b = enduser_catalog()
        b["name"] = "from second"
        write_json(first / ENDUSER_ENDPOINTS_FILENAME, a)
        write_json(second / ENDUSER_ENDPOINTS_FILENAME, b)

        loader = EndpointCatalogLoader(settings_dir, candidates=[empty, first, second])
        assert loader.load(AppMode.END_USER).name == "from first"

    def test_missing_everywhere_raises_not_found(self, settings_dir, tmp_path):
        loader = EndpointCatalogLoader(settings_dir, candidates=[tmp_path / "nowhere"])
        with pytest.raises(NotFoundError) as excinfo:
            loader.load(AppMode.END_USER)
        assert "nowhere" in str(excinfo.value)

    def test_bootstrap_reports_missing_files(self, settings_dir, tmp_path):
        bundle = tmp_path / "partial"
        write_json(bundle / SESSIONHOST_ENDPOINTS_FILENAME, sessionhost_catalog())
        loader = EndpointCatalogLoader(settings_dir, candidates=[bundle])

        missing = loader.bootstrap()
        assert missing == [ENDUSER_ENDPOINTS_FILENAME]
        assert (settings_dir / SESSIONHOST_ENDPOINTS_FILENAME).is_file()

    def test_bootstrap_all_present(self, loader, settings_dir):
        assert loader.bootstrap() == []
        assert loader.bootstrap() == []
        assert (settings_dir / ENDUSER_ENDPOINTS_FILENAME).is_file()

    def test_malformed_catalog_raises_parse_error(self, loader, settings_dir):
        (settings_dir / ENDUSER_ENDPOINTS_FILENAME).write_text("[]", encoding="utf-8")
        with pytest.raises(ParseError):
            loader.load(AppMode.END_USER)

    def test_non_utf8_catalog_raises_parse_error(self, loader, settings_dir):
        """A catalog saved in a legacy code page surfaces as ParseError."""
        raw = json.dumps(enduser_catalog()).replace("Login", "L\xf6gin").encode("latin-1")
        (settings_dir / ENDUSER_ENDPOINTS_FILENAME).write_bytes(raw)
        with pytest.raises(ParseError, match="UTF-8"):
            loader.load(AppMode.END_USER)

    def test_default_candidates_order(self, monkeypatch, tmp_path):
        from avdhealth import catalog as catalog_module

        monkeypatch.setattr(catalog_module, "resource_dir", lambda: tmp_path / "res")
        monkeypatch.setattr(catalog_module, "exe_dir", lambda: tmp_path / "exe")
        assert default_resource_candidates() == [
            tmp_path / "res",
            tmp_path / "res" / "resources",
            tmp_path / "exe",
            tmp_path / "exe" / "resources",
        ]


class TestEndpointStateUpdater:
    def test_updates_only_provided_fields(self, loader, updater):
        found = updater.update(AppMode.SESSION_HOST, "login", muted=True)
        assert found is True

        login = _all_definitions(loader.load(AppMode.SESSION_HOST))[0]
        assert login.muted is True
        assert login.enabled is True
        assert login.url == "login.microsoftonline.com"
        assert login.port == 443

    def test_updates_name_url_port(self, loader, updater):
        updater.update(AppMode.SESSION_HOST, "kms", enabled=False, name="KMS2", url="kms.example.com", port=1689)
        kms = _all_definitions(loader.load(AppMode.SESSION_HOST))[-1]
        assert (kms.enabled, kms.name, kms.url, kms.port) == (False, "KMS2", "kms.example.com", 1689)

    def test_unknown_id_is_silent_noop(self, loader, updater):
        before = loader.load(AppMode.SESSION_HOST)
        assert updater.update(AppMode.SESSION_HOST, "does-not-exist", muted=True) is False
        assert loader.load(AppMode.SESSION_HOST) == before

    def test_first_match_only(self, loader, updater, settings_dir):
        """With duplicate ids only the first definition in catalog order is touched."""
        doc = sessionhost_catalog()
        doc["categories"][1]["endpoints"].append(
            {"id": "login", "name": "Duplicate", "url": "dup.example.com"}
        )
        write_json(settings_dir / SESSIONHOST_ENDPOINTS_FILENAME, doc)

        updater.update(AppMode.SESSION_HOST, "login", enabled=False)
        defs = [d for d in _all_definitions(loader.load(AppMode.SESSION_HOST)) if d.id == "login"]
        assert [d.enabled for d in defs] == [False, True]

    def test_concurrent_updates_on_distinct_ids(self, loader, updater):
        """Parallel overrides on different definitions are all persisted."""
        loader.load(AppMode.SESSION_HOST)
        ids = ["login", "wvd", "kms"]
        threads = [
            threading.Thread(target=updater.update, args=(AppMode.SESSION_HOST, endpoint_id), kwargs={"muted": True})
            for endpoint_id in ids
            for _ in range(5)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        definitions = _all_definitions(loader.load(AppMode.SESSION_HOST))
        assert [(d.id, d.muted) for d in definitions] == [(i, True) for i in ids]

    def test_writes_camel_case(self, updater, settings_dir):
        updater.update(AppMode.SESSION_HOST, "wvd", muted=True)
        raw = json.loads((settings_dir / SESSIONHOST_ENDPOINTS_FILENAME).read_text(encoding="utf-8"))
        wvd = raw["categories"][0]["endpoints"][1]
        assert wvd["wildcardPattern"] == "*.wvd.microsoft.com"
        assert wvd["muted"] is True

    def test_missing_catalog_propagates(self, settings_dir, tmp_path):
        updater = EndpointStateUpdater(EndpointCatalogLoader(settings_dir, candidates=[tmp_path / "none"]))
        with pytest.raises(NotFoundError):
            updater.update(AppMode.END_USER, "eu-login", muted=True)
