"""Tests for configuration providers.

Verifies:
- FileConfigurationProvider reads JSON and YAML documents
- Unreadable or non-object files raise ConfigurationFetchError
- PublisherConfigurationProvider builds <publisher>/<id>.json URLs,
  rejects malformed ids and maps HTTP/JSON failures to ConfigurationFetchError
"""

from __future__ import annotations

import json

import pytest
import requests
import yaml

from marquee.infra.exceptions import ConfigurationFetchError, ContractError
from marquee.providers import (
    FileConfigurationProvider,
    InlineConfigurationProvider,
    PublisherConfigurationProvider,
    is_valid_configuration_id,
)

CONFIG_ID = "5f1e2d3c4b5a697887766554"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, status_code=200, payload=None, body_error=False):
        self.status_code = status_code
        self._payload = payload
        self._body_error = body_error

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._body_error:
            raise ValueError("Expecting value")
        return self._payload


class FakeSession:
    """Records requested URLs and returns a canned response (or raises)."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls: list[tuple[str, float]] = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.response


# ---------------------------------------------------------------------------
# File provider
# ---------------------------------------------------------------------------

class TestFileConfigurationProvider:
    def test_reads_json(self, tmp_path, document):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(document))

        assert FileConfigurationProvider(path).fetch("ignored") == document

    def test_reads_yaml(self, tmp_path, document):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(document))

        assert FileConfigurationProvider(path).fetch("ignored") == document

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationFetchError):
            FileConfigurationProvider(tmp_path / "absent.json").fetch("x")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{")

        with pytest.raises(ConfigurationFetchError):
            FileConfigurationProvider(path).fetch("x")

    def test_top_level_must_be_object(self, tmp_path):
        path = tmp_path / "list.yml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(ConfigurationFetchError):
            FileConfigurationProvider(path).fetch("x")


class TestInlineConfigurationProvider:
    def test_failure_injection(self, document):
        provider = InlineConfigurationProvider(document)
        assert provider.fetch("x") is document

        provider.fail_with = ConfigurationFetchError("offline")
        with pytest.raises(ConfigurationFetchError):
            provider.fetch("x")
        assert provider.fetch_count == 2


# ---------------------------------------------------------------------------
# Publisher provider
# ---------------------------------------------------------------------------

class TestPublisherConfigurationProvider:
    def test_configuration_id_format(self):
        assert is_valid_configuration_id(CONFIG_ID)
        assert not is_valid_configuration_id("")
        assert not is_valid_configuration_id("not-hex-at-all-000000000")
        assert not is_valid_configuration_id(CONFIG_ID + "0")

    def test_fetches_id_json(self, document):
        session = FakeSession(FakeResponse(payload=document))
        provider = PublisherConfigurationProvider("https://pub.example.com/screen", 7.0, session=session)

        assert provider.fetch(CONFIG_ID) == document
        assert session.calls == [(f"https://pub.example.com/screen/{CONFIG_ID}.json", 7.0)]

    def test_invalid_id_is_not_requested(self):
        session = FakeSession(FakeResponse(payload={}))
        provider = PublisherConfigurationProvider("https://pub/", session=session)

        with pytest.raises(ConfigurationFetchError):
            provider.fetch("abc")
        assert session.calls == []

    def test_transport_error(self):
        session = FakeSession(error=requests.ConnectionError("refused"))
        provider = PublisherConfigurationProvider("https://pub/", session=session)

        with pytest.raises(ConfigurationFetchError):
            provider.fetch(CONFIG_ID)

    def test_http_error_status(self):
        session = FakeSession(FakeResponse(status_code=503))
        provider = PublisherConfigurationProvider("https://pub/", session=session)

        with pytest.raises(ConfigurationFetchError):
            provider.fetch(CONFIG_ID)

    def test_body_not_json(self):
        session = FakeSession(FakeResponse(body_error=True))
        provider = PublisherConfigurationProvider("https://pub/", session=session)

        with pytest.raises(ConfigurationFetchError):
            provider.fetch(CONFIG_ID)

    def test_body_not_object(self):
        session = FakeSession(FakeResponse(payload=[1, 2]))
        provider = PublisherConfigurationProvider("https://pub/", session=session)

        with pytest.raises(ConfigurationFetchError):
            provider.fetch(CONFIG_ID)

    def test_publisher_url_required(self):
        with pytest.raises(ContractError):
            PublisherConfigurationProvider("")
