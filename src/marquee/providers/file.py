"""
File-based configuration provider.

Reads a configuration document from a JSON or YAML file. Used by the CLI
and for running a player against a locally exported configuration.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from marquee.infra.exceptions import ConfigurationFetchError

_logger = logging.getLogger(__name__)

_YAML_SUFFIXES = (".yaml", ".yml")


def load_document(path: Path | str) -> dict[str, Any]:
    """
    Load a configuration document from disk.

    Raises:
        ConfigurationFetchError: If the file is missing, does not parse, or
            does not hold a mapping at the top level.
    """
    file_path = Path(path)
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            if file_path.suffix.lower() in _YAML_SUFFIXES:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except OSError as e:
        raise ConfigurationFetchError(f"Cannot read {file_path}: {e}") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationFetchError(f"Cannot parse {file_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationFetchError(f"{file_path} does not contain a configuration object")
    return data


class FileConfigurationProvider:
    """
    ConfigurationProvider reading one document file.

    The file is re-read on every fetch, so editing it while the player runs
    is picked up on the next poll. The configuration id is ignored.
    """

    def __init__(self, path: Path | str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def fetch(self, configuration_id: str) -> dict[str, Any]:
        _logger.debug("Reading configuration %s from %s", configuration_id, self._path)
        return load_document(self._path)


class InlineConfigurationProvider:
    """
    In-memory configuration provider.

    Useful for testing or when documents are constructed programmatically.
    ``fail_with`` makes the next fetches raise, to simulate an outage.
    """

    def __init__(self, document: dict[str, Any] | None = None):
        self.document = document
        self.fail_with: Exception | None = None
        self.fetch_count = 0

    def fetch(self, configuration_id: str) -> dict[str, Any]:
        self.fetch_count += 1
        if self.fail_with is not None:
            raise self.fail_with
        if self.document is None:
            raise ConfigurationFetchError(f"No document for {configuration_id!r}")
        return self.document
