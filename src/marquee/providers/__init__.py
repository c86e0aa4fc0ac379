"""Configuration providers: where configuration documents come from."""

from __future__ import annotations

from typing import Any, Protocol

from .file import FileConfigurationProvider, InlineConfigurationProvider, load_document
from .publisher import PublisherConfigurationProvider, is_valid_configuration_id


class ConfigurationProvider(Protocol):
    """Protocol for fetching configuration documents."""

    def fetch(self, configuration_id: str) -> dict[str, Any]:
        """
        Fetch the raw configuration document.

        Raises:
            ConfigurationFetchError: If the document cannot be delivered.
        """
        ...


__all__ = [
    "ConfigurationProvider",
    "FileConfigurationProvider",
    "InlineConfigurationProvider",
    "PublisherConfigurationProvider",
    "is_valid_configuration_id",
    "load_document",
]
