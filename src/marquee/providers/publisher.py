"""
HTTP configuration provider.

Fetches ``<publisher_url><configuration_id>.json`` from the publishing
service with a small retry policy.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from marquee.infra.exceptions import ConfigurationFetchError, ContractError

_logger = logging.getLogger(__name__)

_CONFIGURATION_ID = re.compile(r"^[0-9a-fA-F]{24}$")


def is_valid_configuration_id(configuration_id: str) -> bool:
    """Publisher ids are 24 hexadecimal characters."""
    return bool(configuration_id) and bool(_CONFIGURATION_ID.match(configuration_id))


class PublisherConfigurationProvider:
    """Configuration provider backed by the publishing web service."""

    def __init__(
        self,
        publisher_url: str,
        timeout_s: float = 15.0,
        session: requests.Session | None = None,
    ):
        if not publisher_url:
            raise ContractError("publisher_url is required")
        # Be resilient to a missing trailing slash
        self.publisher_url = publisher_url.strip()
        if not self.publisher_url.endswith("/"):
            self.publisher_url += "/"
        self.timeout_s = timeout_s
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry logic."""
        session = requests.Session()

        retry_strategy = Retry(
            total=2,
            backoff_factor=0.5,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({"Accept": "application/json"})
        return session

    def url_for(self, configuration_id: str) -> str:
        return f"{self.publisher_url}{configuration_id}.json"

    def fetch(self, configuration_id: str) -> dict[str, Any]:
        """
        Fetch the configuration document.

        Raises:
            ConfigurationFetchError: On an invalid id, transport error,
                non-2xx status, or a body that is not a JSON object.
        """
        if not is_valid_configuration_id(configuration_id):
            raise ConfigurationFetchError(
                f"Invalid configuration id {configuration_id!r}: expected 24 hex characters"
            )

        url = self.url_for(configuration_id)
        _logger.debug("Fetching configuration from %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout_s)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ConfigurationFetchError(f"Failed to fetch {url}: {e}") from e

        try:
            document = response.json()
        except ValueError as e:
            raise ConfigurationFetchError(f"Configuration at {url} is not valid JSON") from e

        if not isinstance(document, dict):
            raise ConfigurationFetchError(f"Configuration at {url} is not a JSON object")
        return document
