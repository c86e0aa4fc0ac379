"""Hands a layout's media URLs to the asset cache before playback starts."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol, runtime_checkable

from .layout_transformer import ActiveLayout

_logger = logging.getLogger(__name__)


@runtime_checkable
class AssetCache(Protocol):
    """Pre-warms media assets. Fetching and storage are the cache's business."""

    def warm(self, urls: Iterable[str]) -> None:
        ...


class NullAssetCache:
    """Asset cache that ignores every request."""

    def warm(self, urls: Iterable[str]) -> None:
        return None


def preload_layout_media(layout: ActiveLayout, asset_cache: AssetCache | None) -> list[str]:
    """Pass the layout's URLs to the cache; returns the URLs requested.

    Cache failures are logged; playback never waits on them.
    """
    urls = layout.media_urls()
    if asset_cache is None or not urls:
        return urls
    try:
        asset_cache.warm(urls)
    except Exception as exc:
        _logger.warning("Asset pre-warm failed for layout %s: %s", layout.id, exc)
    else:
        _logger.debug("Pre-warming %d assets for layout %s", len(urls), layout.id)
    return urls
