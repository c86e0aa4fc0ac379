"""Presentation layer interfaces and the headless implementation."""

from .base import ImageElement, Surface, VideoElement
from .headless import HeadlessImage, HeadlessSurface, HeadlessVideo

__all__ = [
    "HeadlessImage",
    "HeadlessSurface",
    "HeadlessVideo",
    "ImageElement",
    "Surface",
    "VideoElement",
]
