"""Presentation components for the N-body frame driver."""

from .presenter import ImagePresenter
from .text import TextRenderer

__all__ = ["ImagePresenter", "TextRenderer"]
