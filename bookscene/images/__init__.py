"""Image generation providers.

This package defines the `ImageService` contract with a Hugging Face
diffusers client and an offline placeholder implementation.
"""

from __future__ import annotations

from typing import Protocol

from .dummy import DummyImageService
from .huggingface_client import HuggingFaceImageClient


class ImageService(Protocol):
    """Interface for text-to-image providers."""

    def generate_image(self, prompt: str) -> str:
        """Return a base64 image payload or an image reference string."""


__all__ = ["DummyImageService", "HuggingFaceImageClient", "ImageService"]
