"""Offline image service returning deterministic placeholder references."""

from __future__ import annotations

import hashlib


class DummyImageService:
    """Image service that never touches the network.

    The same prompt always maps to the same `dummy://` reference.
    """

    def __init__(self) -> None:
        self.prompts: list[str] = []

    def generate_image(self, prompt: str) -> str:
        self.prompts.append(prompt)
        digest = hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:16]
        return f"dummy://image/{digest}"
