"""LLM service contract and response decoding.

Responsibilities:
- Define the `LLMService` protocol every provider client satisfies.
- Decode metadata and scene JSON payloads into typed records, rejecting
  payloads that do not match the requested schema.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

from ..errors import ProviderError
from ..models.datatypes import GeneratedScene, InferredMetadata


class LLMService(Protocol):
    """Interface for schema-constrained JSON generation."""

    def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> str:
        """Return raw JSON text produced for the prompts."""


def _load_object(raw: str, what: str) -> dict[str, Any]:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProviderError(
            f"LLM {what} response is not valid JSON: {exc.msg}",
            failure_kind="malformed_response",
        ) from exc
    if not isinstance(payload, dict):
        raise ProviderError(
            f"LLM {what} response must be a JSON object.",
            failure_kind="malformed_response",
        )
    return payload


def _text(value: object) -> str:
    return " ".join(value.split()) if isinstance(value, str) else ""


def parse_metadata_response(raw: str) -> InferredMetadata:
    """Decode a metadata inference payload."""

    payload = _load_object(raw, "metadata")
    return InferredMetadata(
        title=_text(payload.get("title")),
        author=_text(payload.get("author")),
        description=_text(payload.get("description")),
        genre=_text(payload.get("genre")),
    )


def parse_scene_response(raw: str) -> tuple[GeneratedScene, ...]:
    """Decode a scene generation payload.

    Scenes without an integer `section_number` are dropped; importance scores
    are clamped to `[0.0, 1.0]`.

    Raises:
        ProviderError: The payload is malformed or contains no scenes.
    """

    payload = _load_object(raw, "scene")
    raw_scenes = payload.get("scenes")
    if not isinstance(raw_scenes, list):
        raise ProviderError(
            "LLM scene response is missing the `scenes` array.",
            failure_kind="malformed_response",
        )

    scenes: list[GeneratedScene] = []
    for item in raw_scenes:
        if not isinstance(item, dict):
            continue
        section_number = item.get("section_number")
        if isinstance(section_number, float) and section_number.is_integer():
            section_number = int(section_number)
        if not isinstance(section_number, int) or isinstance(section_number, bool):
            continue
        score = item.get("importance_score")
        importance = float(score) if isinstance(score, int | float) else 0.0
        characters = item.get("characters")
        scenes.append(
            GeneratedScene(
                section_number=section_number,
                summary=_text(item.get("summary")),
                importance_score=min(1.0, max(0.0, importance)),
                scene_type=_text(item.get("scene_type")),
                image_prompt=_text(item.get("image_prompt")),
                characters=tuple(
                    name.strip()
                    for name in characters
                    if isinstance(name, str) and name.strip()
                )
                if isinstance(characters, list)
                else (),
                location=_text(item.get("location")),
                mood=_text(item.get("mood")),
            )
        )

    if not scenes:
        raise ProviderError("LLM returned no scenes.", failure_kind="malformed_response")
    return tuple(scenes)
