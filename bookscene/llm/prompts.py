"""Prompt and response-schema library for LLM enhancement steps.

Responsibilities:
- Centralize prompt construction for metadata inference and scene generation.
- Expose the JSON schemas the providers constrain their output to.
- Keep context building deterministic and bounded by word budgets.
"""

from __future__ import annotations

from typing import Any, Iterable

from ..text.sampling import truncate_words

METADATA_SAMPLE_WORDS = 2000
CHAPTER_CONTEXT_WORDS = 8000

METADATA_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "The title of the book"},
        "author": {"type": "string", "description": "The author's name"},
        "description": {
            "type": "string",
            "description": "A brief description or summary of the book (2-3 sentences)",
        },
        "genre": {"type": "string", "description": "The primary genre of the book"},
    },
    "required": ["title", "author", "description"],
}

SCENE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "scenes": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "section_number": {
                        "type": "integer",
                        "description": "The section number this scene belongs to",
                    },
                    "summary": {
                        "type": "string",
                        "description": "A 2-3 sentence summary of what happens in this scene",
                    },
                    "importance_score": {
                        "type": "number",
                        "description": "How important this scene is to the story (0.0 to 1.0)",
                    },
                    "scene_type": {
                        "type": "string",
                        "description": "Type of scene: action, dialogue, exposition, climax, resolution",
                    },
                    "image_prompt": {
                        "type": "string",
                        "description": (
                            "A detailed visual prompt for image generation, describing the "
                            "scene, characters, setting, mood, and style"
                        ),
                    },
                    "characters": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "List of character names present in this scene",
                    },
                    "location": {"type": "string", "description": "Where the scene takes place"},
                    "mood": {
                        "type": "string",
                        "description": "The emotional tone: tense, peaceful, joyful, dark, mysterious, etc.",
                    },
                },
                "required": [
                    "section_number",
                    "summary",
                    "importance_score",
                    "scene_type",
                    "image_prompt",
                ],
            },
        }
    },
    "required": ["scenes"],
}


class PromptLibrary:
    """Build prompt strings for supported LLM tasks."""

    def metadata_system_prompt(self) -> str:
        """Return the literary-analyst system prompt for metadata inference."""

        return (
            "You are a literary analyst. Analyze the provided book excerpt.\n"
            "Extract the Title, Author, and a short Description (2-3 sentences).\n"
            "If the title or author cannot be determined from the text, provide your "
            "best inference.\n"
            "Return strictly a JSON object with the specified fields."
        )

    def metadata_prompt(self, sample_text: str) -> str:
        return f"Analyze this book excerpt and extract metadata:\n\n{sample_text}"

    def scene_system_prompt(self) -> str:
        """Return the visual-storytelling system prompt for scene generation."""

        return (
            "You are a narrative analyst for visual storytelling.\n"
            "Your task is to analyze a chapter and identify key scenes for visual "
            "representation.\n\n"
            "For each section, create a scene with:\n"
            "1. A concise summary of the action/events\n"
            "2. An importance score (0.0-1.0) - higher for pivotal moments\n"
            "3. Scene type classification\n"
            "4. A detailed image prompt that captures the visual essence\n\n"
            "Image prompts should:\n"
            "- Describe the scene composition, characters, setting, and mood\n"
            "- Be specific about visual details (lighting, colors, atmosphere)\n"
            "- Maintain consistency with the story's tone\n"
            "- Be suitable for AI image generation (avoid text/dialogue in images)\n\n"
            "Return a JSON object with an array of scenes."
        )

    def scene_prompt(self, chapter_context: str) -> str:
        return (
            "Analyze this chapter and generate scenes for visual storytelling:\n\n"
            f"{chapter_context}\n\n"
            "Create one scene per section. Focus on the most visually compelling moments."
        )

    def chapter_context(
        self,
        chapter_number: int,
        chapter_title: str,
        sections: Iterable[tuple[int, str]],
        max_words: int = CHAPTER_CONTEXT_WORDS,
    ) -> str:
        """Build the chapter context block, truncated to `max_words` words."""

        parts = [f"Chapter {chapter_number}: {chapter_title}\n\n"]
        for number, text in sections:
            parts.append(f"Section {number}:\n{text}\n\n")
        return truncate_words("".join(parts), max_words)
