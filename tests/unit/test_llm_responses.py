"""Unit tests for prompt construction and LLM response decoding."""

from __future__ import annotations

import json

import pytest

from bookscene.errors import ProviderError
from bookscene.llm.prompts import SCENE_SCHEMA, PromptLibrary
from bookscene.llm.service import parse_metadata_response, parse_scene_response
from bookscene.text.sampling import sample_words, truncate_words


def test_scene_response_decodes_and_clamps_scores() -> None:
    """Scores are clamped and float section numbers are normalized."""

    raw = json.dumps(
        {
            "scenes": [
                {
                    "section_number": 1,
                    "summary": "  The   ship departs. ",
                    "importance_score": 1.7,
                    "scene_type": "action",
                    "image_prompt": "Ship at dawn",
                    "characters": ["Ahab", " ", 3, "Starbuck"],
                },
                {
                    "section_number": 2.0,
                    "summary": "Calm",
                    "importance_score": -0.2,
                    "scene_type": "exposition",
                    "image_prompt": "Flat sea",
                },
            ]
        }
    )

    scenes = parse_scene_response(raw)

    assert [scene.section_number for scene in scenes] == [1, 2]
    assert scenes[0].summary == "The ship departs."
    assert scenes[0].importance_score == 1.0
    assert scenes[0].characters == ("Ahab", "Starbuck")
    assert scenes[1].importance_score == 0.0
    assert scenes[1].characters == ()


def test_scene_response_drops_entries_without_integer_section() -> None:
    """Entries whose section number is missing or not integral are ignored."""

    raw = json.dumps(
        {
            "scenes": [
                {"section_number": "one", "summary": "x"},
                {"section_number": True, "summary": "x"},
                {"section_number": 1.5, "summary": "x"},
                {"section_number": 3, "summary": "kept", "importance_score": 0.4},
            ]
        }
    )

    scenes = parse_scene_response(raw)

    assert [(scene.section_number, scene.summary) for scene in scenes] == [(3, "kept")]


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ("not json", "not valid JSON"),
        ("[]", "JSON object"),
        ('{"items": []}', "`scenes` array"),
        ('{"scenes": []}', "no scenes"),
    ],
)
def test_malformed_scene_responses_are_provider_errors(raw: str, message: str) -> None:
    """Every malformed payload maps to a `malformed_response` provider error."""

    with pytest.raises(ProviderError, match=message) as error:
        parse_scene_response(raw)

    assert error.value.failure_kind == "malformed_response"


def test_metadata_response_normalizes_whitespace_and_ignores_non_strings() -> None:
    """Metadata fields are whitespace-normalized; wrong types become empty."""

    metadata = parse_metadata_response(
        '{"title": " Moby-Dick\\n", "author": 42, "description": "A  whale."}'
    )

    assert metadata.title == "Moby-Dick"
    assert metadata.author == ""
    assert metadata.description == "A whale."
    assert metadata.genre == ""


def test_chapter_context_lists_sections_in_order() -> None:
    """Each section is labelled so the model can return its number."""

    context = PromptLibrary().chapter_context(3, "Storm", [(1, "Rain."), (2, "Thunder.")])

    assert context == "Chapter 3: Storm\n\nSection 1:\nRain.\n\nSection 2:\nThunder.\n\n"


def test_chapter_context_is_truncated_to_word_budget() -> None:
    """Long chapters are cut at the word budget with an ellipsis."""

    context = PromptLibrary().chapter_context(1, "Long", [(1, "word " * 50)], max_words=10)

    assert context.endswith("...")
    assert len(context.split()) == 10


def test_scene_prompt_embeds_context_and_schema_requires_section_numbers() -> None:
    """The scene prompt carries the context and the schema requires section numbers."""

    prompts = PromptLibrary()

    prompt = prompts.scene_prompt("Chapter 1: X")

    assert "Chapter 1: X" in prompt
    assert "one scene per section" in prompt
    assert "section_number" in SCENE_SCHEMA["properties"]["scenes"]["items"]["required"]


def test_sample_words_takes_leading_texts_up_to_budget() -> None:
    """Sampling concatenates whole texts and cuts the one crossing the budget."""

    sample = sample_words(["one two", "three four five", "six"], max_words=4)

    assert sample == "one two\n\nthree four"
    assert sample_words([], max_words=10) == ""


def test_truncate_words_leaves_short_text_untouched() -> None:
    """Text within budget is returned verbatim."""

    assert truncate_words("a  b", 2) == "a  b"
    assert truncate_words("a b c", 2) == "a b..."
