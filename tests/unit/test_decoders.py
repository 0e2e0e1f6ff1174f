"""Unit tests for typed decoding of LLM results."""

import json

import pytest

from limnl.llm.decoders import (
    decode_card_commentaries,
    decode_completion,
    decode_creative_prompts,
    decode_dream_analysis,
    decode_mind_dump_analysis,
)
from limnl.llm.exceptions import DecodeError, ExtractionError
from limnl.models.results import DreamAnalysisResult


DREAM_JSON = {
    "themes_patterns": "Water and thresholds",
    "emotional_analysis": "Calm curiosity",
    "narrative_summary": "You crossed a flooded bridge.",
    "symbol_cards": [
        {"card_name": "The Ship", "relevance_note": "A journey over water"},
    ],
}


class TestDreamAnalysisDecoding:
    """Test decoding of dream analysis results."""

    def test_valid_dream_analysis(self):
        """Test all four fields decode."""
        result = decode_dream_analysis(json.dumps(DREAM_JSON))

        assert result.themes_patterns == "Water and thresholds"
        assert result.symbol_cards[0].card_name == "The Ship"

    def test_missing_narrative_summary(self):
        """Test a missing required field fails the whole decode."""
        data = dict(DREAM_JSON)
        del data["narrative_summary"]

        with pytest.raises(DecodeError) as exc_info:
            decode_dream_analysis(json.dumps(data))

        message = str(exc_info.value)
        assert message.startswith("Failed to parse DreamAnalysisResult")
        assert "narrative_summary" in message

    def test_wrong_type(self):
        """Test a mis-typed field is rejected."""
        data = dict(DREAM_JSON, symbol_cards="The Ship")

        with pytest.raises(DecodeError):
            decode_dream_analysis(json.dumps(data))

    def test_invalid_json_text(self):
        """Test syntactically invalid JSON is a decode error."""
        with pytest.raises(DecodeError):
            decode_dream_analysis('{"themes_patterns": ')

    def test_decode_completion_extracts_first(self):
        """Test decode_completion handles fenced output end to end."""
        completion = "Here is the analysis:\n```json\n" + json.dumps(DREAM_JSON) + "\n```"

        result = decode_completion(completion, DreamAnalysisResult)

        assert result.narrative_summary == "You crossed a flooded bridge."

    def test_decode_completion_without_json(self):
        """Test decode_completion surfaces extraction errors unchanged."""
        with pytest.raises(ExtractionError):
            decode_completion("no json here", DreamAnalysisResult)


class TestCreativePromptsDecoding:
    """Test decoding of creative prompt results."""

    def test_three_of_each(self):
        """Test exactly three prompts per category decode."""
        data = {
            "image_prompts": ["a", "b", "c"],
            "music_prompts": ["d", "e", "f"],
            "story_prompts": ["g", "h", "i"],
        }

        result = decode_creative_prompts(json.dumps(data))

        assert result.music_prompts == ["d", "e", "f"]

    def test_wrong_count_rejected(self):
        """Test a category with two prompts fails to decode."""
        data = {
            "image_prompts": ["a", "b"],
            "music_prompts": ["d", "e", "f"],
            "story_prompts": ["g", "h", "i"],
        }

        with pytest.raises(DecodeError):
            decode_creative_prompts(json.dumps(data))


class TestMindDumpAnalysisDecoding:
    """Test decoding of mind dump analysis results."""

    def test_optional_fields_default_to_empty(self):
        """Test mood_tags and blocker_patterns may be omitted."""
        data = {
            "relevant_cards": [{"card_name": "The Key", "relevance_note": "A way out"}],
            "tasks": [{"title": "Write the email"}],
        }

        result = decode_mind_dump_analysis(json.dumps(data))

        assert result.mood_tags == []
        assert result.blocker_patterns == []
        assert result.tasks[0].description is None

    def test_tag_lists_are_truncated(self):
        """Test over-long tag lists are cut while every card is kept."""
        data = {
            "relevant_cards": [
                {"card_name": "The Key", "relevance_note": "1"},
                {"card_name": "The Sun", "relevance_note": "2"},
                {"card_name": "The Moon", "relevance_note": "3"},
            ],
            "tasks": [],
            "mood_tags": ["anxious", "hopeful", "tired", "calm"],
            "blocker_patterns": ["mental_filtering", "sunk_cost_fallacy", "avoidance_pattern", "verbal_obstacle"],
        }

        result = decode_mind_dump_analysis(json.dumps(data))

        assert [card.card_name for card in result.relevant_cards] == ["The Key", "The Sun", "The Moon"]
        assert result.mood_tags == ["anxious", "hopeful", "tired"]
        assert len(result.blocker_patterns) == 3

    def test_missing_tasks(self):
        """Test tasks is required."""
        data = {"relevant_cards": []}

        with pytest.raises(DecodeError):
            decode_mind_dump_analysis(json.dumps(data))


class TestCardCommentaries:
    """Test decoding of multi-card commentary maps."""

    def test_id_keyed_map(self):
        """Test card ID keys map to commentary strings."""
        result = decode_card_commentaries('{"1": "Move forward", "22": "Choose a path"}')

        assert result == {"1": "Move forward", "22": "Choose a path"}

    def test_non_string_values_rejected(self):
        """Test commentary values must be strings."""
        with pytest.raises(DecodeError):
            decode_card_commentaries('{"1": ["not", "a", "string"]}')

    def test_array_rejected(self):
        """Test a top-level array is not a commentary map."""
        with pytest.raises(DecodeError):
            decode_card_commentaries('["Move forward"]')
