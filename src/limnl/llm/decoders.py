"""Typed decoding of extracted JSON into result models."""

from typing import Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from limnl.llm.exceptions import DecodeError
from limnl.llm.extraction import extract_json
from limnl.models.results import (
    CreativePromptsResult,
    DreamAnalysisResult,
    MindDumpAnalysisResult,
)
from limnl.utils.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


def decode(json_text: str, model: Type[T]) -> T:
    """
    Validate a JSON string against a result model.

    Missing or mis-typed required fields fail the whole decode; no
    partial result is returned.

    Args:
        json_text: JSON object text
        model: Result model class

    Returns:
        Validated model instance

    Raises:
        DecodeError: With pydantic's parse message appended
    """
    try:
        return model.model_validate_json(json_text)
    except ValidationError as e:
        logger.error(
            "llm_result_decode_failed",
            model=model.__name__,
            error_count=e.error_count(),
            json_text=json_text,
        )
        raise DecodeError(f"Failed to parse {model.__name__}: {e}") from e


def decode_completion(completion: str, model: Type[T]) -> T:
    """Extract the JSON from a raw completion and decode it."""
    return decode(extract_json(completion), model)


def decode_dream_analysis(json_text: str) -> DreamAnalysisResult:
    return decode(json_text, DreamAnalysisResult)


def decode_creative_prompts(json_text: str) -> CreativePromptsResult:
    return decode(json_text, CreativePromptsResult)


def decode_mind_dump_analysis(json_text: str) -> MindDumpAnalysisResult:
    return decode(json_text, MindDumpAnalysisResult)


_COMMENTARY_MAP = TypeAdapter(dict[str, str])


def decode_card_commentaries(json_text: str) -> dict[str, str]:
    """Decode a `{"<card id>": "<commentary>"}` object."""
    try:
        return _COMMENTARY_MAP.validate_json(json_text)
    except ValidationError as e:
        logger.error("llm_result_decode_failed", model="card_commentaries", json_text=json_text)
        raise DecodeError(f"Failed to parse card commentaries: {e}") from e
