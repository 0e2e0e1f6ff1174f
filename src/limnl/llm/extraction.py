"""Recover a JSON object or array from free-form model output.

Models wrap JSON in markdown fences, prefix it with prose, or add a
closing remark. `extract_json` finds the JSON substring without parsing
it; decoding is left to `limnl.llm.decoders`.
"""

from typing import Optional

from limnl.llm.exceptions import ExtractionError
from limnl.utils.logging import get_logger


logger = get_logger(__name__)

NO_JSON_FOUND = "No JSON object or array found in response"
NO_MATCHING_CLOSE = "No matching closing brace/bracket found in JSON"

_CLOSERS = {"{": "}", "[": "]"}


def _fenced_block(text: str, fence: str) -> Optional[str]:
    """Return the trimmed text between `fence` and the next closing ```."""
    start = text.find(fence)
    if start == -1:
        return None
    body_start = start + len(fence)
    end = text.find("```", body_start)
    if end == -1:
        return None
    return text[body_start:end].strip()


def _scan_balanced(text: str, start: int) -> Optional[int]:
    """
    Find the index of the delimiter that closes the one at `start`.

    Delimiters inside string literals are ignored. A backslash inside a
    string escapes exactly the next character, so `\\"` never ends the
    string.

    Args:
        text: Text to scan
        start: Index of the opening `{` or `[`

    Returns:
        Index of the matching closing delimiter, or None if unbalanced
    """
    opener = text[start]
    closer = _CLOSERS[opener]
    depth = 1
    in_string = False
    escape_next = False

    for index in range(start + 1, len(text)):
        char = text[index]

        if escape_next:
            escape_next = False
            continue

        if in_string:
            if char == "\\":
                escape_next = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return index

    return None


def extract_json(text: str) -> str:
    """
    Extract the JSON substring from a model completion.

    Attempts, first success wins:
    1. A ```json fenced block whose body starts with `{` or `[`
    2. Any ``` fenced block whose body starts with `{` or `[` and is
       longer than two characters
    3. A balanced scan from the first `{` or `[` in the raw text,
       whichever comes first

    Args:
        text: Raw completion text

    Returns:
        The JSON object or array text

    Raises:
        ExtractionError: If no opening delimiter exists, or the first one
            is never closed

    Example:
        >>> extract_json('Here you go:\\n{"a": "use { carefully }", "b": [1,2]}\\nThanks!')
        '{"a": "use { carefully }", "b": [1,2]}'
    """
    tagged = _fenced_block(text, "```json")
    if tagged is not None and tagged.startswith(("{", "[")):
        logger.debug("json_extracted", strategy="fenced", tagged=True, length=len(tagged))
        return tagged

    untagged = _fenced_block(text, "```")
    if untagged is not None and untagged.startswith(("{", "[")) and len(untagged) > 2:
        logger.debug("json_extracted", strategy="fenced", tagged=False, length=len(untagged))
        return untagged

    brace = text.find("{")
    bracket = text.find("[")
    candidates = [index for index in (brace, bracket) if index != -1]
    if not candidates:
        raise ExtractionError(NO_JSON_FOUND, strategy="raw-scan")

    start = min(candidates)
    end = _scan_balanced(text, start)
    if end is None:
        raise ExtractionError(NO_MATCHING_CLOSE, strategy="raw-scan")

    extracted = text[start:end + 1]
    logger.debug("json_extracted", strategy="raw-scan", start=start, length=len(extracted))
    return extracted
