"""Response parser: turns the job's free-form output into a StructuredResult.

The service usually answers with a JSON object, but it may wrap it in
```` ```json ```` fences or a sentence of prose.  Wrapping is stripped; the
payload itself is not repaired beyond trailing commas.  Anything that still
fails to decode or validate is a :class:`MalformedResponseError`.  It is not
retried: the same instructions against the same document rarely decode
better the second time.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from pydantic import ValidationError

from visitwise.exceptions import MalformedResponseError
from visitwise.models import StructuredResult

log = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[a-zA-Z]*\s*\n?(.*?)```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
# Citation markers the file-search tool leaves in text, e.g. 【4:0†source】
_CITATION_RE = re.compile(r"【[^】]*】")


def parse(raw_output: str) -> StructuredResult:
    """Decode ``raw_output`` into a validated :class:`StructuredResult`.

    Raises:
        MalformedResponseError: No JSON object could be decoded, or it does
            not match the expected structure.
    """
    payload = extract_payload(raw_output)
    if payload is None:
        log.error(
            "Failed to decode analysis output",
            extra={"response_length": len(raw_output or ""), "response_preview": (raw_output or "")[:200]},
        )
        raise MalformedResponseError("Analysis output is not a JSON object", raw_response=raw_output or "")

    try:
        return StructuredResult.model_validate(payload)
    except ValidationError as e:
        log.error("Analysis output failed validation: %d error(s)", e.error_count())
        raise MalformedResponseError(
            f"Analysis output does not match the expected structure: {e.error_count()} error(s)",
            raw_response=raw_output,
        ) from e


def extract_payload(content: str) -> Optional[dict[str, Any]]:
    """Find the JSON object in ``content``, or None."""
    if not content or not content.strip():
        return None
    content = _CITATION_RE.sub("", content)

    # Strategy 1: fenced block(s)
    for match in _FENCE_RE.finditer(content):
        result = _try_parse(match.group(1))
        if result is not None:
            return result

    # Strategy 2: the whole text
    result = _try_parse(content)
    if result is not None:
        return result

    # Strategy 3: first balanced { ... } in surrounding prose
    candidate = _first_object(content)
    if candidate is not None:
        return _try_parse(candidate)
    return None


def _try_parse(text: str) -> Optional[dict[str, Any]]:
    text = text.strip()
    if not text:
        return None
    for attempt in (text, _TRAILING_COMMA_RE.sub(r"\1", text)):
        try:
            value = json.loads(attempt)
        except json.JSONDecodeError:
            continue
        return value if isinstance(value, dict) else None
    return None


def _first_object(content: str) -> Optional[str]:
    start = content.find("{")
    if start == -1:
        return None
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(content)):
        ch = content[i]
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return content[start:i + 1]
    return None
