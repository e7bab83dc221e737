"""Recover structured assessments from free-form model replies."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Tuple
import json
import logging
import re

from milton.schema import Assessment

logger = logging.getLogger(__name__)

RAW_SAMPLE_CHARS = 200
REQUIRED_KEYS = ("questionClarity", "finalVerdict")

_FENCE_RE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\r?\n?([\s\S]*?)```")
_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


@dataclass(frozen=True)
class ParseError:
    """A reply that could not be turned into an assessment."""
    raw_sample: str
    message: str


def _decode(text: str) -> Tuple[Dict[str, Any] | None, str]:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError) as exc:
        return None, str(exc)
    if not isinstance(value, dict):
        return None, f"expected a JSON object, got {type(value).__name__}"
    return value, ""


def _fenced_blocks(text: str) -> Iterator[str]:
    for match in _FENCE_RE.finditer(text):
        block = match.group(1).strip()
        if block:
            yield block


def _balanced_spans(text: str) -> Iterator[str]:
    """Yield every top-level ``{...}`` span, honouring quoted strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        quote = ""
        escaped = False
        end = -1
        for pos in range(start, len(text)):
            char = text[pos]
            if quote:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == quote:
                    quote = ""
                continue
            if char in ('"', "'"):
                # An apostrophe inside prose is not a string delimiter.
                if char == "'" and pos > 0 and text[pos - 1].isalnum():
                    continue
                quote = char
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    end = pos
                    break
        if end == -1:
            # Unclosed brace, likely prose; an object may still start later.
            start = text.find("{", start + 1)
            continue
        yield text[start:end + 1]
        start = text.find("{", end + 1)


def _strip_line_comments(text: str) -> str:
    out = []
    quote = ""
    escaped = False
    pos = 0
    while pos < len(text):
        char = text[pos]
        if quote:
            out.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = ""
            pos += 1
            continue
        if char == '"' or (char == "'" and not (pos > 0 and text[pos - 1].isalnum())):
            quote = char
        elif char == "/" and text.startswith("//", pos):
            newline = text.find("\n", pos)
            if newline == -1:
                break
            pos = newline
            continue
        out.append(char)
        pos += 1
    return "".join(out)


def _normalize_quotes(text: str) -> str:
    """Rewrite single-quoted strings as double-quoted JSON strings."""
    out = []
    quote = ""
    escaped = False
    for char in text:
        if quote == '"':
            out.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                quote = ""
            continue
        if quote == "'":
            if escaped:
                out.append("'" if char == "'" else "\\" + char)
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == "'":
                out.append('"')
                quote = ""
            elif char == '"':
                out.append('\\"')
            else:
                out.append(char)
            continue
        if char == '"':
            quote = '"'
            out.append(char)
        elif char == "'":
            quote = "'"
            out.append('"')
        else:
            out.append(char)
    return "".join(out)


def repair_json(text: str) -> str:
    repaired = _strip_line_comments(text)
    repaired = _WHITESPACE_RE.sub(" ", repaired).strip()
    return _TRAILING_COMMA_RE.sub(r"\1", repaired)


def _has_required_keys(span: str) -> bool:
    return all(key in span for key in REQUIRED_KEYS)


def parse_assessment(raw_text: str | None) -> Assessment | ParseError:
    """Parse a model reply into an ``Assessment``.

    Tries the whole text as JSON, then fenced code blocks, then the first
    balanced object that mentions the expected top-level keys (with light
    repair). Returns ``ParseError`` instead of raising.
    """
    text = (raw_text or "").strip()
    if not text:
        return ParseError(raw_sample="", message="empty response")

    payload, error = _decode(text)
    if payload is not None:
        return Assessment.from_dict(payload)

    for block in _fenced_blocks(text):
        payload, block_error = _decode(block)
        if payload is not None:
            return Assessment.from_dict(payload)
        error = block_error

    for span in _balanced_spans(text):
        if not _has_required_keys(span):
            continue
        repaired = repair_json(span)
        for candidate in (span, repaired, _normalize_quotes(repaired)):
            payload, span_error = _decode(candidate)
            if payload is not None:
                return Assessment.from_dict(payload)
            error = span_error
        break

    logger.debug(f"Unparseable model reply: {error}")
    return ParseError(raw_sample=text[:RAW_SAMPLE_CHARS], message=error)
