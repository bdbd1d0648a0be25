"""Lenient JSON extraction for LLM answers."""

from __future__ import annotations

import json
import re

from brandscore.core.errors import MalformedResponse

_FENCE_OPEN = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"```\s*$")
_OBJECT = re.compile(r"\{[\s\S]*\}")


def parse_json_object(raw: str, vendor: str = "") -> dict:
    """Return the JSON object in an LLM answer.

    Markdown fences are stripped first; failing a direct parse, the outermost
    {...} span is tried. Raises MalformedResponse when no object can be read.
    """
    cleaned = _FENCE_OPEN.sub("", raw or "").strip()
    cleaned = _FENCE_CLOSE.sub("", cleaned).strip()

    try:
        data = json.loads(cleaned)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    m = _OBJECT.search(cleaned)
    if m:
        try:
            data = json.loads(m.group(0))
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    raise MalformedResponse("No JSON object in model answer", vendor=vendor, raw=raw or "")


_ARRAY = re.compile(r"\[[\s\S]*\]")


def parse_json_array(raw: str, vendor: str = "") -> list:
    """Return the JSON array in an LLM answer; same leniency as parse_json_object."""
    cleaned = _FENCE_OPEN.sub("", raw or "").strip()
    cleaned = _FENCE_CLOSE.sub("", cleaned).strip()

    try:
        data = json.loads(cleaned)
        if isinstance(data, list):
            return data
    except json.JSONDecodeError:
        pass

    m = _ARRAY.search(cleaned)
    if m:
        try:
            data = json.loads(m.group(0))
            if isinstance(data, list):
                return data
        except json.JSONDecodeError:
            pass

    raise MalformedResponse("No JSON array in model answer", vendor=vendor, raw=raw or "")
