"""Tool-call parser — decides whether a buffered model response is a tool call.

The whole response must be a single JSON object of the form
``{"tool": "<name>", "params": {...}}``; a single enclosing markdown code
fence is tolerated. Anything else is plain text. Malformed output is the
common case, so this never raises.
"""

from __future__ import annotations

import logging
import re

from pydantic import ValidationError

from aiengine.schemas import ToolCall
from aiengine.tools import list_tools

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*\s*\n(.*)\n\s*```$", re.DOTALL)


def _unfence(text: str) -> str:
    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text


def parse_tool_call(text: str) -> ToolCall | None:
    """Return the ToolCall encoded in ``text``, or None if it is not one."""
    if not isinstance(text, str):
        return None
    candidate = _unfence(text.strip())
    if not candidate.startswith("{"):
        return None

    try:
        call = ToolCall.model_validate_json(candidate)
    except (ValidationError, ValueError, RecursionError):
        logger.debug("Model output looked like JSON but is not a valid tool call")
        return None

    if call.tool not in list_tools():
        logger.warning(f"Tool '{call.tool}' is known to the schema but not registered")
        return None

    logger.info(f"Detected tool call: {call.tool}")
    return call
