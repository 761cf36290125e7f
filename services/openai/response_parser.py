"""Helpers to parse Responses API outputs."""

import json
from typing import Any, Dict


def extract_text(response: Any) -> str:
    """Return the concatenated output text of a Responses API result."""
    text = getattr(response, "output_text", None)
    if text:
        return text
    parts = []
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for content in getattr(item, "content", None) or []:
            if getattr(content, "type", None) == "output_text":
                parts.append(getattr(content, "text", "") or "")
    return "".join(parts)


def parse_function_call(response: Any, *, tool_name: str) -> Dict[str, Any]:
    """Extract the decoded function call arguments for the specified tool name."""
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) == "function_call" and getattr(item, "name", None) == tool_name:
            return json.loads(getattr(item, "arguments", "{}") or "{}")
    raise RuntimeError(f"No function_call output for '{tool_name}' found in Responses API output.")
