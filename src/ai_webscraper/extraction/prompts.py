"""Prompt construction for schema-driven extraction.

Both provider clients send the same user prompt: optional caller
instructions, a JSON-like description of the schema, and the page content
truncated to the provider's limit.  OpenAI receives
:data:`EXTRACTION_SYSTEM_PROMPT` as a separate system message; Gemini gets it
prepended to the user prompt.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Optional

EXTRACTION_SYSTEM_PROMPT: str = (
    "You are a web data extraction assistant. Extract structured data from the "
    "page content you are given and return it as a single valid JSON object.\n"
    "\n"
    "Rules:\n"
    "1. Return only the fields named in the schema.\n"
    "2. Use null for any field that cannot be found on the page.\n"
    "3. Use an empty array for list fields with no items.\n"
    "4. Respect the declared type of every field.\n"
    "5. Return the JSON object only, with no explanation or markdown."
)

TRUNCATION_MARKER: str = "\n\n[Content truncated...]"

#: A boundary-aligned cut is only used when it keeps at least this share of
#: the allowed content.
_BOUNDARY_MIN_RATIO: float = 0.8


def describe_schema(schema: Mapping[str, str]) -> str:
    """Render *schema* as an indented JSON object of field name to type."""
    return json.dumps(dict(schema), indent=2, ensure_ascii=False)


def truncate_content(content: str, max_length: int) -> str:
    """Cut *content* to at most *max_length* characters plus a marker.

    The cut moves back to the last ``>`` or ``.`` in the kept text when that
    boundary still keeps more than 80 % of *max_length*.
    """
    if len(content) <= max_length:
        return content

    head = content[:max_length]
    boundary = max(head.rfind(">"), head.rfind(".")) + 1
    if boundary > max_length * _BOUNDARY_MIN_RATIO:
        head = head[:boundary]
    return head + TRUNCATION_MARKER


def estimate_token_count(content: str) -> int:
    """Rough token estimate for *content* (about four characters per token)."""
    return math.ceil(len(content) / 4)


def build_extraction_prompt(
    content: str,
    schema: Mapping[str, str],
    *,
    instructions: Optional[str] = None,
    max_length: int = 50_000,
) -> str:
    """Return the user prompt asking for *schema* to be extracted from *content*.

    Args:
        content: Page HTML or digest text.
        schema: Ordered mapping of field name to type hint.
        instructions: Optional caller guidance, placed under an
            ``Additional Instructions`` heading.
        max_length: Content beyond this many characters is truncated.
    """
    parts: list[str] = []
    if instructions and instructions.strip():
        parts.append(f"Additional Instructions:\n{instructions.strip()}")
    parts.append(f"Schema to extract:\n{describe_schema(schema)}")
    parts.append(f"Page Content:\n{truncate_content(content, max_length)}")
    parts.append("Return only valid JSON matching the schema above.")
    return "\n\n".join(parts)


def build_chat_messages(
    content: str,
    schema: Mapping[str, str],
    *,
    instructions: Optional[str] = None,
    max_length: int = 50_000,
    system_prompt: str = EXTRACTION_SYSTEM_PROMPT,
) -> list[dict[str, str]]:
    """Return ``system`` + ``user`` chat messages for chat-completion APIs."""
    return [
        {"role": "system", "content": system_prompt},
        {
            "role": "user",
            "content": build_extraction_prompt(
                content, schema, instructions=instructions, max_length=max_length
            ),
        },
    ]
