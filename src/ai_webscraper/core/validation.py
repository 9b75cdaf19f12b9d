"""Input validation for extraction schemas and target URLs.

Both validators run before any network activity.  They raise subclasses of
:class:`~ai_webscraper.core.exceptions.InvalidRequestError`, which the
pipeline turns into an ``"Invalid request: ..."`` result and the batch runner
propagates to the caller before scheduling any work.

A schema maps field names to type hints.  Supported hints are the entries in
:data:`SUPPORTED_SCHEMA_TYPES`, the typed array form ``array<T>`` (where ``T``
is itself a supported hint), and any of those followed by a ``!`` marker
meaning "required".  Hints are case-insensitive.
"""

from __future__ import annotations

import re
import urllib.parse
from collections.abc import Iterable, Mapping

from ai_webscraper.core.exceptions import SchemaValidationError, URLValidationError

SUPPORTED_SCHEMA_TYPES: frozenset[str] = frozenset(
    {
        "string",
        "number",
        "integer",
        "boolean",
        "array",
        "object",
        "date",
        "url",
        "email",
        "text",
    }
)

SUPPORTED_URL_SCHEMES: frozenset[str] = frozenset({"http", "https"})

_TYPED_ARRAY_RE = re.compile(r"^array<(?P<inner>[^<>]+)>$")


# ---------------------------------------------------------------------------
# Schema validation
# ---------------------------------------------------------------------------


def is_supported_type(type_hint: str) -> bool:
    """Return ``True`` if *type_hint* is a supported schema field type."""
    hint = type_hint.strip().lower().rstrip("!").strip()
    if hint in SUPPORTED_SCHEMA_TYPES:
        return True
    match = _TYPED_ARRAY_RE.match(hint)
    if match is None:
        return False
    return match.group("inner").strip() in SUPPORTED_SCHEMA_TYPES


def normalize_schema(schema: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of *schema* with trimmed names and lower-cased types.

    Field order is preserved.
    """
    return {str(name).strip(): str(hint).strip().lower() for name, hint in schema.items()}


def validate_schema(schema: Mapping[str, str]) -> None:
    """Validate an extraction schema.

    Args:
        schema: Ordered mapping of field name to type hint.

    Raises:
        SchemaValidationError: If the schema is empty, a field name or type is
            blank, or a type is not supported.
    """
    if not isinstance(schema, Mapping):
        raise SchemaValidationError("Schema must be a mapping of field names to types")
    if not schema:
        raise SchemaValidationError("Schema cannot be empty")

    for name, hint in schema.items():
        if not isinstance(name, str) or not name.strip():
            raise SchemaValidationError("Schema field names cannot be empty")
        if not isinstance(hint, str) or not hint.strip():
            raise SchemaValidationError(
                f'Schema field type cannot be empty for field "{name}"'
            )
        if not is_supported_type(hint):
            supported = ", ".join(sorted(SUPPORTED_SCHEMA_TYPES))
            raise SchemaValidationError(
                f'Unsupported schema type "{hint}" for field "{name}". '
                f"Supported types: {supported}, array<T>"
            )


# ---------------------------------------------------------------------------
# URL validation
# ---------------------------------------------------------------------------


def validate_url(url: str) -> None:
    """Validate that *url* is an absolute ``http``/``https`` URL with a host.

    Raises:
        URLValidationError: If the URL is empty, unparseable, uses another
            scheme, or has no host.
    """
    if not isinstance(url, str) or not url.strip():
        raise URLValidationError("URL cannot be empty", "")

    candidate = url.strip()
    try:
        parsed = urllib.parse.urlparse(candidate)
        hostname = parsed.hostname
    except ValueError as exc:
        raise URLValidationError(f"Invalid URL format: {exc}", candidate) from exc

    scheme = parsed.scheme.lower()
    if scheme not in SUPPORTED_URL_SCHEMES:
        raise URLValidationError(
            f'Unsupported URL scheme "{parsed.scheme}". '
            f"Supported schemes: {', '.join(sorted(SUPPORTED_URL_SCHEMES))}",
            candidate,
        )
    if not hostname:
        raise URLValidationError("URL must have a valid host", candidate)


def validate_urls(urls: Iterable[str]) -> None:
    """Validate every URL in *urls*, raising on the first invalid one."""
    for url in urls:
        validate_url(url)


def is_valid_url(url: str) -> bool:
    """Return ``True`` if :func:`validate_url` accepts *url*."""
    try:
        validate_url(url)
    except URLValidationError:
        return False
    return True
