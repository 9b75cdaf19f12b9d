"""Constants and tuning parameters for page fetching and the scrape pipeline."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Fetch timing
# ---------------------------------------------------------------------------

#: Default page fetch timeout in seconds.  Overridden by ``Settings.request_timeout``.
DEFAULT_TIMEOUT: float = 30.0

#: Base delay (seconds) of the exponential retry backoff.
DEFAULT_RETRY_BASE_DELAY: float = 1.0

#: Extra time the headless browser waits after ``networkidle`` before
#: capturing content, so late client-side renders can settle (milliseconds).
SCRIPT_SETTLE_MS: int = 2000

# ---------------------------------------------------------------------------
# Batching
# ---------------------------------------------------------------------------

DEFAULT_CONCURRENCY: int = 3

DEFAULT_CHUNK_SIZE: int = 10

# ---------------------------------------------------------------------------
# Content guards
# ---------------------------------------------------------------------------

#: Body length threshold (stripped characters) below which a page is
#: considered a JS-only shell that needs the headless browser.
JS_SHELL_BODY_THRESHOLD: int = 500

#: Case-insensitive substrings of a fetch error that suggest the page renders
#: its content client-side.  Matching errors escalate from HTTP to the browser.
CLIENT_RENDERING_TOKENS: tuple[str, ...] = (
    "javascript",
    "js",
    "dynamic",
    "react",
    "vue",
    "angular",
    "spa",
    "empty",
    "no content",
)

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

#: User-agent string sent with every plain HTTP request.
USER_AGENT: str = (
    "Mozilla/5.0 (compatible; AIWebScraper/1.0; "
    "+https://github.com/ai-webscraper/ai-webscraper)"
)

#: User-agent presented by the headless browser.
BROWSER_USER_AGENT: str = (
    "Mozilla/5.0 (X11; Linux x86_64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

#: Browser-like headers sent alongside ``USER_AGENT``.
DEFAULT_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

#: Content-Type prefixes that indicate binary/non-text resources that should
#: be rejected without attempting extraction.
BINARY_CONTENT_TYPES: frozenset[str] = frozenset(
    {
        "application/pdf",
        "application/zip",
        "application/octet-stream",
        "application/x-executable",
        "application/vnd.",
        "image/",
        "video/",
        "audio/",
        "font/",
    }
)

# ---------------------------------------------------------------------------
# Digest formatting
# ---------------------------------------------------------------------------

DIGEST_MAX_LIST_ITEMS: int = 10
DIGEST_MAX_SECTIONS: int = 20
DIGEST_MAX_SECTION_CHARS: int = 500
DIGEST_MAX_LINKS: int = 50
DIGEST_MAX_BODY_CHARS: int = 5000
