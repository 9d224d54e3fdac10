from __future__ import annotations

import functools
import re
from urllib.parse import urlsplit

# Fallback extraction: optional scheme, optional userinfo, then the host up to
# the first port/path/query/fragment delimiter. Whitespace inside the host
# makes the whole input unextractable.
_HOST_FALLBACK_RE = re.compile(
    r"^(?:[a-z][a-z0-9+.\-]*://)?(?:[^@/\s]*@)?([^:/?#\s]+)(?::\d*)?(?:[/?#]|$)",
    re.IGNORECASE,
)


@functools.lru_cache(maxsize=4096)
def normalize_hostname(url_or_host: str) -> str:
    """
    Canonicalize a URL or bare host string to a lowercase hostname.

    Inputs:
        url_or_host: Full URL ("https://Sub.Example.com/path"), a bare host
            ("example.com"), or a host with path ("example.com/a").

    Outputs:
        Lowercase, trimmed hostname, or "" when no hostname can be extracted.
        Never raises.

    Structured URL parsing is tried first; when it yields no usable host the
    substring before the first "/" is extracted with a regular expression,
    optionally stripping a leading scheme.

    Example:
        >>> normalize_hostname("https://WWW.Example.com:8443/x?y=1")
        'www.example.com'
        >>> normalize_hostname("example.com/path")
        'example.com'
        >>> normalize_hostname("not a url")
        ''
    """
    if not url_or_host:
        return ""
    text = str(url_or_host).strip()
    if not text:
        return ""

    host = ""
    try:
        host = urlsplit(text).hostname or ""
    except ValueError:
        host = ""
    if host and any(ch.isspace() for ch in host):
        host = ""

    if not host:
        match = _HOST_FALLBACK_RE.match(text)
        host = match.group(1) if match else ""

    return host.strip().lower()


_RESTRICTED_PREFIXES = (
    "chrome://",
    "chrome-extension://",
    "edge://",
    "about:",
    "view-source:",
    "data:",
    "javascript:",
)


def is_restricted_url(url: str) -> bool:
    """Brief: Return True for pages whose storage cannot be sampled.

    Inputs:
      - url: Page URL.

    Outputs:
      - bool: True for empty URLs and browser-internal schemes.

    Example:
      >>> is_restricted_url("chrome://settings"), is_restricted_url("https://a.com")
      (True, False)
    """

    if not url:
        return True
    lowered = str(url).strip().lower()
    return lowered.startswith(_RESTRICTED_PREFIXES)
