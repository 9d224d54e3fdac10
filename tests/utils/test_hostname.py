"""
Brief: Tests for storescope.utils.hostname.

Inputs:
  - None

Outputs:
  - None
"""

import pytest

from storescope.utils.hostname import is_restricted_url, normalize_hostname


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("https://Sub.Example.com/path", "sub.example.com"),
        ("https://WWW.Example.com:8443/x?y=1", "www.example.com"),
        ("http://user:pw@Host.Test/a", "host.test"),
        ("example.com", "example.com"),
        ("example.com/path/to", "example.com"),
        ("  Example.COM  ", "example.com"),
        ("example.com:8080/x", "example.com"),
        ("ftp://files.example.net", "files.example.net"),
    ],
)
def test_normalize_hostname_extracts_lowercase_host(raw, expected):
    """
    Brief: URLs and bare hosts normalize to a lowercase hostname.

    Inputs:
      - raw: URL or host string
      - expected: canonical hostname

    Outputs:
      - None: Asserts normalized value
    """
    assert normalize_hostname(raw) == expected


@pytest.mark.parametrize("raw", ["", "   ", "not a url", None])
def test_normalize_hostname_failure_is_empty_string(raw):
    """
    Brief: Unextractable input yields "" rather than raising.

    Inputs:
      - raw: unusable input

    Outputs:
      - None: Asserts empty result
    """
    assert normalize_hostname(raw) == ""


def test_normalize_hostname_is_idempotent():
    """
    Brief: Normalizing an already normalized hostname is a no-op.

    Inputs:
      - None

    Outputs:
      - None: Asserts f(f(x)) == f(x)
    """
    for raw in ("https://A.B.Example.com/x", "example.org", "HTTP://x.io:1/"):
        once = normalize_hostname(raw)
        assert normalize_hostname(once) == once


@pytest.mark.parametrize(
    "url,restricted",
    [
        ("chrome://settings", True),
        ("chrome-extension://abc/popup.html", True),
        ("about:blank", True),
        ("edge://flags", True),
        ("data:text/html,hi", True),
        ("", True),
        ("https://example.com", False),
        ("http://localhost:8000/", False),
    ],
)
def test_is_restricted_url(url, restricted):
    """
    Brief: Browser-internal schemes are restricted; web origins are not.

    Inputs:
      - url: page URL
      - restricted: expected flag

    Outputs:
      - None: Asserts classification
    """
    assert is_restricted_url(url) is restricted
