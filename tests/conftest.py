"""
Brief: Global pytest configuration enforcing per-test 10s timeout.

Inputs:
  - None

Outputs:
  - None
"""

import logging
import os
import signal
import sys

import pytest

# Ensure 'src' is on sys.path so 'storescope' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture(autouse=True)
def clear_hostname_cache_between_tests():
    """
    Brief: Reset the memoised hostname normalizer between tests.

    Inputs:
      - None

    Outputs:
      - None
    """
    from storescope.utils.hostname import normalize_hostname

    normalize_hostname.cache_clear()
    yield


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        yield


@pytest.fixture
def storage_state():
    """
    Brief: A small Playwright-style storage-state document.

    Inputs:
      - None

    Outputs:
      - dict with two origins (one with extension keys) and three cookies.
    """
    return {
        "cookies": [
            {
                "name": "sid",
                "value": "abc123",
                "domain": ".shop.test",
                "path": "/",
                "expires": -1,
                "httpOnly": True,
                "secure": True,
                "sameSite": "Lax",
            },
            {
                "name": "pref",
                "value": "dark",
                "domain": "shop.test",
                "path": "/",
                "expires": 4102444800,
                "httpOnly": False,
                "secure": False,
                "sameSite": "None",
            },
            {
                "name": "t",
                "value": "1",
                "domain": ".tracker.example",
                "path": "/",
                "expires": 4102444800,
                "httpOnly": False,
                "secure": True,
                "sameSite": "Strict",
            },
        ],
        "origins": [
            {
                "origin": "https://shop.test",
                "localStorage": [
                    {"name": "cart", "value": '{"items": [1, 2]}'},
                    {"name": "theme", "value": "dark"},
                ],
                "sessionStorage": [{"name": "step", "value": "2"}],
                "indexedDB": [{"name": "catalog", "size": 2048}, {"name": "drafts"}],
                "cacheStorage": ["v1", "images"],
            },
            {
                "origin": "https://news.example.org",
                "localStorage": [{"name": "seen", "value": "[1,2,3]"}],
            },
            {"origin": "chrome://settings", "localStorage": []},
        ],
    }


@pytest.fixture
def restore_root_logger():
    """
    Brief: Restore root handlers and level after a test that calls init_logging.

    Inputs:
      - None

    Outputs:
      - None
    """
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        if h not in handlers:
            h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    logging.captureWarnings(False)
