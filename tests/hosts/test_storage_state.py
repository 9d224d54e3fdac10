"""
Brief: Tests for the Playwright storage-state host binding.

Inputs:
  - None

Outputs:
  - None
"""

import json

import pytest

from storescope.collector import CollectionCoordinator
from storescope.errors import OriginUnreachableError
from storescope.hosts.storage_state import StorageStateHost
from storescope.sampling.origin import OriginSampler


def test_list_open_origins_skips_restricted_pages(storage_state):
    """
    Brief: chrome:// and similar origins are not offered for sampling.

    Inputs:
      - storage_state: fixture document

    Outputs:
      - None
    """
    host = StorageStateHost([storage_state])
    urls = [ctx.url for ctx in host.list_open_origins()]
    assert urls == ["https://shop.test", "https://news.example.org"]


def test_capabilities_follow_extension_keys(storage_state):
    """
    Brief: indexedDB/cacheStorage keys turn on the matching capabilities.

    Inputs:
      - storage_state: fixture document

    Outputs:
      - None
    """
    shop, news = StorageStateHost([storage_state]).list_open_origins()
    assert shop.capabilities.has_structured_db and shop.capabilities.has_cache_buckets
    assert not news.capabilities.has_structured_db
    assert not news.capabilities.has_cache_buckets


def test_sampling_a_snapshotted_origin(storage_state):
    """
    Brief: The sampler reads all four origin stores from the snapshot.

    Inputs:
      - storage_state: fixture document

    Outputs:
      - None
    """
    shop = StorageStateHost([storage_state]).list_open_origins()[0]
    sample = OriginSampler(indexed_db_estimate_bytes=5000).sample(shop)
    assert sample.local.count == 2
    assert sample.local.json_parse_failures == 1
    assert sample.session.count == 1
    assert (sample.indexed.count, sample.indexed.size) == (2, 2048 + 5000)
    assert sample.cache.count == 2


def test_closed_context_is_unreachable(storage_state):
    """
    Brief: A closed context raises OriginUnreachableError.

    Inputs:
      - storage_state: fixture document

    Outputs:
      - None
    """
    ctx = StorageStateHost([storage_state]).list_open_origins()[0]
    ctx.closed = True
    with pytest.raises(OriginUnreachableError):
        OriginSampler().sample(ctx)


def test_cookies_from_multiple_files(tmp_path, storage_state):
    """
    Brief: Documents loaded from several files are enumerated together.

    Inputs:
      - tmp_path, storage_state

    Outputs:
      - None
    """
    first = tmp_path / "one.json"
    first.write_text(json.dumps(storage_state))
    second = tmp_path / "two.json"
    second.write_text(json.dumps({"cookies": [{"name": "x", "value": "y", "domain": "z.test"}]}))

    host = StorageStateHost([str(first), second])
    domains = sorted({c.registrable_domain for c in host.enumerate_all_cookies()})
    assert domains == ["shop.test", "tracker.example", "z.test"]


def test_non_object_state_file_is_rejected(tmp_path):
    """
    Brief: A JSON array is not a storage-state document.

    Inputs:
      - tmp_path

    Outputs:
      - None
    """
    path = tmp_path / "bad.json"
    path.write_text("[]")
    with pytest.raises(ValueError):
        StorageStateHost([str(path)])


def test_clear_domain_removes_origin_and_scoped_cookies(tmp_path, storage_state):
    """
    Brief: clear_domain drops the origin and cookies for it and its subdomains.

    Inputs:
      - tmp_path, storage_state

    Outputs:
      - None
    """
    storage_state["cookies"].append({"name": "sub", "value": "1", "domain": "m.shop.test"})
    host = StorageStateHost([storage_state])
    host.clear_domain("shop.test")

    assert [c.registrable_domain for c in host.enumerate_all_cookies()] == ["tracker.example"]
    assert [ctx.url for ctx in host.list_open_origins()] == ["https://news.example.org"]

    out = tmp_path / "saved.json"
    host.save(str(out))
    saved = json.loads(out.read_text())
    assert [o["origin"] for o in saved["origins"]] == ["https://news.example.org", "chrome://settings"]

    with pytest.raises(ValueError):
        host.clear_domain("not a url")


def test_full_cycle_over_storage_state(storage_state):
    """
    Brief: A collection cycle over the snapshot merges origins and cookies.

    Inputs:
      - storage_state: fixture document

    Outputs:
      - None
    """
    domains, stats = CollectionCoordinator(StorageStateHost([storage_state])).collect()
    by_name = {d.domain: d for d in domains}
    assert set(by_name) == {"shop.test", "news.example.org", "tracker.example"}
    assert by_name["shop.test"].cookies.count == 2
    assert by_name["tracker.example"].used_classes() == ("cookies",)
    assert stats.cookie_security_breakdown["secure"] == 2
    assert stats.storage_combination_counts["cookies_only"] == 1


@pytest.mark.parametrize("size", ["unknown", [1], {"bytes": 1}, True])
def test_unusable_database_size_counts_as_undeclared(size):
    """
    Brief: A non-numeric declared size is treated as missing and the origin is kept.

    Inputs:
      - size: value stored under the database's "size" key

    Outputs:
      - None
    """
    state = {
        "cookies": [],
        "origins": [
            {
                "origin": "https://a.test",
                "localStorage": [{"name": "k", "value": "v"}],
                "indexedDB": [{"name": "db", "size": size}],
            }
        ],
    }
    host = StorageStateHost([state])
    ctx = host.list_open_origins()[0]
    assert ctx.run_sampler(lambda view: view.list_databases()) == [("db", None)]

    domains, _stats = CollectionCoordinator(host).collect()
    assert [d.domain for d in domains] == ["a.test"]
    (record,) = domains
    assert (record.local.count, record.local.size) == (1, 2)
    assert (record.indexed.count, record.indexed.size) == (1, 0)
