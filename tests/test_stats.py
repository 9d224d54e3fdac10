"""
Brief: Tests for storescope.stats statistics and report formatting.

Inputs:
  - None

Outputs:
  - None
"""

import csv
import io
import json

import pytest

from storescope.models import CookieStatistics, DomainRecord, KeyValueMetric, StorageClassMetric
from storescope.stats import (
    CSV_COLUMNS,
    ConcentrationPoint,
    compute_statistics,
    concentration_curve,
    format_bytes,
    format_domains_csv,
    format_report_json,
    histogram,
    length_bucket,
    quartiles,
    size_summary,
    storage_combination,
    tld_of,
    top_share,
)


def _record(domain, local=(0, 0), session=(0, 0), indexed=(0, 0), cache=(0, 0), cookies=(0, 0)):
    rec = DomainRecord(domain)
    rec.local = KeyValueMetric(count=local[0], size=local[1])
    rec.session = KeyValueMetric(count=session[0], size=session[1])
    rec.indexed = StorageClassMetric(*indexed)
    rec.cache = StorageClassMetric(*cache)
    rec.cookies = StorageClassMetric(*cookies)
    return rec


def _records(*recs):
    return {r.domain: r for r in recs}


@pytest.mark.parametrize(
    "values",
    [[], [0], [0, 0, 0], [1, 2, 3, 1000], [5] * 7, list(range(100)), [0.5, 0.25, 0.75]],
)
def test_histogram_counts_every_value_once(values):
    """
    Brief: Bin counts always sum to the number of values.

    Inputs:
      - values: sample values

    Outputs:
      - None
    """
    bins = histogram(values)
    assert len(bins) == 10
    assert sum(bins) == len(values)


def test_histogram_maximum_lands_in_last_bin():
    """
    Brief: The largest value is placed in bin 9, zero in bin 0.

    Inputs:
      - None

    Outputs:
      - None
    """
    assert histogram([0, 5, 10]) == (1, 0, 0, 0, 0, 1, 0, 0, 0, 1)


def test_concentration_curve_monotone_and_ends_at_one():
    """
    Brief: Cumulative ratio never decreases and reaches 1.0.

    Inputs:
      - None

    Outputs:
      - None
    """
    recs = [_record("a.test", local=(1, 10)), _record("b.test", local=(1, 70)), _record("c.test", local=(1, 20))]
    curve = concentration_curve(recs)
    assert [p.domain for p in curve] == ["b.test", "c.test", "a.test"]
    assert [p.rank for p in curve] == [1, 2, 3]
    ratios = [p.cumulative_ratio for p in curve]
    assert ratios == sorted(ratios)
    assert ratios[-1] == pytest.approx(1.0)
    assert top_share(curve, 1) == pytest.approx(0.7)
    assert top_share(curve, 50) == pytest.approx(1.0)


def test_concentration_curve_all_zero_sizes():
    """
    Brief: A zero grand total yields 0.0 ratios instead of dividing by zero.

    Inputs:
      - None

    Outputs:
      - None
    """
    curve = concentration_curve([_record("a.test"), _record("b.test")])
    assert [p.cumulative_ratio for p in curve] == [0.0, 0.0]
    assert top_share(curve, 10) == 0.0
    assert top_share((), 10) == 0.0


def test_quartiles_and_size_summary():
    """
    Brief: Quartiles index sorted[floor(n*p)]; median is sorted[n // 2].

    Inputs:
      - None

    Outputs:
      - None
    """
    assert quartiles([40, 10, 30, 20]) == (10, 20, 30, 40, 40)
    assert quartiles([]) == (0, 0, 0, 0, 0)
    summary = size_summary([30, 10, 20, 40])
    assert summary == (10, 40, 25.0, 30)
    assert size_summary([]) == (0, 0, 0.0, 0)


@pytest.mark.parametrize(
    "domain,tld,bucket",
    [
        ("localhost", "other", "short"),
        ("a.io", "io", "short"),
        ("news.example.org", "org", "medium"),
        ("static.assets.example.com", "com", "long"),
        ("very.long.subdomain.chain.example.net", "net", "very_long"),
    ],
)
def test_tld_and_length_buckets(domain, tld, bucket):
    """
    Brief: TLD is the last label ("other" for single labels); lengths bucket at 10/20/30.

    Inputs:
      - domain, tld, bucket

    Outputs:
      - None
    """
    assert tld_of(domain) == tld
    assert length_bucket(domain) == bucket


@pytest.mark.parametrize(
    "kwargs,combo",
    [
        ({}, "none"),
        ({"local": (1, 1)}, "local_only"),
        ({"cookies": (1, 1)}, "cookies_only"),
        ({"local": (1, 1), "cookies": (1, 1)}, "local_and_cookies"),
        (
            {"local": (1, 1), "session": (1, 1), "indexed": (1, 1), "cache": (1, 1), "cookies": (1, 1)},
            "all",
        ),
        ({"session": (1, 1)}, "other"),
        ({"local": (1, 1), "indexed": (1, 0)}, "other"),
    ],
)
def test_storage_combination_buckets(kwargs, combo):
    """
    Brief: Each domain falls into exactly one of six combination buckets.

    Inputs:
      - kwargs: class metrics
      - combo: expected bucket

    Outputs:
      - None
    """
    assert storage_combination(_record("x.test", **kwargs)) == combo


def test_compute_statistics_on_empty_input():
    """
    Brief: No records produce zeroed statistics without errors.

    Inputs:
      - None

    Outputs:
      - None
    """
    stats = compute_statistics({})
    assert stats.domain_count == 0
    assert stats.avg_item_size_by_class == {
        "local": 0.0,
        "session": 0.0,
        "indexed": 0.0,
        "cache": 0.0,
        "cookies": 0.0,
    }
    assert stats.concentration_curve == ()
    assert stats.size_histogram == (0,) * 10
    assert stats.top_domain_shares == {10: 0.0, 20: 0.0, 50: 0.0}


def test_compute_statistics_aggregates():
    """
    Brief: Counts, averages, segmentation and combinations over a small map.

    Inputs:
      - None

    Outputs:
      - None
    """
    recs = _records(
        _record("shop.test", local=(4, 400), cookies=(3, 60)),
        _record("news.example.org", local=(1, 50)),
        _record("cdn.example.org", cookies=(2, 20)),
        _record("app.example.com", local=(1, 10), session=(1, 10), indexed=(1, 5000),
                cache=(2, 0), cookies=(1, 10)),
    )
    stats = compute_statistics(recs)

    assert stats.domain_count == 4
    assert stats.total_size == 460 + 50 + 20 + 5030
    assert stats.total_items == 7 + 1 + 2 + 6
    assert stats.avg_item_size_by_class["local"] == pytest.approx(460 / 6)
    assert stats.avg_item_size_by_class["cache"] == 0.0
    assert stats.storage_class_usage_counts == {
        "local": 3,
        "session": 1,
        "indexed": 1,
        "cache": 1,
        "cookies": 3,
    }
    assert stats.domain_storage_preference == {"local_only": 1, "cookies_only": 1, "mixed": 2}
    assert stats.storage_combination_counts == {
        "none": 0,
        "local_only": 1,
        "cookies_only": 1,
        "local_and_cookies": 1,
        "all": 1,
        "other": 0,
    }
    assert sum(stats.storage_combination_counts.values()) == stats.domain_count
    assert [(e.tld, e.count, e.size) for e in stats.tld_breakdown] == [
        ("com", 1, 5030),
        ("test", 1, 460),
        ("org", 2, 70),
    ]
    assert stats.domain_length_buckets == {"short": 1, "medium": 3, "long": 0, "very_long": 0}
    assert sum(stats.size_histogram) == 4
    assert sum(stats.item_count_histogram) == 4
    assert stats.size_summary.max == 5030 and stats.size_summary.min == 20
    assert stats.domain_sizes == (460, 50, 20, 5030)
    assert stats.class_quartiles["indexed"] == (5000, 5000, 5000, 5000, 5000)
    assert stats.class_quartiles["cache"] == (0, 0, 0, 0, 0)
    assert stats.top_domain_shares[10] == pytest.approx(1.0)
    assert sum(stats.density_histogram) == 4


def test_rankings_and_quality_counters():
    """
    Brief: JSON failure and large key rankings order by count, ties in map order.

    Inputs:
      - None

    Outputs:
      - None
    """
    a = _record("a.test", local=(4, 10))
    a.local.json_parse_failures = 1
    b = _record("b.test", local=(2, 10), session=(2, 10))
    b.local.json_parse_failures = 2
    b.session.json_parse_failures = 1
    b.session.large_key_count = 2
    c = _record("c.test", local=(5, 10))
    c.local.json_parse_failures = 1
    c.local.large_key_count = 1

    stats = compute_statistics(_records(a, b, c), top_n=2)
    assert [(e.domain, e.fail_count) for e in stats.json_failure_ranking] == [
        ("b.test", 3),
        ("a.test", 1),
    ]
    assert stats.json_failure_ranking[0].fail_rate == pytest.approx(0.75)
    assert [(e.domain, e.count) for e in stats.large_key_ranking] == [("b.test", 2), ("c.test", 1)]
    assert stats.quality == {
        "local_json_failures": 4,
        "session_json_failures": 1,
        "local_large_keys": 1,
        "session_large_keys": 2,
    }


def test_cookie_statistics_flow_through():
    """
    Brief: Cookie-side breakdowns are copied and domain tallies ranked.

    Inputs:
      - None

    Outputs:
      - None
    """
    cs = CookieStatistics()
    cs.security["secure"] = 3
    cs.expiry["lt7d"] = 2
    cs.expiring_soon_by_domain = {"a.test": 2}
    cs.insecure_by_domain = {"a.test": 1, "b.test": 4}
    cs.expired_by_domain = {"c.test": 1}
    cs.security_combinations["secure_http_only_lax"] = 3
    cs.size_buckets["lt1k"] = 5

    stats = compute_statistics({}, cs)
    assert stats.cookie_security_breakdown["secure"] == 3
    assert stats.cookie_expiry_breakdown["lt7d"] == 2
    assert stats.expiring_soon_by_domain == {"a.test": 2}
    assert [tuple(e) for e in stats.insecure_cookie_domains] == [("b.test", 4), ("a.test", 1)]
    assert [tuple(e) for e in stats.expired_cookie_domains] == [("c.test", 1)]
    assert stats.security_attribute_combination_counts["secure_http_only_lax"] == 3
    assert stats.size_buckets["cookies"]["lt1k"] == 5

    cs.insecure_by_domain["z.test"] = 99
    assert len(stats.insecure_cookie_domains) == 2


def test_statistics_to_dict_is_json_serialisable():
    """
    Brief: to_dict() expands named tuples so json.dumps succeeds.

    Inputs:
      - None

    Outputs:
      - None
    """
    stats = compute_statistics(_records(_record("a.test", local=(1, 3))))
    data = stats.to_dict()
    json.dumps(data)
    assert data["size_summary"] == {"min": 3, "max": 3, "avg": 3.0, "median": 3}
    assert data["concentration_curve"][0]["domain"] == "a.test"
    assert data["top_domain_shares"]["10"] == 1.0


def test_statistics_mappings_are_read_only():
    """
    Brief: Mapping fields, nested ones included, reject item assignment.

    Inputs:
      - None

    Outputs:
      - None
    """
    stats = compute_statistics(_records(_record("a.test", local=(1, 3))))
    with pytest.raises(TypeError):
        stats.size_buckets["local"]["lt1k"] = 999
    with pytest.raises(TypeError):
        stats.size_buckets["extra"] = {}
    with pytest.raises(TypeError):
        stats.avg_item_size_by_class["local"] = -1
    with pytest.raises(TypeError):
        stats.quality["local_json_failures"] = 5
    assert stats.size_buckets["local"]["lt1k"] == 0
    assert stats.to_dict()["size_buckets"]["local"]["lt1k"] == 0


@pytest.mark.parametrize(
    "num,text",
    [
        (0, "0 B"),
        (-5, "0 B"),
        ("bogus", "0 B"),
        (512, "512 B"),
        (1536, "1.5 KB"),
        (10 * 1024 * 1024, "10 MB"),
        (3 * 1024 ** 3, "3.0 GB"),
        (2048 * 1024 ** 4, "2048 TB"),
    ],
)
def test_format_bytes(num, text):
    """
    Brief: Human byte sizes use one decimal below 10 units.

    Inputs:
      - num, text

    Outputs:
      - None
    """
    assert format_bytes(num) == text


def test_format_report_json_has_meta_and_omits_empty_sections():
    """
    Brief: Report JSON carries meta, domains and non-empty stats sections.

    Inputs:
      - None

    Outputs:
      - None
    """
    rec = _record("a.test", local=(2, 30))
    stats = compute_statistics(_records(rec))
    text = format_report_json([rec], stats, created_at=0)
    assert "\n" not in text
    data = json.loads(text)
    assert data["ts"] == "1970-01-01T00:00:00+00:00"
    assert set(data["meta"]) == {"timestamp", "hostname", "version"}
    assert data["domains"][0]["domain"] == "a.test"
    assert "expiring_soon_by_domain" not in data["stats"]
    assert data["stats"]["domain_count"] == 1


def test_format_domains_csv():
    """
    Brief: CSV output has the header row and one row per domain.

    Inputs:
      - None

    Outputs:
      - None
    """
    recs = [_record("big.test", local=(1, 2048), cookies=(1, 10)), _record("small.test")]
    rows = list(csv.reader(io.StringIO(format_domains_csv(recs))))
    assert tuple(rows[0]) == CSV_COLUMNS
    assert rows[1][0] == "big.test"
    assert rows[1][-2:] == ["2058", "2.0 KB"]
    assert rows[2][-2:] == ["0", "0 B"]
    assert len(rows) == 3


def test_concentration_point_is_named_tuple():
    """
    Brief: ConcentrationPoint exposes named fields.

    Inputs:
      - None

    Outputs:
      - None
    """
    p = ConcentrationPoint("a", 1, 1.0, 1)
    assert p._asdict() == {"domain": "a", "size": 1, "cumulative_ratio": 1.0, "rank": 1}
