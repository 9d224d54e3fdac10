from __future__ import annotations

from typing import Iterable, List, Optional


def normalize_rule(rule: object) -> str:
    """Brief: Lowercase and trim a single domain rule.

    Inputs:
      - rule: Raw rule value (usually str).

    Outputs:
      - str: Normalized rule; "" for None/blank input.
    """

    if rule is None:
        return ""
    return str(rule).strip().lower()


def normalize_rules(rules: Optional[Iterable[object]]) -> List[str]:
    """Brief: Normalize a rule list, dropping blanks and duplicates.

    Inputs:
      - rules: Iterable of raw rules (None treated as empty).

    Outputs:
      - list[str]: Normalized rules in first-seen order.

    Example:
      >>> normalize_rules([" Example.com", "", "*.foo.org", "example.com"])
      ['example.com', '*.foo.org']
    """

    seen = set()
    out: List[str] = []
    for raw in rules or []:
        rule = normalize_rule(raw)
        if not rule or rule in seen:
            continue
        seen.add(rule)
        out.append(rule)
    return out


def matches_rules(domain: str, rules: Optional[Iterable[object]]) -> bool:
    """
    Return True when a hostname is covered by any rule in the list.

    Inputs:
        domain: Canonical hostname (lowercased internally).
        rules: Rules of the form "example.com" or "*.example.com".

    Outputs:
        bool: True on the first matching rule.

    Behaviour:
        - Exact equality matches.
        - "*.suffix" matches "suffix" itself and any "<label>.suffix".
        - A bare rule also matches any subdomain ("example.com" matches
          "a.b.example.com") but never a sibling sharing a string suffix
          ("notexample.com"); the match boundary is always a full label.
        - An empty domain or empty rule list never matches.

    Example:
        >>> matches_rules("www.example.com", ["*.example.com"])
        True
        >>> matches_rules("notexample.com", ["example.com"])
        False
    """
    if not domain or not rules:
        return False
    host = str(domain).strip().lower()
    if not host:
        return False

    for raw in rules:
        rule = normalize_rule(raw)
        if not rule:
            continue
        if rule == host:
            return True
        if rule.startswith("*."):
            suffix = rule[2:]
            if suffix and (host == suffix or host.endswith("." + suffix)):
                return True
            continue
        if host.endswith("." + rule):
            return True
    return False
