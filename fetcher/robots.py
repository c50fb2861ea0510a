"""Robots.txt parsing and longest-prefix rule evaluation."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Iterator

from core.config import CrawlConfig
from core.models import RobotsRule, RobotsRuleSet
from core.structured_logging import emit_json_event


_IGNORED_PREFIXES = ("crawl-delay", "sitemap", "#")


def _directive_value(line: str, keyword: str) -> str | None:
    """Return the comment-stripped value after `keyword:`, or None if the line is another directive."""
    if line[: len(keyword)].lower() != keyword:
        return None
    value = line[len(keyword):]
    if "#" in value:
        value = value.split("#", 1)[0]
    return value.strip()


def is_path_allowed(rules: Iterable[RobotsRule], path: str) -> bool:
    """
    Decide whether `path` may be crawled under `rules`.

    The rule with the longest matching prefix wins. Two matching rules of equal
    length share the same prefix; when they disagree, disallow wins. With no
    matching rule everything is allowed.
    """
    best_length = -1
    allowed = True
    for rule in rules:
        if not rule.matches(path):
            continue
        length = len(rule.path_prefix)
        if length > best_length:
            best_length = length
            allowed = rule.allowed
        elif length == best_length and not rule.allowed:
            allowed = False
    return allowed


def with_root_rule(rules: Iterable[RobotsRule], protocol: str, host: str) -> RobotsRuleSet:
    """Return `rules` plus an allow-all root rule when no root rule is present."""
    rule_set = frozenset(rules)
    if any(rule.path_prefix == "/" for rule in rule_set):
        return rule_set
    return rule_set | {RobotsRule(protocol, host, "/", True)}


class RobotsPolicy:
    """Turn robots.txt lines into RobotsRules for the wildcard user-agent."""

    def __init__(
        self,
        user_agent_line: str = CrawlConfig.ROBOTS_USER_AGENT_LINE,
        event_hook: Callable[[str, dict[str, Any]], None] | None = None,
    ) -> None:
        """Initialize the record header to match and the diagnostic sink."""
        self.user_agent_line = user_agent_line.strip().lower()
        self.event_hook = event_hook or self._default_event_hook

    @staticmethod
    def _default_event_hook(event_type: str, payload: dict[str, Any]) -> None:
        """Default diagnostic sink writing structured JSON to stdout."""
        emit_json_event(event_type, component="robots", **payload)

    def parse(self, lines: Iterable[str], protocol: str, host: str) -> RobotsRuleSet:
        """
        Parse robots.txt lines into a rule set for one protocol + host.

        Every `User-agent: *` record contributes; other records are skipped.
        An input yielding no rules at all becomes a single allow-all root rule.
        """
        rules: set[RobotsRule] = set()
        remaining = iter(lines)
        for line in remaining:
            if line.strip().lower() == self.user_agent_line:
                rules.update(self._parse_record(remaining, protocol, host))

        if not rules:
            rules.add(RobotsRule(protocol, host, "/", True))
        return frozenset(rules)

    def _parse_record(
        self,
        lines: Iterator[str],
        protocol: str,
        host: str,
    ) -> Iterator[RobotsRule]:
        """Consume one record (up to a blank line) and yield its rules."""
        for raw_line in lines:
            line = raw_line.strip()
            if not line:
                return

            disallow = _directive_value(line, "disallow:")
            if disallow is not None:
                if disallow:
                    yield RobotsRule(protocol, host, disallow, False)
                else:
                    # An empty Disallow means nothing is disallowed.
                    yield RobotsRule(protocol, host, "/", True)
                continue

            allow = _directive_value(line, "allow:")
            if allow is not None:
                if allow:
                    yield RobotsRule(protocol, host, allow, True)
                continue

            if line.lower().startswith(_IGNORED_PREFIXES):
                continue

            self.event_hook(
                "robots_unparseable_line",
                {
                    "url": f"{protocol}://{host}{CrawlConfig.ROBOTS_PATH}",
                    "line": raw_line,
                },
            )

    def evaluate(self, rules: Iterable[RobotsRule], path: str) -> bool:
        """Longest-prefix decision for one path."""
        return is_path_allowed(rules, path)
