# File: site_sync/parser/robots_parser.py
"""site_sync.parser.robots_parser: разбор robots.txt, директивы Sitemap и правила доступа."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

_WILDCARD_RE = re.compile(r"(\*|\$)")


@dataclass
class _Group:
    agents: List[str] = field(default_factory=list)
    directives: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class RobotsRules:
    """Правила из robots.txt: группы User-Agent и ссылки на sitemap."""

    sitemaps: List[str] = field(default_factory=list)
    groups: List[_Group] = field(default_factory=list)
    _regex_cache: Dict[str, re.Pattern[str]] = field(default_factory=dict, repr=False)

    def can_fetch(self, user_agent: str, path: str) -> bool:
        """Longest matching rule wins; Allow wins a tie. No matching group → allowed."""
        group = self._match_group(user_agent)
        if group is None:
            return True
        best_len = -1
        allow: Optional[bool] = None
        for directive, pattern in group.directives:
            if not self._match_path(path, pattern):
                continue
            length = len(_WILDCARD_RE.sub("", pattern))
            if length > best_len or (length == best_len and directive == "allow"):
                best_len = length
                allow = directive == "allow"
        return True if allow is None else allow

    def _match_group(self, user_agent: str) -> Optional[_Group]:
        ua = user_agent.lower()
        for group in self.groups:
            if any(agent != "*" and agent in ua for agent in group.agents):
                return group
        for group in self.groups:
            if "*" in group.agents:
                return group
        return None

    def _match_path(self, path: str, pattern: str) -> bool:
        if pattern not in self._regex_cache:
            anchored = pattern.endswith("$")
            body = re.escape(pattern[:-1] if anchored else pattern).replace(r"\*", ".*")
            self._regex_cache[pattern] = re.compile(f"^{body}" + ("$" if anchored else ""))
        return bool(self._regex_cache[pattern].match(path))


def parse_robots(text: str) -> RobotsRules:
    """Разбирает текст robots.txt и возвращает RobotsRules.

    Args:
        text: содержимое robots.txt.

    Returns:
        RobotsRules со ссылками на sitemap и группами правил.
    """
    rules = RobotsRules()
    current: Optional[_Group] = None
    for directive, value in _prepare_lines(text):
        if directive == "sitemap":
            if value and value not in rules.sitemaps:
                rules.sitemaps.append(value)
        elif directive == "user-agent":
            # consecutive User-agent lines share one group
            if current is None or current.directives:
                current = _Group()
                rules.groups.append(current)
            current.agents.append(value.lower())
        elif directive in ("allow", "disallow"):
            # empty Disallow allows everything
            if not value:
                continue
            if current is None:
                current = _Group(agents=["*"])
                rules.groups.append(current)
            current.directives.append((directive, value))
    return rules


def _prepare_lines(text: str) -> List[Tuple[str, str]]:
    """Очищает текст от комментариев и разделяет на (директива, значение)."""
    lines: List[Tuple[str, str]] = []
    for raw in text.splitlines():
        line = raw.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue
        key, val = (part.strip() for part in line.split(":", 1))
        lines.append((key.lower(), val))
    return lines


__all__ = ["RobotsRules", "parse_robots"]
