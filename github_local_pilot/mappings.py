"""Rewrite incoming URLs through user-configured regex rules."""

from __future__ import annotations

import logging
import re
from typing import Iterable

from .models import MappingResult, MappingRule, OriginType
from .url_parser import normalize_url

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$(\d+)")


def substitute(template: str, match: re.Match[str]) -> str:
    """Replace ``$N`` placeholders with capture groups from ``match``.

    Placeholders past the last group are left as-is; groups that did not take
    part in the match become empty strings.
    """

    group_count = len(match.groups())

    def _replace(placeholder: re.Match[str]) -> str:
        index = int(placeholder.group(1))
        if index < 1 or index > group_count:
            return placeholder.group(0)
        return match.group(index) or ""

    return _PLACEHOLDER.sub(_replace, template)


def apply_mappings(url: str, rules: Iterable[MappingRule] | None) -> MappingResult:
    """Apply the first matching rule; return the URL untouched when none match."""

    normalized = normalize_url(url)
    for rule in rules or []:
        try:
            pattern = re.compile(rule.pattern)
        except re.error as exc:
            logger.debug("Skipping mapping with invalid pattern %r: %s", rule.pattern, exc)
            continue
        match = pattern.search(normalized)
        if not match:
            continue
        branch = substitute(rule.branch, match) if rule.branch else None
        return MappingResult(url=substitute(rule.to, match), branch=branch, origin_type=rule.origin_type)
    return MappingResult(url=url)


def infer_origin_type(url: str) -> OriginType:
    """Guess the origin type of an unmapped URL from its path."""

    normalized = normalize_url(url)
    if "/pull/" in normalized:
        return OriginType.PR
    if "/issues/" in normalized:
        return OriginType.ISSUE
    if "/releases/tag/" in normalized:
        return OriginType.TAG
    if "/tree/" in normalized:
        return OriginType.BRANCH
    return OriginType.REPO


def is_mapped(original_url: str, result: MappingResult) -> bool:
    return result.url != original_url


def resolve_origin_type(original_url: str, result: MappingResult) -> OriginType:
    if is_mapped(original_url, result):
        return result.origin_type or OriginType.EXTERNAL
    return infer_origin_type(original_url)


__all__ = ["apply_mappings", "substitute", "is_mapped", "infer_origin_type", "resolve_origin_type"]
