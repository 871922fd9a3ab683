"""Turn ghlp:// and https://github.com URLs into structured references."""

from __future__ import annotations

import re

from .exceptions import ParseError, ValidationError
from .models import ParsedReference, RefKind

GITHUB_HOST = "github.com"
PROTOCOL_PREFIX = f"ghlp://{GITHUB_HOST}/"
WEB_PREFIX = f"https://{GITHUB_HOST}/"

_DIGITS = re.compile(r"[0-9]+")


def normalize_url(url: str) -> str:
    """Rewrite the custom scheme to the canonical web form."""

    if url.startswith(PROTOCOL_PREFIX):
        return WEB_PREFIX + url[len(PROTOCOL_PREFIX) :]
    return url


def is_reference_url(value: str) -> bool:
    return value.startswith(PROTOCOL_PREFIX) or value.startswith(WEB_PREFIX)


def parse_url(url: str) -> ParsedReference:
    """Parse a GitHub URL into a :class:`ParsedReference`.

    Both ``ghlp://github.com/...`` and ``https://github.com/...`` are accepted and
    yield identical references. Query strings and fragments are ignored.
    """

    normalized = normalize_url(url.strip())
    if not normalized.startswith(WEB_PREFIX):
        raise ParseError(url, ParseError.UNSUPPORTED_SCHEME, "expected ghlp://github.com/ or https://github.com/")

    path = normalized[len(WEB_PREFIX) :]
    path = path.split("#", 1)[0].split("?", 1)[0]
    if path.endswith("/"):
        path = path[:-1]
    parts = path.split("/")
    if len(parts) < 2:
        raise ParseError(url, ParseError.MALFORMED, "expected <org>/<repo>")

    org, repo = parts[0], parts[1]
    if not org or not repo or org in {".", ".."} or repo in {".", ".."}:
        raise ParseError(url, ParseError.MALFORMED, "empty or invalid org/repo")

    try:
        return _build_reference(url, org, repo, parts[2:])
    except ValidationError as exc:
        raise ParseError(url, ParseError.MALFORMED, str(exc)) from exc


def _build_reference(url: str, org: str, repo: str, rest: list[str]) -> ParsedReference:
    if not rest:
        return ParsedReference(org=org, repo=repo, kind=RefKind.REPO)

    section = rest[0]
    if section == "tree" and len(rest) >= 2:
        return ParsedReference(org=org, repo=repo, kind=RefKind.BRANCH, identifier="/".join(rest[1:]))
    if section in {"pull", "issues"} and len(rest) == 2:
        number = rest[1]
        if not _DIGITS.fullmatch(number):
            raise ParseError(url, ParseError.MALFORMED, f"not a number: {number}")
        kind = RefKind.PR if section == "pull" else RefKind.ISSUE
        return ParsedReference(org=org, repo=repo, kind=kind, identifier=number)
    if section == "releases" and len(rest) >= 3 and rest[1] == "tag":
        return ParsedReference(org=org, repo=repo, kind=RefKind.TAG, identifier="/".join(rest[2:]))
    raise ParseError(url, ParseError.MALFORMED, f"unsupported path: {'/'.join(rest)}")


def format_url(ref: ParsedReference) -> str:
    """Render the canonical web URL for ``ref``."""

    base = f"{WEB_PREFIX}{ref.org}/{ref.repo}"
    if ref.kind is RefKind.BRANCH:
        return f"{base}/tree/{ref.identifier}"
    if ref.kind is RefKind.PR:
        return f"{base}/pull/{ref.identifier}"
    if ref.kind is RefKind.ISSUE:
        return f"{base}/issues/{ref.identifier}"
    if ref.kind is RefKind.TAG:
        return f"{base}/releases/tag/{ref.identifier}"
    return base


__all__ = ["parse_url", "format_url", "normalize_url", "is_reference_url", "PROTOCOL_PREFIX", "WEB_PREFIX"]
