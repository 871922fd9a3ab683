"""Provenance records written next to each materialized checkout."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .models import OriginType, ParsedReference, RefKind
from .paths import METADATA_FILENAME

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Metadata:
    original_url: str
    origin_type: OriginType
    mapped: bool
    kind: RefKind
    org: str
    repo: str
    branch: str
    created_at: str
    mapped_url: str | None = None
    identifier: str | None = None

    @classmethod
    def for_reference(
        cls,
        ref: ParsedReference,
        *,
        branch: str,
        original_url: str,
        resolved_url: str,
        origin_type: OriginType,
    ) -> Metadata:
        mapped = resolved_url != original_url
        return cls(
            original_url=original_url,
            origin_type=origin_type,
            mapped=mapped,
            mapped_url=resolved_url if mapped else None,
            kind=ref.kind,
            org=ref.org,
            repo=ref.repo,
            identifier=ref.identifier,
            branch=branch,
            created_at=datetime.now(timezone.utc).isoformat(),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "originalUrl": self.original_url,
            "originType": self.origin_type.value,
            "mapped": self.mapped,
        }
        if self.mapped_url:
            payload["mappedUrl"] = self.mapped_url
        payload.update({"kind": self.kind.value, "org": self.org, "repo": self.repo})
        if self.identifier is not None:
            payload["identifier"] = self.identifier
        payload.update({"branch": self.branch, "createdAt": self.created_at})
        return payload


def metadata_path(target_dir: Path) -> Path:
    return target_dir / METADATA_FILENAME


def write_metadata(target_dir: Path, metadata: Metadata) -> bool:
    """Create the metadata file; an existing record is never overwritten."""

    path = metadata_path(target_dir)
    try:
        with path.open("x", encoding="utf-8") as handle:
            json.dump(metadata.to_dict(), handle, indent=2)
            handle.write("\n")
    except FileExistsError:
        logger.debug("Metadata already present at %s", path)
        return False
    return True


def read_metadata(target_dir: Path) -> dict[str, Any] | None:
    path = metadata_path(target_dir)
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))


__all__ = ["Metadata", "metadata_path", "write_metadata", "read_metadata"]
