"""Global and workspace configuration loading."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError
from .models import GlobalConfig, MappingRule, OriginType, WorkspaceConfig

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "GHLP_CONFIG_DIR"
WORKSPACE_CONFIG_DIR = ".ghlp"
WORKSPACE_CONFIG_FILE = "config.yaml"


def global_config_dir() -> Path:
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".github-local-pilot"


def global_config_path() -> Path:
    return global_config_dir() / "config.json"


def load_global_config(path: Path | None = None) -> GlobalConfig:
    path = path or global_config_path()
    if not path.exists():
        raise ConfigError(f"Configuration not found at {path}. Run `ghlp init` first or use -w <workspace>.")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Unable to read {path}: {exc}") from exc
    workspace = data.get("workspace") if isinstance(data, dict) else None
    if not workspace:
        raise ConfigError(f"{path} does not define a workspace.")
    return GlobalConfig(workspace=Path(workspace).expanduser())


def save_global_config(config: GlobalConfig, path: Path | None = None) -> Path:
    path = path or global_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"workspace": str(config.workspace)}, indent=2) + "\n", encoding="utf-8")
    return path


def validate_workspace(path: Path) -> list[str]:
    errors: list[str] = []
    if not str(path).strip():
        errors.append("Workspace directory is required.")
    elif not path.expanduser().is_dir():
        errors.append(f"Workspace directory does not exist: {path}")
    elif not os.access(path.expanduser(), os.W_OK | os.X_OK):
        errors.append(f"Workspace directory is not writable: {path}")
    return errors


def workspace_config_path(workspace: Path) -> Path:
    return workspace / WORKSPACE_CONFIG_DIR / WORKSPACE_CONFIG_FILE


def load_workspace_config(workspace: Path) -> WorkspaceConfig:
    """Read ``{workspace}/.ghlp/config.yaml``; a missing or empty file is an empty config."""

    path = workspace_config_path(workspace)
    if not path.exists():
        return WorkspaceConfig()
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to parse YAML in {path}: {exc}") from exc
    if document is None:
        return WorkspaceConfig()
    if not isinstance(document, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level.")
    ide = document.get("autoOpenIde")
    return WorkspaceConfig(
        auto_open_ide=str(ide) if ide else None,
        mappings=parse_mapping_rules(document.get("mappings")),
    )


def load_workspace_config_or_default(workspace: Path) -> WorkspaceConfig:
    try:
        return load_workspace_config(workspace)
    except ConfigError as exc:
        logger.warning("%s; continuing with an empty workspace configuration.", exc)
        return WorkspaceConfig()


def parse_mapping_rules(raw: Any) -> list[MappingRule]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError("`mappings` must be a list.")
    rules: list[MappingRule] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict) or not item.get("from") or not item.get("to"):
            logger.warning("Ignoring mapping #%d: `from` and `to` are required.", index + 1)
            continue
        origin = item.get("originType")
        origin_type = None
        if origin:
            try:
                origin_type = OriginType(str(origin))
            except ValueError:
                logger.warning("Ignoring unknown originType %r in mapping #%d.", origin, index + 1)
        branch = item.get("branch")
        rules.append(
            MappingRule(
                pattern=str(item["from"]),
                to=str(item["to"]),
                branch=str(branch) if branch else None,
                origin_type=origin_type,
            )
        )
    return rules


__all__ = [
    "global_config_dir",
    "global_config_path",
    "load_global_config",
    "save_global_config",
    "validate_workspace",
    "workspace_config_path",
    "load_workspace_config",
    "load_workspace_config_or_default",
    "parse_mapping_rules",
]
