# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/keto_tokens/config/loader.py

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from keto_tokens.errors import ConfigInvalidError
from .models import ClientConfig, ServerConfig

log = logging.getLogger("keto_tokens")

M = TypeVar("M", bound=BaseModel)


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, dict, list, tuple)) and len(value) == 0)


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        elif not _is_empty(value):
            base[key] = value
    return base


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    data = yaml.safe_load(expanded) or {}
    if not isinstance(data, dict):
        raise ConfigInvalidError(f"Expected mapping in {path}, got {type(data).__name__}")
    return data


def build_config(model: Type[M], *sources: Dict[str, Any]) -> M:
    """
    Merge the sources left to right (later non-empty values win) and validate.
    Validation failures become ConfigInvalidError.
    """
    data: Dict[str, Any] = {}
    for source in sources:
        _deep_merge(data, dict(source or {}))
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or model.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigInvalidError(f"invalid {model.__name__}: {problems}") from e


def _file_section(path: Optional[Path], section: str) -> Dict[str, Any]:
    if path is None:
        return {}
    data = _load_yaml(Path(path))
    body = data.get(section) or {}
    if not isinstance(body, dict):
        raise ConfigInvalidError(f"section '{section}' in {path} must be a mapping")
    log.debug("loaded %s config from %s", section, path)
    return body


def load_server_config(
    path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> ServerConfig:
    """
    Server settings from the `server:` section of an optional YAML file,
    overlaid with command line values.
    """
    return build_config(ServerConfig, _file_section(path, "server"), overrides or {})


def load_client_config(
    path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> ClientConfig:
    return build_config(ClientConfig, _file_section(path, "client"), overrides or {})
