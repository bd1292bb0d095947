"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  -- static tuning defaults checked into the repo
  2. .env file           -- local developer overrides (not committed)
  3. Environment vars    -- set at deploy time

:func:`load_config` reads the YAML file first, then deep-merges the
environment-based values from :class:`Settings` on top.  Env values that
are unset (``None``) do not clobber YAML values.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from src.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file yields
            built-in defaults.
        settings: Pre-built settings; a fresh :class:`Settings` is read
            from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides: dict[str, Any] = {
        "ingestion": {
            "embedding_dimension": settings.embedding_dimension,
            "max_chunks_per_document": settings.max_chunks_per_document,
            "ingestion_budget_s": settings.ingestion_budget_s,
        },
        "vector_store": {
            "persist_dir": settings.chromadb_persist_dir,
            "collection": settings.chromadb_collection,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge *overrides* into *base* in place, skipping ``None`` values."""
    for key, value in overrides.items():
        if value is None:
            continue
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
