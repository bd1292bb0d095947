"""Configuration module — exports Settings, load_config and the typed policies."""

from src.config.loader import load_config
from src.config.policies import ChunkingPolicy, IngestionPolicy
from src.config.settings import Settings

__all__ = ["ChunkingPolicy", "IngestionPolicy", "Settings", "load_config"]
