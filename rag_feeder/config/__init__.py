"""Configuration module: exports Settings and load_config."""

from rag_feeder.config.loader import load_config
from rag_feeder.config.settings import Settings

__all__ = ["Settings", "load_config"]
