"""Configuration module: exports Settings and load_config."""

from refdata_rag.config.loader import load_config
from refdata_rag.config.settings import Settings

__all__ = ["Settings", "load_config"]
