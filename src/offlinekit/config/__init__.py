"""Configuration: feature flags and store settings."""
from .settings import StoreConfig, DEFAULT_CONFIG

__all__ = ["StoreConfig", "DEFAULT_CONFIG"]
