"""Configuration module: exports Settings."""

from bilbo.config.settings import Settings

__all__ = ["Settings"]
