"""Configuration module for wizlight."""

from wizlight.config.schema import WizConfig

__all__ = ["WizConfig"]
