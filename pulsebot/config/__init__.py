# pulsebot/config/__init__.py
"""Configuration package for pulsebot."""

from .settings import settings, Settings

__all__ = ["settings", "Settings"]
