"""Configuration module for textile-ls."""

from textile_ls.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
