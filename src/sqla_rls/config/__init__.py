"""Configuration module for sqla-rls."""

from __future__ import annotations

from sqla_rls.config._config import RlsConfig, configure, get_global_config

__all__ = ["RlsConfig", "configure", "get_global_config"]
