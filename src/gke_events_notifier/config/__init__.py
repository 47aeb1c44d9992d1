"""Configuration management."""

from .settings import Config, FilterConfig, ServerConfig, SlackConfig, load_config

__all__ = ["Config", "ServerConfig", "SlackConfig", "FilterConfig", "load_config"]
