"""Utility functions for promptrouter."""

from promptrouter.utils.logging import configure_logging, configure_from_config

__all__ = ["configure_logging", "configure_from_config"]
