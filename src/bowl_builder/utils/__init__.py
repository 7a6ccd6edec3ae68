"""
Utilities Module

This module contains shared utilities and helper functions.
"""

from .config import Config
from .logging import get_logger, setup_logging

__all__ = ["Config", "get_logger", "setup_logging"]
