"""Core shared infrastructure for capwire.

This package contains foundational utilities:
    - config: Application configuration management
    - console: Rich console output and logging
    - result: Result type and error hierarchy
    - error_middleware: Error formatting for the CLI and transports
    - versioning: Semantic version ranges and resolution
"""

from __future__ import annotations

from . import config, console

__all__ = ["config", "console"]
