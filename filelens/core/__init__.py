"""
Core configuration for FileLens.

This package contains the unified configuration system shared by the CLI,
the registry and the services.
"""

__all__ = ["config"]
