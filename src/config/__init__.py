"""
Application configuration.

Settings come from environment variables (or a .env file). Mock modes
let the API run locally without S3, Snowflake or FFmpeg.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
