"""
Tubely Ingest - video upload, fast-start processing and signed delivery.

This package contains the complete application:
- core: Framework-agnostic ingestion pipeline (inspect, remux, key, sign)
- infrastructure: External service integrations (S3, Snowflake, FFmpeg)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
