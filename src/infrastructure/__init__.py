"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- snowflake: Video metadata persistence
- storage: Object storage (S3/R2)
- video: FFmpeg probe and remux

These wrappers translate between external formats and our domain models.
"""
