"""
Core ingestion logic.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
Snowflake or subprocess. Collaborators (storage, metadata store, media
toolkit) arrive through protocols, so the pipeline can be exercised with
fakes in tests.
"""
