"""
Snowflake persistence for video metadata.

The connection layer lives in client.py; repositories/ holds the
domain-facing data access.
"""
