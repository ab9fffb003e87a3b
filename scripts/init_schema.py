#!/usr/bin/env python3
"""
Create the videos table in Snowflake.

Safe to run repeatedly (CREATE TABLE IF NOT EXISTS).

Usage:
    python scripts/init_schema.py
    python scripts/init_schema.py --print-ddl

Requires:
    - .env file (or environment) with Snowflake credentials
"""

import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def main():
    import argparse

    from src.config.settings import get_settings
    from src.infrastructure.snowflake.client import SnowflakeConfig, get_snowflake_connection
    from src.infrastructure.snowflake.repositories.videos import VIDEOS_TABLE_DDL, VideoRepository

    parser = argparse.ArgumentParser(description='Create the Tubely videos table in Snowflake')
    parser.add_argument('--print-ddl', action='store_true', help='Print the DDL and exit')
    args = parser.parse_args()

    if args.print_ddl:
        print(VIDEOS_TABLE_DDL.strip())
        sys.exit(0)

    settings = get_settings()
    config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )

    print(f"Creating videos table in {config.database}.{config.schema}")

    try:
        with get_snowflake_connection(config=config) as conn:
            VideoRepository(conn).ensure_schema()
    except Exception as e:
        print(f"ERROR creating schema: {e}")
        sys.exit(1)

    print("Done")


if __name__ == '__main__':
    main()
