"""
Snowflake database connection management.

Provides connection factory and context manager for Snowflake operations.
Includes mock mode with in-memory storage for local development.

Most code never touches this module directly - it goes through
VideoRepository, which handles the translation between domain models and
database rows.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generator, Optional, Protocol

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """Raised when Snowflake connection fails."""
    pass


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    database: str = "TUBELY"
    schema: str = "MEDIA"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


def _load_private_key(key_path: str) -> bytes:
    """
    Load private key from file for key-pair authentication.

    Snowflake requires the private key as DER bytes, not a file path.
    """
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    with open(key_path, 'rb') as key_file:
        private_key = serialization.load_pem_private_key(
            key_file.read(),
            password=None,
            backend=default_backend()
        )

    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide Snowflake connection with automatic cleanup.

    Supports both password and key-pair authentication:
    - If private_key_path is set, uses key-pair auth
    - Otherwise, uses password auth

    Usage:
        with get_snowflake_connection(config) as conn:
            cursor = conn.cursor()
            # do work
            conn.commit()
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "snowflake-connector-python is required. "
            "Install with: pip install snowflake-connector-python"
        )

    connect_params = {
        'account': config.account,
        'user': config.user,
        'database': config.database,
        'schema': config.schema,
        'warehouse': config.warehouse,
        'role': config.role,
    }

    if config.private_key_path:
        logger.info("Using key-pair authentication for Snowflake")
        connect_params['private_key'] = _load_private_key(config.private_key_path)
    elif config.password:
        logger.info("Using password authentication for Snowflake")
        connect_params['password'] = config.password
    else:
        raise SnowflakeConnectionError(
            "Either password or private_key_path must be provided"
        )

    try:
        conn = snowflake.connector.connect(**connect_params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Snowflake connection failed",
            extra={"error": str(e), "account": config.account}
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}")

    logger.debug(
        "Established Snowflake connection",
        extra={
            "account": config.account,
            "database": config.database,
            "schema": config.schema,
        }
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
            logger.debug("Closed Snowflake connection")
        except Exception as e:
            logger.warning(
                "Error closing Snowflake connection",
                extra={"error": str(e)}
            )


# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

VIDEO_COLUMNS = (
    'video_id',
    'user_id',
    'title',
    'description',
    'video_bucket',
    'video_key',
    'created_at',
    'updated_at',
)


class MockSnowflakeCursor:
    """
    Mock Snowflake cursor for testing.

    Implements just enough of the cursor interface to support
    VideoRepository without a real database. Queries are recognized by
    pattern, and parameters are expected in the order VideoRepository
    sends them.
    """

    def __init__(self, storage: dict, lock: threading.Lock) -> None:
        self._storage = storage
        self._lock = lock
        self._results: list = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        """Execute a query against mock storage."""
        logger.debug(
            "Mock cursor execute",
            extra={"query": query[:100], "params": params}
        )

        query_upper = ' '.join(query.upper().split())
        params = params or ()

        with self._lock:
            if query_upper.startswith('CREATE TABLE'):
                self._rowcount = 0
            elif query_upper.startswith('INSERT INTO VIDEOS'):
                self._handle_insert(params)
            elif query_upper.startswith('UPDATE VIDEOS'):
                self._handle_update(params)
            elif query_upper.startswith('SELECT') and 'FROM VIDEOS' in query_upper:
                self._handle_select(query_upper, params)
            else:
                raise ValueError(f"Mock cursor does not understand query: {query[:60]}")

        return self

    def _handle_insert(self, params: tuple) -> None:
        row = dict(zip(VIDEO_COLUMNS, params))
        videos = self._storage['videos']
        if row['video_id'] in videos:
            raise ValueError(f"Duplicate video_id {row['video_id']}")
        videos[row['video_id']] = row
        self._rowcount = 1

    def _handle_update(self, params: tuple) -> None:
        # SET title, description, video_bucket, video_key, updated_at WHERE video_id
        title, description, bucket, key, updated_at, video_id = params
        row = self._storage['videos'].get(video_id)
        if row is None:
            self._rowcount = 0
            return
        row.update({
            'title': title,
            'description': description,
            'video_bucket': bucket,
            'video_key': key,
            'updated_at': updated_at,
        })
        self._rowcount = 1

    def _handle_select(self, query: str, params: tuple) -> None:
        videos = self._storage['videos'].values()

        if 'WHERE VIDEO_ID' in query:
            matches = [row for row in videos if row['video_id'] == params[0]]
        elif 'WHERE USER_ID' in query:
            matches = sorted(
                (row for row in videos if row['user_id'] == params[0]),
                key=lambda row: row['created_at'],
                reverse=True,
            )
        else:
            matches = list(videos)

        self._results = [tuple(row[col] for col in VIDEO_COLUMNS) for row in matches]
        self._rowcount = len(self._results)

    def fetchone(self) -> Optional[tuple]:
        """Fetch one row from results."""
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        """Fetch all rows from results."""
        return list(self._results)

    def close(self) -> None:
        """Close cursor (no-op for mock)."""
        pass

    @property
    def rowcount(self) -> int:
        """Return number of rows affected."""
        return self._rowcount


class MockSnowflakeConnection:
    """
    Mock Snowflake connection for local development.

    Stores rows in memory. One instance is shared across requests in mock
    mode, so a lock serializes statements the way the database would.

    Not suitable for production, but perfect for:
    - Local development
    - Unit tests
    - CI/CD environments
    """

    def __init__(self) -> None:
        # In-memory storage: {table_name: {id: row_dict}}
        self._storage: dict[str, dict[str, dict[str, Any]]] = {
            'videos': {},
        }
        self._lock = threading.Lock()

        logger.info("Initialized mock Snowflake connection (in-memory)")

    def cursor(self) -> MockSnowflakeCursor:
        """Create a mock cursor."""
        return MockSnowflakeCursor(self._storage, self._lock)

    def commit(self) -> None:
        """Commit transaction (no-op for mock, always auto-commits)."""
        logger.debug("Mock connection commit")

    def rollback(self) -> None:
        """Rollback transaction (no-op for mock)."""
        logger.debug("Mock connection rollback")

    def close(self) -> None:
        """Close connection (no-op for mock)."""
        logger.debug("Mock connection close")
