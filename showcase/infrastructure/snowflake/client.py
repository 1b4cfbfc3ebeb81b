"""
Connections to the Snowflake account holding the video collection.

Two kinds of connection satisfy the same cursor/commit interface:
a real one from snowflake-connector-python, and an in-memory mock that
understands the handful of statements VideoDocumentRepository issues.
The mock backs SNOWFLAKE_MOCK_MODE and the unit tests.
"""

import base64
import json
import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

from .repositories.videos import TABLE_NAME, SnowflakeConfig, SnowflakeConnection

logger = logging.getLogger(__name__)


class SnowflakeConnectionError(Exception):
    """The account could not be reached or the credentials were rejected."""
    pass


def _load_private_key(key_pem: bytes) -> bytes:
    """PEM private key (unencrypted) -> PKCS8 DER, the form the connector takes."""
    from cryptography.hazmat.backends import default_backend
    from cryptography.hazmat.primitives import serialization

    key = serialization.load_pem_private_key(key_pem, password=None, backend=default_backend())
    return key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _read_private_key(config: SnowflakeConfig) -> Optional[bytes]:
    """Key from file path first, then from the base64 env variant."""
    if config.private_key_path:
        with open(config.private_key_path, 'rb') as key_file:
            return _load_private_key(key_file.read())
    if config.private_key_base64:
        return _load_private_key(base64.b64decode(config.private_key_base64))
    return None


def _connect_params(config: SnowflakeConfig) -> dict[str, Any]:
    """
    Keyword arguments for snowflake.connector.connect.

    A private key wins over a password when both are configured.
    """
    params: dict[str, Any] = {
        'account': config.account,
        'user': config.user,
        'database': config.database,
        'schema': config.schema,
        'warehouse': config.warehouse,
        'role': config.role,
        # the watcher keeps one session open for the process lifetime
        'client_session_keep_alive': True,
    }

    private_key = _read_private_key(config)
    if private_key:
        params['private_key'] = private_key
        auth = "key-pair"
    elif config.password:
        params['password'] = config.password
        auth = "password"
    else:
        raise SnowflakeConnectionError("Snowflake needs a password or a private key")

    logger.info("Connecting to Snowflake", extra={"account": config.account, "auth": auth})
    return params


@contextmanager
def get_snowflake_connection(config: SnowflakeConfig) -> Generator[SnowflakeConnection, None, None]:
    """
    Open a real connection and close it when the block exits.

        with get_snowflake_connection(config) as conn:
            repository = VideoDocumentRepository(conn)
    """
    try:
        import snowflake.connector
    except ImportError:
        raise ImportError(
            "The remote backend needs snowflake-connector-python "
            "(pip install snowflake-connector-python)"
        )

    params = _connect_params(config)
    try:
        conn = snowflake.connector.connect(**params)
    except snowflake.connector.errors.DatabaseError as e:
        logger.error(
            "Could not connect to Snowflake",
            extra={"account": config.account, "error": str(e)},
        )
        raise SnowflakeConnectionError(f"Database connection failed: {e}")

    logger.debug(
        "Snowflake session opened",
        extra={"database": config.database, "schema": config.schema},
    )

    try:
        yield conn
    finally:
        try:
            conn.close()
        except Exception as e:
            logger.warning("Failed to close Snowflake session", extra={"error": str(e)})



# ---------------------------------------------------------------------------
# Mock Connection for Local Development
# ---------------------------------------------------------------------------

class MockSnowflakeCursor:
    """
    Cursor over the in-memory video_documents table.

    Statements are recognized by their leading keyword; only the shapes
    VideoDocumentRepository sends are supported. CREATE and anything not
    touching the table are accepted and ignored.
    """

    def __init__(self, storage: dict) -> None:
        self._storage = storage
        self._results: list = []
        self._rowcount: int = 0

    def execute(self, query: str, params: Optional[tuple] = None) -> 'MockSnowflakeCursor':
        logger.debug("Mock statement", extra={"query": " ".join(query.split())[:80]})

        query_upper = " ".join(query.upper().split())
        self._results = []
        self._rowcount = 0

        if TABLE_NAME.upper() not in query_upper or query_upper.startswith('CREATE'):
            return self

        if query_upper.startswith('INSERT INTO'):
            self._handle_insert(params)
        elif query_upper.startswith('UPDATE'):
            self._handle_update(params, "CREATED_AT =" in query_upper)
        elif query_upper.startswith('DELETE'):
            self._handle_delete(params)
        elif query_upper.startswith('SELECT'):
            self._handle_select()

        return self

    def _handle_insert(self, params: Optional[tuple]) -> None:
        document_id, document_json, created_at, updated_at = params
        self._storage['sequence'] += 1
        self._storage[TABLE_NAME][document_id] = {
            'document': json.loads(document_json),
            'created_at': created_at,
            'updated_at': updated_at,
            'sequence': self._storage['sequence'],
        }
        self._rowcount = 1

    def _handle_update(self, params: Optional[tuple], sets_created_at: bool) -> None:
        # (key1, value1_json, ..., [created_at,] updated_at, document_id)
        *pairs, updated_at, document_id = params
        created_at = pairs.pop() if sets_created_at else None
        row = self._storage[TABLE_NAME].get(document_id)
        if row is None:
            return

        if created_at is not None:
            row['created_at'] = created_at

        for key, value_json in zip(pairs[::2], pairs[1::2]):
            row['document'][key] = json.loads(value_json)
        row['updated_at'] = updated_at
        self._rowcount = 1

    def _handle_delete(self, params: Optional[tuple]) -> None:
        document_id = params[0]
        if self._storage[TABLE_NAME].pop(document_id, None) is not None:
            self._rowcount = 1

    def _handle_select(self) -> None:
        rows = sorted(
            self._storage[TABLE_NAME].items(),
            key=lambda item: (item[1]['created_at'], item[1]['sequence']),
            reverse=True,
        )
        # the real driver hands VARIANT back as a JSON string
        self._results = [
            (document_id, json.dumps(row['document']))
            for document_id, row in rows
        ]

    def fetchone(self):
        if not self._results:
            return None
        return self._results[0]

    def fetchall(self) -> list:
        return self._results

    def close(self) -> None:
        pass

    @property
    def rowcount(self) -> int:
        return self._rowcount


class MockSnowflakeConnection:
    """
    In-memory stand-in for a Snowflake connection.

    Rows live in a dict shared by every cursor, so a connection behaves
    like one small database for the process (or the test) that made it.
    """

    def __init__(self) -> None:
        # {TABLE_NAME: {document_id: row_dict}, 'sequence': insert counter}
        self._storage: dict = {
            TABLE_NAME: {},
            'sequence': 0,
        }

        logger.info("Using in-memory video collection")

    def cursor(self) -> MockSnowflakeCursor:
        return MockSnowflakeCursor(self._storage)

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    def close(self) -> None:
        logger.debug("In-memory video collection closed")

    # Inspection helpers for tests
    def _get_document(self, document_id: str) -> Optional[dict]:
        row = self._storage[TABLE_NAME].get(document_id)
        return dict(row['document']) if row else None

    def _document_ids(self) -> list[str]:
        return list(self._storage[TABLE_NAME])


@contextmanager
def get_mock_snowflake_connection() -> Generator[MockSnowflakeConnection, None, None]:
    conn = MockSnowflakeConnection()
    try:
        yield conn
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

@contextmanager
def create_snowflake_connection(
    config: Optional[SnowflakeConfig] = None,
    mock_mode: bool = False,
) -> Generator[SnowflakeConnection, None, None]:
    """
    Connection for the remote backend: the in-memory mock in mock mode,
    otherwise a real session (config is then required).
    """
    if mock_mode:
        with get_mock_snowflake_connection() as conn:
            yield conn
    else:
        if config is None:
            raise ValueError("config is required when not in mock mode")

        with get_snowflake_connection(config) as conn:
            yield conn
