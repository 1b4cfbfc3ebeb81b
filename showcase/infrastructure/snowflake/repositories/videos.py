"""
Snowflake repository for video documents.

Videos are stored as documents: one VARIANT column holding the camelCase
record, keyed by a backend-assigned id. That keeps the table shape stable
while the record grows fields, and makes partial updates a matter of
OBJECT_INSERT on the changed keys.

The application code never writes SQL directly; it asks the repository
for what it needs in domain terms.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Protocol
from uuid import uuid4

from ....core.videos.models import VideoRecord

logger = logging.getLogger(__name__)

TABLE_NAME = "video_documents"


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "SHOWCASE"
    schema: str = "PUBLIC"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class VideoDocumentRepository:
    """
    Repository for the remote video collection.

    - list_documents: the whole collection, newest first
    - add_document: insert and return the generated id
    - update_fields: partial write of selected document keys
    - delete_document: remove by id
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def ensure_schema(self) -> None:
        cursor = self._conn.cursor()
        try:
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                    document_id STRING PRIMARY KEY,
                    document VARIANT,
                    created_at TIMESTAMP_NTZ,
                    updated_at TIMESTAMP_NTZ
                )
            """)
            self._conn.commit()
        finally:
            cursor.close()

    def list_documents(self) -> list[VideoRecord]:
        """Load every document ordered by creation time, newest first."""
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"""
                SELECT document_id, document
                FROM {TABLE_NAME}
                ORDER BY created_at DESC
            """)

            records = []
            for document_id, document in cursor.fetchall():
                parsed = self._parse_variant_json(document)
                try:
                    records.append(VideoRecord.from_document(parsed or {}, id=document_id))
                except ValueError as e:
                    logger.warning(
                        "Skipping malformed video document",
                        extra={"document_id": document_id, "error": str(e)},
                    )
            return records

        finally:
            cursor.close()

    def add_document(self, record: VideoRecord) -> str:
        """
        Insert a new document. The backend owns ids, so the record's own
        id is ignored and a fresh one is returned.
        """
        document_id = uuid4().hex
        document = record.to_document()
        document.pop("id", None)
        created_at = self._parse_created_at(record.created_at)

        cursor = self._conn.cursor()
        try:
            # PARSE_JSON isn't allowed in a VALUES clause
            cursor.execute(f"""
                INSERT INTO {TABLE_NAME} (document_id, document, created_at, updated_at)
                SELECT %s, PARSE_JSON(%s), %s, %s
            """, (
                document_id,
                json.dumps(document),
                created_at,
                created_at,
            ))
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to insert video document",
                extra={"error": str(e)},
            )
            raise
        finally:
            cursor.close()

        return document_id

    def update_fields(self, document_id: str, fields: Mapping[str, Any]) -> None:
        """
        Overwrite only the given document keys.

        Each key becomes a nested OBJECT_INSERT(..., TRUE) so other fields
        written concurrently by someone else are left alone.
        """
        if not fields:
            return

        expression = "document"
        params: list[Any] = []
        for key, value in fields.items():
            expression = f"OBJECT_INSERT({expression}, %s, PARSE_JSON(%s), TRUE)"
            params.extend([key, json.dumps(value)])

        # the listing sorts on the column, so it follows the document's createdAt
        column_updates = ""
        if "createdAt" in fields:
            column_updates = "created_at = %s,"
            params.append(self._parse_created_at(fields["createdAt"]))

        params.extend([datetime.now(timezone.utc).replace(tzinfo=None), document_id])

        cursor = self._conn.cursor()
        try:
            cursor.execute(f"""
                UPDATE {TABLE_NAME}
                SET document = {expression},
                    {column_updates}
                    updated_at = %s
                WHERE document_id = %s
            """, tuple(params))
            self._conn.commit()

        except Exception as e:
            logger.error(
                "Failed to update video document",
                extra={"document_id": document_id, "error": str(e)},
            )
            raise
        finally:
            cursor.close()

    def delete_document(self, document_id: str) -> bool:
        cursor = self._conn.cursor()
        try:
            cursor.execute(f"""
                DELETE FROM {TABLE_NAME}
                WHERE document_id = %s
            """, (document_id,))
            self._conn.commit()
            return cursor.rowcount > 0

        except Exception as e:
            logger.error(
                "Failed to delete video document",
                extra={"document_id": document_id, "error": str(e)},
            )
            raise
        finally:
            cursor.close()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _parse_variant_json(self, variant_data):
        """
        Parse Snowflake VARIANT data that might be a string or already parsed.

        snowflake-connector-python returns VARIANT as a JSON string, and
        so does the mock cursor.
        """
        if not variant_data:
            return None

        if isinstance(variant_data, str):
            try:
                return json.loads(variant_data)
            except json.JSONDecodeError as e:
                logger.error(
                    "Failed to parse VARIANT JSON string",
                    extra={"variant_data": variant_data[:100], "error": str(e)}
                )
                return None

        return variant_data

    def _parse_created_at(self, created_at: str) -> datetime:
        """ISO string (with Z suffix) -> naive UTC datetime for TIMESTAMP_NTZ."""
        try:
            parsed = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        except ValueError:
            parsed = datetime.now(timezone.utc)
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
