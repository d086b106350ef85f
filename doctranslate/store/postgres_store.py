from typing import Any

import psycopg
from psycopg.errors import UniqueViolation
from psycopg.rows import dict_row

from doctranslate.store.base import BaseJobStore, Patch, Predicate, apply_patch
from doctranslate.store.connection import close_pool, get_connection
from doctranslate.store.exceptions import DuplicateJobError, JobStoreError
from doctranslate.store.models import JobRecord, JobStatus, UpsertResult

_COLUMNS = (
    "id",
    "source_path",
    "status",
    "original_text",
    "normalized_text",
    "translated_text",
    "output_path",
    "error",
    "created_at",
)


def _row_to_record(row: dict[str, Any]) -> JobRecord:
    return JobRecord(
        id=row["id"],
        source_path=row["source_path"],
        status=JobStatus(row["status"]),
        original_text=row["original_text"],
        normalized_text=row["normalized_text"],
        translated_text=row["translated_text"],
        output_path=row["output_path"],
        error=row["error"],
        timestamp=row["created_at"],
    )


def _record_params(record: JobRecord) -> tuple[Any, ...]:
    return (
        record.id,
        record.source_path,
        record.status.value,
        record.original_text,
        record.normalized_text,
        record.translated_text,
        record.output_path,
        record.error,
        record.timestamp,
    )


class PostgresJobStore(BaseJobStore):
    """Job records in the translation_jobs table, one row per source_path.

    Each mutation touches only the rows it changes, in its own transaction.
    """

    def __init__(self, *, close_pool_on_exit: bool = True) -> None:
        self._close_pool_on_exit = close_pool_on_exit
        self._initialized = False

    def initialize(self) -> None:
        if self._initialized:
            return
        with get_connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS translation_jobs (
                    seq BIGSERIAL,
                    source_path TEXT PRIMARY KEY,
                    id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    original_text TEXT,
                    normalized_text TEXT,
                    translated_text TEXT,
                    output_path TEXT,
                    error TEXT,
                    created_at TEXT NOT NULL DEFAULT '',
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
                """
            )
            conn.commit()
        self._initialized = True

    def close(self) -> None:
        if self._close_pool_on_exit:
            close_pool()

    def read_all(self) -> list[JobRecord]:
        try:
            with get_connection() as conn:
                with conn.cursor(row_factory=dict_row) as cur:
                    cur.execute(
                        f"SELECT {', '.join(_COLUMNS)} FROM translation_jobs ORDER BY seq"
                    )
                    rows = cur.fetchall()
        except psycopg.Error as exc:
            raise JobStoreError(f"Failed to read jobs: {exc}") from exc
        return [_row_to_record(row) for row in rows]

    def insert(self, record: JobRecord) -> JobRecord:
        try:
            with get_connection() as conn:
                conn.execute(
                    f"""
                    INSERT INTO translation_jobs ({', '.join(_COLUMNS)})
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    _record_params(record),
                )
                conn.commit()
        except UniqueViolation as exc:
            raise DuplicateJobError(f"Job for {record.source_path} already exists") from exc
        except psycopg.Error as exc:
            raise JobStoreError(f"Failed to insert job {record.id}: {exc}") from exc
        return record

    def update(self, predicate: Predicate, patch: Patch) -> int:
        matches = [r for r in self.read_all() if predicate(r)]
        if not matches:
            return 0
        self._write_rows([(r.source_path, apply_patch(r, patch)) for r in matches])
        return len(matches)

    def upsert(self, predicate: Predicate, record: JobRecord) -> UpsertResult:
        existing = self.find_one(predicate)
        if existing is None:
            self.insert(record)
            return UpsertResult.INSERTED
        self._write_rows([(existing.source_path, existing.merged(record.to_patch()))])
        return UpsertResult.UPDATED

    def delete(self, predicate: Predicate) -> int:
        keys = [r.source_path for r in self.read_all() if predicate(r)]
        if not keys:
            return 0
        try:
            with get_connection() as conn:
                cur = conn.execute(
                    "DELETE FROM translation_jobs WHERE source_path = ANY(%s)",
                    (keys,),
                )
                conn.commit()
        except psycopg.Error as exc:
            raise JobStoreError(f"Failed to delete jobs: {exc}") from exc
        return cur.rowcount

    def clear(self) -> int:
        try:
            with get_connection() as conn:
                cur = conn.execute("DELETE FROM translation_jobs")
                conn.commit()
        except psycopg.Error as exc:
            raise JobStoreError(f"Failed to clear jobs: {exc}") from exc
        return cur.rowcount

    def _write_rows(self, rows: list[tuple[str, JobRecord]]) -> None:
        try:
            with get_connection() as conn:
                for key, record in rows:
                    conn.execute(
                        """
                        UPDATE translation_jobs
                        SET id = %s, source_path = %s, status = %s,
                            original_text = %s, normalized_text = %s,
                            translated_text = %s, output_path = %s,
                            error = %s, created_at = %s, updated_at = NOW()
                        WHERE source_path = %s
                        """,
                        (*_record_params(record), key),
                    )
                conn.commit()
        except UniqueViolation as exc:
            raise DuplicateJobError(f"source_path collision: {exc}") from exc
        except psycopg.Error as exc:
            raise JobStoreError(f"Failed to update jobs: {exc}") from exc
