"""DuckDB vector store for FileLens - chunk vectors persisted in an embedded database."""

import asyncio
import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import duckdb
from loguru import logger

from core.exceptions import DatabaseError, ValidationError
from core.models import IndexStats, SearchHit, TextChunk, VectorRecord
from core.types import make_record_id
from filelens.metrics import MetricOperation, MetricsRecorder

TABLE_NAME = "file_chunks"
DB_FILENAME = "vectors.duckdb"
HNSW_INDEX_NAME = "idx_file_chunks_hnsw"

T = TypeVar("T")


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so a path prefix matches literally (ESCAPE '\\')."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _is_missing_error(error: Exception) -> bool:
    """Only a missing table reads as an empty index; other failures propagate."""
    return isinstance(error, duckdb.CatalogException)


class DuckDBVectorStore:
    """DuckDB implementation of VectorStoreProvider.

    All blocking DuckDB calls run in a worker thread via asyncio.to_thread
    and are serialized by one lock; the store assumes a single writer per
    process and takes no cross-process locks.
    """

    def __init__(
        self,
        dimensions: int = 384,
        hnsw_index: bool = False,
        metrics: Optional[MetricsRecorder] = None,
    ):
        """Initialize the store without opening it.

        Args:
            dimensions: Length of every stored embedding
            hnsw_index: Build an HNSW index with the vss extension
            metrics: Optional latency recorder
        """
        self._dimensions = dimensions
        self._hnsw_index = hnsw_index
        self._metrics = metrics
        self._location: Optional[Path] = None
        self.connection: Optional[Any] = None
        self._lock = threading.Lock()

    @property
    def location(self) -> Optional[Path]:
        return self._location

    @property
    def db_path(self) -> Optional[Path]:
        if self._location is None:
            return None
        return self._location / DB_FILENAME

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def is_connected(self) -> bool:
        return self.connection is not None

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        def locked() -> T:
            with self._lock:
                return fn(*args)
        return await asyncio.to_thread(locked)

    def _require_connection(self, operation: str) -> Any:
        if self.connection is None:
            raise DatabaseError(operation=operation, reason="Vector store not initialized")
        return self.connection

    def _wrap(self, operation: str, error: Exception) -> DatabaseError:
        logger.error(f"Vector store {operation} failed: {error}")
        return DatabaseError(
            operation=operation,
            table=TABLE_NAME,
            reason=str(error),
            path=str(self.db_path) if self.db_path else None,
            cause=error,
        )

    # Lifecycle

    async def initialize(self, location: str | Path) -> None:
        """Open or create the store under ``location``.

        Calling again with the same location is a no-op; a different
        location closes the current database and opens the new one.
        """
        await self._run(self._initialize_sync, Path(location).expanduser())

    def _initialize_sync(self, location: Path) -> None:
        resolved = location.resolve()
        if self.connection is not None and self._location == resolved:
            return

        if self.connection is not None:
            self._close_sync()

        logger.info(f"Opening vector store at {resolved}")
        try:
            resolved.mkdir(parents=True, exist_ok=True)
            self.connection = duckdb.connect(str(resolved / DB_FILENAME))
            self._location = resolved
            if self._hnsw_index:
                self._load_extensions()
            self._create_schema()
        except duckdb.Error as e:
            if self.connection is not None:
                self.connection.close()
                self.connection = None
            raise self._wrap("initialize", e)
        except OSError as e:
            raise DatabaseError(operation="initialize", reason=str(e), path=str(resolved), cause=e)

        logger.info(f"Vector store ready ({self._dimensions} dims)")

    def _load_extensions(self) -> None:
        self.connection.execute("INSTALL vss")
        self.connection.execute("LOAD vss")
        self.connection.execute("SET hnsw_enable_experimental_persistence = true")
        logger.debug("VSS extension loaded")

    def _create_schema(self) -> None:
        self.connection.execute(f"""
            CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
                id VARCHAR NOT NULL,
                chunk_text VARCHAR NOT NULL,
                embedding FLOAT[{self._dimensions}] NOT NULL,
                file_path VARCHAR NOT NULL,
                chunk_index INTEGER NOT NULL,
                indexed_at DOUBLE NOT NULL
            )
        """)
        self.connection.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_file_path ON {TABLE_NAME}(file_path)"
        )
        if self._hnsw_index:
            try:
                self.connection.execute(f"""
                    CREATE INDEX IF NOT EXISTS {HNSW_INDEX_NAME} ON {TABLE_NAME}
                    USING HNSW (embedding) WITH (metric = 'cosine')
                """)
            except duckdb.Error as e:
                logger.warning(f"Failed to create HNSW index, using exact search: {e}")

    async def close(self) -> None:
        await self._run(self._close_sync)

    def _close_sync(self) -> None:
        if self.connection is not None:
            self.connection.close()
            self.connection = None
            logger.info("Vector store closed")

    # Writes

    async def add_chunks(
        self,
        chunks: list[TextChunk],
        embeddings: list[list[float]],
        file_path: str,
    ) -> int:
        """Upsert one record per chunk for ``file_path``.

        Raises:
            ValidationError: If counts or vector lengths do not match; nothing is written
            DatabaseError: If the write fails; the transaction is rolled back
        """
        if len(chunks) != len(embeddings):
            raise ValidationError(
                "embeddings",
                len(embeddings),
                f"Chunks and embeddings length mismatch: {len(chunks)} vs {len(embeddings)}"
            )
        if not chunks:
            return 0
        for chunk, embedding in zip(chunks, embeddings):
            if len(embedding) != self._dimensions:
                raise ValidationError(
                    "embedding",
                    len(embedding),
                    f"Embedding dimensions don't match: {len(embedding)} vs {self._dimensions}",
                    context={"chunk_index": chunk.chunk_index},
                )

        if self._metrics is not None:
            with self._metrics.timer(MetricOperation.VECTOR_ADD):
                return await self._run(self._add_chunks_sync, chunks, embeddings, file_path)
        return await self._run(self._add_chunks_sync, chunks, embeddings, file_path)

    def _add_chunks_sync(
        self,
        chunks: list[TextChunk],
        embeddings: list[list[float]],
        file_path: str,
    ) -> int:
        connection = self._require_connection("add_chunks")
        indexed_at = time.time()
        ids = [make_record_id(file_path, chunk.chunk_index) for chunk in chunks]
        rows = [
            (record_id, chunk.text, embedding, file_path, chunk.chunk_index, indexed_at)
            for record_id, chunk, embedding in zip(ids, chunks, embeddings)
        ]

        try:
            connection.execute("BEGIN TRANSACTION")
            # Replace by id: the same file and chunk index always maps to one record.
            connection.execute(
                f"DELETE FROM {TABLE_NAME} WHERE list_contains(?::VARCHAR[], id)",
                [ids],
            )
            connection.executemany(
                f"INSERT INTO {TABLE_NAME} VALUES (?, ?, ?::FLOAT[{self._dimensions}], ?, ?, ?)",
                rows,
            )
            connection.execute("COMMIT")
        except duckdb.Error as e:
            try:
                connection.execute("ROLLBACK")
            except duckdb.Error as rollback_error:
                logger.warning(f"Rollback after failed add_chunks also failed: {rollback_error}")
            raise self._wrap("add_chunks", e)

        logger.debug(f"Stored {len(rows)} chunks for {file_path}")
        return len(rows)

    async def delete_file(self, file_path: str) -> int:
        """Delete every record whose file_path equals ``file_path`` exactly."""
        return await self._run(self._delete_sync, "delete_file", file_path, None)

    async def prune_file(self, file_path: str, keep_count: int) -> int:
        """Delete records for ``file_path`` with chunk_index >= keep_count."""
        return await self._run(self._delete_sync, "prune_file", file_path, keep_count)

    def _delete_sync(self, operation: str, file_path: str, keep_count: Optional[int]) -> int:
        connection = self._require_connection(operation)
        where = "file_path = ?"
        params: list[Any] = [file_path]
        if keep_count is not None:
            where += " AND chunk_index >= ?"
            params.append(keep_count)

        try:
            connection.execute("BEGIN TRANSACTION")
            count = connection.execute(
                f"SELECT COUNT(*) FROM {TABLE_NAME} WHERE {where}", params
            ).fetchone()[0]
            if count:
                connection.execute(f"DELETE FROM {TABLE_NAME} WHERE {where}", params)
            connection.execute("COMMIT")
        except duckdb.Error as e:
            try:
                connection.execute("ROLLBACK")
            except duckdb.Error as rollback_error:
                logger.warning(f"Rollback after failed {operation} also failed: {rollback_error}")
            if _is_missing_error(e):
                return 0
            raise self._wrap(operation, e)

        if count:
            logger.debug(f"{operation}: removed {count} chunks for {file_path}")
        return count

    async def clear(self) -> None:
        """Drop and recreate the chunk table."""
        await self._run(self._clear_sync)

    def _clear_sync(self) -> None:
        connection = self._require_connection("clear")
        try:
            connection.execute(f"DROP TABLE IF EXISTS {TABLE_NAME}")
            self._create_schema()
            connection.execute("CHECKPOINT")
        except duckdb.Error as e:
            raise self._wrap("clear", e)
        logger.info("Vector store cleared")

    # Reads

    async def search(
        self,
        query_embedding: list[float],
        top_k: int = 10,
        path_prefix: Optional[str] = None,
    ) -> list[SearchHit]:
        """Nearest records by descending cosine similarity.

        Args:
            query_embedding: Query vector
            top_k: Maximum number of hits
            path_prefix: Only consider files under this path

        Returns:
            Up to ``top_k`` hits; empty when the store has no records
        """
        if len(query_embedding) != self._dimensions:
            raise ValidationError(
                "query_embedding",
                len(query_embedding),
                f"Embedding dimensions don't match: {len(query_embedding)} vs {self._dimensions}"
            )
        if top_k <= 0:
            return []

        if self._metrics is not None:
            with self._metrics.timer(MetricOperation.VECTOR_SEARCH):
                return await self._run(self._search_sync, query_embedding, top_k, path_prefix)
        return await self._run(self._search_sync, query_embedding, top_k, path_prefix)

    def _search_sync(
        self,
        query_embedding: list[float],
        top_k: int,
        path_prefix: Optional[str],
    ) -> list[SearchHit]:
        connection = self._require_connection("search")
        if not any(query_embedding):
            # Cosine similarity is undefined for a zero query vector.
            return []

        query = f"""
            SELECT
                chunk_text,
                file_path,
                chunk_index,
                indexed_at,
                array_cosine_similarity(embedding, ?::FLOAT[{self._dimensions}]) AS similarity
            FROM {TABLE_NAME}
        """
        params: list[Any] = [query_embedding]

        if path_prefix:
            query += " WHERE file_path LIKE ? ESCAPE '\\'"
            params.append(escape_like(path_prefix) + "%")

        query += " ORDER BY similarity DESC LIMIT ?"
        params.append(top_k)

        try:
            rows = connection.execute(query, params).fetchall()
        except duckdb.Error as e:
            if _is_missing_error(e):
                return []
            raise self._wrap("search", e)

        return [
            SearchHit(
                record=VectorRecord(
                    chunk_text=row[0],
                    file_path=row[1],
                    chunk_index=row[2],
                    indexed_at=row[3],
                ),
                score=float(row[4]) if row[4] is not None else 0.0,
            )
            for row in rows
        ]

    async def list_files(self) -> list[str]:
        return await self._run(self._list_files_sync)

    def _list_files_sync(self) -> list[str]:
        connection = self._require_connection("list_files")
        try:
            rows = connection.execute(
                f"SELECT DISTINCT file_path FROM {TABLE_NAME} ORDER BY file_path"
            ).fetchall()
        except duckdb.Error as e:
            if _is_missing_error(e):
                return []
            raise self._wrap("list_files", e)
        return [row[0] for row in rows]

    async def get_stats(self) -> IndexStats:
        return await self._run(self._get_stats_sync)

    def _get_stats_sync(self) -> IndexStats:
        connection = self._require_connection("get_stats")
        try:
            row = connection.execute(f"""
                SELECT
                    COUNT(DISTINCT file_path),
                    COUNT(*),
                    COALESCE(SUM(CEIL(LENGTH(chunk_text) / 4.0)), 0),
                    MAX(indexed_at)
                FROM {TABLE_NAME}
            """).fetchone()
        except duckdb.Error as e:
            if _is_missing_error(e):
                return IndexStats.empty()
            raise self._wrap("get_stats", e)

        total_files, total_chunks, total_tokens, last_indexed = row
        if not total_chunks:
            return IndexStats.empty()

        return IndexStats(
            total_files=int(total_files),
            total_chunks=int(total_chunks),
            total_tokens=int(total_tokens),
            index_size_bytes=self._on_disk_size(),
            last_indexed=last_indexed,
        )

    def _on_disk_size(self) -> int:
        db_path = self.db_path
        if db_path is None:
            return 0
        size = 0
        for path in (db_path, db_path.with_name(db_path.name + ".wal")):
            if path.exists():
                size += path.stat().st_size
        return size
