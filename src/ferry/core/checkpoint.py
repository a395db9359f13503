"""
Durable per-source cursor store.

Each source identifier owns one small file holding its cursor as decimal
text, under ``./.run/.checkpoints`` by default. The format is kept minimal
so operators can inspect or reset a checkpoint by hand.
"""

import asyncio
from enum import Enum
from pathlib import Path

import structlog

from ferry.core.exceptions import CheckpointError, ConfigurationError
from ferry.core.metrics import MetricsSink, NullMetrics

logger = structlog.get_logger()

DEFAULT_CHECKPOINT_DIR = Path(".run") / ".checkpoints"


class PersistErrorPolicy(str, Enum):
    """What to do when a checkpoint write fails."""

    LOG = "log"
    RAISE = "raise"


class CheckpointStore:
    """
    File-backed checkpoint store.

    The in-memory cursor is the source of truth during a run; every advance
    is written through to disk. Under the ``log`` policy a failed write
    still advances the cursor and the next write persists the correct
    value. Under ``raise`` the cursor only moves once the write succeeded.

    Usage:
        store = CheckpointStore(Path(".run/.checkpoints"))
        offset = await store.load("mysql_orders")
        ...
        await store.advance_and_persist("mysql_orders")
    """

    def __init__(
        self,
        directory: Path | str | None = None,
        on_persist_error: PersistErrorPolicy | str = PersistErrorPolicy.LOG,
        metrics: MetricsSink | None = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            directory: Directory holding one ``<source-id>.dat`` per source.
            on_persist_error: ``log`` to continue after a failed write,
                ``raise`` to surface a CheckpointError.
            metrics: Metrics handle for failure counts.
        """
        self._directory = Path(directory) if directory else DEFAULT_CHECKPOINT_DIR
        self._policy = PersistErrorPolicy(on_persist_error)
        self._metrics = metrics or NullMetrics()
        self._cursors: dict[str, int] = {}

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, source_id: str) -> Path:
        """Path of the checkpoint file for ``source_id``."""
        if not source_id or "/" in source_id or "\\" in source_id or source_id in (".", ".."):
            raise ConfigurationError(
                f"invalid checkpoint source id: {source_id!r}",
                field="name",
            )
        return self._directory / f"{source_id}.dat"

    def current(self, source_id: str) -> int:
        """In-memory cursor for ``source_id`` (0 before load)."""
        return self._cursors.get(source_id, 0)

    async def load(self, source_id: str) -> int:
        """
        Load the last persisted cursor, creating the file on first run.

        Returns:
            The persisted cursor, or 0 if none exists yet.
        """
        path = self.path_for(source_id)
        cursor = await asyncio.to_thread(self._read_or_create, path)
        self._cursors[source_id] = max(cursor, self._cursors.get(source_id, 0))

        logger.info(
            "checkpoint_loaded",
            source_id=source_id,
            checkpoint=self._cursors[source_id],
            path=str(path),
        )
        return self._cursors[source_id]

    async def advance_and_persist(self, source_id: str, count: int = 1) -> int:
        """
        Advance the cursor by ``count`` and write it through.

        The new value is written before it replaces the in-memory cursor.
        Under the ``raise`` policy a failed write leaves the cursor where
        it was, so the caller can hand the same events out again.

        Returns:
            The new cursor value.

        Raises:
            CheckpointError: If the write fails and the policy is ``raise``.
        """
        target = self._target(source_id, count)
        await asyncio.to_thread(self._persist_or_report, source_id, target)
        self._cursors[source_id] = target
        return target

    def advance_and_persist_now(self, source_id: str, count: int = 1) -> int:
        """Synchronous ``advance_and_persist`` for callers that must not suspend."""
        target = self._target(source_id, count)
        self._persist_or_report(source_id, target)
        self._cursors[source_id] = target
        return target

    def _target(self, source_id: str, count: int) -> int:
        if count <= 0:
            raise ValueError("count must be > 0")
        return self.current(source_id) + count

    def _persist_or_report(self, source_id: str, cursor: int) -> None:
        path = self.path_for(source_id)
        try:
            path.write_text(str(cursor), encoding="utf-8")
        except OSError as e:
            self._metrics.checkpoint_failed(source_id)
            logger.warning(
                "checkpoint_persist_failed",
                source_id=source_id,
                checkpoint=cursor,
                path=str(path),
                error=str(e),
            )
            if self._policy is PersistErrorPolicy.RAISE:
                raise CheckpointError(
                    f"set checkpoint {cursor} failed: {e}",
                    source_id=source_id,
                    checkpoint=cursor,
                    details={"path": str(path)},
                ) from e

    @staticmethod
    def _read_or_create(path: Path) -> int:
        if path.exists():
            contents = path.read_text(encoding="utf-8").strip()
            if not contents:
                return 0
            try:
                value = int(contents)
            except ValueError as e:
                raise CheckpointError(
                    f"checkpoint file {path} is corrupt: {contents!r}",
                    source_id=path.stem,
                    checkpoint=0,
                ) from e
            return max(value, 0)

        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()
        return 0
