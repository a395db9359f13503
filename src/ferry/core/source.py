"""
Source contract and the checkpointed polling state machine.

Provides:
- SourceEvent, the unit a source hands to the pipeline
- DataSource, the abstract incremental source
- CheckpointedSource, the Idle/Draining machine shared by offset-paged sources
"""

from abc import abstractmethod
from collections import deque
from dataclasses import dataclass, field

import structlog

from ferry.core.base import AbstractConnector
from ferry.core.checkpoint import CheckpointStore
from ferry.core.exceptions import SourceEOF
from ferry.core.metrics import MetricsSink

logger = structlog.get_logger()

Payload = bytes | str

# Tag naming where an event came from: the connector kind, or the topic
SOURCE_TAG = "access_source"


@dataclass(frozen=True, slots=True)
class SourceEvent:
    """
    One event produced by a source.

    Attributes:
        event_id: Monotonic identifier, unique within the source's lifetime.
        source: Identifier of the producing source.
        payload: Raw payload as received.
        tags: Free-form labels such as the originating topic.
    """

    event_id: int
    source: str
    payload: Payload
    tags: dict[str, str] = field(default_factory=dict)


class DataSource(AbstractConnector):
    """
    Abstract incremental source.

    ``receive`` may suspend on upstream I/O; ``try_receive`` never does and
    returns None when nothing is immediately available.
    """

    @abstractmethod
    async def receive(self) -> list[SourceEvent]:
        """
        Return the next batch of events.

        Raises:
            SourceEOF: No data is available right now.
            SupplierError: Upstream I/O or protocol failure.
            NotData: Upstream reported an idle poll.
        """
        ...

    @abstractmethod
    def try_receive(self) -> list[SourceEvent] | None:
        """Return events available without suspending, or None."""
        ...

    def identifier(self) -> str:
        """Stable identifier used for checkpoints and event attribution."""
        return self.name

    async def close(self) -> None:
        """Release upstream resources."""
        await self.disconnect()


class CheckpointedSource(DataSource):
    """
    Offset-paged source driven by a durable checkpoint.

    In the Idle state ``receive`` fetches up to ``batch_size`` payloads
    starting at the checkpoint. While Draining it hands out every buffered
    payload, advancing the checkpoint once per item; the event id is the
    new checkpoint value. The cursor is written through once per batch,
    before the batch is returned. A restart resumes from the persisted
    checkpoint, so at most one poll window can be delivered twice.

    The buffer is only popped after the checkpoint commit returns. When the
    store raises CheckpointError the payloads stay buffered and the next
    ``receive`` or ``try_receive`` retries the commit with the same events.

    Subclasses implement ``_fetch`` plus the connection hooks.
    """

    def __init__(
        self,
        connector_type: str,
        name: str,
        checkpoints: CheckpointStore,
        batch_size: int,
        metrics: MetricsSink | None = None,
        tags: dict[str, str] | None = None,
    ) -> None:
        super().__init__(connector_type, name, metrics=metrics, tags=tags)
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self._checkpoints = checkpoints
        self._batch_size = batch_size
        self._buffer: deque[Payload] = deque()

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def checkpoint(self) -> int:
        """In-memory checkpoint for this source."""
        return self._checkpoints.current(self.identifier())

    @property
    def is_draining(self) -> bool:
        return bool(self._buffer)

    async def load_checkpoint(self) -> int:
        """Read the persisted checkpoint; call once before the first receive."""
        return await self._checkpoints.load(self.identifier())

    @abstractmethod
    async def _fetch(self, offset: int, limit: int) -> list[Payload]:
        """
        Fetch up to ``limit`` payloads starting at ``offset``.

        Raises:
            SupplierError: On upstream failure.
        """
        ...

    async def receive(self) -> list[SourceEvent]:
        """
        Raises:
            SourceEOF: The upstream has nothing after the checkpoint.
            SupplierError: The fetch failed.
            CheckpointError: The commit failed under the ``raise`` policy;
                the batch stays buffered.
        """
        if not self._buffer:
            offset = self.checkpoint
            rows = await self._fetch(offset, self._batch_size)
            if not rows:
                raise SourceEOF(
                    f"{self.connector_type} source {self.identifier()} has no data "
                    f"after checkpoint {offset}",
                    connector_type=self.connector_type,
                    operation="receive",
                )
            self._buffer.extend(rows)
            logger.debug(
                "source_batch_fetched",
                connector_type=self.connector_type,
                source=self.identifier(),
                offset=offset,
                rows=len(rows),
            )

        start = self.checkpoint
        await self._checkpoints.advance_and_persist(self.identifier(), len(self._buffer))
        return self._emit(self._drain(start))

    def try_receive(self) -> list[SourceEvent] | None:
        """
        Hand out buffered payloads without fetching.

        ``receive`` always drains what it fetched, so the buffer is only
        non-empty after a commit failed under the ``raise`` policy. The
        retried commit writes the checkpoint file synchronously.
        """
        if not self._buffer:
            return None

        start = self.checkpoint
        self._checkpoints.advance_and_persist_now(self.identifier(), len(self._buffer))
        return self._emit(self._drain(start))

    def _drain(self, start: int) -> list[SourceEvent]:
        events = [
            self._event(start + offset, payload)
            for offset, payload in enumerate(self._buffer, start=1)
        ]
        self._buffer.clear()
        return events

    def _event(self, event_id: int, payload: Payload) -> SourceEvent:
        return SourceEvent(
            event_id=event_id,
            source=self.identifier(),
            payload=payload,
            tags=dict(self.metadata.tags),
        )

    def _emit(self, events: list[SourceEvent]) -> list[SourceEvent]:
        self._touch()
        self.metrics.events_received(self.connector_type, self.name, len(events))
        return events
