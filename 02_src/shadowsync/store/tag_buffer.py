"""TagStreamBuffer implementation."""

from collections import deque

from ..models import TagSample


class TagStreamBuffer:
    """Bounded per-stream ring buffer of recent tag samples, newest first."""

    def __init__(self, size: int = 20):
        self._size = size
        self._streams: dict[str, deque[TagSample]] = {}

    def add(self, sample: TagSample) -> None:
        """Add a sample to its source stream, evicting the oldest on overflow."""
        stream = self._streams.setdefault(sample.source, deque(maxlen=self._size))
        stream.appendleft(sample)

    def get(self, source: str | None = None) -> list[TagSample]:
        """Samples for one stream, or all streams merged newest first."""
        if source is not None:
            return list(self._streams.get(source, ()))

        merged = [sample for stream in self._streams.values() for sample in stream]
        merged.sort(key=lambda s: s.timestamp, reverse=True)
        return merged

    def clear(self) -> None:
        """Drop all samples."""
        self._streams.clear()
