"""Iterator protocol shared by the storage layers and the merging heap iterator."""

from __future__ import annotations

import enum
import heapq
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from dataclasses import dataclass


class IteratorType(enum.Enum):
    """Kinds of iterators found in the engine."""

    SKIP_LIST_ITERATOR = enum.auto()
    MEM_TABLE_ITERATOR = enum.auto()
    SST_ITERATOR = enum.auto()
    HEAP_ITERATOR = enum.auto()
    TWO_MERGE_ITERATOR = enum.auto()
    CONCAT_ITERATOR = enum.auto()
    LEVEL_ITERATOR = enum.auto()


class BaseIterator(ABC):
    """A cursor over key/value pairs that is moved forward explicitly."""

    @abstractmethod
    def advance(self) -> None:
        """Move to the next visible key."""

    @abstractmethod
    def item(self) -> tuple[str, str]:
        """Return the current ``(key, value)`` pair."""

    @abstractmethod
    def get_type(self) -> IteratorType:
        """Return the kind of this iterator."""

    @abstractmethod
    def get_tranc_id(self) -> int:
        """Return the transaction id this iterator reads at."""

    @abstractmethod
    def is_end(self) -> bool:
        """Return True when no entries remain."""

    @abstractmethod
    def is_valid(self) -> bool:
        """Return True when the cursor points at an entry."""

    def __iter__(self) -> Iterator[tuple[str, str]]:
        while self.is_valid():
            yield self.item()
            self.advance()


@dataclass(eq=False)
class SearchItem:
    """One candidate entry fed into a :class:`HeapIterator`.

    ``idx`` identifies the source table, ``level`` the SST level it came from.
    """

    key: str
    value: str
    idx: int
    level: int
    tranc_id: int

    def _order(self) -> tuple[str, int, int, int]:
        # Same key: the newest transaction first, then the lower level,
        # then the lower source index.
        return (self.key, -self.tranc_id, self.level, self.idx)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SearchItem):
            return NotImplemented
        return self._order() < other._order()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SearchItem):
            return NotImplemented
        return self.idx == other.idx and self.key == other.key

    def __hash__(self) -> int:
        return hash((self.key, self.idx))


class HeapIterator(BaseIterator):
    """Merge several sorted sources, yielding the newest visible version of each key.

    An empty value marks a deletion; deleted keys are skipped. With a
    ``max_tranc_id`` of 0 transaction visibility is not checked.
    """

    def __init__(self, items: Iterable[SearchItem] = (), max_tranc_id: int = 0) -> None:
        self._heap: list[SearchItem] = list(items)
        heapq.heapify(self._heap)
        self._max_tranc_id = max_tranc_id
        self._discard_illegal()

    def _top_legal(self) -> bool:
        if not self._heap:
            return True
        top = self._heap[0]
        if self._max_tranc_id != 0 and top.tranc_id > self._max_tranc_id:
            return False
        return top.value != ""

    def _skip_by_tranc_id(self) -> None:
        if self._max_tranc_id == 0:
            return
        while self._heap and self._heap[0].tranc_id > self._max_tranc_id:
            heapq.heappop(self._heap)

    def _drop_key(self, key: str) -> None:
        while self._heap and self._heap[0].key == key:
            heapq.heappop(self._heap)

    def _discard_illegal(self) -> None:
        while not self._top_legal():
            self._skip_by_tranc_id()
            while self._heap and self._heap[0].value == "":
                self._drop_key(self._heap[0].key)

    def advance(self) -> None:
        if not self._heap:
            return
        old = heapq.heappop(self._heap)
        self._drop_key(old.key)
        self._discard_illegal()

    def item(self) -> tuple[str, str]:
        if not self._heap:
            raise IndexError("iterator is exhausted")
        top = self._heap[0]
        return (top.key, top.value)

    def is_end(self) -> bool:
        return not self._heap

    def is_valid(self) -> bool:
        return bool(self._heap)

    def get_type(self) -> IteratorType:
        return IteratorType.HEAP_ITERATOR

    def get_tranc_id(self) -> int:
        return self._max_tranc_id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HeapIterator):
            return False
        if not self._heap and not other._heap:
            return True
        if not self._heap or not other._heap:
            return False
        return self.item() == other.item()

    __hash__ = None  # type: ignore[assignment]

    def __iter__(self) -> Iterator[tuple[str, str]]:
        while self._heap:
            yield self.item()
            self.advance()