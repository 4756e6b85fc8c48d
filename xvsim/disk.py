"""An in-memory disk and the block buffer cache in front of it."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from .console import KernelPanic
from .dlist import DList, ListElem
from .layout import BSIZE

PGSIZE = 4096
BLOCKS_PER_PAGE = PGSIZE // BSIZE
DEFAULT_NBUF = 30


@dataclass(eq=False)
class Buf:
    """A cached copy of one disk block."""

    dev: int = 0
    blockno: int = 0
    valid: bool = False
    dirty: bool = False
    refcnt: int = 0
    locked: bool = False
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))
    _node: Optional[ListElem] = field(default=None, repr=False)


class MemDisk:
    """A disk whose blocks live in memory; serves device 1 only."""

    def __init__(self, image: Union[bytes, bytearray]) -> None:
        self._data = bytearray(image)
        self.disksize = len(self._data) // BSIZE

    @property
    def image(self) -> bytes:
        return bytes(self._data)

    def sync(self, buf: Buf) -> None:
        """Write a dirty buffer to disk, or fill an invalid one from disk."""
        if not buf.locked:
            raise KernelPanic("iderw: buf not locked")
        if buf.valid and not buf.dirty:
            raise KernelPanic("iderw: nothing to do")
        if buf.dev != 1:
            raise KernelPanic("iderw: request not for disk 1")
        if not 0 <= buf.blockno < self.disksize:
            raise KernelPanic("iderw: block out of range")
        start = buf.blockno * BSIZE
        if buf.dirty:
            buf.dirty = False
            self._data[start : start + BSIZE] = buf.data
        else:
            buf.data[:] = self._data[start : start + BSIZE]
        buf.valid = True


class BufferCache:
    """A fixed pool of buffers kept in most-recently-used order."""

    def __init__(self, disk: MemDisk, nbuf: int = DEFAULT_NBUF) -> None:
        if nbuf < 1:
            raise ValueError("buffer cache needs at least one buffer")
        self.disk = disk
        self._lru = DList()
        for _ in range(nbuf):
            buf = Buf()
            buf._node = self._lru.push_front(buf)

    @staticmethod
    def _lock(buf: Buf) -> None:
        if buf.locked:
            raise RuntimeError(f"block {buf.blockno} is locked by another holder")
        buf.locked = True

    def _bget(self, dev: int, blockno: int) -> Buf:
        for node in self._lru:
            buf = node.value
            if buf.dev == dev and buf.blockno == blockno:
                self._lock(buf)
                buf.refcnt += 1
                return buf
        # Dirty buffers with no references are still pinned by the log.
        for node in reversed(self._lru):
            buf = node.value
            if buf.refcnt == 0 and not buf.dirty:
                buf.dev = dev
                buf.blockno = blockno
                buf.valid = False
                buf.dirty = False
                buf.refcnt = 1
                self._lock(buf)
                return buf
        raise KernelPanic("bget: no buffers")

    def bread(self, dev: int, blockno: int) -> Buf:
        """Return a locked buffer holding the contents of the block."""
        buf = self._bget(dev, blockno)
        if not buf.valid:
            self.disk.sync(buf)
        return buf

    def bwrite(self, buf: Buf) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.locked:
            raise KernelPanic("bwrite")
        buf.dirty = True
        self.disk.sync(buf)

    def brelse(self, buf: Buf) -> None:
        """Release a locked buffer, making it the most recently used."""
        if not buf.locked:
            raise KernelPanic("brelse")
        buf.locked = False
        buf.refcnt -= 1
        if buf.refcnt == 0:
            self._lru.remove(buf._node)
            self._lru.push_front(buf._node)

    @contextmanager
    def block(self, dev: int, blockno: int) -> Iterator[Buf]:
        """Read a block and release it when the block exits."""
        buf = self.bread(dev, blockno)
        try:
            yield buf
        finally:
            self.brelse(buf)

    def write_page(self, dev: int, page: bytes, blk: int) -> None:
        """Write one page to the consecutive blocks starting at ``blk``."""
        if len(page) != PGSIZE:
            raise ValueError(f"page must be {PGSIZE} bytes")
        for i in range(BLOCKS_PER_PAGE):
            buf = self._bget(dev, blk + i)
            buf.data[:] = page[i * BSIZE : (i + 1) * BSIZE]
            self.bwrite(buf)
            self.brelse(buf)

    def read_page(self, dev: int, blk: int) -> bytes:
        """Read one page from the consecutive blocks starting at ``blk``."""
        parts = []
        for i in range(BLOCKS_PER_PAGE):
            with self.block(dev, blk + i) as buf:
                parts.append(bytes(buf.data))
        return b"".join(parts)