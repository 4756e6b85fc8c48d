"""Write-ahead redo log grouping file system updates into transactions.

On disk the log is a header block listing block numbers, followed by the
logged copies of those blocks.  Writing the header is the commit point.
"""

from __future__ import annotations

import struct
from contextlib import contextmanager
from typing import Iterator, List

from .console import KernelPanic
from .disk import Buf, BufferCache
from .layout import BSIZE, Superblock

DEFAULT_MAX_OP_BLOCKS = 10

_INT = struct.Struct("<i")


class LogBusy(RuntimeError):
    """Raised where an operation would have to wait for log space."""


class Log:
    """Transaction log over a buffer cache."""

    def __init__(
        self,
        cache: BufferCache,
        dev: int,
        sb: Superblock,
        max_op_blocks: int = DEFAULT_MAX_OP_BLOCKS,
    ) -> None:
        if _INT.size * (1 + sb.nlog) >= BSIZE:
            raise KernelPanic("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        self.start = sb.logstart
        self.size = sb.nlog
        self.max_op_blocks = max_op_blocks
        self.outstanding = 0
        self.committing = False
        self.blocks: List[int] = []
        self.recover()

    def _read_head(self) -> None:
        with self.cache.block(self.dev, self.start) as buf:
            (n,) = _INT.unpack_from(buf.data)
            if not 0 <= n <= self.size:
                raise ValueError(f"corrupt log header: {n} blocks")
            self.blocks = list(struct.unpack_from(f"<{n}i", buf.data, _INT.size))

    def _write_head(self) -> None:
        buf = self.cache.bread(self.dev, self.start)
        n = len(self.blocks)
        struct.pack_into(f"<i{n}i", buf.data, 0, n, *self.blocks)
        self.cache.bwrite(buf)
        self.cache.brelse(buf)

    def _install(self) -> None:
        for tail, blockno in enumerate(self.blocks):
            lbuf = self.cache.bread(self.dev, self.start + tail + 1)
            dbuf = self.cache.bread(self.dev, blockno)
            dbuf.data[:] = lbuf.data
            self.cache.bwrite(dbuf)
            self.cache.brelse(lbuf)
            self.cache.brelse(dbuf)

    def _write_log(self) -> None:
        for tail, blockno in enumerate(self.blocks):
            to = self.cache.bread(self.dev, self.start + tail + 1)
            src = self.cache.bread(self.dev, blockno)
            to.data[:] = src.data
            self.cache.bwrite(to)
            self.cache.brelse(src)
            self.cache.brelse(to)

    def _commit(self) -> None:
        if self.blocks:
            self._write_log()
            self._write_head()
            self._install()
            self.blocks = []
            self._write_head()

    def recover(self) -> None:
        """Install any committed transaction and clear the log."""
        self._read_head()
        self._install()
        self.blocks = []
        self._write_head()

    def begin_op(self) -> None:
        """Start a file system operation."""
        if self.committing:
            raise LogBusy("log is committing")
        if len(self.blocks) + (self.outstanding + 1) * self.max_op_blocks > self.size:
            raise LogBusy("log space exhausted")
        self.outstanding += 1

    def end_op(self) -> None:
        """End an operation, committing if it was the last outstanding one."""
        self.outstanding -= 1
        if self.committing:
            raise KernelPanic("log.committing")
        if self.outstanding == 0:
            self.committing = True
            try:
                self._commit()
            finally:
                self.committing = False

    @contextmanager
    def transaction(self) -> Iterator["Log"]:
        """Run the block as one operation."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()

    def log_write(self, buf: Buf) -> None:
        """Record a modified buffer in the current transaction and pin it."""
        if len(self.blocks) >= self.size - 1:
            raise KernelPanic("too big a transaction")
        if self.outstanding < 1:
            raise KernelPanic("log_write outside of trans")
        if buf.blockno not in self.blocks:
            self.blocks.append(buf.blockno)
        buf.dirty = True