"""Open files: the system-wide file table and in-memory pipes."""

from __future__ import annotations

import enum
import errno
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from .console import KernelPanic
from .fs import FileSystem, Inode, Stat
from .layout import BSIZE

PIPESIZE = 512
DEFAULT_NFILE = 100


class FileKind(enum.Enum):
    """What an open file refers to."""

    NONE = 0
    PIPE = 1
    INODE = 2


class Pipe:
    """A bounded byte channel with a read end and a write end."""

    def __init__(self) -> None:
        self._data = bytearray(PIPESIZE)
        self.nread = 0
        self.nwrite = 0
        self.readopen = True
        self.writeopen = True

    def write(self, data: Union[bytes, bytearray]) -> int:
        """Append ``data``; return its length.

        Raises BrokenPipeError if the pipe is full and the read end is
        closed, and BlockingIOError (with ``characters_written`` set) if it
        is full while a reader could still drain it.
        """
        data = bytes(data)
        for written, byte in enumerate(data):
            if self.nwrite == self.nread + PIPESIZE:
                if not self.readopen:
                    raise BrokenPipeError(errno.EPIPE, "pipe read end closed")
                raise BlockingIOError(errno.EAGAIN, "pipe full", written)
            self._data[self.nwrite % PIPESIZE] = byte
            self.nwrite += 1
        return len(data)

    def read(self, n: int) -> bytes:
        """Take up to ``n`` bytes; ``b""`` once empty with the write end closed.

        Raises BlockingIOError if the pipe is empty but still open for writing.
        """
        if self.nread == self.nwrite and self.writeopen:
            raise BlockingIOError(errno.EAGAIN, "pipe empty")
        count = max(0, min(n, self.nwrite - self.nread))
        out = bytes(self._data[(self.nread + i) % PIPESIZE] for i in range(count))
        self.nread += count
        return out

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable``, otherwise the read end."""
        if writable:
            self.writeopen = False
        else:
            self.readopen = False


@dataclass(eq=False)
class OpenFile:
    """An entry in the file table."""

    fs: Optional[FileSystem] = None
    kind: FileKind = FileKind.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Optional[Pipe] = None
    ip: Optional[Inode] = None
    off: int = 0

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, advancing the offset of an inode file."""
        if not self.readable:
            raise OSError(errno.EBADF, "file not open for reading")
        if self.kind is FileKind.PIPE:
            return self.pipe.read(n)
        if self.kind is FileKind.INODE:
            self.fs.ilock(self.ip)
            try:
                data = self.fs.readi(self.ip, self.off, n)
            finally:
                self.fs.iunlock(self.ip)
            self.off += len(data)
            return data
        raise KernelPanic("fileread")

    def write(self, data: Union[bytes, bytearray]) -> int:
        """Write ``data``; inode writes go in chunks that fit one transaction."""
        if not self.writable:
            raise OSError(errno.EBADF, "file not open for writing")
        data = bytes(data)
        if self.kind is FileKind.PIPE:
            return self.pipe.write(data)
        if self.kind is FileKind.INODE:
            # Room for the inode, an indirect block, allocation blocks and
            # two blocks of slop for unaligned writes.
            chunk = ((self.fs.log.max_op_blocks - 1 - 1 - 2) // 2) * BSIZE
            if chunk <= 0:
                raise ValueError("log operations too small to write a file")
            for start in range(0, len(data), chunk):
                piece = data[start : start + chunk]
                with self.fs.log.transaction():
                    self.fs.ilock(self.ip)
                    try:
                        written = self.fs.writei(self.ip, piece, self.off)
                        self.off += written
                    finally:
                        self.fs.iunlock(self.ip)
                if written != len(piece):
                    raise KernelPanic("short filewrite")
            return len(data)
        raise KernelPanic("filewrite")

    def stat(self) -> Stat:
        """Return metadata of the underlying inode."""
        if self.kind is not FileKind.INODE:
            raise OSError(errno.EBADF, "file has no inode")
        self.fs.ilock(self.ip)
        try:
            return self.fs.stat(self.ip)
        finally:
            self.fs.iunlock(self.ip)


class FileTable:
    """A fixed pool of open files shared by everything on one file system."""

    def __init__(self, fs: FileSystem, nfile: int = DEFAULT_NFILE) -> None:
        self.fs = fs
        self._files: List[OpenFile] = [OpenFile(fs=fs) for _ in range(nfile)]

    def alloc(self) -> OpenFile:
        """Take a free entry with one reference."""
        for f in self._files:
            if f.ref == 0:
                f.ref = 1
                f.kind = FileKind.NONE
                f.readable = f.writable = False
                f.pipe = None
                f.ip = None
                f.off = 0
                return f
        raise OSError(errno.ENFILE, "file table full")

    def open_inode(self, ip: Inode, readable: bool, writable: bool) -> OpenFile:
        """Open an inode; the file takes over the caller's reference to it."""
        f = self.alloc()
        f.kind = FileKind.INODE
        f.ip = ip
        f.readable = bool(readable)
        f.writable = bool(writable)
        return f

    def pipe(self) -> Tuple[OpenFile, OpenFile]:
        """Create a pipe; return its read end and its write end."""
        reader = self.alloc()
        try:
            writer = self.alloc()
        except OSError:
            self.close(reader)
            raise
        p = Pipe()
        reader.kind = writer.kind = FileKind.PIPE
        reader.pipe = writer.pipe = p
        reader.readable, reader.writable = True, False
        writer.readable, writer.writable = False, True
        return reader, writer

    def dup(self, f: OpenFile) -> OpenFile:
        """Add a reference to ``f`` and return it."""
        if f.ref < 1:
            raise KernelPanic("filedup")
        f.ref += 1
        return f

    def close(self, f: OpenFile) -> None:
        """Drop a reference; release the pipe end or inode with the last one."""
        if f.ref < 1:
            raise KernelPanic("fileclose")
        f.ref -= 1
        if f.ref > 0:
            return
        kind, pipe, ip, writable = f.kind, f.pipe, f.ip, f.writable
        f.kind = FileKind.NONE
        f.pipe = None
        f.ip = None
        if kind is FileKind.PIPE:
            pipe.close(writable)
        elif kind is FileKind.INODE:
            with self.fs.log.transaction():
                self.fs.iput(ip)