"""File system layers over the log: blocks, inodes, directories and path names.

Updates to the disk must happen inside a log transaction
(``fs.log.transaction()``); reads need none.
"""

from __future__ import annotations

import errno
import struct
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from .console import KernelPanic
from .disk import BLOCKS_PER_PAGE, DEFAULT_NBUF, BufferCache, MemDisk
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DiskInode,
    Dirent,
    FileType,
    Superblock,
    bitmap_block,
    inode_block,
)
from .log import DEFAULT_MAX_OP_BLOCKS, Log

ROOTDEV = 1
DEFAULT_NINODE = 50
NDEV = 10

_ADDR = struct.Struct("<I")
_INUM = struct.Struct("<H")


def _empty_addrs() -> List[int]:
    return [0] * (NDIRECT + 1)


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode, with cache bookkeeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    locked: bool = False
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: List[int] = field(default_factory=_empty_addrs)


@dataclass(frozen=True)
class Stat:
    """Metadata reported for an inode."""

    dev: int
    ino: int
    type: int
    nlink: int
    size: int


@dataclass
class Device:
    """Read and write handlers for a device's major number."""

    read: Optional[Callable[[Inode, int], bytes]] = None
    write: Optional[Callable[[Inode, bytes], int]] = None


def skip_elem(path: str) -> Optional[Tuple[str, str]]:
    """Split off the first path element.

    Returns ``(name, rest)`` with leading slashes removed from ``rest`` and
    the name cut to DIRSIZ characters, or ``None`` when there is no element.
    """
    stripped = path.lstrip("/")
    if not stripped:
        return None
    elem, _, rest = stripped.partition("/")
    return elem[:DIRSIZ], rest.lstrip("/")


def _name_key(name: Union[str, bytes]) -> bytes:
    raw = name.encode("utf-8") if isinstance(name, str) else bytes(name)
    return raw[:DIRSIZ].split(b"\0", 1)[0]


class FileSystem:
    """A file system on an in-memory disk image."""

    def __init__(
        self,
        image: Union[bytes, bytearray],
        dev: int = ROOTDEV,
        nbuf: int = DEFAULT_NBUF,
        ninode: int = DEFAULT_NINODE,
        max_op_blocks: int = DEFAULT_MAX_OP_BLOCKS,
    ) -> None:
        self.dev = dev
        self.disk = MemDisk(image)
        self.cache = BufferCache(self.disk, nbuf)
        with self.cache.block(dev, 1) as buf:
            self.sb = Superblock.unpack(bytes(buf.data))
        self.log = Log(self.cache, dev, self.sb, max_op_blocks)
        self._icache: List[Inode] = [Inode() for _ in range(ninode)]
        self.devsw: Dict[int, Device] = {}
        self.numallocblocks = 0

    # -- blocks ----------------------------------------------------------

    def _bzero(self, bno: int) -> None:
        with self.cache.block(self.dev, bno) as buf:
            buf.data[:] = bytes(BSIZE)
            self.log.log_write(buf)

    def balloc(self) -> int:
        """Allocate a zeroed disk block and return its number."""
        for b in range(0, self.sb.size, BPB):
            buf = self.cache.bread(self.dev, bitmap_block(b, self.sb))
            for bi in range(min(BPB, self.sb.size - b)):
                m = 1 << (bi % 8)
                if not buf.data[bi // 8] & m:
                    buf.data[bi // 8] |= m
                    self.log.log_write(buf)
                    self.cache.brelse(buf)
                    self._bzero(b + bi)
                    return b + bi
            self.cache.brelse(buf)
        raise KernelPanic("balloc: out of blocks")

    def balloc_page(self) -> int:
        """Allocate a page's worth of consecutive zeroed blocks; return the first."""
        for b in range(0, self.sb.size, BPB):
            buf = self.cache.bread(self.dev, bitmap_block(b, self.sb))
            start = -1
            count = 0
            for bi in range(min(BPB, self.sb.size - b)):
                if not buf.data[bi // 8] & (1 << (bi % 8)):
                    if count == 0:
                        start = bi
                    count += 1
                else:
                    count = 0
                    start = -1
                if count == BLOCKS_PER_PAGE:
                    for cbi in range(start, start + BLOCKS_PER_PAGE):
                        buf.data[cbi // 8] |= 1 << (cbi % 8)
                        self.log.log_write(buf)
                        self._bzero(b + cbi)
                    self.cache.brelse(buf)
                    self.numallocblocks += BLOCKS_PER_PAGE
                    return b + start
            self.cache.brelse(buf)
        raise KernelPanic("balloc: out of blocks")

    def bfree(self, b: int) -> None:
        """Mark block ``b`` free."""
        with self.cache.block(self.dev, bitmap_block(b, self.sb)) as buf:
            bi = b % BPB
            m = 1 << (bi % 8)
            if not buf.data[bi // 8] & m:
                raise KernelPanic("freeing free block")
            buf.data[bi // 8] &= ~m
            self.numallocblocks -= 1
            self.log.log_write(buf)

    def bfree_page(self, b: int) -> None:
        """Free the page's worth of blocks starting at ``b``."""
        for blockno in range(b, b + BLOCKS_PER_PAGE):
            self.bfree(blockno)

    # -- inodes ----------------------------------------------------------

    def ialloc(self, type: int) -> Inode:
        """Allocate an on-disk inode of the given type; return it referenced, unlocked."""
        for inum in range(1, self.sb.ninodes):
            buf = self.cache.bread(self.dev, inode_block(inum, self.sb))
            off = (inum % IPB) * DINODE_SIZE
            din = DiskInode.unpack(bytes(buf.data[off : off + DINODE_SIZE]))
            if din.type == 0:
                buf.data[off : off + DINODE_SIZE] = DiskInode(type=int(type)).pack()
                self.log.log_write(buf)
                self.cache.brelse(buf)
                return self.iget(inum)
            self.cache.brelse(buf)
        raise KernelPanic("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy the in-memory inode fields to disk."""
        with self.cache.block(ip.dev, inode_block(ip.inum, self.sb)) as buf:
            off = (ip.inum % IPB) * DINODE_SIZE
            din = DiskInode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs))
            buf.data[off : off + DINODE_SIZE] = din.pack()
            self.log.log_write(buf)

    def iget(self, inum: int) -> Inode:
        """Return the cached inode for ``inum``, taking a reference."""
        empty = None
        for ip in self._icache:
            if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                ip.ref += 1
                return ip
            if empty is None and ip.ref == 0:
                empty = ip
        if empty is None:
            raise KernelPanic("iget: no inodes")
        empty.dev = self.dev
        empty.inum = inum
        empty.ref = 1
        empty.valid = False
        empty.locked = False
        return empty

    def idup(self, ip: Inode) -> Inode:
        ip.ref += 1
        return ip

    def ilock(self, ip: Optional[Inode]) -> None:
        """Lock an inode, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise KernelPanic("ilock")
        if ip.locked:
            raise RuntimeError(f"inode {ip.inum} is already locked")
        ip.locked = True
        if not ip.valid:
            with self.cache.block(ip.dev, inode_block(ip.inum, self.sb)) as buf:
                off = (ip.inum % IPB) * DINODE_SIZE
                din = DiskInode.unpack(bytes(buf.data[off : off + DINODE_SIZE]))
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                raise KernelPanic("ilock: no type")

    def iunlock(self, ip: Optional[Inode]) -> None:
        if ip is None or not ip.locked or ip.ref < 1:
            raise KernelPanic("iunlock")
        ip.locked = False

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if nothing refers to it."""
        if ip.locked:
            raise RuntimeError(f"inode {ip.inum} is locked")
        ip.locked = True
        try:
            if ip.valid and ip.nlink == 0 and ip.ref == 1:
                self._itrunc(ip)
                ip.type = 0
                self.iupdate(ip)
                ip.valid = False
        finally:
            ip.locked = False
        ip.ref -= 1

    def _iunlockput(self, ip: Inode) -> None:
        self.iunlock(ip)
        self.iput(ip)

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self.balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self.balloc()
            buf = self.cache.bread(ip.dev, ip.addrs[NDIRECT])
            try:
                (addr,) = _ADDR.unpack_from(buf.data, bn * _ADDR.size)
                if addr == 0:
                    addr = self.balloc()
                    _ADDR.pack_into(buf.data, bn * _ADDR.size, addr)
                    self.log.log_write(buf)
            finally:
                self.cache.brelse(buf)
            return addr
        raise KernelPanic("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i in range(NDIRECT):
            if ip.addrs[i]:
                self.bfree(ip.addrs[i])
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as buf:
                entries = struct.unpack_from(f"<{NINDIRECT}I", buf.data)
            for addr in entries:
                if addr:
                    self.bfree(addr)
            self.bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stat(self, ip: Inode) -> Stat:
        return Stat(ip.dev, ip.inum, ip.type, ip.nlink, ip.size)

    # -- contents --------------------------------------------------------

    def _device(self, ip: Inode, op: str) -> Callable:
        device = self.devsw.get(ip.major) if 0 <= ip.major < NDEV else None
        handler = getattr(device, op, None) if device is not None else None
        if handler is None:
            raise OSError(errno.ENODEV, f"no {op} handler for device {ip.major}")
        return handler

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes from offset ``off``."""
        if ip.type == FileType.DEV:
            return self._device(ip, "read")(ip, n)
        if off < 0 or n < 0:
            raise ValueError("negative offset or count")
        if off > ip.size:
            raise ValueError("offset beyond end of file")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            pos = off + len(out)
            with self.cache.block(ip.dev, self._bmap(ip, pos // BSIZE)) as buf:
                start = pos % BSIZE
                m = min(n - len(out), BSIZE - start)
                out += buf.data[start : start + m]
        return bytes(out)

    def writei(self, ip: Inode, data: bytes, off: int) -> int:
        """Write ``data`` at offset ``off``, growing the file as needed."""
        data = bytes(data)
        if ip.type == FileType.DEV:
            return self._device(ip, "write")(ip, data)
        n = len(data)
        if off < 0 or off > ip.size:
            raise ValueError("offset beyond end of file")
        if off + n > MAXFILE * BSIZE:
            raise ValueError("write beyond maximum file size")
        tot = 0
        while tot < n:
            blockno = self._bmap(ip, off // BSIZE)
            with self.cache.block(ip.dev, blockno) as buf:
                start = off % BSIZE
                m = min(n - tot, BSIZE - start)
                buf.data[start : start + m] = data[tot : tot + m]
                self.log.log_write(buf)
            tot += m
            off += m
        if n > 0 and off > ip.size:
            ip.size = off
            self.iupdate(ip)
        return n

    # -- directories -----------------------------------------------------

    def dirlookup(self, dp: Inode, name: str) -> Optional[Tuple[Inode, int]]:
        """Find ``name`` in directory ``dp``; return its inode and entry offset."""
        if dp.type != FileType.DIR:
            raise KernelPanic("dirlookup not DIR")
        key = _name_key(name)
        for off in range(0, dp.size, DIRENT_SIZE):
            raw = self.readi(dp, off, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise KernelPanic("dirlookup read")
            (inum,) = _INUM.unpack_from(raw)
            if inum == 0:
                continue
            if _name_key(raw[_INUM.size :]) == key:
                return self.iget(inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry ``(name, inum)`` to directory ``dp``."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(errno.EEXIST, "name already in directory", name)
        off = dp.size
        for o in range(0, dp.size, DIRENT_SIZE):
            raw = self.readi(dp, o, DIRENT_SIZE)
            if len(raw) != DIRENT_SIZE:
                raise KernelPanic("dirlink read")
            if _INUM.unpack_from(raw)[0] == 0:
                off = o
                break
        if self.writei(dp, Dirent(inum, name).pack(), off) != DIRENT_SIZE:
            raise KernelPanic("dirlink")

    # -- path names ------------------------------------------------------

    def _namex(
        self, path: str, parent: bool, cwd: Optional[Inode]
    ) -> Tuple[Optional[Inode], str]:
        if path.startswith("/") or cwd is None:
            ip = self.iget(ROOTINO)
        else:
            ip = self.idup(cwd)
        name = ""
        while True:
            step = skip_elem(path)
            if step is None:
                break
            name, path = step
            self.ilock(ip)
            if ip.type != FileType.DIR:
                self._iunlockput(ip)
                return None, name
            if parent and path == "":
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            if found is None:
                self._iunlockput(ip)
                return None, name
            self._iunlockput(ip)
            ip = found[0]
        if parent:
            self.iput(ip)
            return None, name
        return ip, name

    def namei(self, path: str, cwd: Optional[Inode] = None) -> Optional[Inode]:
        """Return the inode for ``path``, or None; relative paths start at ``cwd``."""
        ip, _ = self._namex(path, False, cwd)
        return ip

    def nameiparent(
        self, path: str, cwd: Optional[Inode] = None
    ) -> Optional[Tuple[Inode, str]]:
        """Return the parent directory of ``path`` and the final element's name."""
        ip, name = self._namex(path, True, cwd)
        if ip is None:
            return None
        return ip, name