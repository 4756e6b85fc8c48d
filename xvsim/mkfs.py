"""Build a file system image holding a root directory and some files."""

from __future__ import annotations

import struct
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple, Union

from .layout import (
    BPB,
    BSIZE,
    DEFAULT_FS_SIZE,
    DEFAULT_LOG_SIZE,
    DEFAULT_NINODES,
    DINODE_SIZE,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DiskInode,
    Dirent,
    FileType,
    Superblock,
    inode_block,
)

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out a fresh file system image in memory."""

    def __init__(
        self,
        fs_size: int = DEFAULT_FS_SIZE,
        log_size: int = DEFAULT_LOG_SIZE,
        ninodes: int = DEFAULT_NINODES,
    ) -> None:
        self.fs_size = fs_size
        self.nlog = log_size
        self.ninodes = ninodes
        self.nbitmap = fs_size // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nmeta = 2 + log_size + self.ninodeblocks + self.nbitmap
        self.nblocks = fs_size - self.nmeta
        if self.nblocks <= 0:
            raise ValueError("file system too small for its metadata")
        self.sb = Superblock(
            size=fs_size,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=log_size,
            logstart=2,
            inodestart=2 + log_size,
            bmapstart=2 + log_size + self.ninodeblocks,
        )
        self._image = bytearray(fs_size * BSIZE)
        self._finished = False
        self._wsect(1, self.sb.pack())
        self.freeinode = 1
        self.freeblock = self.nmeta

        self.root = self.ialloc(FileType.DIR)
        if self.root != ROOTINO:
            raise RuntimeError("root inode was not allocated first")
        self.iappend(self.root, Dirent(self.root, ".").pack())
        self.iappend(self.root, Dirent(self.root, "..").pack())

    def _wsect(self, sec: int, data: bytes) -> None:
        if not 0 <= sec < self.fs_size:
            raise ValueError(f"sector {sec} outside image")
        block = bytes(data[:BSIZE]).ljust(BSIZE, b"\0")
        self._image[sec * BSIZE : (sec + 1) * BSIZE] = block

    def _rsect(self, sec: int) -> bytes:
        if not 0 <= sec < self.fs_size:
            raise ValueError(f"sector {sec} outside image")
        return bytes(self._image[sec * BSIZE : (sec + 1) * BSIZE])

    def _alloc_block(self) -> int:
        if self.freeblock >= self.fs_size:
            raise ValueError("out of blocks")
        b = self.freeblock
        self.freeblock += 1
        return b

    def read_inode(self, inum: int) -> DiskInode:
        block = self._rsect(inode_block(inum, self.sb))
        off = (inum % IPB) * DINODE_SIZE
        return DiskInode.unpack(block[off : off + DINODE_SIZE])

    def write_inode(self, inum: int, dinode: DiskInode) -> None:
        bn = inode_block(inum, self.sb)
        block = bytearray(self._rsect(bn))
        off = (inum % IPB) * DINODE_SIZE
        block[off : off + DINODE_SIZE] = dinode.pack()
        self._wsect(bn, block)

    def ialloc(self, type: int) -> int:
        """Allocate the next inode with the given type and one link."""
        inum = self.freeinode
        if inum >= self.ninodes:
            raise ValueError("out of inodes")
        self.freeinode += 1
        self.write_inode(inum, DiskInode(type=int(type), nlink=1, size=0))
        return inum

    def iappend(self, inum: int, data: bytes) -> None:
        """Append ``data`` to the contents of inode ``inum``."""
        din = self.read_inode(inum)
        if din.size + len(data) > MAXFILE * BSIZE:
            raise ValueError("file too large")
        off = din.size
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._alloc_block()
                indirect = list(_INDIRECT.unpack(self._rsect(din.addrs[NDIRECT])))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._alloc_block()
                    self._wsect(din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
                x = indirect[fbn - NDIRECT]
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            block = bytearray(self._rsect(x))
            start = off - fbn * BSIZE
            block[start : start + n1] = data[pos : pos + n1]
            self._wsect(x, block)
            pos += n1
            off += n1
        din.size = off
        self.write_inode(inum, din)

    def add_file(self, name: str, data: bytes) -> int:
        """Add a regular file to the root directory; return its inode number.

        A leading underscore is dropped from the name.
        """
        if self._finished:
            raise RuntimeError("image already finished")
        if "/" in name:
            raise ValueError(f"file name may not contain '/': {name!r}")
        if name.startswith("_"):
            name = name[1:]
        inum = self.ialloc(FileType.FILE)
        self.iappend(self.root, Dirent(inum, name).pack())
        self.iappend(inum, data)
        return inum

    def finish(self) -> bytes:
        """Round the root directory size up and write the free bitmap."""
        if self._finished:
            raise RuntimeError("image already finished")
        din = self.read_inode(self.root)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self.write_inode(self.root, din)

        used = self.freeblock
        if used >= BPB:
            raise ValueError("too many blocks in use for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self._wsect(self.sb.bmapstart, bitmap)
        self._finished = True
        return bytes(self._image)


def build_image(
    files: Union[Mapping, Iterable[Tuple[str, bytes]]] = (),
    fs_size: int = DEFAULT_FS_SIZE,
    log_size: int = DEFAULT_LOG_SIZE,
    ninodes: int = DEFAULT_NINODES,
) -> bytes:
    """Return a finished image holding ``files`` (name to contents)."""
    builder = ImageBuilder(fs_size, log_size, ninodes)
    items = files.items() if isinstance(files, Mapping) else files
    for name, data in items:
        builder.add_file(name, data)
    return builder.finish()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        sys.stderr.write("Usage: mkfs fs.img files...\n")
        return 1
    image_path, paths = args[0], args[1:]

    builder = ImageBuilder()
    print(
        f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
        f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
        f"blocks {builder.nblocks} total {builder.fs_size}"
    )
    for path in paths:
        if "/" in path:
            sys.stderr.write(f"mkfs: {path}: file names may not contain '/'\n")
            return 1
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            sys.stderr.write(f"{path}: {exc.strerror}\n")
            return 1
        try:
            builder.add_file(path, data)
        except ValueError as exc:
            sys.stderr.write(f"mkfs: {path}: {exc}\n")
            return 1

    used = builder.freeblock
    try:
        image = builder.finish()
    except ValueError as exc:
        sys.stderr.write(f"mkfs: {exc}\n")
        return 1
    print(f"balloc: first {used} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
    try:
        Path(image_path).write_bytes(image)
    except OSError as exc:
        sys.stderr.write(f"{image_path}: {exc.strerror}\n")
        return 1
    return 0