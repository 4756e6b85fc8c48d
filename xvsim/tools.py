"""Small user programs run against a file system image: echo, cat and ls."""

from __future__ import annotations

import errno
import shutil
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .file import FileTable, OpenFile
from .fmt import format_user
from .fs import FileSystem, Stat
from .layout import DIRENT_SIZE, DIRSIZ, Dirent, FileType

READ_CHUNK = 512
PATH_BUF = 512


def fmtname(path: str) -> str:
    """Return the last path element, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def echo(args: Sequence[str]) -> str:
    """Return the arguments separated by spaces and ended by a newline."""
    if not args:
        return ""
    return " ".join(args) + "\n"


def _open(fs: FileSystem, table: FileTable, path: str) -> OpenFile:
    ip = fs.namei(path)
    if ip is None:
        raise FileNotFoundError(errno.ENOENT, "cannot open", path)
    return table.open_inode(ip, True, False)


def cat(fs: FileSystem, paths: Sequence[str]) -> bytes:
    """Return the contents of the files at ``paths``, one after another."""
    table = FileTable(fs)
    out = bytearray()
    for path in paths:
        f = _open(fs, table, path)
        try:
            while chunk := f.read(READ_CHUNK):
                out += chunk
        finally:
            table.close(f)
    return bytes(out)


def _stat(fs: FileSystem, path: str) -> Optional[Stat]:
    ip = fs.namei(path)
    if ip is None:
        return None
    fs.ilock(ip)
    try:
        st = fs.stat(ip)
    finally:
        fs.iunlock(ip)
    with fs.log.transaction():
        fs.iput(ip)
    return st


def _line(path: str, st: Stat) -> str:
    return format_user("%s %d %d %d", fmtname(path), int(st.type), st.ino, st.size)


def ls(fs: FileSystem, path: str) -> List[str]:
    """List a file, or each entry of a directory, as ``name type inode size``."""
    table = FileTable(fs)
    f = _open(fs, table, path)
    try:
        st = f.stat()
        if st.type == FileType.FILE:
            return [_line(path, st)]
        if st.type != FileType.DIR:
            return []
        if len(path) + 1 + DIRSIZ + 1 > PATH_BUF:
            raise OSError(errno.ENAMETOOLONG, "ls: path too long", path)
        prefix = path + "/"
        lines = []
        while len(raw := f.read(DIRENT_SIZE)) == DIRENT_SIZE:
            entry = Dirent.unpack(raw)
            if entry.inum == 0:
                continue
            full = prefix + entry.name
            entry_stat = _stat(fs, full)
            if entry_stat is None:
                lines.append(f"ls: cannot stat {full}")
                continue
            lines.append(_line(full, entry_stat))
        return lines
    finally:
        table.close(f)


_USAGE = "usage: tools echo args... | tools cat fs.img [file ...] | tools ls fs.img [path ...]\n"


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        sys.stderr.write(_USAGE)
        return 1
    command, rest = args[0], args[1:]
    if command == "echo":
        sys.stdout.write(echo(rest))
        return 0
    if command not in ("cat", "ls") or not rest:
        sys.stderr.write(_USAGE)
        return 1

    image_path, names = rest[0], rest[1:]
    try:
        image = Path(image_path).read_bytes()
    except OSError as exc:
        sys.stderr.write(f"{image_path}: {exc.strerror}\n")
        return 1
    try:
        fs = FileSystem(image)
    except (ValueError, RuntimeError) as exc:
        sys.stderr.write(f"{image_path}: {exc}\n")
        return 1

    if command == "cat":
        if not names:
            sys.stdout.flush()
            shutil.copyfileobj(sys.stdin.buffer, sys.stdout.buffer)
            sys.stdout.buffer.flush()
            return 0
        for name in names:
            try:
                data = cat(fs, [name])
            except FileNotFoundError:
                sys.stdout.write(f"cat: cannot open {name}\n")
                return 1
            sys.stdout.flush()
            sys.stdout.buffer.write(data)
            sys.stdout.buffer.flush()
        return 0

    for name in names or ["."]:
        try:
            lines = ls(fs, name)
        except FileNotFoundError:
            sys.stderr.write(f"ls: cannot open {name}\n")
            continue
        except OSError:
            sys.stdout.write("ls: path too long\n")
            continue
        for line in lines:
            sys.stdout.write(line + "\n")
    return 0