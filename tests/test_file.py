import errno

import pytest

from xvsim.console import KernelPanic
from xvsim.file import PIPESIZE, FileKind, FileTable, Pipe
from xvsim.fs import FileSystem
from xvsim.mkfs import build_image

CONTENT = b"hello, file table\n"


@pytest.fixture
def fs():
    return FileSystem(build_image({"README": CONTENT}))


@pytest.fixture
def table(fs):
    return FileTable(fs, nfile=4)


def open_readme(fs, table, writable=False):
    ip = fs.namei("/README")
    return table.open_inode(ip, True, writable)


def test_pipe_round_trip():
    p = Pipe()
    assert p.write(b"abc") == 3
    assert p.read(10) == b"abc"


def test_pipe_partial_reads():
    p = Pipe()
    p.write(b"abcdef")
    assert p.read(2) == b"ab"
    assert p.read(10) == b"cdef"


def test_pipe_empty_read_blocks():
    p = Pipe()
    with pytest.raises(BlockingIOError):
        p.read(1)


def test_pipe_eof_after_writer_closes():
    p = Pipe()
    p.write(b"xy")
    p.close(True)
    assert p.read(10) == b"xy"
    assert p.read(10) == b""


def test_pipe_write_with_reader_closed():
    p = Pipe()
    p.close(False)
    assert p.write(b"a") == 1
    p.write(bytes(PIPESIZE - 1))
    with pytest.raises(BrokenPipeError):
        p.write(b"z")


def test_pipe_full_reports_partial_write():
    p = Pipe()
    with pytest.raises(BlockingIOError) as exc:
        p.write(bytes(PIPESIZE + 3))
    assert exc.value.characters_written == PIPESIZE
    assert len(p.read(PIPESIZE * 2)) == PIPESIZE


def test_pipe_wraps_around():
    p = Pipe()
    first = bytes(range(200)) * 2
    second = bytes(reversed(first))
    p.write(first)
    assert p.read(len(first)) == first
    p.write(second)
    assert p.read(len(second)) == second


def test_table_exhaustion(table):
    for _ in range(4):
        table.alloc()
    with pytest.raises(OSError) as exc:
        table.alloc()
    assert exc.value.errno == errno.ENFILE


def test_close_frees_slot(table):
    files = [table.alloc() for _ in range(4)]
    table.close(files[2])
    again = table.alloc()
    assert again is files[2]
    assert again.ref == 1


def test_dup_and_close(table):
    f = table.alloc()
    assert table.dup(f) is f
    assert f.ref == 2
    table.close(f)
    assert f.ref == 1


def test_close_unreferenced_panics(table):
    f = table.alloc()
    table.close(f)
    with pytest.raises(KernelPanic):
        table.close(f)


def test_inode_read_advances_offset(fs, table):
    f = open_readme(fs, table)
    assert f.read(5) == CONTENT[:5]
    assert f.off == 5
    assert f.read(100) == CONTENT[5:]
    assert f.read(10) == b""


def test_read_on_write_only_file(fs, table):
    ip = fs.namei("/README")
    f = table.open_inode(ip, False, True)
    with pytest.raises(OSError) as exc:
        f.read(1)
    assert exc.value.errno == errno.EBADF


def test_write_then_read_back_and_persist(fs, table):
    data = bytes(range(256)) * 16
    f = open_readme(fs, table, writable=True)
    assert f.write(data) == len(data)
    assert f.off == len(data)
    table.close(f)

    g = open_readme(fs, table)
    assert g.read(len(data) + 10) == data
    table.close(g)

    reopened = FileSystem(fs.disk.image)
    other = FileTable(reopened)
    h = other.open_inode(reopened.namei("/README"), True, False)
    assert h.read(len(data) + 10) == data


def test_stat_inode_and_pipe(fs, table):
    f = open_readme(fs, table)
    assert f.stat().size == len(CONTENT)
    reader, _ = table.pipe()
    with pytest.raises(OSError):
        reader.stat()


def test_table_pipe_ends(table):
    reader, writer = table.pipe()
    assert reader.kind is FileKind.PIPE and writer.kind is FileKind.PIPE
    assert writer.write(b"ping") == 4
    assert reader.read(10) == b"ping"
    with pytest.raises(OSError) as exc:
        reader.write(b"x")
    assert exc.value.errno == errno.EBADF
    table.close(writer)
    assert reader.read(1) == b""


def test_pipe_alloc_failure_releases_first_end(table):
    files = [table.alloc() for _ in range(3)]
    with pytest.raises(OSError):
        table.pipe()
    assert table.alloc() not in files


def test_close_drops_inode_reference(fs, table):
    ip = fs.namei("/README")
    before = ip.ref
    f = table.open_inode(ip, True, False)
    table.close(f)
    assert ip.ref == before - 1
    assert f.kind is FileKind.NONE