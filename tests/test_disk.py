import pytest

from xvsim.console import KernelPanic
from xvsim.disk import PGSIZE, Buf, BufferCache, MemDisk
from xvsim.layout import BSIZE

NBLOCKS = 32


def make_image():
    return b"".join(bytes([i]) * BSIZE for i in range(NBLOCKS))


@pytest.fixture
def disk():
    return MemDisk(make_image())


def test_memdisk_read(disk):
    buf = Buf(dev=1, blockno=5, locked=True)
    disk.sync(buf)
    assert buf.valid
    assert bytes(buf.data) == bytes([5]) * BSIZE


def test_memdisk_write(disk):
    buf = Buf(dev=1, blockno=2, locked=True, dirty=True, data=bytearray(b"z" * BSIZE))
    disk.sync(buf)
    assert not buf.dirty
    assert buf.valid
    assert disk.image[2 * BSIZE : 3 * BSIZE] == b"z" * BSIZE


@pytest.mark.parametrize(
    "buf",
    [
        Buf(dev=1, blockno=0, locked=False),
        Buf(dev=1, blockno=0, locked=True, valid=True),
        Buf(dev=0, blockno=0, locked=True),
        Buf(dev=1, blockno=NBLOCKS, locked=True),
    ],
)
def test_memdisk_errors(disk, buf):
    with pytest.raises(KernelPanic):
        disk.sync(buf)


def test_bread_contents(disk):
    cache = BufferCache(disk, 4)
    buf = cache.bread(1, 3)
    assert bytes(buf.data) == bytes([3]) * BSIZE
    assert buf.locked and buf.refcnt == 1


def test_cache_hit_returns_same_buffer(disk):
    cache = BufferCache(disk, 4)
    first = cache.bread(1, 7)
    cache.brelse(first)
    second = cache.bread(1, 7)
    assert second is first


def test_bwrite_reaches_disk(disk):
    cache = BufferCache(disk, 4)
    buf = cache.bread(1, 9)
    buf.data[:] = b"q" * BSIZE
    cache.bwrite(buf)
    cache.brelse(buf)
    assert disk.image[9 * BSIZE : 10 * BSIZE] == b"q" * BSIZE


def test_bwrite_and_brelse_need_lock(disk):
    cache = BufferCache(disk, 4)
    buf = cache.bread(1, 1)
    cache.brelse(buf)
    with pytest.raises(KernelPanic):
        cache.bwrite(buf)
    with pytest.raises(KernelPanic):
        cache.brelse(buf)


def test_no_free_buffers(disk):
    cache = BufferCache(disk, 2)
    cache.bread(1, 1)
    cache.bread(1, 2)
    with pytest.raises(KernelPanic):
        cache.bread(1, 3)


def test_least_recently_used_is_recycled(disk):
    cache = BufferCache(disk, 2)
    a = cache.bread(1, 1)
    cache.brelse(a)
    b = cache.bread(1, 2)
    cache.brelse(b)
    c = cache.bread(1, 3)
    assert c is a
    assert bytes(c.data) == bytes([3]) * BSIZE


def test_dirty_buffers_are_pinned(disk):
    cache = BufferCache(disk, 1)
    buf = cache.bread(1, 1)
    buf.dirty = True
    cache.brelse(buf)
    with pytest.raises(KernelPanic):
        cache.bread(1, 2)


def test_block_context_releases(disk):
    cache = BufferCache(disk, 2)
    with cache.block(1, 4) as buf:
        assert buf.locked
    assert not buf.locked
    assert buf.refcnt == 0


def test_page_round_trip(disk):
    cache = BufferCache(disk, 4)
    page = bytes(i % 256 for i in range(PGSIZE))
    cache.write_page(1, page, 8)
    assert disk.image[8 * BSIZE : 8 * BSIZE + PGSIZE] == page
    assert cache.read_page(1, 8) == page


def test_page_wrong_size(disk):
    cache = BufferCache(disk, 4)
    with pytest.raises(ValueError):
        cache.write_page(1, b"short", 8)