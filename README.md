# xvsim

`xvsim` is a plain-Python model of the storage side of a small Unix-like
teaching kernel. It builds disk images, reads and writes them through a
buffer cache and a redo log, and runs a few small user tools against them.
It uses only the standard library.

## Modules

- `xvsim.dlist`: `DList`, a doubly linked list of `ListElem` nodes with
  head and tail sentinels. It has `push_front`, `push_back`, `pop_front`,
  `pop_back`, `insert`, `remove`, `splice`, `reverse`, a stable in-place
  natural merge `sort`, `insert_ordered`, `unique`, `max`, `min` and
  `values`. Ordering methods take a `less(a, b)` callable on values.
- `xvsim.fmt`: `format_int`, `format_user` (`%d %x %p %s %c %%`, upper-case
  hex) and `format_kernel` (`%d %x %p %s %%`, lower-case hex). Integers are
  treated as 32-bit words.
- `xvsim.grep`: `match`, `match_here` and `match_star` for patterns with
  `^ . * $`, and `grep(pattern, stream)`, which yields matching lines.
- `xvsim.keyboard`: `Keyboard`, a scan-code set 1 decoder tracking shift,
  control and the lock keys (`feed`, `decode`).
- `xvsim.console`: `CgaScreen`, an 80×25 text screen with scrolling, and
  `LineDiscipline`, the console input buffer with backspace, Ctrl-U
  kill-line and Ctrl-D end of file. Kernel halts are raised as
  `KernelPanic`.
- `xvsim.layout`: the on-disk format: `Superblock`, `DiskInode` and
  `Dirent` with `pack`/`unpack`, `FileType`, `inode_block` and
  `bitmap_block`.
- `xvsim.mkfs`: `ImageBuilder` and `build_image`, which lay out a fresh
  image with a root directory and files in it.
- `xvsim.disk`: `MemDisk`, an in-memory disk, and `BufferCache`, an LRU
  block cache with `bread`, `bwrite`, `brelse`, the `block` context
  manager, and `write_page`/`read_page` for eight-block pages.
- `xvsim.log`: `Log`, the write-ahead redo log. `Log.transaction()` groups
  updates so they commit together; `recover()` replays a committed log.
- `xvsim.fs`: `FileSystem` with block allocation (`balloc`, `balloc_page`,
  `bfree`, `bfree_page`), the inode cache (`ialloc`, `iget`, `ilock`,
  `iunlock`, `iput`, ...), `readi`/`writei`, directories (`dirlookup`,
  `dirlink`) and path lookup (`namei`, `nameiparent`, `skip_elem`).
- `xvsim.file`: `Pipe`, `OpenFile` and `FileTable`.
- `xvsim.tools`: `echo`, `cat`, `ls` and `fmtname`, run against a
  `FileSystem`.

## Installing

```
pip install .
```

## Command line

Build an image. The first argument is the image to write; each file after
it is copied into the root directory. Names may not contain `/`, and a
leading `_` is dropped.

```
xvsim-mkfs fs.img README notes.txt
```

Search files, or standard input, with the small pattern language. Only
newline-terminated lines are printed.

```
xvsim-grep '^ab*c$' notes.txt
```

Run the user tools. `cat` and `ls` read the image named after the command;
`cat` with no files copies standard input, and `ls` with no path lists
`.`, the root directory. `ls` prints `name type inode size` per entry.

```
xvsim-tools echo hello world
xvsim-tools cat fs.img notes.txt
xvsim-tools ls fs.img
```

## Using it from Python

```python
from xvsim.fmt import format_user
from xvsim.grep import match

format_user("%d items in %s", 3, "box")   # '3 items in box'
match("^ab*c$", "abbbc")                  # True
match("x.z", "wxyz")                      # True
```

Reading and writing a file on an image:

```python
from xvsim.fs import FileSystem
from xvsim.mkfs import build_image

fs = FileSystem(build_image({"hello.txt": b"hi\n"}))
ip = fs.namei("/hello.txt")

fs.ilock(ip)
print(fs.readi(ip, 0, ip.size))           # b'hi\n'
fs.iunlock(ip)

with fs.log.transaction():
    fs.ilock(ip)
    fs.writei(ip, b"more\n", ip.size)
    fs.iunlock(ip)
    fs.iput(ip)

image = fs.disk.image                     # the updated image as bytes
```

## What it does not do

- There is no process or system-call layer: no `open`, `mkdir`, `unlink`
  or `link` calls, and no command that creates directories or removes
  files from an image. Directories are built with `ialloc`, `dirlink` and
  `writei` by hand.
- Nothing sleeps or waits. Where the kernel would block, the package
  raises instead: `Pipe` raises `BlockingIOError`, `LineDiscipline.read`
  raises `BlockingIOError`, and `Log.begin_op` raises `LogBusy`.
- The disk lives in memory. `FileSystem` never writes back to an image
  file; take `fs.disk.image` and save it yourself.
- `Keyboard` and `LineDiscipline` are not attached to a real terminal;
  you feed them scan codes and characters.
- Page allocation on disk (`balloc_page`, `write_page`, `read_page`) is
  present, but there is no virtual memory or swapping built on it.

## Running the tests

```
pip install ".[test]"
pytest
```