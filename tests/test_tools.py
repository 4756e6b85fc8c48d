import errno

import pytest

from xvsim.fs import FileSystem
from xvsim.layout import DIRSIZ, FileType
from xvsim.mkfs import build_image
from xvsim.tools import cat, echo, fmtname, ls, main

README = b"readme text\n"
NOTES = b"n" * 700

FILES = {"README": README, "notes": NOTES}


@pytest.fixture
def image():
    return build_image(FILES)


@pytest.fixture
def fs(image):
    return FileSystem(image)


def file_stat(fs, path):
    ip = fs.namei(path)
    fs.ilock(ip)
    st = fs.stat(ip)
    fs.iunlock(ip)
    fs.iput(ip)
    return st


def test_fmtname_pads_last_element():
    result = fmtname("dir/sub/README")
    assert result == "README".ljust(DIRSIZ)
    assert len(result) == DIRSIZ


def test_fmtname_without_slash():
    assert fmtname("cat") == "cat".ljust(DIRSIZ)


def test_fmtname_long_name_unchanged():
    name = "a" * (DIRSIZ + 6)
    assert fmtname("x/" + name) == name


def test_echo():
    assert echo(["a", "b"]) == "a b\n"
    assert echo([]) == ""


def test_cat_single_and_multiple(fs):
    assert cat(fs, ["README"]) == README
    assert cat(fs, ["README", "/notes"]) == README + NOTES


def test_cat_crosses_blocks(fs):
    assert cat(fs, ["notes"]) == NOTES


def test_cat_missing(fs):
    with pytest.raises(FileNotFoundError):
        cat(fs, ["missing"])


def test_ls_file(fs):
    st = file_stat(fs, "README")
    lines = ls(fs, "README")
    assert len(lines) == 1
    assert lines[0].startswith(fmtname("README"))
    assert lines[0].split() == ["README", str(int(FileType.FILE)), str(st.ino), str(len(README))]


def test_ls_root_lists_entries_in_order(fs):
    lines = ls(fs, "/")
    assert [line.split()[0] for line in lines] == [".", "..", "README", "notes"]
    assert lines[0].split()[1] == str(int(FileType.DIR))
    assert lines[3].split()[3] == str(len(NOTES))


def test_ls_dot_matches_root(fs):
    assert [l.split()[0] for l in ls(fs, ".")] == [l.split()[0] for l in ls(fs, "/")]


def test_ls_missing(fs):
    with pytest.raises(FileNotFoundError):
        ls(fs, "nothing-here")


def test_ls_path_too_long(fs):
    with pytest.raises(OSError) as exc:
        ls(fs, "/" * 600)
    assert exc.value.errno == errno.ENAMETOOLONG


def test_main_echo(capsys):
    assert main(["echo", "hello", "world"]) == 0
    assert capsys.readouterr().out == "hello world\n"


def test_main_cat(tmp_path, image, capsys):
    img = tmp_path / "fs.img"
    img.write_bytes(image)
    assert main(["cat", str(img), "README"]) == 0
    assert capsys.readouterr().out == README.decode()


def test_main_cat_missing(tmp_path, image, capsys):
    img = tmp_path / "fs.img"
    img.write_bytes(image)
    assert main(["cat", str(img), "nope"]) == 1
    assert "cat: cannot open nope" in capsys.readouterr().out


def test_main_ls(tmp_path, image, capsys):
    img = tmp_path / "fs.img"
    img.write_bytes(image)
    assert main(["ls", str(img)]) == 0
    names = [line.split()[0] for line in capsys.readouterr().out.splitlines()]
    assert names == [".", "..", "README", "notes"]


def test_main_without_arguments(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().err