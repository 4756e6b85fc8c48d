import pytest

from xvsim.console import BACKSPACE, CgaScreen, LineDiscipline


def test_screen_dimensions():
    rows = CgaScreen().rows()
    assert len(rows) == 25
    assert all(len(row) == 80 for row in rows)


def test_putc_text():
    screen = CgaScreen()
    for ch in "hi":
        screen.putc(ch)
    assert screen.rows()[0].rstrip() == "hi"
    assert screen.pos == len("hi")


def test_newline_moves_to_next_row():
    screen = CgaScreen()
    screen.putc("a")
    screen.putc("\n")
    screen.putc("b")
    rows = screen.rows()
    assert rows[0].rstrip() == "a"
    assert rows[1].rstrip() == "b"


def test_backspace_at_origin():
    screen = CgaScreen()
    screen.putc(BACKSPACE)
    assert screen.pos == 0


def test_scrolling_keeps_cursor_on_screen():
    screen = CgaScreen()
    for ch in "top\n":
        screen.putc(ch)
    for _ in range(40):
        screen.putc("\n")
        assert screen.pos // 80 < 24
    assert all("top" not in row for row in screen.rows())


def test_read_line():
    ld = LineDiscipline()
    ld.interrupt(b"hello\n")
    assert ld.read(100) == b"hello\n"
    assert bytes(ld.serial) == b"hello\n"
    assert ld.screen.rows()[0].rstrip() == "hello"


def test_carriage_return_becomes_newline():
    ld = LineDiscipline()
    ld.interrupt(b"ab\r")
    assert ld.read(10) == b"ab\n"


def test_backspace_edits():
    ld = LineDiscipline()
    ld.interrupt(b"abc\x7f\n")
    assert ld.read(10) == b"ab\n"
    assert b"\b \b" in bytes(ld.serial)


def test_kill_line():
    ld = LineDiscipline()
    ld.interrupt(b"abc\x15xy\n")
    assert ld.read(10) == b"xy\n"


def test_eof_alone_reads_empty():
    ld = LineDiscipline()
    ld.interrupt(b"\x04")
    assert ld.read(10) == b""


def test_eof_after_data_is_kept_for_next_read():
    ld = LineDiscipline()
    ld.interrupt(b"ab\x04")
    assert ld.read(10) == b"ab"
    assert ld.read(10) == b""


def test_short_reads():
    ld = LineDiscipline()
    ld.interrupt(b"abcd\n")
    assert ld.read(2) == b"ab"
    assert ld.read(10) == b"cd\n"


def test_read_without_input_raises():
    ld = LineDiscipline()
    ld.interrupt(b"partial")
    with pytest.raises(BlockingIOError):
        ld.read(10)


def test_procdump_request():
    ld = LineDiscipline()
    assert ld.interrupt(b"\x10") is True
    assert ld.interrupt(b"x") is False


def test_full_buffer_completes_line():
    ld = LineDiscipline()
    ld.interrupt(b"x" * 200)
    data = ld.read(500)
    assert len(data) == LineDiscipline.INPUT_BUF
    assert set(data) == {ord("x")}


def test_nul_is_ignored():
    ld = LineDiscipline()
    ld.interrupt(b"\x00a\n")
    assert ld.read(10) == b"a\n"


def test_write_echoes():
    ld = LineDiscipline()
    assert ld.write("ok") == 2
    assert bytes(ld.serial) == b"ok"
    assert ld.screen.rows()[0].rstrip() == "ok"