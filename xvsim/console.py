"""Console model: a CGA text screen and the line-editing input buffer."""

from __future__ import annotations

from typing import Iterable, List, Union

BACKSPACE = 0x100
COLUMNS = 80
LINES = 25
INPUT_BUF = 128
_ATTR = 0x0700


def _ctrl(ch: str) -> int:
    return ord(ch) - ord("@")


class KernelPanic(RuntimeError):
    """Raised where the kernel would halt with a panic."""


def _code(c: Union[int, str]) -> int:
    return ord(c) if isinstance(c, str) else int(c)


class CgaScreen:
    """An 80x25 text-mode frame buffer with a cursor."""

    def __init__(self) -> None:
        self.cells: List[int] = [0] * (COLUMNS * LINES)
        self.pos = 0

    def putc(self, c: Union[int, str]) -> None:
        """Draw one character, handling newline, backspace and scrolling."""
        c = _code(c)
        pos = self.pos
        if c == ord("\n"):
            pos += COLUMNS - pos % COLUMNS
        elif c == BACKSPACE:
            if pos > 0:
                pos -= 1
        else:
            self.cells[pos] = (c & 0xFF) | _ATTR
            pos += 1

        if pos < 0 or pos > LINES * COLUMNS:
            raise KernelPanic("pos under/overflow")

        if pos // COLUMNS >= 24:
            self.cells[: 23 * COLUMNS] = self.cells[COLUMNS : 24 * COLUMNS]
            pos -= COLUMNS
            self.cells[pos : 24 * COLUMNS] = [0] * (24 * COLUMNS - pos)

        self.pos = pos
        self.cells[pos] = ord(" ") | _ATTR

    def rows(self) -> List[str]:
        """Return the screen text, one string per row; empty cells are spaces."""
        text = "".join(chr(cell & 0xFF) if cell & 0xFF else " " for cell in self.cells)
        return [text[i : i + COLUMNS] for i in range(0, len(text), COLUMNS)]


class LineDiscipline:
    """Console input buffer with line editing, echoing to screen and serial."""

    INPUT_BUF = INPUT_BUF

    def __init__(self) -> None:
        self.screen = CgaScreen()
        self.serial = bytearray()
        self._buf = bytearray(INPUT_BUF)
        self._r = 0
        self._w = 0
        self._e = 0

    def _putc(self, c: int) -> None:
        if c == BACKSPACE:
            self.serial += b"\b \b"
        else:
            self.serial.append(c & 0xFF)
        self.screen.putc(c)

    def interrupt(self, chars: Union[bytes, str, Iterable[int]]) -> bool:
        """Process typed characters; return True if a process listing was requested."""
        if isinstance(chars, str):
            chars = [ord(ch) for ch in chars]
        want_procdump = False
        for c in chars:
            if c == _ctrl("P"):
                want_procdump = True
            elif c == _ctrl("U"):
                while self._e != self._w and self._buf[(self._e - 1) % INPUT_BUF] != ord("\n"):
                    self._e -= 1
                    self._putc(BACKSPACE)
            elif c in (_ctrl("H"), 0x7F):
                if self._e != self._w:
                    self._e -= 1
                    self._putc(BACKSPACE)
            elif c != 0 and self._e - self._r < INPUT_BUF:
                if c == ord("\r"):
                    c = ord("\n")
                self._buf[self._e % INPUT_BUF] = c & 0xFF
                self._e += 1
                self._putc(c)
                if c in (ord("\n"), _ctrl("D")) or self._e == self._r + INPUT_BUF:
                    self._w = self._e
        return want_procdump

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes of completed input, stopping after a newline.

        A Ctrl-D marks end of file.  Raises BlockingIOError when no completed
        input is available.
        """
        out = bytearray()
        remaining = n
        while remaining > 0:
            if self._r == self._w:
                if not out:
                    raise BlockingIOError("no console input available")
                break
            c = self._buf[self._r % INPUT_BUF]
            self._r += 1
            if c == _ctrl("D"):
                if remaining < n:
                    self._r -= 1
                break
            out.append(c)
            remaining -= 1
            if c == ord("\n"):
                break
        return bytes(out)

    def write(self, data: Union[bytes, str]) -> int:
        """Echo ``data`` to the screen and serial line; return its length."""
        if isinstance(data, str):
            data = data.encode("latin-1")
        for c in data:
            self._putc(c & 0xFF)
        return len(data)