"""PC keyboard scancode decoding (scan code set 1)."""

from __future__ import annotations

from typing import Iterable, List

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2
CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5
E0ESC = 1 << 6

KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def _ctl(ch: str) -> int:
    return (ord(ch) - ord("@")) & 0xFF


_SHIFTCODE = {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT}
_TOGGLECODE = {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK}

_SPECIAL = {
    0xC8: KEY_UP, 0xD0: KEY_DN,
    0xC9: KEY_PGUP, 0xD1: KEY_PGDN,
    0xCB: KEY_LF, 0xCD: KEY_RT,
    0x97: KEY_HOME, 0xCF: KEY_END,
    0xD2: KEY_INS, 0xD3: KEY_DEL,
}


def _table(prefix: Iterable[int], extras: dict) -> List[int]:
    table = [0] * 256
    for code, value in enumerate(prefix):
        table[code] = value
    for code, value in {**_SPECIAL, **extras}.items():
        table[code] = value
    return table


_NORMAL = _table(
    (
        "\x00\x1b1234567890-=\b\t"
        "qwertyuiop[]\n\x00as"
        "dfghjkl;'`\x00\\zxcv"
        "bnm,./\x00*\x00 " + "\x00" * 6
        + "\x00" * 7 + "789-456+1"
        "230." + "\x00" * 4
    ).encode("latin-1"),
    {0x9C: ord("\n"), 0xB5: ord("/")},
)

_SHIFTED = _table(
    (
        "\x00\x1b!@#$%^&*()_+\b\t"
        "QWERTYUIOP{}\n\x00AS"
        "DFGHJKL:\"~\x00|ZXCV"
        "BNM<>?\x00*\x00 " + "\x00" * 6
        + "\x00" * 7 + "789-456+1"
        "230." + "\x00" * 4
    ).encode("latin-1"),
    {0x9C: ord("\n"), 0xB5: ord("/")},
)

_CONTROL = _table(
    [0] * 16
    + [_ctl(c) for c in "QWERTYUI"]
    + [_ctl("O"), _ctl("P"), 0, 0, ord("\r"), 0, _ctl("A"), _ctl("S")]
    + [_ctl(c) for c in "DFGHJKL"] + [0]
    + [0, 0, 0, _ctl("\\")] + [_ctl(c) for c in "ZXCV"]
    + [_ctl(c) for c in "BNM"] + [0, 0, _ctl("/"), 0, 0],
    {0x9C: ord("\r"), 0xB5: _ctl("/")},
)

_CHARCODE = (_NORMAL, _SHIFTED, _CONTROL, _CONTROL)


class Keyboard:
    """Stateful decoder tracking modifier and lock keys."""

    def __init__(self) -> None:
        self.state = 0

    def feed(self, scancode: int) -> int:
        """Process one scancode; return the character code, or 0 for none."""
        if not 0 <= scancode <= 0xFF:
            raise ValueError(f"scancode out of range: {scancode}")
        data = scancode
        if data == 0xE0:
            self.state |= E0ESC
            return 0
        if data & 0x80:
            if not self.state & E0ESC:
                data &= 0x7F
            self.state &= ~(_SHIFTCODE.get(data, 0) | E0ESC)
            return 0
        if self.state & E0ESC:
            data |= 0x80
            self.state &= ~E0ESC

        self.state |= _SHIFTCODE.get(data, 0)
        self.state ^= _TOGGLECODE.get(data, 0)
        c = _CHARCODE[self.state & (CTL | SHIFT)][data]
        if self.state & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c

    def decode(self, scancodes: Iterable[int]) -> List[int]:
        """Feed every scancode and return the non-zero character codes."""
        return [c for c in (self.feed(s) for s in scancodes) if c]