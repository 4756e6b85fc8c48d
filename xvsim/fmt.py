"""Minimal printf-style formatting for the user library and the kernel console.

Both formatters treat integer arguments as 32-bit machine words, as the
original console routines do: ``%d`` prints a signed value, ``%x`` and
``%p`` print the unsigned word in hexadecimal.
"""

from __future__ import annotations

from typing import Any, Iterator

_LOWER = "0123456789abcdef"
_UPPER = "0123456789ABCDEF"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def format_int(value: int, base: int = 10, signed: bool = True, upper: bool = False) -> str:
    """Render ``value`` as a 32-bit word in ``base``.

    With ``signed`` a negative word gets a leading minus sign; otherwise it
    is shown as its unsigned two's-complement value.
    """
    if not 2 <= base <= 16:
        raise ValueError(f"unsupported base {base}")
    v = _to_int32(int(value))
    negative = signed and v < 0
    x = (-v if negative else v) & 0xFFFFFFFF
    digits = _UPPER if upper else _LOWER
    out = []
    while True:
        out.append(digits[x % base])
        x //= base
        if x == 0:
            break
    if negative:
        out.append("-")
    return "".join(reversed(out))


class _Args:
    def __init__(self, args: tuple) -> None:
        self._it: Iterator[Any] = iter(args)

    def next(self) -> Any:
        try:
            return next(self._it)
        except StopIteration:
            raise ValueError("not enough arguments for format string") from None


def _as_text(arg: Any) -> str:
    if arg is None:
        return "(null)"
    if isinstance(arg, (bytes, bytearray)):
        return arg.decode("latin-1")
    return str(arg)


def _as_char(arg: Any) -> str:
    if isinstance(arg, str):
        return arg[:1]
    return chr(int(arg) & 0xFF)


def format_user(fmt: str, *args: Any) -> str:
    """Format like the user-space printf: %d %x %p %s %c %%."""
    values = _Args(args)
    out = []
    in_escape = False
    for c in fmt:
        if not in_escape:
            if c == "%":
                in_escape = True
            else:
                out.append(c)
            continue
        if c == "d":
            out.append(format_int(values.next(), 10, True, True))
        elif c in ("x", "p"):
            out.append(format_int(values.next(), 16, False, True))
        elif c == "s":
            out.append(_as_text(values.next()))
        elif c == "c":
            out.append(_as_char(values.next()))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
        in_escape = False
    return "".join(out)


def format_kernel(fmt: str, *args: Any) -> str:
    """Format like the kernel's console printf: %d %x %p %s %%."""
    if fmt is None:
        raise ValueError("null fmt")
    values = _Args(args)
    out = []
    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        c = next(chars, None)
        if c is None:
            break
        if c == "d":
            out.append(format_int(values.next(), 10, True, False))
        elif c in ("x", "p"):
            out.append(format_int(values.next(), 16, False, False))
        elif c == "s":
            out.append(_as_text(values.next()))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)