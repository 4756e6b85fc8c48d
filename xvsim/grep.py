"""A tiny grep supporting only the ``^ . * $`` operators."""

from __future__ import annotations

import sys
from typing import Iterator, Optional, Sequence, TextIO

BUFSIZE = 1024


def match(pattern: str, text: str) -> bool:
    """Return True if ``pattern`` matches anywhere in ``text``."""
    if pattern.startswith("^"):
        return match_here(pattern[1:], text)
    for start in range(len(text) + 1):
        if match_here(pattern, text[start:]):
            return True
    return False


def match_here(pattern: str, text: str) -> bool:
    """Return True if ``pattern`` matches at the beginning of ``text``."""
    while True:
        if not pattern:
            return True
        if len(pattern) > 1 and pattern[1] == "*":
            return match_star(pattern[0], pattern[2:], text)
        if pattern == "$":
            return text == ""
        if text and (pattern[0] == "." or pattern[0] == text[0]):
            pattern, text = pattern[1:], text[1:]
            continue
        return False


def match_star(c: str, pattern: str, text: str) -> bool:
    """Return True if ``c*`` followed by ``pattern`` matches at the start of ``text``."""
    while True:
        if match_here(pattern, text):
            return True
        if not text or not (text[0] == c or c == "."):
            return False
        text = text[1:]


def grep(pattern: str, stream: TextIO) -> Iterator[str]:
    """Yield the newline-terminated lines of ``stream`` that match ``pattern``.

    Input is read into a fixed buffer; a read that holds no newline is
    discarded, as is a final line without a newline.
    """
    pending = ""
    while True:
        chunk = stream.read(BUFSIZE - len(pending) - 1)
        if not chunk:
            break
        pending += chunk
        *lines, rest = pending.split("\n")
        for line in lines:
            if match(pattern, line):
                yield line + "\n"
        pending = rest if lines else ""


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, paths = args[0], args[1:]
    if not paths:
        sys.stdout.writelines(grep(pattern, sys.stdin))
        return 0
    for path in paths:
        try:
            stream = open(path, encoding="utf-8", errors="surrogateescape", newline="")
        except OSError:
            sys.stdout.write(f"grep: cannot open {path}\n")
            return 1
        with stream:
            sys.stdout.writelines(grep(pattern, stream))
    return 0