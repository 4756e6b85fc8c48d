import io

import pytest

from xvsim.grep import grep, main, match, match_here, match_star


@pytest.mark.parametrize(
    "pattern,text,expected",
    [
        ("abc", "xxabcxx", True),
        ("^abc", "xabc", False),
        ("^abc", "abcx", True),
        ("a.c", "abc", True),
        ("ab*c", "ac", True),
        ("ab*c", "abbbc", True),
        ("x$", "abx", True),
        ("x$", "xab", False),
        (".*", "", True),
        ("", "anything", True),
        ("zz", "abc", False),
    ],
)
def test_match(pattern, text, expected):
    assert match(pattern, text) is expected


def test_match_here_anchored():
    assert match_here("ab", "abc") is True
    assert match_here("bc", "abc") is False


def test_match_star_dot():
    assert match_star(".", "c", "aaac") is True
    assert match_star("a", "c", "abc") is False


def test_long_star_no_recursion_limit():
    assert match("a*b", "a" * 5000 + "b") is True


def test_grep_lines():
    stream = io.StringIO("foo\nbar\nfood\n")
    assert list(grep("foo", stream)) == ["foo\n", "food\n"]


def test_grep_drops_unterminated_last_line():
    assert list(grep("foo", io.StringIO("foo\nfoo"))) == ["foo\n"]


class _Chunks:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    def read(self, n):
        return self._chunks.pop(0) if self._chunks else ""


def test_grep_discards_read_without_newline():
    assert list(grep("o", _Chunks(["fo", "o\n"]))) == ["o\n"]


def test_main_usage(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().err


def test_main_files(tmp_path, capsys):
    path = tmp_path / "words.txt"
    path.write_text("alpha\nbeta\ngamma\n")
    assert main(["a$", str(path)]) == 0
    assert capsys.readouterr().out == "alpha\nbeta\ngamma\n"


def test_main_missing_file(tmp_path, capsys):
    missing = str(tmp_path / "nope")
    assert main(["x", missing]) == 1
    assert f"grep: cannot open {missing}" in capsys.readouterr().out