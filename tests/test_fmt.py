import pytest

from xvsim.fmt import format_int, format_kernel, format_user


@pytest.mark.parametrize("value", [0, 1, 9, 10, 12345, -1, -98765, 2**31 - 1, -(2**31)])
def test_decimal_round_trip(value):
    assert int(format_int(value, 10, True, False)) == value


@pytest.mark.parametrize("value", [0, 1, 15, 16, 4096, 0x7FFFFFFF])
def test_hex_round_trip(value):
    assert int(format_int(value, 16, False, False), 16) == value


def test_unsigned_shows_twos_complement():
    assert format_int(-1, 16, False, False) == "ffffffff"


def test_negative_has_minus_sign():
    assert format_int(-42, 10, True, False) == "-" + format_int(42, 10, True, False)


def test_values_wrap_to_32_bits():
    assert int(format_int(2**32 + 7, 10, True, False)) == 7


def test_upper_digits():
    for value in (10, 255, 0xDEAD):
        assert format_int(value, 16, False, True) == format_int(value, 16, False, False).upper()


def test_bad_base():
    with pytest.raises(ValueError):
        format_int(5, 1, True, False)


def test_user_basic():
    assert format_user("%d %s", 42, "hi") == "42 hi"


def test_user_hex_is_upper():
    assert format_user("%x", 255) == format_int(255, 16, False, True)
    assert format_user("%p", 255) == format_user("%x", 255)


def test_user_null_string():
    assert format_user("%s", None) == "(null)"


def test_user_char():
    assert format_user("%c", ord("x")) == "x"


def test_user_percent_and_unknown():
    assert format_user("%%") == "%"
    assert format_user("%q") == "%q"


def test_user_trailing_percent_dropped():
    assert format_user("ab%") == "ab"


def test_user_missing_argument():
    with pytest.raises(ValueError):
        format_user("%d")


def test_kernel_hex_is_lower():
    assert format_kernel("%x", 255) == format_int(255, 16, False, False)
    assert format_kernel("%p", 0xABC) == format_kernel("%x", 0xABC)


def test_kernel_has_no_char_escape():
    assert format_kernel("%c") == "%c"


def test_kernel_trailing_percent_stops():
    assert format_kernel("ab%") == "ab"


def test_kernel_string_and_number():
    assert format_kernel("cpu%d: %s", 3, "up") == "cpu3: up"
    assert format_kernel("%s", None) == "(null)"


def test_kernel_null_format():
    with pytest.raises(ValueError):
        format_kernel(None)