import pytest

from services.isbn_utils import is_valid, normalize_isbn, same_isbn


def test_normalize_strips_hyphens_and_spaces():
    assert normalize_isbn(" 978-0-547 92822-7 ") == "9780547928227"
    assert normalize_isbn("0-8044-2957-x") == "080442957X"


@pytest.mark.parametrize("isbn", ["9780547928227", "978-0-306-40615-7", "054792822X", "0306406152"])
def test_valid(isbn):
    assert is_valid(isbn) is True


@pytest.mark.parametrize("isbn", ["9780547928228", "0306406153"])
def test_bad_check_digit(isbn):
    assert is_valid(isbn) is False


@pytest.mark.parametrize(
    "isbn, message",
    [
        ("12345", "length"),
        ("97805479282A7", "invalid characters"),
        ("978054792822X", "invalid 'X'"),
        ("05479X822X", "check digit"),
        ("9770547928227", "Prefix Element 977"),
    ],
)
def test_malformed(isbn, message):
    with pytest.raises(ValueError, match=message):
        is_valid(isbn)


def test_same_isbn():
    assert same_isbn("978-0547928227", "9780547928227")
    assert not same_isbn("9780547928227", "054792822X")
    assert not same_isbn("N/A", "N/A")
    assert not same_isbn("", "")
