"""
ISBN helpers shared by the book forms, the lookup and duplicate detection.

Books without an ISBN are stored with the placeholder ``NO_ISBN``.
For the check digit rules see https://isbn-information.com/
"""

NO_ISBN = "N/A"

ISBN13_WEIGHTS = (1, 3) * 6 + (1,)
ISBN10_WEIGHTS = tuple(range(10, 0, -1))
GS1_PREFIXES = ("978", "979")

LENGTH_ERROR = "Input is not of the correct length."
CHARACTER_ERROR = "Input has invalid characters."
ISBN13_X_ERROR = "ISBN 13 has invalid 'X' character"
ISBN10_X_ERROR = "ISBN 10 may only carry 'X' as its check digit"
PREFIX_ERROR = "ISBN 13 starts with invalid Prefix Element {}"


def normalize_isbn(isbn: str) -> str:
    """
    Removes hyphens and whitespace; a lower-case 'x' check digit becomes 'X'.

    Parameters
    ----------
    isbn : str
        An ISBN as typed, scanned or returned by a lookup

    Returns
    -------
    str
        The bare ISBN characters
    """
    return "".join(isbn.split()).replace("-", "").upper()


def _digit(char: str) -> int:
    return 10 if char == "X" else int(char)


def is_valid(isbn: str) -> bool:
    """
    Checks the check digit of an ISBN 10 or 13

    Parameters
    ----------
    isbn : str
        An ISBN code (10 or 13), hyphens and spaces allowed

    Returns
    -------
    bool
        True when the check digit matches

    Raises
    ------
    ValueError
        When the input is malformed rather than merely mistyped: wrong
        length, stray characters, a misplaced 'X' or an unknown prefix

    """
    code = normalize_isbn(isbn)
    if len(code) not in (10, 13):
        raise ValueError(LENGTH_ERROR)
    if any(char not in "0123456789X" for char in code):
        raise ValueError(CHARACTER_ERROR)

    if len(code) == 13:
        if "X" in code:
            raise ValueError(ISBN13_X_ERROR)
        if not code.startswith(GS1_PREFIXES):
            raise ValueError(PREFIX_ERROR.format(code[:3]))
        return sum(w * int(c) for w, c in zip(ISBN13_WEIGHTS, code)) % 10 == 0

    if "X" in code[:-1]:
        raise ValueError(ISBN10_X_ERROR)
    return sum(w * _digit(c) for w, c in zip(ISBN10_WEIGHTS, code)) % 11 == 0


def same_isbn(left: str, right: str) -> bool:
    """Hyphen-insensitive equality; the "N/A" placeholder never matches."""
    a, b = normalize_isbn(left or ""), normalize_isbn(right or "")
    return bool(a) and a != NO_ISBN and a == b
