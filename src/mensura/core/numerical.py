import math
import re
import typing


_NON_NUMERIC = re.compile(r'[^0-9/. -]')
"""Characters that may not appear in a numeric literal."""

_SEPARATORS = re.compile(r'[ /]+')
"""Separators between the parts of a fraction or mixed number."""


def clean(text: typing.Optional[str]) -> str:
    """Remove characters that can't belong to a numeric literal.

    This strips every character outside of digits, '/', '.', ' ', and '-',
    trims surrounding whitespace, and drops a single trailing '/'.
    """
    string = _NON_NUMERIC.sub('', text or '').strip()
    if string.endswith('/'):
        string = string[:-1].rstrip()
    return string


def isnumeric(text: str) -> bool:
    """True if `text` contains only characters allowed in a numeric literal."""
    return not _NON_NUMERIC.search(text)


def parse(text: typing.Optional[str]) -> float:
    """Convert a free-form numeric string into a float.

    Parameters
    ----------
    text : string
        The string to parse. It may be a decimal number (``'2.5'``), a simple
        fraction (``'7/8'``), or a mixed number (``'6 1/8'``). It may also
        contain extraneous characters (e.g., from co-mingled unit text), which
        this function ignores.

    Returns
    -------
    float
        The numerical value of `text`, ``0.0`` if nothing numeric remains after
        cleaning, or ``nan`` if the cleaned string does not have one of the
        accepted shapes. Callers must treat ``nan`` as an input error.

    Examples
    --------
    >>> numerical.parse('6 1/8')
    6.125
    >>> numerical.parse('9/16 in')
    0.5625
    >>> numerical.parse('')
    0.0
    """
    string = clean(text)
    if not string:
        return 0.0
    if '.' in string or not any(c in string for c in ' /'):
        try:
            return float(string)
        except ValueError:
            # Fall through: something like '1.5/2' or '12.9 1/10'.
            pass
    parts = [part for part in _SEPARATORS.split(string) if part]
    try:
        numbers = [float(part) for part in parts]
    except ValueError:
        return math.nan
    if ' ' not in string and len(numbers) == 2:
        return _ratio(*numbers)
    if len(numbers) == 3:
        whole, numerator, denominator = numbers
        return whole + _ratio(numerator, denominator)
    return math.nan


def _ratio(numerator: float, denominator: float) -> float:
    """Divide, mapping a zero denominator to ``nan``."""
    if denominator == 0:
        return math.nan
    return numerator / denominator
