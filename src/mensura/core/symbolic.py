import collections.abc
import fractions
import numbers
import re
import typing

import numpy

from mensura.core import iterables
from mensura.core import numerical


_SUPERSCRIPTS = {
    '-': '⁻',
    '0': '⁰',
    '1': '¹',
    '2': '²',
    '3': '³',
    '4': '⁴',
    '5': '⁵',
    '6': '⁶',
    '7': '⁷',
    '8': '⁸',
    '9': '⁹',
}
_ASCII = {v: k for k, v in _SUPERSCRIPTS.items()}


class Tokens(typing.NamedTuple):
    """The operators and separators of a unit expression."""

    multiply: str='*'
    divide: str='/'
    raising: str='^'
    opening: str='('
    closing: str=')'


TOKENS = Tokens()


_PATTERNS = {
    'superscript': re.compile(f"[{''.join(_ASCII)}]+"),
    'operator': re.compile(r'\s*([*/^])\s*'),
    'whitespace': re.compile(r'\s+'),
    'integral': re.compile(r'\^(-?\d+)(?![.\d])'),
}


class ParsingError(ValueError):
    """Base class for exceptions encountered during unit parsing."""

    def __init__(self, arg: typing.Any) -> None:
        self.arg = arg

    def __str__(self) -> str:
        return f"Can't parse unit expression '{self.arg}'"


class RatioError(ParsingError):
    """The string contains multiple '/' on a single level."""

    def __str__(self) -> str:
        return (
            f"The expression '{self.arg}' contains ambiguous '/'."
            f" Extra '/' symbols must be contained in parentheses."
        )


class ExponentError(ParsingError):
    """A term contains multiple '^' on a single level."""

    def __str__(self) -> str:
        return (
            f"The term '{self.arg}' contains ambiguous '^'."
            f" Extra '^' symbols must be contained in parentheses."
        )


class ScalarError(ParsingError):
    """The expression contains a bare numerical coefficient."""

    def __str__(self) -> str:
        return f"Units cannot have scalar values (found '{self.arg}')"


class SeparatorError(ParsingError):
    """The expression contains unbalanced parentheses."""

    def __str__(self) -> str:
        return f"The expression '{self.arg}' has unbalanced parentheses"


Exponent = typing.Union[int, fractions.Fraction]


def exponent(value: typing.Union[numbers.Real, str]) -> Exponent:
    """Convert `value` to a standard exponent.

    Integral values become `int`. Everything else becomes a
    `fractions.Fraction` with a bounded denominator, so that decimal renderings
    of rational exponents (e.g., ``0.3333333333333333``) parse back to the
    original rational number.
    """
    if isinstance(value, str):
        value = fractions.Fraction(value.strip())
    if isinstance(value, float) and not numpy.isfinite(value):
        raise ValueError(f"Exponent must be finite, not {value}")
    fraction = fractions.Fraction(value).limit_denominator(1_000_000)
    if fraction.denominator == 1:
        return int(fraction)
    return fraction


def format_exponent(value: Exponent) -> str:
    """Render an exponent without '/' so that it never splits a ratio."""
    if isinstance(value, int) or float(value).is_integer():
        return str(int(value))
    return numpy.format_float_positional(float(value), trim='-')


class Dimensions(collections.abc.Mapping, iterables.ReprStrMixin):
    """An immutable table of unit symbols and their exponents.

    A dimension table represents a unit expression as a product of powers. Its
    keys are unit symbols (e.g., ``'m'`` or ``'(lb/in^2)'``) and its values are
    rational exponents. Symbols with a zero exponent do not appear in the
    table, and iteration always proceeds in alphabetical order of symbol.

    Examples
    --------
    >>> d = symbolic.Dimensions({'s': -1, 'm': 1})
    >>> list(d)
    ['m', 's']
    >>> str(d)
    'm/s'
    >>> str(d ** 2)
    'm^2/s^2'
    """

    __slots__ = ('_terms', '_hash')

    def __init__(
        self,
        terms: typing.Union[
            typing.Mapping[str, numbers.Real],
            typing.Iterable[typing.Tuple[str, numbers.Real]],
        ]=None,
    ) -> None:
        pairs = dict(terms or {}).items()
        standard = {str(k): exponent(v) for k, v in pairs}
        self._terms = {
            k: standard[k] for k in sorted(standard) if standard[k] != 0
        }
        self._hash = None

    def __getitem__(self, symbol: str) -> Exponent:
        return self._terms[symbol]

    def __iter__(self) -> typing.Iterator[str]:
        return iter(self._terms)

    def __len__(self) -> int:
        return len(self._terms)

    def __eq__(self, other) -> bool:
        """True if both tables have identical symbols and exponents."""
        if isinstance(other, Dimensions):
            return self._terms == other._terms
        if isinstance(other, collections.abc.Mapping):
            return self == Dimensions(other)
        return NotImplemented

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(tuple(self._terms.items()))
        return self._hash

    def __mul__(self, other: typing.Mapping[str, numbers.Real]):
        """Called for self * other. Sums exponents of common symbols."""
        if not isinstance(other, collections.abc.Mapping):
            return NotImplemented
        terms = dict(self._terms)
        for symbol, power in other.items():
            terms[symbol] = terms.get(symbol, 0) + exponent(power)
        return Dimensions(terms)

    def __truediv__(self, other: typing.Mapping[str, numbers.Real]):
        """Called for self / other. Subtracts exponents of common symbols."""
        if not isinstance(other, collections.abc.Mapping):
            return NotImplemented
        return self * Dimensions(other).inverse()

    def __pow__(self, power: numbers.Real):
        """Called for self ** power. Scales every exponent."""
        if not isinstance(power, numbers.Real):
            return NotImplemented
        scale = exponent(power)
        return Dimensions({k: v * scale for k, v in self._terms.items()})

    def inverse(self):
        """The reciprocal of this table."""
        return self ** -1

    def without(self, *symbols: str):
        """A copy of this table without the given symbols."""
        return Dimensions(
            {k: v for k, v in self._terms.items() if k not in symbols}
        )

    def format(self, style: str='canonical') -> str:
        """Render this table as a unit string.

        Parameters
        ----------
        style : {'canonical', 'display'}
            The canonical style joins numerator terms with '*' and appends a
            single '/' followed by the '*'-joined denominator terms, using
            absolute exponents (e.g., ``'kg*m^2/s^2'``). The display style
            renders integral exponents as Unicode superscripts and replaces
            each '*' with a space (e.g., ``'kg m²/s²'``).
        """
        if style == 'canonical':
            return self._canonical()
        if style == 'display':
            return display(self._canonical())
        raise ValueError(f"Unknown format style {style!r}") from None

    def _canonical(self) -> str:
        """Internal helper for `format`."""
        numerator = []
        denominator = []
        for symbol, power in self._terms.items():
            target = numerator if power > 0 else denominator
            magnitude = abs(power)
            if magnitude == 1:
                target.append(symbol)
            else:
                raised = format_exponent(magnitude)
                target.append(f"{symbol}{TOKENS.raising}{raised}")
        if not numerator and not denominator:
            return ''
        top = TOKENS.multiply.join(numerator)
        if not denominator:
            return top
        bottom = TOKENS.multiply.join(denominator)
        return f"{top or '1'}{TOKENS.divide}{bottom}"

    def __str__(self) -> str:
        """A simplified representation of this object."""
        return self._canonical()


def equivalent(
    a: typing.Mapping[str, numbers.Real],
    b: typing.Mapping[str, numbers.Real],
) -> bool:
    """True if two tables are equal, or equal up to one global inversion.

    The inversion, if any, applies consistently to every entry: ``m/s`` is
    equivalent to ``s/m`` but not to ``m*s``.
    """
    x, y = (Dimensions(i) for i in (a, b))
    if x == y:
        return True
    return len(x) == len(y) and x == y.inverse()


def display(string: str) -> str:
    """Convert a canonical unit string to its display form.

    Every integral exponent becomes a run of Unicode superscript characters
    (including inside parenthesized symbols, so that ``'(lb/in^2)'`` becomes
    ``'(lb/in²)'``), and every '*' becomes a single space. Non-integral
    exponents keep the explicit '^'.
    """
    def superscript(match: re.Match) -> str:
        return iterables.batch_replace(match.group(1), _SUPERSCRIPTS)
    raised = _PATTERNS['integral'].sub(superscript, string)
    return raised.replace(TOKENS.multiply, ' ')


def normalize(string: str) -> str:
    """Convert display notation to a standard unit string.

    This function rewrites runs of Unicode superscript characters as an
    explicit '^' followed by ASCII characters (e.g., ``'m²'`` -> ``'m^2'``),
    removes whitespace around operators, and interprets any remaining
    whitespace outside of parentheses as implied multiplication, following the
    NIST convention that a space may separate the factors of a product.
    """
    def ascii(match: re.Match) -> str:
        digits = iterables.batch_replace(match.group(0), _ASCII)
        return f"{TOKENS.raising}{digits}"
    string = _PATTERNS['superscript'].sub(ascii, string.strip())
    string = _PATTERNS['whitespace'].sub(' ', string)
    string = _PATTERNS['operator'].sub(r'\1', string)
    parts = split(string, ' ')
    return TOKENS.multiply.join(part for part in parts if part)


def split(string: str, token: str) -> typing.List[str]:
    """Split `string` on each `token` that is not inside parentheses.

    Raises
    ------
    `~symbolic.SeparatorError`
        The parentheses in `string` are not balanced.

    Examples
    --------
    >>> symbolic.split('kg*(lb/in^2)/s', '/')
    ['kg*(lb/in^2)', 's']
    """
    parts = []
    depth = 0
    current = []
    for c in string:
        if c == TOKENS.opening:
            depth += 1
        elif c == TOKENS.closing:
            depth -= 1
            if depth < 0:
                raise SeparatorError(string)
        if c == token and depth == 0:
            parts.append(''.join(current))
            current = []
        else:
            current.append(c)
    if depth != 0:
        raise SeparatorError(string)
    parts.append(''.join(current))
    return parts


def parse(string: str) -> Dimensions:
    """Convert a unit string into a dimension table.

    Parameters
    ----------
    string : str
        The unit expression. It may contain '*', '/', and '^' operators,
        parenthesized symbols, and Unicode superscript exponents. It may
        contain at most one '/' outside of parentheses. Symbols wrapped in
        parentheses are atomic: their internal operators are not parsed.

    Returns
    -------
    `~symbolic.Dimensions`
        The table of symbols and exponents. This function does not merge
        convertible symbols; see `~metric.reduction`.

    Raises
    ------
    `~symbolic.ParsingError`
        The string does not conform to the unit grammar.

    Examples
    --------
    >>> symbolic.parse('m*m/s')
    core.symbolic.Dimensions(m^2/s)
    >>> symbolic.parse('kg m²/s²')
    core.symbolic.Dimensions(kg*m^2/s^2)
    """
    if not isinstance(string, str):
        raise TypeError(
            f"Unit expression must be a string, not {type(string)}"
        ) from None
    standard = normalize(string)
    if not standard:
        return Dimensions()
    sides = split(standard, TOKENS.divide)
    if len(sides) > 2:
        raise RatioError(string)
    numerator = sides[0] or '1'
    denominator = sides[1] if len(sides) == 2 else ''
    terms = {}
    for side, sign in ((numerator, +1), (denominator, -1)):
        if side == '1' and sign > 0 or not side:
            continue
        for term in split(side, TOKENS.multiply):
            symbol, power = _parse_term(term, string)
            terms[symbol] = terms.get(symbol, 0) + sign * power
    return Dimensions(terms)


def _parse_term(term: str, string: str) -> typing.Tuple[str, Exponent]:
    """Separate a single term into its symbol and exponent."""
    if not term:
        raise ParsingError(string)
    parts = split(term, TOKENS.raising)
    if len(parts) > 2:
        raise ExponentError(term)
    symbol = parts[0]
    if not symbol:
        raise ParsingError(string)
    if _is_number(symbol):
        raise ScalarError(symbol)
    if len(parts) == 1:
        return symbol, 1
    raw = parts[1]
    if raw.startswith(TOKENS.opening) and raw.endswith(TOKENS.closing):
        raw = raw[1:-1]
    try:
        return symbol, exponent(raw)
    except (ValueError, ZeroDivisionError) as err:
        raise ParsingError(term) from err


def _is_number(string: str) -> bool:
    """True if `string` represents a bare number."""
    if not numerical.isnumeric(string):
        return False
    try:
        float(string)
    except ValueError:
        return False
    return True
