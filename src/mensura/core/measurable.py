import collections.abc
import decimal
import logging
import math
import numbers
import operator
import typing

import numpy

from mensura.core import iterables
from mensura.core import metric
from mensura.core import numerical
from mensura.core import symbolic


logger = logging.getLogger(__name__)


ZERO_SYMBOL = 'ZERO_NO_UNITS'
"""The reserved unit symbol of the zero sentinel."""


class InvalidMeasurement(ValueError):
    """The arguments do not describe a valid measurement."""

    def __init__(self, arg: typing.Any) -> None:
        self.arg = arg

    def __str__(self) -> str:
        return str(self.arg)


class IncompatibleUnits(TypeError):
    """The units of two measurements cannot be aligned."""

    def __init__(self, u0: str, u1: str) -> None:
        self.u0 = u0
        self.u1 = u1

    def __str__(self) -> str:
        return f"Can't convert {self.u0!r} to {self.u1!r}"


UnitLike = typing.Union[str, typing.Mapping[str, numbers.Real]]


_ROUNDING = {
    'away': decimal.ROUND_HALF_UP,
    'even': decimal.ROUND_HALF_EVEN,
}


class Measurement(iterables.ReprStrMixin):
    """A real value with a unit.

    Instances of this class are immutable. Every operation returns a new
    instance. Construction always reduces the unit expression by merging
    symbols that the conversion registry knows how to convert, so that (for
    example) ``Measurement(12, 'ft*in')`` becomes ``1 ft²``.

    Notes on arithmetic:
        - Binary `+` and `-` convert the right operand into the units of the
          left operand, and raise `~measurable.IncompatibleUnits` if that isn't
          possible.
        - Binary `*` and `/` never fail on account of units. They fold
          convertible symbols of the right operand into the left operand's
          symbols, and carry any remaining symbols into the result.
        - Equality compares unequal when units are incompatible. Ordering
          raises `~measurable.IncompatibleUnits`.
        - Arithmetic and comparison never apply additive offsets. Only an
          explicit call to `~measurable.Measurement.convert_to` does.
    """

    def __init__(
        self,
        value: typing.Union[numbers.Real, str],
        unit: UnitLike='',
        *,
        display: str=None,
        registry: metric.Registry=None,
    ) -> None:
        number = _standard_value(value)
        self._registry = metric.CONVERSIONS if registry is None else registry
        dimensions = _parse_unit(unit)
        self._dimensions, self._value = metric.reduction(
            dimensions,
            number,
            registry=self._registry,
        )
        if not numpy.isfinite(self._value):
            raise InvalidMeasurement(
                f"Reducing {unit!r} produced a non-finite value"
            ) from None
        self._display = display

    @iterables.classproperty
    def zero(cls):
        """The additive identity, which converts to any unit as zero."""
        return cls(0, ZERO_SYMBOL)

    @property
    def value(self) -> float:
        """The numerical value of this measurement."""
        return self._value

    @property
    def dimensions(self) -> symbolic.Dimensions:
        """The table of unit symbols and exponents."""
        return self._dimensions

    @property
    def unit(self) -> str:
        """The canonical unit string."""
        return self._dimensions.format('canonical')

    @property
    def display(self) -> typing.Optional[str]:
        """The display override, if any."""
        return self._display

    @property
    def registry(self) -> metric.Registry:
        """The conversions available to this measurement."""
        return self._registry

    @property
    def is_zero(self) -> bool:
        """True if this is the zero sentinel."""
        return self._value == 0 and self._dimensions == {ZERO_SYMBOL: 1}

    def _new(self, value: float, unit: UnitLike, **kwargs):
        """Create a new instance with this instance's registry."""
        return type(self)(value, unit, registry=self._registry, **kwargs)

    def _target(self, unit: typing.Union[UnitLike, 'Measurement']):
        """Compute the reduced dimension table of a conversion target."""
        if isinstance(unit, Measurement):
            return unit.dimensions
        dimensions, _ = metric.reduction(
            _parse_unit(unit),
            registry=self._registry,
        )
        return dimensions

    def try_convert(
        self,
        unit: typing.Union[UnitLike, 'Measurement'],
        offset: bool=False,
    ):
        """Convert to `unit` if possible.

        Parameters
        ----------
        unit : string, mapping, or `~measurable.Measurement`
            The target unit. A measurement provides only its unit.

        offset : bool, default=False
            If true, apply the additive offset between affine scales (e.g.,
            temperature).

        Returns
        -------
        `~measurable.Measurement`
            The converted measurement or, if conversion is not possible, this
            instance unchanged.
        """
        target = self._target(unit)
        if self.is_zero:
            return self._new(0, target)
        conversion = metric.Conversion(
            self._dimensions,
            target,
            registry=self._registry,
        )
        result = conversion.apply(self._value, offset=offset)
        if result is None:
            return self
        return self._new(result, target)

    def convert_to(
        self,
        unit: typing.Union[UnitLike, 'Measurement'],
        offset: bool=True,
    ):
        """Convert to `unit` or raise an exception.

        Unlike `~measurable.Measurement.try_convert`, this method applies
        additive offsets by default, so that ``100 C`` converts to ``212 F``.

        Raises
        ------
        `~measurable.IncompatibleUnits`
            The units of this measurement can't be converted to `unit`.
        """
        target = self._target(unit)
        converted = self.try_convert(target, offset=offset)
        if not symbolic.equivalent(converted.dimensions, target):
            raise IncompatibleUnits(self.unit, target.format())
        return converted

    def can_convert_to(self, unit: typing.Union[UnitLike, 'Measurement']):
        """True if this measurement converts to `unit`."""
        target = self._target(unit)
        converted = self.try_convert(target)
        return symbolic.equivalent(converted.dimensions, target)

    def same_units(self, other: typing.Union[UnitLike, 'Measurement']):
        """True if `other` has equivalent units, possibly inverted."""
        return symbolic.equivalent(self._dimensions, self._target(other))

    def force_to(self, unit: UnitLike):
        """Attach `unit` to this value, without conversion."""
        return self._new(self._value, unit)

    def with_display(self, text: typing.Optional[str]):
        """Create a copy that renders its unit as `text`."""
        return self._new(self._value, self._dimensions, display=text)

    def strip_parentheses(self):
        """Expand parenthesized symbols into their unit algebra.

        For example, ``2 (lb/in^2)`` becomes ``2 lb/in^2``.
        """
        grouped = [
            symbol for symbol in self._dimensions
            if symbolic.TOKENS.opening in symbol
        ]
        result = self._new(self._value, self._dimensions.without(*grouped))
        for symbol in grouped:
            inner = symbol.replace(symbolic.TOKENS.opening, '')
            inner = inner.replace(symbolic.TOKENS.closing, '')
            result *= self._new(1, inner) ** self._dimensions[symbol]
        return result

    def round(self, digits: int=2, mode: str='away'):
        """Round the value to `digits` decimal places.

        Parameters
        ----------
        digits : int, default=2
            The number of decimal places to keep.

        mode : {'away', 'even'}
            How to round values halfway between two candidates: away from
            zero, or to the nearest even digit.

        Notes
        -----
        The result keeps this instance's display override.
        """
        try:
            rounding = _ROUNDING[mode]
        except KeyError:
            raise ValueError(f"Unknown rounding mode {mode!r}") from None
        exact = decimal.Decimal(repr(self._value))
        quantum = decimal.Decimal(1).scaleb(-digits)
        rounded = exact.quantize(quantum, rounding=rounding)
        return self._new(
            float(rounded),
            self._dimensions,
            display=self._display,
        )

    def __round__(self, ndigits: int=None):
        """Called for round(self, ndigits)."""
        return self.round(ndigits or 0, mode='even')

    def ceil(self):
        """Round the value up to the nearest integer."""
        return self._new(math.ceil(self._value), self._dimensions)

    def floor(self):
        """Round the value down to the nearest integer."""
        return self._new(math.floor(self._value), self._dimensions)

    def isclose(self, other, rtol: float=1e-05, atol: float=1e-08) -> bool:
        """True if `other` is equal to this measurement within tolerance.

        This method converts `other` into this instance's units before
        comparing values. Incompatible units are never close.
        """
        if not isinstance(other, Measurement):
            raise TypeError(
                f"Can't compare a measurement to {type(other)}"
            ) from None
        converted = other.try_convert(self)
        if not symbolic.equivalent(converted.dimensions, self._dimensions):
            return False
        return bool(numpy.isclose(self._value, converted.value, rtol, atol))

    def serialize(self) -> str:
        """The storage representation of this measurement.

        The result uses the canonical ASCII unit string and is valid input to
        `~measurable.parse`.
        """
        return f"{_format_value(self._value)} {self.unit}"

    def __str__(self) -> str:
        """A simplified representation of this object."""
        value = _format_value(self._value)
        unit = (
            self._display if self._display is not None
            else self._dimensions.format('display')
        )
        return f"{value} {unit}" if unit else value

    def __repr__(self) -> str:
        """An unambiguous representation of this object."""
        name = self.__class__.__qualname__
        return f"{name}({self._value!r}, {self.unit!r})"

    __hash__ = None

    def __neg__(self):
        """Called for -self."""
        return self._new(-self._value, self._dimensions)

    def __pos__(self):
        """Called for +self."""
        return self._new(+self._value, self._dimensions)

    def __abs__(self):
        """Called for abs(self)."""
        return self._new(abs(self._value), self._dimensions)

    def __add__(self, other):
        """Called for self + other."""
        if isinstance(other, numbers.Real) and other == 0:
            return self
        if not isinstance(other, Measurement):
            return NotImplemented
        if self.is_zero:
            return other
        if other.is_zero:
            return self
        aligned = other._aligned(self)
        return self._new(self._value + aligned.value, self._dimensions)

    def __radd__(self, other):
        """Called for other + self (e.g., in `sum`)."""
        if isinstance(other, numbers.Real) and other == 0:
            return self
        return NotImplemented

    def __sub__(self, other):
        """Called for self - other."""
        if not isinstance(other, Measurement):
            return NotImplemented
        if self.is_zero:
            return -other
        if other.is_zero:
            return self
        aligned = other._aligned(self)
        return self._new(self._value - aligned.value, self._dimensions)

    def _aligned(self, reference: 'Measurement'):
        """Convert this instance to the units of `reference`, or fail.

        This never applies additive offsets.
        """
        if self._dimensions == reference.dimensions:
            return self
        converted = self.try_convert(reference)
        if converted.dimensions != reference.dimensions:
            raise IncompatibleUnits(self.unit, reference.unit)
        return converted

    def __mul__(self, other):
        """Called for self * other."""
        if isinstance(other, numbers.Real):
            return self._new(self._value * other, self._dimensions)
        if not isinstance(other, Measurement):
            return NotImplemented
        if self.is_zero or other.is_zero:
            return type(self).zero
        return self._combine(other, +1)

    def __rmul__(self, other):
        """Called for other * self."""
        if isinstance(other, numbers.Real):
            return self._new(other * self._value, self._dimensions)
        return NotImplemented

    def __truediv__(self, other):
        """Called for self / other."""
        if isinstance(other, numbers.Real):
            return self._new(self._value / other, self._dimensions)
        if not isinstance(other, Measurement):
            return NotImplemented
        if other.is_zero:
            raise ZeroDivisionError("Can't divide by the zero measurement")
        if self.is_zero:
            return type(self).zero
        return self._combine(other, -1)

    def __rtruediv__(self, other):
        """Called for other / self."""
        if isinstance(other, numbers.Real):
            return self._new(other / self._value, self._dimensions.inverse())
        return NotImplemented

    def _combine(self, other: 'Measurement', sign: int):
        """Multiply (`sign` = +1) or divide (`sign` = -1) by `other`.

        This first converts `other` as a whole into this instance's units, if
        the registry relates the two unit strings directly (e.g., ``L`` and
        ``m^3``). It then folds each remaining symbol of `other` that converts
        to one of this instance's symbols into that symbol, and finally carries
        over every symbol of `other` that is left.
        """
        u0, u1 = other.unit, self.unit
        if u0 != u1 and self._registry.convertible(u0, u1):
            scale = self._registry.multiplier(u0, u1)
            other = self._new(other.value * scale, self._dimensions)
        apply = operator.mul if sign > 0 else operator.truediv
        value = apply(self._value, other.value)
        remaining = dict(other.dimensions)
        terms = {}
        for symbol, power in self._dimensions.items():
            added = remaining.pop(symbol, 0)
            for candidate in sorted(remaining):
                if self._registry.convertible(candidate, symbol):
                    exponent = remaining.pop(candidate)
                    scale = self._registry.multiplier(candidate, symbol)
                    value *= scale ** float(sign * exponent)
                    added += exponent
            terms[symbol] = power + sign * added
        for symbol, power in remaining.items():
            terms[symbol] = sign * power
        return self._new(value, terms)

    def __pow__(self, power):
        """Called for self ** power."""
        if not isinstance(power, numbers.Real):
            return NotImplemented
        if not numpy.isfinite(power):
            raise InvalidMeasurement(
                f"Can't raise {self} to the non-finite power {power}"
            ) from None
        if self.is_zero and power > 0:
            return self
        try:
            value = math.pow(self._value, power)
        except (ValueError, OverflowError) as err:
            raise InvalidMeasurement(
                f"Can't raise {self} to the power {power}"
            ) from err
        return self._new(value, self._dimensions ** power)

    def __eq__(self, other) -> bool:
        """Called for self == other.

        This converts `other` into this instance's units, if possible, before
        comparing values. Instances with incompatible units are not equal.
        """
        if not isinstance(other, Measurement):
            return NotImplemented
        if self.is_zero or other.is_zero:
            return self._value == other.value == 0
        converted = other.try_convert(self)
        if not symbolic.equivalent(converted.dimensions, self._dimensions):
            return False
        return converted.value == self._value

    def __ne__(self, other) -> bool:
        """Called for self != other."""
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __lt__(self, other) -> bool:
        """Called for self < other."""
        return self._compare(other, operator.lt)

    def __le__(self, other) -> bool:
        """Called for self <= other."""
        return self._compare(other, operator.le)

    def __gt__(self, other) -> bool:
        """Called for self > other."""
        return self._compare(other, operator.gt)

    def __ge__(self, other) -> bool:
        """Called for self >= other."""
        return self._compare(other, operator.ge)

    def _compare(self, other, method: typing.Callable[[float, float], bool]):
        """Compare values after converting `other` to this instance's units."""
        if not isinstance(other, Measurement):
            return NotImplemented
        if self.is_zero or other.is_zero:
            return method(self._value, other.value)
        return method(self._value, other._aligned(self).value)


def parse(text: str, registry: metric.Registry=None) -> Measurement:
    """Create a measurement from a string.

    Parameters
    ----------
    text : string
        A string of space-separated tokens. The last token is the unit. Any
        other token after the first that contains characters that can't belong
        to a number is part of the unit. Unit tokens keep their order and
        join as implied products, so display strings such as ``1 kg m/K s``
        parse back to the same unit.
        The remaining tokens make up the numerical value, which may be a
        decimal number, a fraction, or a mixed number.

    registry : `~metric.Registry`, optional
        The conversions to use. Defaults to `~metric.CONVERSIONS`.

    Raises
    ------
    `~measurable.InvalidMeasurement`
        The string does not describe a measurement.

    Examples
    --------
    >>> measurable.parse('6 1/8 in')
    Measurement(6.125, 'in')
    >>> measurable.parse('5 kg m²/s²')
    Measurement(5.0, 'kg*m^2/s^2')
    """
    if not isinstance(text, str):
        raise InvalidMeasurement(
            f"Can't parse a measurement from {type(text)}"
        ) from None
    tokens = text.split(' ')
    if len(tokens) < 2:
        raise InvalidMeasurement(
            f"A measurement needs at least a value and a unit (got {text!r})"
        ) from None
    units = []
    values = []
    for i, token in enumerate(tokens[:-1]):
        if i > 0 and not numerical.isnumeric(token):
            units.append(token)
        else:
            values.append(token)
    unit = ' '.join(units + [tokens[-1]])
    value = numerical.parse(' '.join(values))
    logger.debug("Parsed %r as value %r and unit %r", text, value, unit)
    return Measurement(value, unit, registry=registry)


def _standard_value(value: typing.Union[numbers.Real, str]) -> float:
    """Convert `value` to a finite float, or raise an exception."""
    if isinstance(value, str):
        number = numerical.parse(value)
    elif isinstance(value, numbers.Real):
        number = float(value)
    else:
        raise InvalidMeasurement(
            f"Measurement value must be a real number or a string,"
            f" not {type(value)}"
        ) from None
    if not numpy.isfinite(number):
        raise InvalidMeasurement(
            f"Measurement value must be finite (got {value!r})"
        ) from None
    return number


def _parse_unit(unit: UnitLike) -> symbolic.Dimensions:
    """Convert `unit` to a dimension table, or raise an exception."""
    if unit is None:
        return symbolic.Dimensions()
    if isinstance(unit, collections.abc.Mapping):
        return symbolic.Dimensions(unit)
    try:
        return symbolic.parse(unit)
    except symbolic.ParsingError as err:
        raise InvalidMeasurement(f"Invalid unit {unit!r}: {err}") from err
    except TypeError as err:
        raise InvalidMeasurement(f"Invalid unit {unit!r}") from err


def _format_value(value: float) -> str:
    """Render a value without exponential notation."""
    return numpy.format_float_positional(value, trim='-')
