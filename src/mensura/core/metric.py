import logging
import threading
import typing

import mensura
from mensura.core import iterables
from mensura.core import symbolic


logger = logging.getLogger(__name__)


_MULTIPLIERS = {
    # Length
    ('yd', 'in'): 36,
    ('ft', 'in'): 12,
    ('m', 'in'): 39.37008,
    ('in', 'cm'): 2.54,
    ('in', 'mm'): 25.4,
    ('m', 'ft'): 3.28084,
    ('ft', 'cm'): 30.48,
    ('ft', 'mm'): 304.8,
    ('yd', 'ft'): 3,
    ('m', 'cm'): 100,
    ('m', 'mm'): 1000,
    ('m', 'yd'): 1.093613,
    ('cm', 'mm'): 10,
    ('yd', 'cm'): 91.44,
    ('yd', 'mm'): 914.4,
    # Mass
    ('kg', 'lb'): 2.204623,
    ('lb', 'g'): 453.5924,
    ('kg', 'g'): 1000,
    # Time
    ('hr', 'min'): 60,
    ('min', 's'): 60,
    ('hr', 's'): 3600,
    # Temperature (see `_OFFSETS`)
    ('C', 'F'): 1.8,
    ('K', 'F'): 1.8,
    ('F', 'R'): 1,
    ('C', 'K'): 1,
    ('C', 'R'): 1.8,
    ('K', 'R'): 1.8,
    # Power
    ('hp', 'W'): 745.699872,
    ('kW', 'hp'): 1.3410220888,
    ('TR', 'hp'): 4.71427994638076,
    ('hp', '(btu/hr)'): 2544.433748,
    ('kW', 'W'): 1000,
    ('TR', 'kW'): 3.51685284,
    ('kW', '(btu/hr)'): 3412.142,
    ('TR', 'W'): 3516.85284,
    ('W', '(btu/hr)'): 3.412142,
    ('TR', '(btu/hr)'): 12000,
    # Energy
    ('btu', 'J'): 1055.0558526,
    ('btu', 'kJ'): 1.0550558526,
    ('kJ', 'J'): 1000,
    # Pressure
    ('bar', '(lb/in^2)'): 14.50377,
    ('bar', 'psi'): 14.50377,
    ('bar', 'Pa'): 100000,
    ('bar', 'kPa'): 100,
    ('atm', 'bar'): 1.01325,
    ('bar', 'inH2O'): 401.46307866177,
    ('bar', 'inHg'): 29.530070866,
    ('bar', 'mmHg'): 750.0638,
    ('bar', 'tor'): 750.0638,
    ('inH2O', 'Pa'): 249.082,
    ('inH2O', 'mmHg'): 1.8683201548767,
    ('inH2O', 'tor'): 1.8683201548767,
    ('atm', 'inH2O'): 406.782504600357,
    ('kPa', 'inH2O'): 4.0146307866177,
    ('inHg', 'inH2O'): 13.595101534864,
    ('psi', 'inH2O'): 27.679904842545,
    ('(lb/in^2)', 'inH2O'): 27.679904842545,
    ('mmHg', 'Pa'): 133.32239,
    ('tor', 'Pa'): 133.32239,
    ('atm', 'Pa'): 101325,
    ('kPa', 'Pa'): 1000,
    ('inHg', 'Pa'): 3386.38866667,
    ('psi', 'Pa'): 6894.757,
    ('(lb/in^2)', 'Pa'): 6894.757,
    ('mmHg', 'tor'): 1,
    ('atm', 'mmHg'): 759.999951996078,
    ('kPa', 'mmHg'): 7.500638,
    ('inHg', 'mmHg'): 25.4,
    ('psi', 'mmHg'): 51.71508,
    ('(lb/in^2)', 'mmHg'): 51.71508,
    ('atm', 'tor'): 759.999951996078,
    ('kPa', 'tor'): 7.500638,
    ('inHg', 'tor'): 25.4,
    ('psi', 'tor'): 51.71508,
    ('(lb/in^2)', 'tor'): 51.71508,
    ('atm', 'kPa'): 101.325,
    ('atm', 'inHg'): 29.8212583001399,
    ('atm', 'psi'): 14.69595,
    ('atm', '(lb/in^2)'): 14.69595,
    ('kPa', 'inHg'): 0.295301,
    ('psi', 'kPa'): 6.894757,
    ('(lb/in^2)', 'kPa'): 6.894757,
    ('psi', 'inHg'): 2.03602045718904,
    ('(lb/in^2)', 'inHg'): 2.03602045718904,
    ('psi', '(lb/in^2)'): 1,
    # Fin spacing (whole-expression entries)
    ('in/fin', 'mm/fin'): 25.4,
    ('fin/in', 'fin/mm'): 1 / 25.4,
    # Volume
    ('m^3', 'L'): 1000,
    ('ft^3', 'L'): 28.3168,
    ('L', 'in^3'): 61.0237,
    ('gal', 'L'): 3.7854,
    ('ft^3', 'gal'): 7.480543,
    ('m^3', 'gal'): 264.1729,
    ('gal', 'in^3'): 230.9993,
}
"""Built-in multipliers: `to = from * multiplier` for each `(from, to)`."""


_OFFSETS = {
    ('C', 'F'): 32,
    ('K', 'F'): -459.67,
    ('F', 'R'): 459.67,
    ('C', 'K'): 273.15,
    ('C', 'R'): 491.67,
    ('K', 'R'): 0,
}
"""Built-in offsets: `to = from * multiplier + offset` for `(from, to)`."""


class UnresolvedConversion(KeyError):
    """Unknown unit conversion."""

    def __init__(self, u0: str, u1: str) -> None:
        self._from = u0
        self._to = u1

    def __str__(self) -> str:
        return f"Can't find a multiplier from {self._from!r} to {self._to!r}"


Pair = typing.Tuple[str, str]


class Registry(iterables.ReprStrMixin):
    """A table of pairwise unit multipliers and additive offsets.

    Each entry relates an ordered pair of unit symbols `(from, to)`. Lookups
    are symmetric: when only `(a, b)` is registered, this class synthesizes
    `(b, a)` with multiplier ``1 / m`` and offset ``-offset / m``.

    Readers never block. Writers replace the internal tables with updated
    copies while holding a lock, so a lookup always sees a consistent snapshot.
    """

    def __init__(
        self,
        multipliers: typing.Mapping[Pair, float]=None,
        offsets: typing.Mapping[Pair, float]=None,
    ) -> None:
        self._lock = threading.Lock()
        self._multipliers: typing.Dict[Pair, float] = {
            pair: float(value) for pair, value in (multipliers or {}).items()
        }
        self._offsets: typing.Dict[Pair, float] = {
            pair: float(value) for pair, value in (offsets or {}).items()
        }

    @classmethod
    def builtin(cls):
        """Create a new registry seeded with the built-in conversions."""
        return cls(_MULTIPLIERS, _OFFSETS)

    def copy(self):
        """Create an independent copy of this registry."""
        return type(self)(self._multipliers, self._offsets)

    def __contains__(self, pair: Pair) -> bool:
        """True if there is a multiplier for `pair` in either direction."""
        u0, u1 = pair
        table = self._multipliers
        return (u0, u1) in table or (u1, u0) in table

    def __len__(self) -> int:
        """The number of registered multipliers."""
        return len(self._multipliers)

    def __iter__(self) -> typing.Iterator[Pair]:
        """Iterate over registered pairs, in the stored direction."""
        return iter(tuple(self._multipliers))

    @property
    def nodes(self) -> typing.Set[str]:
        """The distinct unit symbols in this registry."""
        return {u for pair in self._multipliers for u in pair}

    def multiplier(self, u0: str, u1: str) -> float:
        """The factor that converts an amount in `u0` to an amount in `u1`.

        Raises
        ------
        `~metric.UnresolvedConversion`
            There is no direct or reverse entry for this pair.
        """
        if u0 == u1:
            return 1.0
        table = self._multipliers
        if (u0, u1) in table:
            return table[(u0, u1)]
        if (u1, u0) in table:
            return 1.0 / table[(u1, u0)]
        raise UnresolvedConversion(u0, u1)

    def offset(self, u0: str, u1: str) -> float:
        """The additive offset from `u0` to `u1`, or 0.0 if there is none."""
        if u0 == u1:
            return 0.0
        table = self._offsets
        if (u0, u1) in table:
            return table[(u0, u1)]
        if (u1, u0) in table and (u1, u0) in self:
            return -table[(u1, u0)] / self.multiplier(u1, u0)
        return 0.0

    def convertible(
        self,
        u0: str,
        u1: str,
        e0: float=1,
        e1: float=1,
    ) -> bool:
        """True if `u0` raised to `e0` converts to `u1` raised to `e1`."""
        if e0 != e1:
            return False
        if u0 == u1:
            return True
        return (u0, u1) in self

    def register_multiplier(self, u0: str, u1: str, value: float) -> bool:
        """Add or replace the multiplier from `u0` to `u1`."""
        with self._lock:
            updated = dict(self._multipliers)
            updated[(u0, u1)] = float(value)
            self._multipliers = updated
        logger.debug("Registered multiplier %r -> %r: %r", u0, u1, value)
        return True

    def register_offset(self, u0: str, u1: str, value: float) -> bool:
        """Add or replace the additive offset from `u0` to `u1`."""
        with self._lock:
            updated = dict(self._offsets)
            updated[(u0, u1)] = float(value)
            self._offsets = updated
        logger.debug("Registered offset %r -> %r: %r", u0, u1, value)
        return True

    def __str__(self) -> str:
        """A simplified representation of this object."""
        m, o = len(self._multipliers), len(self._offsets)
        return f"{m} multipliers, {o} offsets"


CONVERSIONS = Registry.builtin()
"""The process-wide default registry."""


def register_multiplier(u0: str, u1: str, value: float) -> bool:
    """Add or replace a multiplier in the default registry."""
    return CONVERSIONS.register_multiplier(u0, u1, value)


def register_offset(u0: str, u1: str, value: float) -> bool:
    """Add or replace an additive offset in the default registry."""
    return CONVERSIONS.register_offset(u0, u1, value)


def configure(
    registry: Registry=None,
    environment: typing.Mapping[str, typing.Mapping[str, str]]=None,
) -> int:
    """Register the conversions defined in a configuration file.

    Parameters
    ----------
    registry : `~metric.Registry`, optional
        The registry to update. Defaults to `~metric.CONVERSIONS`.

    environment : mapping, optional
        A mapping with optional keys 'multipliers' and 'offsets', each of which
        maps strings of the form ``'from -> to'`` to numerical strings. The
        default is to read the corresponding sections of ``mensura.ini`` via
        `~mensura.Environment`.

    Returns
    -------
    int
        The number of entries registered.

    Examples
    --------
    Given a file ``mensura.ini`` in the current directory containing::

        [multipliers]
        mi -> ft = 5280

        [offsets]
        C -> F = 32

    calling ``metric.configure()`` registers both entries with the default
    registry.
    """
    target = _default(registry)
    if environment is None:
        environment = {
            name: mensura.Environment(name)
            for name in ('multipliers', 'offsets')
        }
    methods = {
        'multipliers': target.register_multiplier,
        'offsets': target.register_offset,
    }
    count = 0
    for name, register in methods.items():
        for key, value in environment.get(name, {}).items():
            u0, u1 = _parse_pair(key)
            try:
                number = float(value)
            except ValueError as err:
                raise ValueError(
                    f"Invalid value for {name} entry {key!r}: {value!r}"
                ) from err
            register(u0, u1, number)
            count += 1
    logger.info("Loaded %d configured conversion(s)", count)
    return count


def _parse_pair(key: str) -> Pair:
    """Split a configuration key of the form 'from -> to'."""
    parts = [part.strip() for part in key.split('->')]
    if len(parts) != 2 or not all(parts):
        raise ValueError(
            f"Conversion keys must have the form 'from -> to', not {key!r}"
        ) from None
    return parts[0], parts[1]


def reduction(
    dimensions: typing.Mapping[str, float],
    value: float=1.0,
    registry: Registry=None,
) -> typing.Tuple[symbolic.Dimensions, float]:
    """Merge convertible symbols in a dimension table.

    Parameters
    ----------
    dimensions : mapping
        The dimension table to reduce.

    value : float, default=1.0
        The numerical amount carried by the table.

    registry : `~metric.Registry`, optional
        The conversions to apply. Defaults to `~metric.CONVERSIONS`.

    Returns
    -------
    tuple
        The reduced `~symbolic.Dimensions` and the rescaled value.

    Notes
    -----
    This function repeatedly scans pairs of distinct symbols, in alphabetical
    order, for a pair with equal exponents that the registry can convert. It
    converts the second symbol of the first such pair into the first symbol,
    adjusts `value` accordingly, and starts over. It stops when a full scan
    finds no such pair. The result is therefore deterministic, and reducing an
    already reduced table has no effect.

    Examples
    --------
    >>> metric.reduction({'ft': 1, 'in': 1}, 12.0)
    (core.symbolic.Dimensions(ft^2), 1.0)
    """
    registry = _default(registry)
    table = dict(symbolic.Dimensions(dimensions))
    while pair := _find_reducible(table, registry):
        kept, merged = pair
        power = table.pop(merged)
        value *= registry.multiplier(merged, kept) ** float(power)
        table[kept] += power
        if table[kept] == 0:
            del table[kept]
    return symbolic.Dimensions(table), value


def _find_reducible(
    table: typing.Dict[str, float],
    registry: Registry,
) -> typing.Optional[Pair]:
    """Find the first pair of distinct, mutually convertible symbols."""
    pairs = (
        (u0, u1) for u0 in sorted(table) for u1 in sorted(table) if u0 != u1
    )
    return iterables.first(
        pairs,
        lambda p: registry.convertible(p[0], p[1], table[p[0]], table[p[1]]),
    )


class Conversion(iterables.ReprStrMixin):
    """A conversion between two dimension tables.

    Instances of this class compute the amount in `target` units that is
    equivalent to a given amount in `source` units, by trying the following
    strategies in order:

    1. Give up if the tables have different numbers of symbols.
    1. Convert the whole source expression to the whole target expression
       (e.g., ``'in/fin'`` to ``'mm/fin'``, or ``'m^3'`` to ``'L'``).
    1. Invert the source expression and convert the whole inverse to the
       whole target expression (e.g., ``'fin/in'`` to ``'mm/fin'``).
    1. Match each source symbol to a target symbol with the same exponent,
       in alphabetical order, starting over after every match.

    Examples
    --------
    >>> conversion = metric.Conversion('ft/s', 'in/min')
    >>> conversion.apply(1.0)
    720.0
    """

    def __init__(
        self,
        source: typing.Union[str, typing.Mapping[str, float]],
        target: typing.Union[str, typing.Mapping[str, float]],
        registry: Registry=None,
    ) -> None:
        self.source = _as_dimensions(source)
        self.target = _as_dimensions(target)
        self.registry = _default(registry)

    def apply(
        self,
        value: float,
        offset: bool=False,
    ) -> typing.Optional[float]:
        """Convert `value` from source units to target units.

        Parameters
        ----------
        value : float
            The amount in source units.

        offset : bool, default=False
            If true, add the additive offset (e.g., for temperature scales)
            when converting the whole expression.

        Returns
        -------
        float or `None`
            The equivalent amount in target units, or `None` if no strategy
            succeeds.
        """
        if len(self.source) != len(self.target):
            return None
        methods = (
            self._convert_whole,
            self._convert_inverse,
            self._convert_terms,
        )
        for method in methods:
            result = method(value, offset)
            if result is not None:
                return result
        logger.debug("Can't convert %r to %r", self.source, self.target)
        return None

    def _convert_whole(self, value: float, offset: bool):
        """Convert the entire source expression at once, if possible."""
        u0 = self.source.format()
        u1 = self.target.format()
        if not self.registry.convertible(u0, u1):
            return
        converted = value * self.registry.multiplier(u0, u1)
        if offset:
            converted += self.registry.offset(u0, u1)
        return converted

    def _convert_inverse(self, value: float, offset: bool):
        """Convert the inverse of the source expression, if possible."""
        u0 = self.source.inverse().format()
        u1 = self.target.format()
        if not self.registry.convertible(u0, u1):
            return
        inverse = 1.0 / value if value != 0 else 0.0
        return inverse * self.registry.multiplier(u0, u1)

    def _convert_terms(self, value: float, offset: bool):
        """Convert the source expression symbol by symbol, if possible."""
        source = dict(self.source)
        target = dict(self.target)
        factor = 1.0
        while source:
            match = self._match_term(source, target)
            if match is None:
                return
            u0, u1 = match
            factor *= self.registry.multiplier(u0, u1) ** float(target[u1])
            del source[u0]
            del target[u1]
        return value * factor

    def _match_term(
        self,
        source: typing.Dict[str, float],
        target: typing.Dict[str, float],
    ) -> typing.Optional[Pair]:
        """Find the first source symbol that converts to a target symbol.

        This returns `None` as soon as the alphabetically first remaining
        source symbol has no match, since that symbol can never be converted.
        """
        u0 = min(source)
        u1 = iterables.first(
            sorted(target),
            lambda u: self.registry.convertible(u0, u, source[u0], target[u]),
        )
        if u1 is None:
            return
        return u0, u1

    def __str__(self) -> str:
        """A simplified representation of this object."""
        return f"{self.source.format()!r} -> {self.target.format()!r}"


def _as_dimensions(unit: typing.Union[str, typing.Mapping[str, float]]):
    """Convert a unit string or mapping to a dimension table."""
    if isinstance(unit, str):
        return symbolic.parse(unit)
    return symbolic.Dimensions(unit)


def _default(registry: typing.Optional[Registry]) -> Registry:
    """Use `registry` if given, or the process-wide default."""
    return CONVERSIONS if registry is None else registry
