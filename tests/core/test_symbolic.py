import fractions

import pytest

from mensura.core import symbolic


@pytest.fixture
def expressions():
    """Unit expressions and their dimension tables."""
    return {
        'm': {'m': 1},
        'm*m': {'m': 2},
        'm^2': {'m': 2},
        'm/s': {'m': 1, 's': -1},
        '1/s': {'s': -1},
        '/s': {'s': -1},
        'm/': {'m': 1},
        'kg*m^2/s^2': {'kg': 1, 'm': 2, 's': -2},
        'kg m²/s²': {'kg': 1, 'm': 2, 's': -2},
        'kg * m ^ 2 / s': {'kg': 1, 'm': 2, 's': -1},
        'm⁻¹': {'m': -1},
        'm/m': {},
        'm^1.5': {'m': fractions.Fraction(3, 2)},
        'm^(1/2)': {'m': fractions.Fraction(1, 2)},
        '(lb/in^2)': {'(lb/in^2)': 1},
        'hp*(btu/hr)/s': {'(btu/hr)': 1, 'hp': 1, 's': -1},
        '': {},
    }


@pytest.mark.parsing
def test_parse(expressions: dict):
    """Convert unit expressions into dimension tables."""
    for string, expected in expressions.items():
        dimensions = symbolic.parse(string)
        assert isinstance(dimensions, symbolic.Dimensions)
        assert dimensions == expected, string


@pytest.mark.parsing
def test_parse_errors():
    """Reject strings that don't conform to the unit grammar."""
    cases = {
        'm/s/kg': symbolic.RatioError,
        'm^2^3': symbolic.ExponentError,
        '2/s': symbolic.ScalarError,
        '3*m': symbolic.ScalarError,
        'm**s': symbolic.ParsingError,
        'm^': symbolic.ParsingError,
        '^2': symbolic.ParsingError,
        '(lb/in^2': symbolic.SeparatorError,
        'lb)': symbolic.SeparatorError,
        'm^x': symbolic.ParsingError,
    }
    for string, error in cases.items():
        with pytest.raises(error):
            symbolic.parse(string)
    for error in cases.values():
        assert issubclass(error, ValueError)
    with pytest.raises(TypeError):
        symbolic.parse(None)


@pytest.mark.parsing
def test_normalize():
    """Convert display notation to standard notation."""
    cases = {
        'm²': 'm^2',
        's⁻¹': 's^-1',
        'kg m²/s²': 'kg*m^2/s^2',
        ' kg  *  m ': 'kg*m',
        'lb (btu/hr)': 'lb*(btu/hr)',
        '(lb / in^2)': '(lb/in^2)',
    }
    for string, expected in cases.items():
        assert symbolic.normalize(string) == expected


@pytest.mark.parsing
def test_split():
    """Split strings only on top-level separators."""
    assert symbolic.split('a*(b*c)*d', '*') == ['a', '(b*c)', 'd']
    assert symbolic.split('(a/b)/c', '/') == ['(a/b)', 'c']
    assert symbolic.split('a', '/') == ['a']
    with pytest.raises(symbolic.SeparatorError):
        symbolic.split('(a', '*')


def test_dimensions_mapping():
    """A dimension table is an ordered, immutable mapping."""
    d = symbolic.Dimensions({'s': -1, 'm': 1, 'kg': 0})
    assert list(d) == ['m', 's']
    assert len(d) == 2
    assert d['m'] == 1
    assert 'kg' not in d
    with pytest.raises(TypeError):
        d['m'] = 2
    assert d == symbolic.Dimensions([('m', 1), ('s', -1)])
    assert hash(d) == hash(symbolic.Dimensions({'m': 1, 's': -1}))


def test_dimensions_exponents():
    """Store integral exponents as `int` and others as `Fraction`."""
    d = symbolic.Dimensions({'a': 2.0, 'b': 0.5, 'c': 1/3})
    assert isinstance(d['a'], int)
    assert d['b'] == fractions.Fraction(1, 2)
    assert d['c'] == fractions.Fraction(1, 3)
    with pytest.raises(ValueError):
        symbolic.Dimensions({'a': float('inf')})


def test_dimensions_algebra():
    """Combine dimension tables."""
    velocity = symbolic.Dimensions({'m': 1, 's': -1})
    time = symbolic.Dimensions({'s': 1})
    assert velocity * time == {'m': 1}
    assert velocity / time == {'m': 1, 's': -2}
    assert velocity ** 2 == {'m': 2, 's': -2}
    assert velocity ** 0.5 == {
        'm': fractions.Fraction(1, 2),
        's': fractions.Fraction(-1, 2),
    }
    assert velocity.inverse() == {'m': -1, 's': 1}
    assert velocity.without('s') == {'m': 1}
    assert velocity * {'kg': 1} == {'kg': 1, 'm': 1, 's': -1}


@pytest.mark.formatting
def test_format_canonical():
    """Render the canonical unit string."""
    cases = {
        'kg*m^2/s^2': {'s': -2, 'm': 2, 'kg': 1},
        'm/s': {'m': 1, 's': -1},
        '1/s': {'s': -1},
        '1/m^2*s': {'m': -2, 's': -1},
        'm^1.5': {'m': 1.5},
        '(lb/in^2)': {'(lb/in^2)': 1},
        '': {},
    }
    for expected, terms in cases.items():
        d = symbolic.Dimensions(terms)
        assert d.format() == expected
        assert str(d) == expected


@pytest.mark.formatting
def test_format_display():
    """Render the display unit string."""
    cases = {
        'kg m²/s²': {'s': -2, 'm': 2, 'kg': 1},
        'm/s': {'m': 1, 's': -1},
        '1/s': {'s': -1},
        'm^1.5': {'m': 1.5},
        '(lb/in²)': {'(lb/in^2)': 1},
    }
    for expected, terms in cases.items():
        assert symbolic.Dimensions(terms).format('display') == expected
    with pytest.raises(ValueError):
        symbolic.Dimensions({'m': 1}).format('fancy')


@pytest.mark.formatting
def test_display_round_trip():
    """Parse display strings back into the same table."""
    tables = [
        {'kg': 1, 'm': 2, 's': -2},
        {'s': -1},
        {'(lb/in^2)': 1, 'ft': 3},
        {'m': 1.5},
    ]
    for terms in tables:
        d = symbolic.Dimensions(terms)
        assert symbolic.parse(d.format('display')) == d
        assert symbolic.parse(d.format('canonical')) == d


def test_equivalent():
    """Compare tables up to one global inversion."""
    assert symbolic.equivalent({'m': 1, 's': -1}, {'m': 1, 's': -1})
    assert symbolic.equivalent({'m': 1, 's': -1}, {'m': -1, 's': 1})
    assert not symbolic.equivalent({'m': 1, 's': -1}, {'m': 1, 's': 1})
    assert not symbolic.equivalent({'m': 1}, {'m': 1, 's': 1})
    assert symbolic.equivalent({}, {})
