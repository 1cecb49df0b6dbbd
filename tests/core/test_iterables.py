from mensura.core import iterables


class Named(iterables.ReprStrMixin):
    """A class with a simplified string representation."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __str__(self) -> str:
        return self.name


class Counted:
    """A class with a class-level computed property."""

    count = 3

    @iterables.classproperty
    def doubled(cls):
        return 2 * cls.count


def test_repr_str_mixin():
    """Wrap the simplified representation in the class path."""
    named = Named('thing')
    assert str(named) == 'thing'
    assert repr(named).endswith('Named(thing)')


def test_classproperty():
    """Access a computed property on the class."""
    assert Counted.doubled == 6
    assert Counted().doubled == 6


def test_batch_replace():
    """Replace several substrings at once."""
    mapping = {'2': '²', '3': '³'}
    assert iterables.batch_replace('m2/s3', mapping) == 'm²/s³'
    assert iterables.batch_replace('kg', mapping) == 'kg'


def test_first():
    """Find the first item that satisfies a condition."""
    assert iterables.first([1, 4, 6, 9], lambda x: x % 2 == 0) == 4
    assert iterables.first([1, 3], lambda x: x % 2 == 0) is None
    assert iterables.first([], bool) is None
