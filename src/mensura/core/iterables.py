import typing


class ReprStrMixin:
    """A mixin class that provides support for `__repr__` and `__str__`.

    Subclasses define `__str__`. The default `__repr__` wraps the simplified
    representation in the qualified name of the class, with the package prefix
    removed from the module path.
    """

    def __repr__(self) -> str:
        """An unambiguous representation of this object."""
        module = f"{self.__module__.replace('mensura.', '')}."
        name = self.__class__.__qualname__
        return f"{module}{name}({self})"


class classproperty(property):
    """A descriptor decorator to create a read-only class property.

    Adapted from https://stackoverflow.com/a/13624858/4739101.
    """

    def __get__(self, owner_obj, owner_cls):
        """Call the decorated method to convert it into a property."""
        return self.fget(owner_cls)


def batch_replace(string: str, replacement: typing.Mapping[str, str]) -> str:
    """Replace characters in a string based on a mapping."""
    for old, new in replacement.items():
        string = string.replace(old, new)
    return string


T = typing.TypeVar('T')


def first(
    items: typing.Iterable[T],
    predicate: typing.Callable[[T], bool],
) -> typing.Optional[T]:
    """Return the first member of `items` that satisfies `predicate`."""
    return next((item for item in items if predicate(item)), None)
