import pathlib

import pytest

from mensura.core import metric


@pytest.fixture
def registry() -> metric.Registry:
    """A private copy of the built-in conversions.

    Tests that register new conversions should use this fixture so that their
    changes do not leak into the process-wide default registry.
    """
    return metric.Registry.builtin()


@pytest.fixture
def inifile(tmp_path: pathlib.Path) -> pathlib.Path:
    """A configuration file with one multiplier and one offset."""
    path = tmp_path / 'mensura.ini'
    path.write_text(
        "[multipliers]\n"
        "mi -> ft = 5280\n"
        "(gal/min) -> (L/s) = 0.0630902\n"
        "\n"
        "[offsets]\n"
        "X -> Y = 10\n"
    )
    return path
