import pathlib

import pytest

import mensura
from mensura.core import iotools


@pytest.mark.config
def test_full_path(tmp_path: pathlib.Path):
    """Resolve existing paths and reject missing ones."""
    assert iotools.full_path(tmp_path) == tmp_path.resolve()
    with pytest.raises(iotools.NonExistentPathError) as err:
        iotools.full_path(tmp_path / 'missing')
    assert 'does not exist' in str(err.value)


@pytest.mark.config
def test_search(tmp_path: pathlib.Path, inifile: pathlib.Path):
    """Find a file in the first directory that contains it."""
    empty = tmp_path / 'empty'
    empty.mkdir()
    paths = [None, tmp_path / 'missing', empty, tmp_path]
    assert iotools.search(paths, 'mensura.ini') == inifile.resolve()
    assert iotools.search([inifile], 'other.ini') == inifile.resolve()
    assert iotools.search([empty], 'mensura.ini') is None
    assert iotools.search([], 'mensura.ini') is None


@pytest.mark.config
def test_environment_path(monkeypatch: pytest.MonkeyPatch):
    """Read optional paths from environment variables."""
    monkeypatch.setenv('MENSURA_TEST_PATH', '/some/where')
    assert iotools.environment_path('MENSURA_TEST_PATH') == '/some/where'
    monkeypatch.setenv('MENSURA_TEST_PATH', '')
    assert iotools.environment_path('MENSURA_TEST_PATH') is None
    monkeypatch.delenv('MENSURA_TEST_PATH')
    assert iotools.environment_path('MENSURA_TEST_PATH') is None


@pytest.mark.config
def test_environment(inifile: pathlib.Path, monkeypatch: pytest.MonkeyPatch):
    """Read sections of the configuration file."""
    monkeypatch.chdir(inifile.parent)
    multipliers = mensura.Environment('multipliers')
    assert multipliers.path == inifile.resolve()
    assert dict(multipliers) == {
        'mi -> ft': '5280',
        '(gal/min) -> (L/s)': '0.0630902',
    }
    assert len(multipliers) == 2
    assert multipliers['mi -> ft'] == '5280'
    with pytest.raises(KeyError):
        multipliers['ft -> mi']
    assert mensura.Environment('offsets')['X -> Y'] == '10'
    assert len(mensura.Environment('nothing')) == 0


@pytest.mark.config
def test_environment_variable(
    tmp_path: pathlib.Path,
    inifile: pathlib.Path,
    monkeypatch: pytest.MonkeyPatch,
):
    """Find the configuration file through an environment variable."""
    elsewhere = tmp_path / 'elsewhere'
    elsewhere.mkdir()
    home = tmp_path / 'home'
    home.mkdir()
    monkeypatch.chdir(elsewhere)
    monkeypatch.setenv('HOME', str(home))
    monkeypatch.setenv('MENSURA_INI', str(inifile))
    assert mensura.Environment('offsets').path == inifile.resolve()
    monkeypatch.delenv('MENSURA_INI')
    environment = mensura.Environment('offsets')
    if environment.path is None:
        assert len(environment) == 0
