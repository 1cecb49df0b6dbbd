import os
import pathlib
import typing


PathLike = typing.Union[str, pathlib.Path]


class NonExistentPathError(Exception):

    def __init__(self, path: str=None):
        self._path = path

    @property
    def path(self) -> str:
        if self._path is None:
            self._path = "The requested path"
        return self._path

    def __str__(self):
        return f"{self.path} does not exist."


def full_path(path: PathLike) -> pathlib.Path:
    """Expand and resolve `path`, which must exist."""
    resolved = pathlib.Path(path).expanduser().resolve()
    if not resolved.exists():
        raise NonExistentPathError(resolved)
    return resolved


def search(
    paths: typing.Iterable[typing.Optional[PathLike]],
    file: PathLike,
) -> typing.Optional[pathlib.Path]:
    """Search `paths` for `file`.
    
    Parameters
    ----------
    paths : iterable of path-like
        The paths to search, in the order given. Each member must be an object
        that can represent a path on the current file system. This function
        skips null members and paths that do not exist, so that callers may
        include optional locations (e.g., the value of an environment variable
        that may not be set). A member that names an existing file, rather
        than a directory, is returned as-is.

    file : path-like
        The file to locate.

    Returns
    -------
    path or `None`
        The full path to the file, if found.
    """
    for p in paths:
        if not p:
            continue
        try:
            path = full_path(p)
        except NonExistentPathError:
            continue
        if path.is_dir():
            test = path / str(file)
            if test.exists():
                return test
        elif path.is_file():
            return path


def environment_path(name: str) -> typing.Optional[str]:
    """The value of environment variable `name`, if set and non-empty."""
    return os.environ.get(name) or None
