import os
import posixpath
import logging

from .errors import PathResolutionError, EmptyRelativePathError

logger = logging.getLogger(__name__)


def _to_slashes(path: str) -> str:
    return path.replace(os.sep, '/') if os.sep != '/' else path


def resolve_file_path(file_path: str, root: str) -> str:
    """Absolute path of file_path; relative paths are taken from root, not the cwd."""
    if not os.path.isabs(file_path):
        file_path = os.path.join(root, file_path)
    return os.path.abspath(file_path)


def to_relative_path(file_path: str, root: str) -> str:
    """
    Path of file_path below root, using '/' separators.

    The result keeps its leading separator (e.g. '/src/app.py').
    Raises PathResolutionError if root is not an existing directory
    or the file does not live under it.
    """
    if not root or not os.path.isdir(root):
        raise PathResolutionError(f"Could not get relative path for '{file_path}' file!")

    root_norm = posixpath.normpath(_to_slashes(os.path.abspath(root)))
    file_norm = posixpath.normpath(_to_slashes(resolve_file_path(file_path, root)))

    if root_norm == '/':
        return file_norm
    if file_norm != root_norm and not file_norm.startswith(root_norm + '/'):
        raise PathResolutionError(f"Could not get relative path for '{file_path}' file!")

    return file_norm[len(root_norm):]


def normalize_remote_name(file_path: str, root: str) -> str:
    """Relative path used as the record name; never empty, never starts with '/'."""
    relative_path = to_relative_path(file_path, root).lstrip('/')
    if not relative_path:
        raise EmptyRelativePathError(f"Relative path for '{file_path}' file is empty!")

    logger.debug("Resolved %s to remote name %s", file_path, relative_path)
    return relative_path
