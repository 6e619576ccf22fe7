"""
Exceptions raised while preparing or receiving a remote file record.

Anything raised before the first host is contacted is fatal for the whole
deployment and is handed to the completion hook.
"""


class DeployError(Exception):
    """Base class for remote deploy failures."""


class PathResolutionError(DeployError):
    pass


class EmptyRelativePathError(DeployError):
    pass


class FileReadError(DeployError):
    pass


class CompressionError(DeployError):
    pass


class EncodingError(DeployError):
    pass


class FrameError(DeployError):
    """Raised by the receiving side for a malformed or oversized frame."""
