"""Exception types for the social output layer.

Each subclasses the built-in a caller would otherwise catch, so code that
handles ValueError / FileNotFoundError keeps working.

Non-fatal conditions (no AI credential, rejected crop advice, transport
errors, missing optional encoders) are not exceptions: those paths return
None and log instead.
"""


class UnknownPlatformError(ValueError):
    """Platform name is not in the registry."""


class UpstreamMissingError(FileNotFoundError):
    """The base pipeline's manifest.json has not been produced yet."""


class ImageDecodeError(ValueError):
    """A source image could not be opened or decoded."""


class PathEscapeError(ValueError):
    """A path resolves outside the directory it must stay in."""
