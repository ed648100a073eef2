class SpotfloatError(Exception):
    """Base class for every error raised by spotfloat."""


class BackendError(SpotfloatError):
    """A music backend operation failed."""


class Unauthorized(BackendError):
    """The credential was rejected or lacks the required scopes."""


class NotFound(BackendError):
    """Requested resource was not found or is not a playable reference."""


class Unavailable(BackendError):
    """Backend could not be reached, timed out or reported a transient failure."""


class MalformedResponse(BackendError):
    """Backend answered with data that could not be normalized."""


class SurfaceError(SpotfloatError):
    """A host surface operation failed."""


class SurfaceCreationFailed(SurfaceError):
    """The host could not create or open a surface."""


class SurfaceNotFound(SurfaceError):
    """The surface handle is unknown to the host or was already destroyed."""


class InputError(SpotfloatError):
    """User input was rejected before reaching the backend."""


class EmptyInput(InputError):
    """Nothing was typed where text is required."""


class UnknownChoice(InputError):
    """A command argument names a mode, direction or action that does not exist."""


class NotBrowsable(InputError):
    """The selected result has no children to browse into."""
