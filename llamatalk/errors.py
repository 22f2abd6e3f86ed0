"""
Exception hierarchy for llamatalk.

Every failure the controller knows how to report derives from LlamaTalkError,
so the CLI can catch one type, print its message and exit non-zero. The
message of each exception is already human readable; nothing structured
crosses the UI boundary.

UserQuit is the odd one out: it is how the selection screen says "the user
left", and the CLI treats it as a normal exit.
"""


class LlamaTalkError(Exception):
    """Base class for all llamatalk errors."""


class NotInstalled(LlamaTalkError):
    """The server binary was not found on PATH."""


class UnsupportedPlatform(LlamaTalkError):
    """No install guidance exists for this operating system."""


class ServerNotRunning(LlamaTalkError):
    """The server is down and the user declined to start it."""


class ServerStartFailed(LlamaTalkError):
    """The server process could not be spawned."""


class ServerStartTimeout(ServerStartFailed):
    """The server was spawned but never answered the health probe."""


class ServerStopFailed(LlamaTalkError):
    """Terminating the server process failed."""


class NoTrackedServer(LlamaTalkError):
    """A stop was requested but this run holds no process handle."""


class CatalogUnavailable(LlamaTalkError):
    """The model list could not be fetched or parsed."""


class NoModelsAvailable(CatalogUnavailable):
    """The server answered but serves no models."""


class RequestFailed(LlamaTalkError):
    """A generation request failed; the chat session can retry."""


class MalformedResponse(RequestFailed):
    """The generation endpoint answered with an unexpected body."""


class UserQuit(Exception):
    """The user quit from model selection. Not an error."""
