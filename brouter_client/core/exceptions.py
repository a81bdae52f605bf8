# brouter_client/core/exceptions.py
# Every error raised by the client derives from BrouterError and carries
# structured details for logging and API responses.

from typing import Optional


class BrouterError(Exception):
    """Base class for every error raised by the client."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class BackendTimeout(BrouterError):
    """A backend did not answer within the caller's deadline."""


# --------------------------------------------------------------------------- #
# Request validation
# --------------------------------------------------------------------------- #


class InvalidProfile(BrouterError):
    """Raised when a profile name does not match the accepted grammar.

    Attributes:
        profile: The rejected profile text
    """

    def __init__(self, profile: str):
        super().__init__(f"Invalid profile name: {profile!r}", {"profile": profile})
        self.profile = profile


class InvalidRequest(BrouterError):
    """Raised for malformed waypoint input or unsupported options."""


class UnsupportedOperation(BrouterError):
    """Raised when the selected backend cannot perform an operation."""


# --------------------------------------------------------------------------- #
# Remote backend
# --------------------------------------------------------------------------- #


class NetworkError(BrouterError):
    """The brouter server could not be reached."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message, {"url": url})
        self.url = url


class RemoteTimeout(NetworkError, BackendTimeout):
    """The brouter server did not answer in time."""

    def __init__(self, url: Optional[str], timeout: Optional[float]):
        NetworkError.__init__(self, f"Request to {url} timed out after {timeout}s", url)
        self.details["timeout"] = timeout
        self.timeout = timeout


class RemoteError(BrouterError):
    """The brouter server answered with a non-2xx status.

    Attributes:
        status_code: HTTP status returned by the server
        body: Response body as text
    """

    def __init__(self, status_code: int, body: str):
        super().__init__(
            f"brouter server returned HTTP {status_code}: {body.strip()[:200]}",
            {"status_code": status_code, "body": body},
        )
        self.status_code = status_code
        self.body = body

    @property
    def diagnosis(self) -> Optional["EngineReportedError"]:
        """The brouter error message contained in the body, if recognised."""
        from brouter_client.services.response_parser import diagnose

        return diagnose(self.body)


class ProfileUploadError(BrouterError):
    """The server refused an uploaded profile."""


# --------------------------------------------------------------------------- #
# Local engine
# --------------------------------------------------------------------------- #


class LocalEngineError(BrouterError):
    """Base class for local engine failures."""


class LocalEngineUnavailable(LocalEngineError):
    """The engine bundle could not be made available in the cache."""


class LocalEngineExecutionFailed(LocalEngineError):
    """The engine process exited with a non-zero status.

    Attributes:
        returncode: Exit status of the process
        stderr: Captured standard error
    """

    def __init__(self, returncode: int, stderr: str):
        super().__init__(
            f"Local engine exited with status {returncode}: {stderr.strip()[:200]}",
            {"returncode": returncode, "stderr": stderr},
        )
        self.returncode = returncode
        self.stderr = stderr

    @property
    def diagnosis(self) -> Optional["EngineReportedError"]:
        """The brouter error message contained in stderr, if recognised."""
        from brouter_client.services.response_parser import diagnose

        return diagnose(self.stderr)


class LocalEngineTimeout(LocalEngineError, BackendTimeout):
    """The engine process was killed after exceeding its deadline."""

    def __init__(self, timeout: float, stderr: str = ""):
        LocalEngineError.__init__(
            self,
            f"Local engine killed after {timeout}s",
            {"timeout": timeout, "stderr": stderr},
        )
        self.timeout = timeout
        self.stderr = stderr


# --------------------------------------------------------------------------- #
# Response parsing
# --------------------------------------------------------------------------- #


class MalformedResponse(BrouterError):
    """The payload could not be decoded as a track.

    Attributes:
        context: Short excerpt or location describing where parsing failed
    """

    def __init__(self, message: str, context: str = ""):
        super().__init__(message, {"context": context})
        self.context = context


class EmptyRoute(BrouterError):
    """The payload parsed but contains no track points."""


class EngineReportedError(BrouterError):
    """brouter reported a routing failure in its textual output."""


class MissingDataFile(EngineReportedError):
    """A segment data file needed for the route is not installed."""

    def __init__(self, datafile: str):
        super().__init__(f"Missing data file: {datafile}", {"datafile": datafile})
        self.datafile = datafile


class NoRouteFound(EngineReportedError):
    """The engine found no track between the waypoints."""

    def __init__(self, pass_number: int):
        super().__init__(f"No route found: {pass_number}", {"pass": pass_number})
        self.pass_number = pass_number


class PassTimeout(EngineReportedError):
    """A routing pass inside the engine hit its own time limit."""

    def __init__(self, pass_number: int, timeout: int):
        super().__init__(
            f"Pass {pass_number} timeout after {timeout} seconds",
            {"pass": pass_number, "timeout": timeout},
        )
        self.pass_number = pass_number
        self.timeout = timeout
