# brouter_client/services/router.py

from pathlib import Path
from time import perf_counter
from typing import Optional, Protocol, Sequence, Union

from brouter_client.core.exceptions import UnsupportedOperation
from brouter_client.core.logger import logger
from brouter_client.models.routing import (
    BackendSelection,
    LocalEngineState,
    LocalSelection,
    Nogo,
    OutputFormat,
    RemoteSelection,
    RouteRequest,
    RouteResult,
    TurnInstructionMode,
)
from brouter_client.services.local_engine import (
    ArchiveSource,
    LocalEngineManager,
    default_cache_root,
)
from brouter_client.services.remote_backend import RemoteBackend
from brouter_client.services.request_builder import PointLike, build_request
from brouter_client.services.response_parser import parse_response


class Backend(Protocol):
    def fetch(self, request: RouteRequest, timeout: Optional[float] = None) -> bytes:
        ...


def build_backend(selection: BackendSelection, timeout: Optional[float] = None) -> Backend:
    if isinstance(selection, RemoteSelection):
        return RemoteBackend(base_url=selection.url, timeout=timeout)
    if isinstance(selection, LocalSelection):
        return LocalEngineManager(state=selection.state, archive=selection.archive)
    raise TypeError(f"Unknown backend selection: {selection!r}")


class Router:
    """
    Public entry point:
    - validates and builds the request
    - fetches the raw track from the selected backend (remote or local)
    - parses it into a RouteResult

    The backend is fixed for the Router's lifetime and there is no fallback
    between backends; compose two Routers for that.
    """

    def __init__(
        self,
        selection: BackendSelection,
        timeout: Optional[float] = None,
        backend: Optional[Backend] = None,
    ) -> None:
        self.selection = selection
        self.timeout = timeout
        self.backend = backend or build_backend(selection, timeout)
        logger.info(f"Router initialised with {selection.kind} backend.")

    @classmethod
    def remote(cls, url: str, timeout: Optional[float] = None) -> "Router":
        return cls(RemoteSelection(url=url), timeout=timeout)

    @classmethod
    def local(
        cls,
        cache_root: Optional[Path] = None,
        archive: Optional[ArchiveSource] = None,
        timeout: Optional[float] = None,
    ) -> "Router":
        state = LocalEngineState(cache_root=cache_root or default_cache_root())
        selection = LocalSelection(state=state)
        # Streams are not part of the selection model; hand them to the manager
        backend = LocalEngineManager(state=state, archive=archive)
        return cls(selection, timeout=timeout, backend=backend)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def route(
        self,
        points: Sequence[PointLike],
        profile: str,
        alternative_index: Optional[int] = None,
        output_format: Union[OutputFormat, str] = OutputFormat.GPX,
        nogos: Sequence[Nogo] = (),
        turn_instruction_mode: Optional[TurnInstructionMode] = None,
        track_name: Optional[str] = None,
        export_waypoints: bool = False,
        timeout: Optional[float] = None,
    ) -> RouteResult:
        """
        Compute a route along `points` with the given profile.

        1. Build and validate the request.
        2. Fetch the raw payload from the backend.
        3. Parse it into a RouteResult.

        The first error raised by any step propagates unchanged.
        """
        t0 = perf_counter()

        request = build_request(
            points,
            profile,
            alternative_index=alternative_index,
            output_format=output_format,
            nogos=nogos,
            turn_instruction_mode=turn_instruction_mode,
            track_name=track_name,
            export_waypoints=export_waypoints,
        )
        logger.info(
            f"Planning {request.profile} route along {len(request.points)} points "
            f"via {self.selection.kind} backend"
        )

        t_fetch0 = perf_counter()
        payload = self.backend.fetch(
            request, timeout=timeout if timeout is not None else self.timeout
        )
        t_fetch1 = perf_counter()
        logger.info(
            f"Backend answered with {len(payload)} bytes in "
            f"{(t_fetch1 - t_fetch0) * 1000.0:.2f} ms"
        )

        result = parse_response(payload, request.output_format)

        logger.info(
            f"Route summary: {len(result.samples)} points, length={result.length:.1f} m, "
            f"total time {(perf_counter() - t0) * 1000.0:.2f} ms"
        )
        return result

    def upload_profile(self, data: bytes) -> str:
        """
        Upload a custom profile; only brouter servers support this.
        """
        if not isinstance(self.backend, RemoteBackend):
            raise UnsupportedOperation(
                "Custom profiles can only be uploaded to a remote brouter server.",
                {"backend": self.selection.kind},
            )
        return self.backend.upload_profile(data, timeout=self.timeout)
