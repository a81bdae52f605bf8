# brouter_client/services/local_engine.py
import io
import os
import shutil
import signal
import subprocess
import tempfile
import zipfile
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

import platformdirs
from filelock import FileLock, Timeout

from brouter_client.core.config import settings
from brouter_client.core.exceptions import (
    LocalEngineExecutionFailed,
    LocalEngineTimeout,
    LocalEngineUnavailable,
)
from brouter_client.core.logger import logger
from brouter_client.models.routing import EngineStatus, LocalEngineState, RouteRequest
from brouter_client.services.request_builder import request_params

ArchiveSource = Union[str, Path, bytes, BinaryIO]


def default_cache_root() -> Path:
    """
    BROUTER_CACHE_DIR when set, otherwise the platform cache directory.
    """
    if settings.CACHE_DIR is not None:
        return Path(settings.CACHE_DIR).expanduser()
    return Path(platformdirs.user_cache_dir("brouter-client"))


class LocalEngineManager:
    # Owns the on-disk engine bundle: extraction into the cache and
    # invocation of the bundle's launcher as a subprocess.

    def __init__(
        self,
        state: Optional[LocalEngineState] = None,
        archive: Optional[ArchiveSource] = None,
        launcher_name: Optional[str] = None,
        lock_timeout: float = -1,
    ) -> None:
        self.state = state or LocalEngineState(cache_root=default_cache_root())
        self.archive = archive if archive is not None else settings.ENGINE_ARCHIVE
        self.launcher_name = launcher_name or settings.ENGINE_LAUNCHER
        self.lock_timeout = lock_timeout
        # Number of extractions this manager performed itself
        self.extraction_count = 0

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def is_ready(self) -> bool:
        """
        True when the cache holds a completely extracted bundle.
        """
        return self.state.marker_file.is_file()

    def acquire(self) -> Path:
        """
        Make sure an extracted engine bundle exists and return its directory.

        Extraction happens at most once per cache directory: it runs under
        an exclusive file lock, and the bundle only appears under its final
        name (with its completion marker) once it is complete.
        """
        if self.state.status is EngineStatus.READY and self.state.engine_dir is not None:
            return self.state.engine_dir

        if self.is_ready():
            return self._mark_ready()

        self.state.status = EngineStatus.EXTRACTING
        try:
            self.state.cache_root.mkdir(parents=True, exist_ok=True)
            with FileLock(str(self.state.lock_file), timeout=self.lock_timeout):
                # Another process may have finished while we waited for the lock
                if not self.is_ready():
                    self._remove_stale_staging()
                    self._extract()
                    self.extraction_count += 1
        except LocalEngineUnavailable:
            self.state.status = EngineStatus.FAILED
            raise
        except Timeout as e:
            self.state.status = EngineStatus.FAILED
            raise LocalEngineUnavailable(
                f"Timed out waiting for the engine cache lock {self.state.lock_file}",
                {"lock_file": str(self.state.lock_file)},
            ) from e
        except (OSError, zipfile.BadZipFile) as e:
            self.state.status = EngineStatus.FAILED
            raise LocalEngineUnavailable(
                f"Could not extract the engine bundle into {self.state.cache_root}: {e}",
                {"cache_root": str(self.state.cache_root)},
            ) from e

        return self._mark_ready()

    def launcher_path(self) -> Path:
        """
        Path of the launcher recorded in the completion marker.
        """
        try:
            relative = self.state.marker_file.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise LocalEngineUnavailable(
                f"Engine bundle in {self.state.bundle_dir} is not ready",
                {"bundle_dir": str(self.state.bundle_dir)},
            ) from e
        launcher = self.state.bundle_dir / relative
        if not launcher.is_file():
            raise LocalEngineUnavailable(
                f"Engine launcher {launcher} is missing",
                {"launcher": str(launcher)},
            )
        return launcher

    def invoke(self, request: RouteRequest, timeout: Optional[float] = None) -> bytes:
        """
        Run the engine for one request and return its standard output.

        Arguments mirror the remote query parameters as key=value pairs.
        On timeout the whole process group is killed.
        """
        engine_dir = self.acquire()
        launcher = self.launcher_path()
        deadline = timeout if timeout is not None else settings.REQUEST_TIMEOUT

        args: List[str] = [str(launcher)]
        args += [f"{key}={value}" for key, value in request_params(request).items()]

        logger.info(f"Running local engine {launcher.name} for {request.profile} route")
        logger.debug(f"Engine arguments: {args[1:]}")

        try:
            proc = subprocess.Popen(
                args,
                cwd=engine_dir,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=(os.name == "posix"),
            )
        except OSError as e:
            raise LocalEngineUnavailable(
                f"Could not start engine launcher {launcher}: {e}",
                {"launcher": str(launcher)},
            ) from e

        with proc:
            try:
                stdout, stderr = proc.communicate(timeout=deadline)
            except subprocess.TimeoutExpired:
                self._kill(proc)
                _, stderr = proc.communicate()
                logger.warning(f"Local engine exceeded {deadline}s and was killed")
                raise LocalEngineTimeout(deadline, stderr.decode("utf-8", "replace"))

        diagnostics = stderr.decode("utf-8", "replace")
        if proc.returncode != 0:
            raise LocalEngineExecutionFailed(proc.returncode, diagnostics)
        if diagnostics.strip():
            logger.debug(f"Local engine stderr: {diagnostics.strip()}")
        return stdout

    def fetch(self, request: RouteRequest, timeout: Optional[float] = None) -> bytes:
        return self.invoke(request, timeout=timeout)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _mark_ready(self) -> Path:
        self.state.status = EngineStatus.READY
        self.state.engine_dir = self.state.bundle_dir
        return self.state.engine_dir

    def _open_archive(self) -> zipfile.ZipFile:
        source = self.archive
        if source is None:
            raise LocalEngineUnavailable(
                f"No engine bundle in {self.state.cache_root} and no archive to extract",
                {"cache_root": str(self.state.cache_root)},
            )
        if isinstance(source, (bytes, bytearray)):
            return zipfile.ZipFile(io.BytesIO(source))
        if isinstance(source, (str, Path)):
            return zipfile.ZipFile(Path(source).expanduser())
        return zipfile.ZipFile(source)

    def _find_launcher(self, root: Path) -> Optional[Path]:
        """
        Look for the launcher at the top of the bundle or one directory down
        (release archives wrap everything in a brouter-<version>/ folder).
        """
        candidate = root / self.launcher_name
        if candidate.is_file():
            return candidate
        for entry in sorted(root.iterdir()):
            candidate = entry / self.launcher_name
            if entry.is_dir() and candidate.is_file():
                return candidate
        return None

    def _remove_stale_staging(self) -> None:
        # Left behind by extractions whose process died before cleanup
        for entry in self.state.cache_root.glob(".engine-*"):
            if entry.is_dir():
                logger.warning(f"Removing abandoned staging directory {entry}")
                shutil.rmtree(entry, ignore_errors=True)

    def _extract(self) -> None:
        bundle_dir = self.state.bundle_dir
        logger.info(f"Extracting engine bundle into {bundle_dir}")

        staging = Path(tempfile.mkdtemp(prefix=".engine-", dir=self.state.cache_root))
        try:
            with self._open_archive() as archive:
                for info in archive.infolist():
                    target = archive.extract(info, staging)
                    # zipfile drops permission bits; the launcher must stay executable
                    mode = (info.external_attr >> 16) & 0o777
                    if mode and not info.is_dir():
                        os.chmod(target, mode)

            launcher = self._find_launcher(staging)
            if launcher is None:
                raise LocalEngineUnavailable(
                    f"Engine archive contains no '{self.launcher_name}' launcher",
                    {"launcher": self.launcher_name},
                )

            (staging / ".complete").write_text(
                launcher.relative_to(staging).as_posix(), encoding="utf-8"
            )

            # A bundle directory without a marker is never complete
            if bundle_dir.exists():
                shutil.rmtree(bundle_dir)
            os.replace(staging, bundle_dir)
            logger.info(f"Engine bundle ready in {bundle_dir}")
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        if os.name == "posix":
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
        else:
            proc.kill()
