# tests/conftest.py
import os
import sys
import threading
import time
import zipfile
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import pytest

# Add the project root directory to sys.path so that "import brouter_client" works
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

DATA_DIR = Path(__file__).resolve().parent / "data"

# Stand-in for the engine launcher: behaves according to the profile it is
# asked for and otherwise prints the fixture track next to it.
STUB_ENGINE = """#!@PYTHON@
import sys
import time
from pathlib import Path

params = dict(arg.split("=", 1) for arg in sys.argv[1:])
here = Path(__file__).resolve().parent
(here / "last_args.txt").write_text("\\n".join(sys.argv[1:]))

profile = params.get("profile")
if profile == "slow":
    time.sleep(30)
if profile == "broken":
    sys.stderr.write("datafile E5_N50.rd5 not found\\n")
    sys.exit(3)
if profile == "empty":
    sys.stdout.write((here / "empty.gpx").read_text())
    sys.exit(0)

sys.stderr.write("loaded segments\\n")
suffix = "geojson" if params.get("format") == "geojson" else "gpx"
sys.stdout.write((here / ("track." + suffix)).read_text())
"""


def stub_engine_script() -> str:
    return STUB_ENGINE.replace("@PYTHON@", sys.executable)


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR


@pytest.fixture
def sample_gpx() -> bytes:
    return (DATA_DIR / "track.gpx").read_bytes()


@pytest.fixture
def sample_geojson() -> bytes:
    return (DATA_DIR / "track.geojson").read_bytes()


@pytest.fixture
def empty_gpx() -> bytes:
    return (DATA_DIR / "empty.gpx").read_bytes()


# --------------------------------------------------------------------------- #
# Local engine fixtures
# --------------------------------------------------------------------------- #


def _write_bundle_files(write) -> None:
    for name in ("track.gpx", "track.geojson", "empty.gpx"):
        write(name, (DATA_DIR / name).read_text())


@pytest.fixture
def engine_archive(tmp_path) -> Path:
    """
    Zip laid out like a release: everything inside brouter-1.7.7/.
    """
    path = tmp_path / "brouter-bundle.zip"
    with zipfile.ZipFile(path, "w") as zf:
        launcher = zipfile.ZipInfo("brouter-1.7.7/brouter")
        launcher.external_attr = 0o100755 << 16
        zf.writestr(launcher, stub_engine_script())
        _write_bundle_files(lambda name, text: zf.writestr(f"brouter-1.7.7/{name}", text))
    return path


@pytest.fixture
def archive_without_launcher(tmp_path) -> Path:
    path = tmp_path / "incomplete.zip"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("brouter-1.7.7/README.txt", "no launcher here")
    return path


@pytest.fixture
def prepared_cache(tmp_path) -> Path:
    """
    Cache root holding an already extracted stub engine.
    """
    cache_root = tmp_path / "cache"
    bundle = cache_root / "engine"
    bundle.mkdir(parents=True)

    launcher = bundle / "brouter"
    launcher.write_text(stub_engine_script())
    launcher.chmod(0o755)
    _write_bundle_files(lambda name, text: (bundle / name).write_text(text))
    (bundle / ".complete").write_text("brouter")
    return cache_root


# --------------------------------------------------------------------------- #
# Stub brouter server
# --------------------------------------------------------------------------- #


class StubBrouterServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, payload: bytes):
        super().__init__(("127.0.0.1", 0), _StubHandler)
        self.payload = payload
        self.status = 200
        self.delay = 0.0
        self.requests = []

    @property
    def url(self) -> str:
        host, port = self.server_address[:2]
        return f"http://{host}:{port}"


class _StubHandler(BaseHTTPRequestHandler):
    def _reply(self) -> None:
        server = self.server
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length) if length else b""
        parsed = urlparse(self.path)
        server.requests.append(
            {
                "method": self.command,
                "path": parsed.path,
                "raw_query": parsed.query,
                "query": parse_qs(parsed.query),
                "body": body,
            }
        )
        if server.delay:
            time.sleep(server.delay)
        self.send_response(server.status)
        self.send_header("Content-Type", "application/gpx+xml")
        self.send_header("Content-Length", str(len(server.payload)))
        self.end_headers()
        self.wfile.write(server.payload)

    do_GET = _reply
    do_POST = _reply

    def log_message(self, format, *args):
        pass


@pytest.fixture
def stub_server(sample_gpx):
    server = StubBrouterServer(sample_gpx)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
