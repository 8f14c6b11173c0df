import pytest
import os
import sys
import tempfile

# Add project root and backend to sys.path
project_root = os.path.dirname(os.path.dirname(__file__))
if project_root not in sys.path:
    sys.path.append(project_root)
backend_path = os.path.join(project_root, "backend")
if backend_path not in sys.path:
    sys.path.append(backend_path)

from bridge import FileBridge


@pytest.fixture
def bridge():
    """Provides a clean FileBridge instance."""
    b = FileBridge()
    yield b
    b.close_all()


@pytest.fixture
def make_file(tmp_path):
    """Writes raw bytes to a temporary file and returns its path."""
    counter = {"n": 0}

    def _make(data: bytes, name=None):
        counter["n"] += 1
        path = tmp_path / (name or f"sample_{counter['n']}.log")
        path.write_bytes(data)
        return str(path)

    return _make


@pytest.fixture
def temp_log_file():
    """Creates a temporary log file and returns its path."""
    with tempfile.NamedTemporaryFile(
        mode="w", suffix=".log", delete=False, encoding="utf-8", newline=""
    ) as f:
        f.write("line 1\nline 2\nline 3\nline 4\nline 5\n")
        path = f.name

    yield path

    if os.path.exists(path):
        os.remove(path)
