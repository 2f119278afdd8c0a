"""Shared test fixtures for mts."""

import shutil
import subprocess
import sys
import tempfile
import textwrap
from pathlib import Path

import pytest

from mts.config.env import ENV_VARS, MTS_DATA_DIR
from mts.config.loader import clear_config_cache


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test isolation."""
    dir_path = tempfile.mkdtemp()
    yield Path(dir_path)
    shutil.rmtree(dir_path, ignore_errors=True)


@pytest.fixture(autouse=True)
def isolated_mts_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the mts data directory at a temp dir and clear MTS_* overrides."""
    home = tmp_path / "mts-home"
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv(MTS_DATA_DIR, str(home))
    clear_config_cache()
    yield home
    clear_config_cache()


def start_python_process(script: str) -> subprocess.Popen:
    """Start a short Python program standing in for the engine.

    The process is wired exactly like a launched engine: stdin closed,
    text-mode stdout/stderr pipes, unbuffered output.
    """
    return subprocess.Popen(  # nosec B603
        [sys.executable, "-u", "-c", textwrap.dedent(script)],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
    )


@pytest.fixture
def fake_engine():
    """Factory starting fake engine processes, killed on teardown."""
    processes: list[subprocess.Popen] = []

    def _start(script: str) -> subprocess.Popen:
        process = start_python_process(script)
        processes.append(process)
        return process

    yield _start

    for process in processes:
        if process.poll() is None:
            process.kill()
        process.wait()
        for stream in (process.stdout, process.stderr):
            if stream is not None:
                stream.close()
