"""
idguard Test Configuration

Shared fixtures: temporary directories, an in-memory security logger, a
stub binary resolver and a factory for fake asyncio subprocesses.
"""

import asyncio
import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

# Add project root to path FIRST
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from idguard.audit import SecurityLogger
from idguard.security.secure_exec import SecureExecutor


# Temporary directory for test data
@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(os.path.realpath(tmpdir))


@pytest.fixture
def security_logger():
    logger = SecurityLogger()
    yield logger
    logger.close()


@pytest.fixture
def mock_resolver():
    resolver = MagicMock()
    resolver.get_binary_path = AsyncMock(side_effect=lambda command: f"/usr/bin/{command}")
    return resolver


@pytest.fixture
def executor(mock_resolver, security_logger):
    return SecureExecutor(resolver=mock_resolver, security_logger=security_logger)


@pytest.fixture
def make_process():
    """Factory for fake asyncio.subprocess.Process objects.

    With hang=True stdout never reaches EOF, so the caller times out.
    Must be called from inside a running event loop.
    """
    def _make(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0, hang: bool = False):
        proc = MagicMock()
        proc.pid = 424242
        proc.returncode = returncode

        out = asyncio.StreamReader()
        err = asyncio.StreamReader()
        out.feed_data(stdout)
        err.feed_data(stderr)
        err.feed_eof()
        if not hang:
            out.feed_eof()

        proc.stdout = out
        proc.stderr = err
        proc.wait = AsyncMock(return_value=returncode)
        return proc

    return _make


@pytest.fixture
def git_repo(temp_dir):
    """Directory laid out like a workspace with two submodule folders."""
    (temp_dir / "libs" / "core").mkdir(parents=True)
    (temp_dir / "libs" / "ui").mkdir(parents=True)
    return temp_dir
