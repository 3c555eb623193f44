"""
Pytest configuration and shared fixtures for TPM Seal Policy tests.

This module provides a simulated TPM and sample PCR values.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

import pytest

# Add the parent directory to the path for imports
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tpmseal.hardware import (
    HashAlgorithm,
    RegisterSet,
    SimulatedTPM,
    TPMDevice,
)


# ===========================================================================
# Digest Helpers
# ===========================================================================

def digest(fill: int, hash_algorithm: HashAlgorithm = HashAlgorithm.SHA256) -> bytes:
    """A digest of the right size for the bank, every byte set to fill."""
    return bytes([fill]) * hash_algorithm.digest_size


def reads_issued(device: SimulatedTPM) -> list:
    """PCR index chunks passed to read_pcrs, in order."""
    return [arg for command, arg in device.command_log if command == 'read_pcrs']


# ===========================================================================
# Temporary Directory Fixtures
# ===========================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    tmpdir = tempfile.mkdtemp(prefix="tpmseal_test_")
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


# ===========================================================================
# Device Fixtures
# ===========================================================================

@pytest.fixture
def simulated_tpm() -> SimulatedTPM:
    """Provide a simulator with SHA1 and SHA256 banks, all PCRs zeroed."""
    return SimulatedTPM()


@pytest.fixture
def populated_tpm(simulated_tpm: SimulatedTPM) -> SimulatedTPM:
    """Provide a simulator whose SHA256 PCR n holds digest(n + 1)."""
    for pcr in range(24):
        simulated_tpm.set_pcr(HashAlgorithm.SHA256, pcr, digest(pcr + 1))
    simulated_tpm.command_log.clear()
    return simulated_tpm


@pytest.fixture
def mock_device() -> MagicMock:
    """Provide a mock TPMDevice that fails the test if touched unexpectedly."""
    return MagicMock(spec=TPMDevice)


# ===========================================================================
# PCR Set Fixtures
# ===========================================================================

@pytest.fixture
def certified_set() -> RegisterSet:
    """PCRs 1 and 3 as recorded at sealing time."""
    return RegisterSet(HashAlgorithm.SHA256, {1: digest(0xD1), 3: digest(0xD3)})


# ===========================================================================
# Markers Registration
# ===========================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "security: Security-specific tests")
