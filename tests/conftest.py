"""
Root conftest.py for caldb-editor tests.

This file contains shared fixtures and pytest configuration
that applies to all test modules.
"""

import sys
from pathlib import Path

import pytest

# Ensure the repository root is in the path
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))


SAMPLE_A2L = """\
/* Sample calibration dataset */
ASAP2_VERSION 1 71
/begin PROJECT demo_project "Demo project"
  /begin HEADER "Header comment"
    VERSION "1.0"
  /end HEADER
  /begin MODULE engine "Engine control"
    /begin MOD_PAR ""
      CPU_TYPE "demo"
    /end MOD_PAR
    /begin MEASUREMENT EngineSpeed "Engine speed"
      UWORD CM_RPM 1 0 0 8000
      ECU_ADDRESS 0x2000
      FORMAT "%6.1"
    /end MEASUREMENT
    /begin MEASUREMENT CoolantTemp "Coolant temperature"
      SBYTE NO_COMPU_METHOD 1 0.5 -40 215
    /end MEASUREMENT
    /begin CHARACTERISTIC IdleTarget "Idle speed target"
      VALUE 0x3000 RL_UWORD 0 CM_RPM 500 1500
      BIT_MASK 0xFF
    /end CHARACTERISTIC
    /begin CHARACTERISTIC FuelMap "Fuel map"
      MAP 0x3100 RL_MAP 0 NO_COMPU_METHOD 0 100
      /begin AXIS_DESCR STD_AXIS EngineSpeed NO_COMPU_METHOD 8 0 8000
      /end AXIS_DESCR
      /begin AXIS_DESCR STD_AXIS CoolantTemp NO_COMPU_METHOD 8 -40 215
      /end AXIS_DESCR
    /end CHARACTERISTIC
    /begin AXIS_PTS SpeedAxis "Speed breakpoints"
      0x4000 EngineSpeed RL_AXIS 0 CM_RPM 8 0 8000
    /end AXIS_PTS
    /begin COMPU_METHOD CM_RPM "Engine speed conversion"
      IDENTICAL "%6.1" "rpm"
    /end COMPU_METHOD
  /end MODULE
/end PROJECT
"""

EDIT_A2L = """\
ASAP2_VERSION 1 71
/begin PROJECT edit_project ""
  /begin MODULE edit_module ""
    /begin MEASUREMENT EngineSpeed "Engine speed"
      UWORD NO_COMPU_METHOD 1 0 0 8000
    /end MEASUREMENT
  /end MODULE
/end PROJECT
"""

TARGET_A2L = """\
ASAP2_VERSION 1 71
/begin PROJECT import_project ""
  /begin MODULE TargetModule "Import target"
    /begin MEASUREMENT Existing_Variable ""
      UBYTE NO_COMPU_METHOD 1 0 0 255
      ECU_ADDRESS 0x800
    /end MEASUREMENT
  /end MODULE
/end PROJECT
"""


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "http: mark test as going through the HTTP command route",
    )


def pytest_collection_modifyitems(config, items):
    """Mark tests that use the FastAPI test client."""
    for item in items:
        if "api_client" in getattr(item, "fixturenames", ()):
            item.add_marker(pytest.mark.http)


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def sample_a2l():
    """Dataset with every editable kind plus read-only and unknown blocks."""
    return SAMPLE_A2L


@pytest.fixture
def edit_a2l():
    """Single-module, single-measurement dataset used by the edit scenario."""
    return EDIT_A2L


@pytest.fixture
def target_a2l():
    """Dataset with one existing measurement used by the import scenario."""
    return TARGET_A2L


@pytest.fixture
def store():
    """A fresh, empty canonical store."""
    from api.store import CanonicalStore

    return CanonicalStore()


@pytest.fixture
def loaded_store(store, sample_a2l):
    """A canonical store with the sample dataset open."""
    store.open_from_content(sample_a2l)
    return store


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point CALDB_CONFIG at a temporary folder."""
    config_dir = tmp_path / "config"
    monkeypatch.setenv("CALDB_CONFIG", str(config_dir))
    return config_dir


@pytest.fixture
def api_client(isolated_config):
    """FastAPI test client with the process-wide store reset around each test."""
    from fastapi.testclient import TestClient

    from api.store import canonical_store
    from main import app

    canonical_store.close()
    with TestClient(app) as client:
        yield client
    canonical_store.close()
