import json
import sys
import os
import pytest

# Add src/python to the path so tests can import modules directly
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src', 'python'))

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), 'fixtures')


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


@pytest.fixture
def api_payload():
    """A recorded EasyEDA component response (RP2040, C2040)."""
    with open(os.path.join(FIXTURES_DIR, 'easyeda_C2040.json'), 'r') as f:
        return json.load(f)


@pytest.fixture
def tmp_library(tmp_path):
    """Create a temporary library root for testing."""
    lib_root = tmp_path / 'lcscbridge'
    lib_root.mkdir()
    (lib_root / 'lcscbridge.pretty').mkdir()
    (lib_root / 'lcscbridge.3dshapes').mkdir()
    return lib_root
