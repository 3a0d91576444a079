import sys
from pathlib import Path

import pytest

# Ensure backend/ is importable when pytest runs from the repository root.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from position_store.config import DEFAULT_POSITIONS_PATH
from position_store.services.position_storage import FilePositionStorage
from position_store.services.signature_position_service import SignaturePositionService


@pytest.fixture
def catalogue_path(tmp_path):
    """Writable copy of the packaged signature positions catalogue."""
    path = tmp_path / "signature_positions.conf"
    path.write_text(DEFAULT_POSITIONS_PATH.read_text(encoding="utf-8"), encoding="utf-8")
    return path


@pytest.fixture
def position_service(catalogue_path):
    return SignaturePositionService(storage=FilePositionStorage(catalogue_path))
