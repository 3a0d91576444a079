"""
Persistence for the signature positions catalogue text.

Backends only have to return the current text and replace it. The file
backend is the one shipped here.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from position_store.config import settings
from position_store.utils.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)


class PositionStorage:
    """Interface for a catalogue text source."""

    location: str = "<unknown>"

    def read_text(self) -> str:
        raise NotImplementedError

    def write_text(self, text: str) -> None:
        raise NotImplementedError


class FilePositionStorage(PositionStorage):
    """Catalogue text kept in a single file on disk.

    Every call goes to the file system; nothing is retained between calls.
    """

    def __init__(self, path: Union[str, Path], encoding: str = "utf-8"):
        self.path = Path(path)
        self.encoding = encoding

    @property
    def location(self) -> str:
        return str(self.path)

    def read_text(self) -> str:
        try:
            # newline="" keeps CRLF files byte-identical on write-back
            with open(self.path, "r", encoding=self.encoding, newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read signature positions from {self.path}: {e}")
            raise StorageUnavailableError("read", str(self.path), str(e))

    def write_text(self, text: str) -> None:
        try:
            # Encode before opening so an unencodable text never truncates the file
            data = text.encode(self.encoding)
            with open(self.path, "wb") as f:
                f.write(data)
        except (OSError, UnicodeEncodeError) as e:
            logger.error(f"Failed to write signature positions to {self.path}: {e}")
            raise StorageUnavailableError("write", str(self.path), str(e))
        logger.info(f"Wrote signature positions to {self.path} ({len(text)} chars)")


def get_default_storage(path: Optional[Union[str, Path]] = None) -> FilePositionStorage:
    """File storage for the configured catalogue path."""
    return FilePositionStorage(
        path or settings.positions_path(),
        encoding=settings.signature_positions_encoding,
    )
