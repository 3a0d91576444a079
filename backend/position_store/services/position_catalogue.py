"""
In-memory catalogue of signature positions.

This is the fallback source for fresh reads: the static defaults overlaid with
the last catalogue text that was successfully parsed. It is never the source
of truth; the service invalidates it after every write and it rebuilds itself
whenever it notices the text has changed since it was loaded.
"""

import hashlib
import logging
from typing import Dict, Optional

from position_store.schemas.signature_position import PositionRecord
from position_store.services.template_keys import DEFAULT_TEMPLATE_KEY
from position_store.utils.position_text import parse_catalogue

logger = logging.getLogger(__name__)

DEFAULT_SIGNATURE_POSITIONS: Dict[str, PositionRecord] = {
    "absa-form": PositionRecord(x=78, y=376, width=200, height=60, opacity=1),
    "clearance-certificate-form": PositionRecord(x=104, y=184, width=200, height=60, opacity=0.7),
    "sahl-certificate-form": PositionRecord(x=323, y=177, width=200, height=60, opacity=1),
    "discovery-form": PositionRecord(x=172, y=74, width=200, height=60, opacity=1),
    "liability-form": PositionRecord(x=360, y=580, width=200, height=60, opacity=1),
    "noncompliance-form": PositionRecord(x=300, y=700, width=200, height=60, opacity=0.7),
    "material-list-form": PositionRecord(x=320, y=750, width=200, height=60, opacity=0.7),
    DEFAULT_TEMPLATE_KEY: PositionRecord(x=168, y=722, width=200, height=30, opacity=0.7),
}


def text_digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class PositionCatalogueCache:
    """Last known good catalogue, derived from text and explicitly invalidated."""

    def __init__(self, defaults: Optional[Dict[str, PositionRecord]] = None):
        self._defaults = dict(defaults if defaults is not None else DEFAULT_SIGNATURE_POSITIONS)
        if DEFAULT_TEMPLATE_KEY not in self._defaults:
            self._defaults[DEFAULT_TEMPLATE_KEY] = DEFAULT_SIGNATURE_POSITIONS[DEFAULT_TEMPLATE_KEY]
        self._positions: Optional[Dict[str, PositionRecord]] = None
        self._digest: Optional[str] = None

    @property
    def is_loaded(self) -> bool:
        return self._positions is not None

    def load(self, text: Optional[str]) -> None:
        """Rebuild from catalogue text, or from the static defaults when text is None."""
        positions = dict(self._defaults)
        if text is not None:
            parsed, errors = parse_catalogue(text)
            for error in errors:
                logger.warning(f"Skipping malformed signature position while loading catalogue: {error.message}")
            positions.update(parsed)
            logger.info(f"Loaded {len(parsed)} signature positions into catalogue cache")
        else:
            logger.warning("Catalogue text unavailable, catalogue cache using static defaults")
        self._positions = positions
        self._digest = text_digest(text) if text is not None else None

    def ensure_current(self, text: Optional[str]) -> None:
        """Reload if never loaded or if ``text`` differs from what was loaded.

        With ``text`` None (storage unreadable) an already loaded catalogue is
        kept as the last known good state.
        """
        if text is None:
            if self._positions is None:
                self.load(None)
            return
        if self._positions is None or text_digest(text) != self._digest:
            self.load(text)

    def invalidate(self) -> None:
        """Drop the derived catalogue; safe to call when nothing is loaded."""
        if self._positions is not None:
            logger.info("Invalidated signature position catalogue cache")
        self._positions = None
        self._digest = None

    def lookup(self, template_key: str) -> PositionRecord:
        positions = self._positions if self._positions is not None else self._defaults
        position = positions.get(template_key)
        if position is None:
            position = positions.get(DEFAULT_TEMPLATE_KEY) or self._defaults[DEFAULT_TEMPLATE_KEY]
        return position

    def as_dict(self) -> Dict[str, PositionRecord]:
        positions = self._positions if self._positions is not None else self._defaults
        return dict(positions)
