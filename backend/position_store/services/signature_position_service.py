"""
Signature Position Service.

Reads and updates signature positions straight from the catalogue text so the
admin tools always see exactly what PDF generation will use.

Update flow:
    RESOLVE_KEY -> READ_OLD -> WRITE_NEW -> INVALIDATE_CACHE -> VERIFY -> DONE

Any step may end in FAILED. Verification is diagnostic only: a mismatch after
a committed write is reported on the result, never raised.
"""

import enum
import logging
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from position_store.schemas.signature_position import (
    PositionRecord,
    UpdatePositionResult,
    VerifyPositionResult,
)
from position_store.services.position_catalogue import PositionCatalogueCache
from position_store.services.position_storage import PositionStorage, get_default_storage
from position_store.services.template_keys import (
    is_supported_template_key,
    resolve_template_key,
)
from position_store.utils.exceptions import (
    CatalogueFormatError,
    MalformedRecordError,
    StorageUnavailableError,
    ValidationError,
)
from position_store.utils.position_text import (
    parse_catalogue,
    parse_position,
    upsert_position_block,
    validate_template_key,
)

logger = logging.getLogger(__name__)


class UpdateStage(str, enum.Enum):
    RESOLVE_KEY = "resolve_key"
    READ_OLD = "read_old"
    WRITE_NEW = "write_new"
    INVALIDATE_CACHE = "invalidate_cache"
    VERIFY = "verify"
    DONE = "done"
    FAILED = "failed"


PositionInput = Union[PositionRecord, Mapping[str, Any]]


def coerce_position(position: Optional[PositionInput]) -> PositionRecord:
    """Build a PositionRecord from caller input, defaulting opacity."""
    if position is None:
        raise ValidationError("Position is required", field="position")
    if isinstance(position, PositionRecord):
        return position
    try:
        return PositionRecord.model_validate(dict(position))
    except PydanticValidationError as e:
        errors = e.errors()
        field = str(errors[0]["loc"][0]) if errors and errors[0].get("loc") else None
        raise ValidationError(
            f"Invalid signature position: {errors[0]['msg'] if errors else e}",
            field=field,
            details={"errors": [{"field": ".".join(str(p) for p in err.get("loc", ())), "message": err["msg"]} for err in errors]},
        )
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid signature position: {e}", field="position")


class SignaturePositionService:
    """Position Store: fresh reads, in-place updates and read-back verification."""

    def __init__(
        self,
        storage: Optional[PositionStorage] = None,
        cache: Optional[PositionCatalogueCache] = None,
    ):
        self.storage = storage or get_default_storage()
        self.cache = cache or PositionCatalogueCache()

    def _advance(self, stage: UpdateStage, template_key: Optional[str]) -> UpdateStage:
        logger.debug(f"[SignaturePosition] {template_key}: {stage.value}")
        return stage

    def _read_text(self) -> Optional[str]:
        try:
            return self.storage.read_text()
        except StorageUnavailableError as e:
            logger.warning(f"[SignaturePosition] Catalogue text unavailable, using fallback: {e.message}")
            return None

    def _parse(self, text: str, template_key: str) -> Optional[PositionRecord]:
        try:
            return parse_position(text, template_key)
        except MalformedRecordError as e:
            logger.warning(f"[SignaturePosition] {e.message}; treating as not found")
            return None

    def read_fresh(self, template_key: str) -> PositionRecord:
        """
        Effective position for an already resolved template key.

        Re-reads the catalogue text on every call. Falls back to the catalogue
        cache (then "default") when the key is missing, malformed or the text
        cannot be read.
        """
        text = self._read_text()
        if text is not None:
            position = self._parse(text, template_key)
            if position is not None:
                logger.debug(f"[SignaturePosition] Fresh position for {template_key}: {position.describe()}")
                return position
            logger.info(f"[SignaturePosition] No position for {template_key} in {self.storage.location}, using fallback")

        self.cache.ensure_current(text)
        position = self.cache.lookup(template_key)
        logger.info(f"[SignaturePosition] Fallback position for {template_key}: {position.describe()}")
        return position

    def get_position(self, template_key_or_alias: Optional[str]) -> PositionRecord:
        """Effective position for a template key, PDF file name or form id."""
        return self.read_fresh(resolve_template_key(template_key_or_alias))

    def resolve_template_key(
        self,
        template_key: Optional[str] = None,
        pdf_name: Optional[str] = None,
        form_id: Optional[str] = None,
    ) -> str:
        return resolve_template_key(template_key, pdf_name, form_id)

    def invalidate_cache(self) -> None:
        self.cache.invalidate()

    def load_catalogue(self) -> None:
        """Build the catalogue cache from the current text (startup)."""
        self.cache.ensure_current(self._read_text())

    def list_positions(self) -> Dict[str, PositionRecord]:
        """Every readable entry in the catalogue text, in file order."""
        text = self._read_text()
        if text is None:
            self.cache.ensure_current(None)
            return self.cache.as_dict()
        positions, errors = parse_catalogue(text)
        for error in errors:
            logger.warning(f"[SignaturePosition] {error.message}")
        return positions

    def update_position(
        self,
        template_key_or_alias: Optional[str] = None,
        position: Optional[PositionInput] = None,
        pdf_name: Optional[str] = None,
        form_id: Optional[str] = None,
    ) -> UpdatePositionResult:
        """
        Persist a new position for a template and verify it by reading it back.

        Args:
            template_key_or_alias: Template key, or a PDF file name / form id alias
            position: New position; opacity defaults to 0.7 when absent
            pdf_name: Uploaded PDF file name, used when no key is supplied
            form_id: Form identifier, used when no key or file mapping applies

        Returns:
            UpdatePositionResult with the new and previous positions, the
            resolved key and whether the read-back matched

        Raises:
            ValidationError: invalid key or position input
            StorageUnavailableError: catalogue text could not be read or written
            CatalogueFormatError: a new key could not be inserted
        """
        stage = self._advance(UpdateStage.RESOLVE_KEY, template_key_or_alias or pdf_name or form_id)
        template_key = validate_template_key(
            resolve_template_key(template_key_or_alias, pdf_name, form_id)
        )
        new_position = coerce_position(position)
        logger.info(
            f"[SignaturePosition] Update request - key: {template_key_or_alias}, "
            f"pdf: {pdf_name}, form: {form_id} -> {template_key}"
        )
        if not is_supported_template_key(template_key):
            logger.warning(f"[SignaturePosition] Template key {template_key} not in supported list, treating as custom form")

        stage = self._advance(UpdateStage.READ_OLD, template_key)
        previous_position = self.read_fresh(template_key)
        logger.info(f"[SignaturePosition] Previous position for {template_key}: {previous_position.describe()}")

        stage = self._advance(UpdateStage.WRITE_NEW, template_key)
        try:
            text = self.storage.read_text()
            new_text, inserted = upsert_position_block(text, template_key, new_position)
            if new_text != text:
                self.storage.write_text(new_text)
            action = "Added" if inserted else "Updated"
            logger.info(f"[SignaturePosition] {action} {template_key} in {self.storage.location}")
        except (StorageUnavailableError, CatalogueFormatError) as e:
            e.details.update({
                "template_key": template_key,
                "position": new_position.model_dump(),
                "stage": stage.value,
            })
            logger.error(
                f"[SignaturePosition] {UpdateStage.FAILED.value} at {stage.value} for {template_key} "
                f"({new_position.describe()}): {e.message}"
            )
            raise

        stage = self._advance(UpdateStage.INVALIDATE_CACHE, template_key)
        self.invalidate_cache()

        stage = self._advance(UpdateStage.VERIFY, template_key)
        verification_position = self.read_fresh(template_key)
        mismatched = new_position.mismatched_fields(verification_position)
        if mismatched:
            logger.warning(
                f"[SignaturePosition] Verification mismatch for {template_key} on {', '.join(mismatched)}! "
                f"Expected {new_position.describe()}, got {verification_position.describe()}"
            )
        else:
            logger.info(f"[SignaturePosition] Verification successful for {template_key}")

        stage = self._advance(UpdateStage.DONE, template_key)
        logger.info(
            f"[SignaturePosition] {stage.value}: {template_key} "
            f"previous {previous_position.describe()} -> new {new_position.describe()}"
        )
        return UpdatePositionResult(
            template_key=template_key,
            position=new_position,
            previous_position=previous_position,
            verified=not mismatched,
            verification_position=verification_position,
            mismatched_fields=mismatched,
        )

    def verify_position(self, template_key: str) -> VerifyPositionResult:
        """
        Compare a direct parse of the catalogue text with the fresh-read path.

        Pure diagnostic; nothing is written.
        """
        resolved = resolve_template_key(template_key)
        text = self._read_text()
        direct_read = self._parse(text, resolved) if text is not None else None
        fresh_read = self.read_fresh(resolved)
        matches = direct_read is not None and direct_read.matches(fresh_read)
        logger.info(
            f"[SignaturePosition] Verify {resolved}: direct="
            f"{direct_read.describe() if direct_read else None}, fresh={fresh_read.describe()}, match={matches}"
        )
        return VerifyPositionResult(
            template_key=resolved,
            direct_read=direct_read,
            fresh_read=fresh_read,
            matches=matches,
        )


# Singleton instance
signature_position_service = SignaturePositionService()
