from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_OPACITY = 0.7
VERIFY_TOLERANCE = 1e-6

INTEGER_FIELDS = ("x", "y", "width", "height")


class PositionRecord(BaseModel):
    """Signature rectangle in page pixels (top-left origin) plus draw opacity."""

    model_config = ConfigDict(frozen=True)

    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    opacity: float = Field(DEFAULT_OPACITY, ge=0.0, le=1.0)

    @field_validator("opacity", mode="before")
    @classmethod
    def default_missing_opacity(cls, v: Any) -> Any:
        # Only an absent value is defaulted; an explicit 0 stays 0.
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_OPACITY
        return v

    def mismatched_fields(self, other: Optional["PositionRecord"], tolerance: float = VERIFY_TOLERANCE) -> List[str]:
        """Names of fields that differ from ``other`` (all of them if other is None)."""
        if other is None:
            return list(INTEGER_FIELDS) + ["opacity"]
        diffs = [name for name in INTEGER_FIELDS if getattr(self, name) != getattr(other, name)]
        if abs(self.opacity - other.opacity) > tolerance:
            diffs.append("opacity")
        return diffs

    def matches(self, other: Optional["PositionRecord"], tolerance: float = VERIFY_TOLERANCE) -> bool:
        return not self.mismatched_fields(other, tolerance)

    def describe(self) -> str:
        return f"X:{self.x}, Y:{self.y}, W:{self.width}, H:{self.height}, opacity:{self.opacity}"


class UpdatePositionResult(BaseModel):
    template_key: str
    position: PositionRecord
    previous_position: PositionRecord
    verified: bool
    # What the post-write fresh read actually returned
    verification_position: Optional[PositionRecord] = None
    mismatched_fields: List[str] = []


class VerifyPositionResult(BaseModel):
    template_key: str
    direct_read: Optional[PositionRecord] = None
    fresh_read: PositionRecord
    matches: bool
