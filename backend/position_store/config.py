from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Catalogue shipped with the package; operators normally point
# SIGNATURE_POSITIONS_PATH at a writable copy.
DEFAULT_POSITIONS_PATH = Path(__file__).parent / "data" / "signature_positions.conf"


class Settings(BaseSettings):
    # Signature positions catalogue
    signature_positions_path: str = str(DEFAULT_POSITIONS_PATH)
    signature_positions_encoding: str = "utf-8"

    # Signed PDFs (overlay output); defaults to next to the source PDF
    signed_pdf_dir: Optional[str] = None

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Optional[str]) -> str:
        raw = (value or "").strip().upper()
        return raw or "INFO"

    def positions_path(self) -> Path:
        """Resolved path of the signature positions catalogue."""
        return Path(self.signature_positions_path).expanduser()

settings = Settings()
