"""
Template key resolution for signature positions.

Maps uploaded PDF file names and form identifiers onto the catalogue's
template keys. The table is static; the catalogue itself lives in the
positions text.
"""

import logging
from types import MappingProxyType
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_KEY = "default"

SUPPORTED_TEMPLATE_KEYS = (
    "absa-form",
    "clearance-certificate-form",
    "sahl-certificate-form",
    "discovery-form",
    "liability-form",
    "noncompliance-form",
    "material-list-form",
    DEFAULT_TEMPLATE_KEY,
)

PDF_TEMPLATE_KEYS = MappingProxyType({
    "ABSACertificate.pdf": "absa-form",
    "BBPClearanceCertificate.pdf": "clearance-certificate-form",
    "sahlld.pdf": "sahl-certificate-form",
    "desco.pdf": "discovery-form",
    "liabWave.pdf": "liability-form",
    "Noncompliance.pdf": "noncompliance-form",
    "ML.pdf": "material-list-form",
})

FORM_TEMPLATE_KEYS = MappingProxyType({
    "form-absa-certificate": "absa-form",
    "form-clearance-certificate": "clearance-certificate-form",
    "form-sahl-certificate": "sahl-certificate-form",
    "form-discovery-geyser": "discovery-form",
    "form-liability-certificate": "liability-form",
})


def lookup_alias(identifier: Optional[str]) -> Optional[str]:
    """Template key for a PDF file name or form id, trying file names first."""
    if not identifier:
        return None
    return PDF_TEMPLATE_KEYS.get(identifier) or FORM_TEMPLATE_KEYS.get(identifier)


def resolve_template_key(
    template_key: Optional[str] = None,
    pdf_name: Optional[str] = None,
    form_id: Optional[str] = None,
) -> str:
    """
    Resolve the catalogue key for a request.

    Priority:
    1. Explicit template key (aliases are mapped, real keys pass through)
    2. PDF file name via the alias table
    3. Form identifier via the alias table
    4. "default"
    """
    key = (template_key or "").strip()
    if key:
        return lookup_alias(key) or key

    # File name wins over form id.
    for identifier in (pdf_name, form_id):
        resolved = lookup_alias((identifier or "").strip())
        if resolved:
            return resolved

    logger.info(f"No template key mapping for pdf={pdf_name!r} form={form_id!r}, using default")
    return DEFAULT_TEMPLATE_KEY


def is_supported_template_key(template_key: str) -> bool:
    return template_key in SUPPORTED_TEMPLATE_KEYS
