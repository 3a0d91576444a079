"""
Signature overlay for template PDFs.

Draws a signature image onto a PDF page at the template's signature position.
Positions are looked up through the signature position service, so the PDF
gets exactly the position the admin tools report.
"""

import base64
import binascii
import io
import logging
from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader, PdfWriter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from position_store.config import settings
from position_store.schemas.signature_position import PositionRecord
from position_store.services.signature_position_service import (
    SignaturePositionService,
    signature_position_service,
)
from position_store.utils.exceptions import FileOperationError, ValidationError

logger = logging.getLogger(__name__)

SignatureImage = Union[str, bytes, Image.Image]


def to_pdf_rect(position: PositionRecord, page_height: float) -> Tuple[float, float, float, float]:
    """Convert a top-left origin position to reportlab's bottom-left (x, y, width, height)."""
    pdf_y = page_height - position.y - position.height
    return float(position.x), float(pdf_y), float(position.width), float(position.height)


def load_signature_image(signature_image: SignatureImage) -> Image.Image:
    """Decode a data URL, bare base64 string, raw bytes or PIL image."""
    if isinstance(signature_image, Image.Image):
        return signature_image

    try:
        if isinstance(signature_image, str):
            encoded = signature_image.split(",", 1)[1] if signature_image.startswith("data:") else signature_image
            raw = base64.b64decode(encoded, validate=True)
        else:
            raw = signature_image
        image = Image.open(io.BytesIO(raw))
        image.load()
        return image
    except (binascii.Error, IndexError, UnidentifiedImageError, OSError) as e:
        raise ValidationError(f"Invalid signature image: {e}", field="signature_image")


class SignatureOverlayService:
    """Service for stamping signatures onto template PDFs."""

    def __init__(self, position_service: Optional[SignaturePositionService] = None):
        self.position_service = position_service or signature_position_service

    def _output_path(self, pdf_path: Path, output_path: Optional[Union[str, Path]]) -> Path:
        if output_path:
            return Path(output_path)
        target_dir = Path(settings.signed_pdf_dir) if settings.signed_pdf_dir else pdf_path.parent
        return target_dir / f"{pdf_path.stem}-signed.pdf"

    def _render_overlay(
        self,
        image: Image.Image,
        position: PositionRecord,
        page_width: float,
        page_height: float,
    ) -> PdfReader:
        x, y, width, height = to_pdf_rect(position, page_height)
        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=(page_width, page_height))
        c.setFillAlpha(position.opacity)
        c.drawImage(ImageReader(image), x, y, width=width, height=height, mask="auto")
        c.save()
        buffer.seek(0)
        return PdfReader(buffer)

    def apply_signature(
        self,
        pdf_path: Union[str, Path],
        signature_image: SignatureImage,
        template_key: str,
        page_number: int = 1,
        output_path: Optional[Union[str, Path]] = None,
    ) -> Path:
        """
        Overlay a signature on one page of a PDF.

        Args:
            pdf_path: Source PDF
            signature_image: PNG/JPEG as data URL, base64, bytes or PIL image
            template_key: Template key, PDF file name or form id
            page_number: 1-based page to sign
            output_path: Destination; defaults to ``<name>-signed.pdf``

        Returns:
            Path of the signed PDF
        """
        source = Path(pdf_path)
        image = load_signature_image(signature_image)
        position = self.position_service.get_position(template_key)

        try:
            reader = PdfReader(str(source))
        except OSError as e:
            raise FileOperationError("read", str(source), str(e))

        page_count = len(reader.pages)
        if page_number < 1 or page_number > page_count:
            raise ValidationError(
                f"Page {page_number} out of range (1-{page_count})",
                field="page_number",
                details={"page_count": page_count},
            )

        page = reader.pages[page_number - 1]
        page_width = float(page.mediabox.width)
        page_height = float(page.mediabox.height)
        logger.info(
            f"Applying signature for {template_key} on page {page_number} "
            f"({page_width}x{page_height}) at {position.describe()}"
        )

        overlay = self._render_overlay(image, position, page_width, page_height)
        page.merge_page(overlay.pages[0])

        writer = PdfWriter()
        for p in reader.pages:
            writer.add_page(p)

        destination = self._output_path(source, output_path)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with open(destination, "wb") as f:
                writer.write(f)
        except OSError as e:
            raise FileOperationError("write", str(destination), str(e))

        logger.info(f"Signed PDF saved to {destination}")
        return destination


# Singleton instance
signature_overlay_service = SignatureOverlayService()
