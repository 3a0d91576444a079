#!/usr/bin/env python3
"""Tests for stamping signatures onto PDFs at catalogue positions"""

import base64
import io
import sys
sys.path.append('.')

import pytest
from PIL import Image, ImageDraw
from pypdf import PdfReader
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from position_store.schemas.signature_position import PositionRecord
from position_store.services.signature_overlay_service import (
    SignatureOverlayService,
    load_signature_image,
    to_pdf_rect,
)
from position_store.utils.exceptions import ValidationError


def create_test_pdf(path, pages=2):
    c = canvas.Canvas(str(path), pagesize=letter)
    for page in range(pages):
        c.drawString(100, 700, f"Test PDF Page {page + 1}")
        c.showPage()
    c.save()


def create_test_signature_b64():
    img = Image.new("RGBA", (200, 60), (255, 255, 255, 0))
    draw = ImageDraw.Draw(img)
    draw.line((0, 0, 200, 60), fill="black", width=3)
    draw.line((0, 60, 200, 0), fill="black", width=3)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("utf-8")


def test_to_pdf_rect_flips_origin():
    """Test top-left page pixels map to reportlab's bottom-left origin"""
    position = PositionRecord(x=78, y=376, width=200, height=60, opacity=1)
    assert to_pdf_rect(position, 792) == (78.0, 356.0, 200.0, 60.0)

    top = PositionRecord(x=0, y=0, width=100, height=50)
    assert to_pdf_rect(top, 792) == (0.0, 742.0, 100.0, 50.0)
    print("[PASS] Origin conversion test passed")


def test_load_signature_image_formats():
    data_url = create_test_signature_b64()
    raw = base64.b64decode(data_url.split(",", 1)[1])

    assert load_signature_image(data_url).size == (200, 60)
    assert load_signature_image(data_url.split(",", 1)[1]).size == (200, 60)
    assert load_signature_image(raw).size == (200, 60)

    img = Image.new("RGB", (10, 10))
    assert load_signature_image(img) is img


@pytest.mark.parametrize("bad", ["not-base64!!", "data:image/png;base64,aGVsbG8=", b"plain bytes"])
def test_load_signature_image_rejects_garbage(bad):
    with pytest.raises(ValidationError):
        load_signature_image(bad)


def test_apply_signature(position_service, tmp_path):
    """Test that the signed PDF keeps its pages and gains the signature image"""
    pdf_path = tmp_path / "ABSACertificate.pdf"
    create_test_pdf(pdf_path)
    service = SignatureOverlayService(position_service=position_service)

    output = service.apply_signature(pdf_path, create_test_signature_b64(), "ABSACertificate.pdf", page_number=2)

    assert output == tmp_path / "ABSACertificate-signed.pdf"
    assert output.exists()
    reader = PdfReader(str(output))
    assert len(reader.pages) == 2
    assert "/XObject" in reader.pages[1]["/Resources"]
    print("[PASS] Apply signature test passed")


def test_apply_signature_custom_output(position_service, tmp_path):
    pdf_path = tmp_path / "ML.pdf"
    create_test_pdf(pdf_path, pages=1)
    target = tmp_path / "signed" / "out.pdf"

    output = SignatureOverlayService(position_service=position_service).apply_signature(
        pdf_path, create_test_signature_b64(), "material-list-form", output_path=target
    )

    assert output == target
    assert len(PdfReader(str(target)).pages) == 1


def test_apply_signature_page_out_of_range(position_service, tmp_path):
    pdf_path = tmp_path / "doc.pdf"
    create_test_pdf(pdf_path, pages=1)

    with pytest.raises(ValidationError) as exc_info:
        SignatureOverlayService(position_service=position_service).apply_signature(
            pdf_path, create_test_signature_b64(), "default", page_number=3
        )
    assert exc_info.value.field == "page_number"
    assert exc_info.value.details == {"page_count": 1}
