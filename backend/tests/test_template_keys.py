#!/usr/bin/env python3
"""Tests for template key resolution"""

import sys
sys.path.append('.')

import pytest

from position_store.services.template_keys import (
    DEFAULT_TEMPLATE_KEY,
    PDF_TEMPLATE_KEYS,
    is_supported_template_key,
    lookup_alias,
    resolve_template_key,
)


def test_explicit_key_wins():
    """Test that an explicit template key is used even when aliases are given"""
    assert resolve_template_key("discovery-form", pdf_name="ML.pdf", form_id="form-absa-certificate") == "discovery-form"
    print("[PASS] Explicit key test passed")


def test_explicit_alias_is_mapped():
    assert resolve_template_key("BBPClearanceCertificate.pdf") == "clearance-certificate-form"
    assert resolve_template_key("form-sahl-certificate") == "sahl-certificate-form"


def test_pdf_name_before_form_id():
    """Test that the file name mapping takes precedence over the form id"""
    assert resolve_template_key(pdf_name="liabWave.pdf", form_id="form-absa-certificate") == "liability-form"
    assert resolve_template_key(pdf_name="unknown.pdf", form_id="form-absa-certificate") == "absa-form"
    print("[PASS] Resolution order test passed")


@pytest.mark.parametrize("kwargs", [
    {},
    {"template_key": "   "},
    {"pdf_name": "unknown.pdf"},
    {"pdf_name": None, "form_id": "unknown-form"},
])
def test_default_when_nothing_resolves(kwargs):
    assert resolve_template_key(**kwargs) == DEFAULT_TEMPLATE_KEY


def test_unknown_explicit_key_passes_through():
    assert resolve_template_key("new-form") == "new-form"


def test_alias_table_is_read_only():
    with pytest.raises(TypeError):
        PDF_TEMPLATE_KEYS["other.pdf"] = "absa-form"


def test_lookup_alias():
    assert lookup_alias("Noncompliance.pdf") == "noncompliance-form"
    assert lookup_alias("absa-form") is None
    assert lookup_alias(None) is None


def test_supported_template_keys():
    assert is_supported_template_key("material-list-form")
    assert is_supported_template_key("default")
    assert not is_supported_template_key("new-form")
