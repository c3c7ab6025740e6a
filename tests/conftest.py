"""
Pytest configuration and fixtures for the W-9 test suite.

Provides:
- Environment isolation (settings cache, global providers, template cache)
- Wire-format W-9 records for each account type
- Blank W-9 templates built with reportlab (flat and AcroForm)
- Signature images built with Pillow
"""

import base64
import os
import sys
from io import BytesIO
from pathlib import Path
from typing import Any, Dict

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from PIL import Image  # noqa: E402
from reportlab.lib.pagesizes import letter  # noqa: E402
from reportlab.pdfgen import canvas  # noqa: E402

from models.w9_form import W9FormData  # noqa: E402

_ENV_PREFIXES = ("W9_", "SMTP_", "FORM_BASE_URL")


# =============================================================================
# ISOLATION
# =============================================================================

@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Run every test without ambient config, .env files or cached globals."""
    for key in list(os.environ):
        if key.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)

    from config.settings import get_settings
    from config.w9_layout_loader import clear_layout_cache
    from export.w9_pdf_filler import clear_template_cache
    from notifications.email_provider import set_email_provider
    from webhooks.service import set_webhook_notifier

    def _reset():
        get_settings.cache_clear()
        clear_layout_cache()
        clear_template_cache()
        set_email_provider(None)
        set_webhook_notifier(None)

    _reset()
    yield
    _reset()


# =============================================================================
# RECORDS
# =============================================================================

@pytest.fixture
def individual_wire() -> Dict[str, Any]:
    """Individual filing with an SSN and a typed signature."""
    return {
        "accountType": "individual",
        "name": "Jane Q. Doe",
        "taxClassification": "individual",
        "address": "123 Main St",
        "city": "Springfield",
        "state": "IL",
        "zipCode": "62701",
        "tinType": "ssn",
        "ssn": "123-45-6789",
        "signatureType": "typed",
        "signature": "Jane Q. Doe",
        "signatureDate": "2024-05-01",
    }


@pytest.fixture
def ira_wire() -> Dict[str, Any]:
    """Self-directed IRA held at a known custodian; no own address."""
    return {
        "accountType": "ira",
        "custodian": "equity-trust",
        "iraAccountNumber": "IRA-0042",
        "name": "Jane Doe",
        "taxClassification": "trustEstate",
        "iraEin": "98-7654321",
        "signatureType": "typed",
        "signature": "Jane Doe",
        "signatureDate": "2024-05-01",
    }


@pytest.fixture
def disregarded_llc_wire() -> Dict[str, Any]:
    """Single-member LLC: owner SSN and LLC EIN."""
    return {
        "accountType": "llc",
        "llcType": "disregarded",
        "name": "Jane Doe",
        "businessName": "Doe Holdings LLC",
        "taxClassification": "individual",
        "address": "500 Oak Ave",
        "city": "Austin",
        "state": "TX",
        "zipCode": "73301",
        "ssn": "123-45-6789",
        "ein": "12-3456789",
        "signatureType": "typed",
        "signature": "Jane Doe",
        "signatureDate": "2024-05-01",
    }


@pytest.fixture
def c_corp_llc_wire() -> Dict[str, Any]:
    """LLC taxed as a C corporation: entity name and EIN only."""
    return {
        "accountType": "llc",
        "llcType": "c-corp",
        "businessName": "Acme Ventures LLC",
        "taxClassification": "llc",
        "llcClassification": "c",
        "address": "1 Market St",
        "city": "San Francisco",
        "state": "CA",
        "zipCode": "94105",
        "ein": "12-3456789",
        "signatureType": "typed",
        "signature": "A. Officer",
        "signatureDate": "2024-05-01",
    }


@pytest.fixture
def individual_record(individual_wire) -> W9FormData:
    return W9FormData.model_validate(individual_wire)


@pytest.fixture
def ira_record(ira_wire) -> W9FormData:
    return W9FormData.model_validate(ira_wire)


@pytest.fixture
def disregarded_llc_record(disregarded_llc_wire) -> W9FormData:
    return W9FormData.model_validate(disregarded_llc_wire)


@pytest.fixture
def c_corp_llc_record(c_corp_llc_wire) -> W9FormData:
    return W9FormData.model_validate(c_corp_llc_wire)


# =============================================================================
# SIGNATURES
# =============================================================================

@pytest.fixture
def signature_png() -> bytes:
    """A 400x100 PNG with a dark stroke on a transparent background."""
    image = Image.new("RGBA", (400, 100), (255, 255, 255, 0))
    for x in range(20, 380):
        image.putpixel((x, 50 + (x % 7)), (0, 0, 0, 255))
    buf = BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def signature_data_url(signature_png) -> str:
    return "data:image/png;base64," + base64.b64encode(signature_png).decode("ascii")


# =============================================================================
# TEMPLATES
# =============================================================================

ACROFORM_TEXT_FIELDS = (
    "f1_01", "f1_02", "f1_03", "f1_04", "f1_05", "f1_06", "f1_07", "f1_08",
    "f1_11", "f1_12", "f1_13", "f1_14", "f1_15",
)
ACROFORM_CHECKBOXES = tuple(f"c1_1_{i}" for i in range(7))


def build_flat_template() -> bytes:
    """One letter-size page with printed labels and no form fields."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=letter, invariant=1)
    c.setFont("Helvetica-Bold", 14)
    c.drawString(36, 760, "Form W-9")
    c.setFont("Helvetica", 8)
    c.drawString(36, 680, "1 Name of entity/individual")
    c.drawString(36, 420, "Part I Taxpayer Identification Number (TIN)")
    c.drawString(36, 70, "Sign Here")
    c.showPage()
    c.save()
    return buf.getvalue()


def build_acroform_template() -> bytes:
    """
    One page with the fillable revision's widget names.

    Line 7 (f1_10) is left out on purpose so a missing field can be tested.
    """
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=letter, invariant=1)
    c.setFont("Helvetica-Bold", 14)
    c.drawString(36, 760, "Form W-9")
    form = c.acroForm
    y = 700
    for name in ACROFORM_TEXT_FIELDS:
        form.textfield(name=name, x=100, y=y, width=250, height=16,
                       fontName="Helvetica", fontSize=10)
        y -= 22
    x = 100
    for name in ACROFORM_CHECKBOXES:
        form.checkbox(name=name, x=x, y=400, size=12, buttonStyle="check")
        x += 30
    c.showPage()
    c.save()
    return buf.getvalue()


@pytest.fixture
def flat_template() -> bytes:
    return build_flat_template()


@pytest.fixture
def acroform_template() -> bytes:
    return build_acroform_template()


@pytest.fixture
def flat_template_path(tmp_path, flat_template) -> Path:
    path = tmp_path / "fw9_flat.pdf"
    path.write_bytes(flat_template)
    return path
