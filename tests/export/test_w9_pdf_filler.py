"""
Tests for the W-9 PDF fill engine.

Tests:
- Coordinate mode on a flat template
- Named-field mode on an AcroForm template
- Signature handling and fallback
- Determinism, filenames, date styles
- Fatal errors (template, resolution)
"""

import asyncio
import re
from datetime import date
from io import BytesIO
from unittest.mock import Mock, patch

import pytest
import requests
from pypdf import PdfReader

from config.w9_layout_loader import load_layout
from export.w9_errors import (
    RecordResolutionError,
    TemplateLoadError,
    WarningCode,
)
from export.w9_pdf_filler import (
    DateStyle,
    W9PdfFiller,
    fill_w9,
    format_signature_date,
    load_template_bytes,
    suggested_filename,
)
from models.w9_form import W9FormData

_PDF_ID = re.compile(rb"/ID\s*\[[^\]]*\]")


def _values(result, prefix):
    return [p.text for p in result.placements if p.field.startswith(prefix)]


def _placement(result, field):
    matches = [p for p in result.placements if p.field == field]
    assert matches, f"{field} was not placed"
    return matches[0]


@pytest.fixture
def coordinate_filler(flat_template):
    return W9PdfFiller(load_layout("2024-03-coordinates"), flat_template)


@pytest.fixture
def acroform_filler(acroform_template):
    return W9PdfFiller(load_layout("2024-03-acroform"), acroform_template)


class TestCoordinateFill:
    """Tests for drawing values onto a flat template."""

    def test_produces_one_page_pdf(self, coordinate_filler, individual_record):
        result = coordinate_filler.fill(individual_record)

        assert result.pdf_bytes.startswith(b"%PDF")
        assert len(PdfReader(BytesIO(result.pdf_bytes)).pages) == 1
        assert result.warnings == []

    def test_text_lands_on_page(self, coordinate_filler, individual_record):
        """Test that the line 1 name is drawn and extractable."""
        result = coordinate_filler.fill(individual_record)
        text = PdfReader(BytesIO(result.pdf_bytes)).pages[0].extract_text()

        assert "Jane Q. Doe" in text
        assert "123 Main St" in text
        assert "Form W-9" in text

    def test_line1_coordinates(self, coordinate_filler, individual_record):
        placed = _placement(coordinate_filler.fill(individual_record), "line1_name")
        assert placed.text == "Jane Q. Doe"
        assert placed.target == "45,119"
        assert placed.mode == "coordinate"

    def test_ssn_digit_split(self, coordinate_filler, individual_record):
        """Test that 123-45-6789 fills the SSN boxes as 3+2+4 digits."""
        result = coordinate_filler.fill(individual_record)

        assert _values(result, "ssn[0]") == ["1", "2", "3"]
        assert _values(result, "ssn[1]") == ["4", "5"]
        assert _values(result, "ssn[2]") == ["6", "7", "8", "9"]
        assert _values(result, "ein") == []
        # First digit of each group sits at the group origin
        assert _placement(result, "ssn[1]").target == "555,361"

    def test_ira_custodian_naming(self, coordinate_filler, ira_record):
        """Test that an IRA fills the custodian, FBO line and IRA EIN."""
        result = coordinate_filler.fill(ira_record)

        assert _placement(result, "line1_name").text == "Equity Trust Company"
        assert _placement(result, "line2_name").text == "FBO Jane Doe IRA"
        assert _placement(result, "address").text == "1 Equity Way"
        assert _placement(result, "account_numbers").text == "IRA-0042"
        assert "".join(_values(result, "ein")) == "987654321"
        assert _values(result, "ssn") == []

    def test_disregarded_llc_fills_both_tin_runs(self, coordinate_filler, disregarded_llc_record):
        result = coordinate_filler.fill(disregarded_llc_record)

        assert "".join(_values(result, "ssn")) == "123456789"
        assert "".join(_values(result, "ein")) == "123456789"

    def test_c_corp_llc_fills_ein_only(self, coordinate_filler, c_corp_llc_record):
        """Test that a C-corp LLC gets only EIN digits and the LLC letter."""
        result = coordinate_filler.fill(c_corp_llc_record)

        assert _values(result, "ssn") == []
        assert len(_values(result, "ein")) == 9
        assert _placement(result, "llc_classification").text == "C"
        assert _placement(result, "checkbox.llc").text == "X"

    def test_checkbox_for_classification(self, coordinate_filler, individual_record):
        placed = _placement(coordinate_filler.fill(individual_record), "checkbox.individual")
        assert placed.text == "X"
        assert placed.target == "36,182"

    def test_unprintable_name_warns(self, coordinate_filler, individual_wire):
        """Test that a name Helvetica cannot encode is reported, not silently boxed."""
        individual_wire["name"] = "李小龍"
        result = coordinate_filler.fill(W9FormData.model_validate(individual_wire))

        assert result.pdf_bytes.startswith(b"%PDF")
        assert [(w.code, w.field) for w in result.warnings] == [
            (WarningCode.UNSUPPORTED_CHARACTERS, "line1_name"),
        ]
        assert _placement(result, "line1_name").text == "李小龍"

    def test_latin1_name_prints(self, coordinate_filler, individual_wire):
        individual_wire["name"] = "José Muñoz"
        individual_wire["signature"] = "José Muñoz"
        result = coordinate_filler.fill(W9FormData.model_validate(individual_wire))
        assert result.warnings == []

    def test_exemption_codes(self, coordinate_filler, individual_wire):
        individual_wire.update(exemptPayeeCode="5", fatcaExemptionCode="A")
        result = coordinate_filler.fill(W9FormData.model_validate(individual_wire))

        assert _placement(result, "exempt_payee_code").text == "5"
        assert _placement(result, "fatca_code").text == "A"

    def test_empty_values_not_drawn(self, coordinate_filler, individual_record):
        result = coordinate_filler.fill(individual_record)
        fields = {p.field for p in result.placements}
        assert "line2_name" not in fields
        assert "other_description" not in fields


class TestNamedFill:
    """Tests for filling AcroForm widgets."""

    def test_fields_written(self, acroform_filler, individual_record):
        """Test that values are stored in the named widgets."""
        result = acroform_filler.fill(individual_record)
        fields = PdfReader(BytesIO(result.pdf_bytes)).get_fields()

        assert fields["f1_01"]["/V"] == "Jane Q. Doe"
        assert fields["f1_07"]["/V"] == "123 Main St"
        assert fields["f1_08"]["/V"] == "Springfield, IL, 62701"
        assert fields["f1_11"]["/V"] == "123"
        assert fields["f1_12"]["/V"] == "45"
        assert fields["f1_13"]["/V"] == "6789"

    def test_checkbox_set_to_on_state(self, acroform_filler, individual_record):
        result = acroform_filler.fill(individual_record)
        fields = PdfReader(BytesIO(result.pdf_bytes)).get_fields()

        assert fields["c1_1_0"]["/V"] == "/Yes"
        assert _placement(result, "checkbox.individual").target == "c1_1_0"

    def test_placements_report_field_names(self, acroform_filler, c_corp_llc_record):
        result = acroform_filler.fill(c_corp_llc_record)

        placed = _placement(result, "line1_name")
        assert placed.mode == "named"
        assert placed.target == "f1_01"
        assert _placement(result, "ein[1]").text == "3456789"

    def test_missing_field_warns_and_skips(self, acroform_filler, ira_record):
        """Test that a value without a template field becomes a FIELD_NOT_FOUND warning."""
        result = acroform_filler.fill(ira_record)

        assert len(result.warnings) == 1
        warning = result.warnings[0]
        assert warning.code == WarningCode.FIELD_NOT_FOUND
        assert warning.field == "account_numbers"
        assert warning.candidates == ("f1_10[0]", "f1_10")
        assert "account_numbers" not in {p.field for p in result.placements}

    def test_signature_date_stays_coordinate(self, acroform_filler, individual_record):
        placed = _placement(acroform_filler.fill(individual_record), "signature_date")
        assert placed.mode == "coordinate"
        assert placed.text == "5/1/2024"

    def test_named_layout_on_flat_template_warns(self, flat_template, individual_record):
        """Test that a flat template with a named layout degrades to warnings."""
        filler = W9PdfFiller(load_layout("2024-03-acroform"), flat_template)
        result = filler.fill(individual_record)

        assert result.pdf_bytes.startswith(b"%PDF")
        assert {w.code for w in result.warnings} == {WarningCode.FIELD_NOT_FOUND}


class TestSignature:
    """Tests for typed and drawn signatures."""

    def test_typed_signature_text(self, coordinate_filler, individual_record):
        placed = _placement(coordinate_filler.fill(individual_record), "signature")
        assert placed.text == "Jane Q. Doe"
        assert placed.target == "75,733"

    def test_drawn_signature_embedded(self, coordinate_filler, individual_wire, signature_data_url):
        """Test that a PNG data URL is drawn as an image without warnings."""
        individual_wire.update(signatureType="drawn", signature=signature_data_url)
        result = coordinate_filler.fill(W9FormData.model_validate(individual_wire))

        placed = _placement(result, "signature")
        assert placed.text == "[image]"
        assert placed.target == "75,740"
        assert result.signature_fallback is False
        assert result.warnings == []

    def test_undecodable_signature_falls_back(self, coordinate_filler, individual_wire):
        """Test that a bad image draws the placeholder and records one warning."""
        individual_wire.update(
            signatureType="drawn",
            signature="data:image/png;base64,bm90IGFuIGltYWdl",
        )
        result = coordinate_filler.fill(W9FormData.model_validate(individual_wire))

        assert result.signature_fallback is True
        assert [w.code for w in result.warnings] == [WarningCode.SIGNATURE_FALLBACK]
        placed = _placement(result, "signature")
        assert placed.text == "[Signature on file]"
        assert placed.target == "75,733"
        text = PdfReader(BytesIO(result.pdf_bytes)).pages[0].extract_text()
        assert "[Signature on file]" in text


class TestOutput:
    """Tests for determinism, naming and dates."""

    def test_deterministic(self, coordinate_filler, individual_record):
        """Test that the same input gives the same bytes (document ID aside)."""
        first = coordinate_filler.fill(individual_record).pdf_bytes
        second = coordinate_filler.fill(individual_record).pdf_bytes
        assert _PDF_ID.sub(b"", first) == _PDF_ID.sub(b"", second)

    def test_deterministic_with_drawn_signature(self, coordinate_filler, individual_wire,
                                                signature_data_url):
        individual_wire.update(signatureType="drawn", signature=signature_data_url)
        record = W9FormData.model_validate(individual_wire)
        first = coordinate_filler.fill(record).pdf_bytes
        second = coordinate_filler.fill(record).pdf_bytes
        assert _PDF_ID.sub(b"", first) == _PDF_ID.sub(b"", second)

    def test_suggested_filename(self, individual_record):
        """Test that the filename keeps only letters and digits of the name."""
        assert suggested_filename(individual_record, date(2024, 6, 1)) == "W9_JaneQDoe_2024-06-01.pdf"

    def test_filename_falls_back_to_submission(self):
        record = W9FormData(name="!!!")
        assert suggested_filename(record, date(2024, 6, 1)) == "W9_Submission_2024-06-01.pdf"

    def test_result_filename_uses_today(self, coordinate_filler, c_corp_llc_record):
        result = coordinate_filler.fill(c_corp_llc_record, today=date(2024, 6, 1))
        assert result.filename == "W9_AcmeVenturesLLC_2024-06-01.pdf"

    def test_date_styles(self):
        assert format_signature_date(date(2024, 5, 1), DateStyle.US) == "5/1/2024"
        assert format_signature_date(date(2024, 5, 1), DateStyle.ISO) == "2024-05-01"

    def test_iso_date_style(self, flat_template, individual_record):
        filler = W9PdfFiller(load_layout(), flat_template, date_style="iso")
        assert _placement(filler.fill(individual_record), "signature_date").text == "2024-05-01"

    def test_fill_w9_function(self, flat_template, individual_record):
        result = fill_w9(flat_template, individual_record, today=date(2024, 6, 1))
        assert result.filename == "W9_JaneQDoe_2024-06-01.pdf"

    def test_fill_async(self, coordinate_filler, individual_record):
        result = asyncio.run(coordinate_filler.fill_async(individual_record))
        assert result.pdf_bytes.startswith(b"%PDF")


class TestFatalErrors:
    """Tests for errors that abort a fill."""

    def test_missing_template_file(self, tmp_path, individual_record):
        filler = W9PdfFiller(load_layout(), tmp_path / "missing.pdf")
        with pytest.raises(TemplateLoadError):
            filler.fill(individual_record)

    def test_unparseable_template(self, individual_record):
        """Test that bytes that are not a PDF raise TemplateLoadError."""
        filler = W9PdfFiller(load_layout(), b"this is not a pdf")
        with pytest.raises(TemplateLoadError):
            filler.fill(individual_record)

    def test_no_template_configured(self, individual_record):
        with pytest.raises(TemplateLoadError, match="No W-9 template"):
            W9PdfFiller(load_layout()).fill(individual_record)

    def test_resolution_happens_before_template_load(self, tmp_path, individual_wire):
        """Test that a bad TIN fails closed before the template is touched."""
        individual_wire["ssn"] = "123-45-678"
        filler = W9PdfFiller(load_layout(), tmp_path / "missing.pdf")
        with pytest.raises(RecordResolutionError):
            filler.fill(W9FormData.model_validate(individual_wire))


class TestTemplateLoading:

    def test_path_is_cached(self, flat_template_path, flat_template):
        assert load_template_bytes(flat_template_path) == flat_template
        flat_template_path.write_bytes(b"changed")
        assert load_template_bytes(str(flat_template_path)) == flat_template

    def test_url_fetched_with_requests(self, flat_template):
        response = Mock(content=flat_template)
        response.raise_for_status.return_value = None
        with patch("export.w9_pdf_filler.requests.get", return_value=response) as mock_get:
            assert load_template_bytes("https://example.com/fw9.pdf") == flat_template
            load_template_bytes("https://example.com/fw9.pdf")
        assert mock_get.call_count == 1

    def test_url_failure(self):
        with patch(
            "export.w9_pdf_filler.requests.get",
            side_effect=requests.ConnectionError("unreachable"),
        ):
            with pytest.raises(TemplateLoadError, match="unreachable"):
                load_template_bytes("https://example.com/other.pdf")
