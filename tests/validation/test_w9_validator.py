"""
Tests for W-9 wizard step validation.

Tests:
- Step ordering per account type
- Identity, tax classification, address and TIN rules
- TIN and ZIP format contracts
- require_valid raising for the HTTP layer
"""

import pytest

from export.w9_errors import W9ValidationError
from models.w9_form import AccountType, W9FormData
from validation.w9_validator import (
    WizardStep,
    is_valid_ein,
    is_valid_ssn,
    is_valid_zip,
    require_valid,
    validate_form,
    validate_step,
    wizard_steps,
)


def _record(**wire) -> W9FormData:
    return W9FormData.model_validate(wire)


class TestWizardSteps:
    """Tests for the step sequence shown per account type."""

    def test_individual_skips_custodian_and_llc_type(self):
        """Test that individuals see the five common steps."""
        assert wizard_steps(AccountType.INDIVIDUAL) == [
            WizardStep.ACCOUNT_TYPE,
            WizardStep.IDENTITY,
            WizardStep.TAX_CLASSIFICATION,
            WizardStep.ADDRESS_TIN,
            WizardStep.SIGNATURE,
        ]

    def test_llc_asks_llc_type_second(self):
        """Test that LLC accounts pick their LLC type right after account type."""
        steps = wizard_steps(AccountType.LLC)
        assert steps[:2] == [WizardStep.ACCOUNT_TYPE, WizardStep.LLC_TYPE]
        assert WizardStep.CUSTODIAN not in steps

    def test_ira_asks_custodian_second(self):
        """Test that IRA accounts pick a custodian right after account type."""
        steps = wizard_steps(AccountType.IRA)
        assert steps[:2] == [WizardStep.ACCOUNT_TYPE, WizardStep.CUSTODIAN]

    def test_step_numbers_match_widget(self):
        """Test that step numbering follows the widget (LLC type is 6)."""
        assert WizardStep.TAX_CLASSIFICATION == 3
        assert WizardStep.LLC_TYPE == 6

    @pytest.mark.parametrize("step", [99, -1, 7])
    def test_unknown_step_has_no_errors(self, step):
        """Test that a step number the widget does not use validates to an empty map."""
        assert validate_step(step, _record()) == {}


class TestAccountTypeStep:

    def test_missing_account_type(self):
        errors = validate_step(WizardStep.ACCOUNT_TYPE, W9FormData())
        assert errors == {"accountType": "Account type is required"}

    def test_llc_type_required_for_llc(self):
        errors = validate_step(WizardStep.LLC_TYPE, _record(accountType="llc"))
        assert errors == {"llcType": "Please select your LLC type"}


class TestCustodianStep:
    """Tests for IRA custodian rules."""

    def test_custodian_required(self):
        """Test that an IRA without a custodian is rejected."""
        errors = validate_step(WizardStep.CUSTODIAN, _record(accountType="ira", iraAccountNumber="1"))
        assert errors == {"custodian": "Custodian selection is required"}

    def test_other_custodian_requires_address_block(self):
        """Test that an 'other' custodian needs its name and full address."""
        errors = validate_step(
            WizardStep.CUSTODIAN,
            _record(accountType="ira", custodian="other", iraAccountNumber="1"),
        )
        assert set(errors) == {
            "custodianName", "custodianAddress", "custodianCity",
            "custodianState", "custodianZip",
        }

    def test_ira_account_number_required(self):
        """Test that the IRA account number is required."""
        errors = validate_step(
            WizardStep.CUSTODIAN, _record(accountType="ira", custodian="equity-trust")
        )
        assert errors == {"iraAccountNumber": "IRA account number is required"}

    def test_known_custodian_complete(self, ira_record):
        assert validate_step(WizardStep.CUSTODIAN, ira_record) == {}


class TestIdentityStep:
    """Tests for line 1 / line 2 name requirements."""

    @pytest.mark.parametrize("account_type,message", [
        ("trust", "Trust name is required"),
        ("corporation", "Corporation name is required"),
        ("401k", "401k plan name is required"),
    ])
    def test_entity_accounts_require_entity_name(self, account_type, message):
        """Test that entity-only accounts need the entity name, not a personal name."""
        errors = validate_step(WizardStep.IDENTITY, _record(accountType=account_type))
        assert errors == {"businessName": message}

    def test_standard_llc_requires_entity_name_only(self):
        errors = validate_step(
            WizardStep.IDENTITY, _record(accountType="llc", llcType="s-corp", name="Ignored")
        )
        assert errors == {"businessName": "LLC name is required"}

    def test_disregarded_llc_requires_both_names(self):
        """Test that a disregarded LLC needs the owner and the LLC name."""
        errors = validate_step(
            WizardStep.IDENTITY, _record(accountType="llc", llcType="disregarded")
        )
        assert errors == {"name": "Name is required", "businessName": "LLC name is required"}

    def test_individual_requires_personal_name(self):
        errors = validate_step(WizardStep.IDENTITY, _record(accountType="individual", name="  "))
        assert errors == {"name": "Name is required"}


class TestTaxClassificationStep:
    """Tests for line 3a rules."""

    def test_classification_required(self):
        errors = validate_step(WizardStep.TAX_CLASSIFICATION, _record(accountType="individual"))
        assert errors == {"taxClassification": "Tax classification is required"}

    def test_other_without_description_fails(self):
        """Test that 'other' without a description fails step 3."""
        errors = validate_step(
            WizardStep.TAX_CLASSIFICATION,
            _record(accountType="individual", taxClassification="other"),
        )
        assert errors == {"otherDescription": "Please describe your entity type"}

    def test_other_with_description_passes(self):
        errors = validate_step(
            WizardStep.TAX_CLASSIFICATION,
            _record(taxClassification="other", otherDescription="Cooperative"),
        )
        assert errors == {}

    def test_llc_needs_letter(self):
        errors = validate_step(WizardStep.TAX_CLASSIFICATION, _record(taxClassification="llc"))
        assert errors == {"llcClassification": "LLC tax classification is required"}


class TestAddressAndTinStep:
    """Tests for address and TIN requirements."""

    def test_individual_requires_address(self, individual_wire):
        """Test that an individual without an address fails step 4."""
        for key in ("address", "city", "state", "zipCode"):
            individual_wire.pop(key)
        errors = validate_step(WizardStep.ADDRESS_TIN, _record(**individual_wire))
        assert set(errors) == {"address", "city", "state", "zipCode"}

    def test_ira_does_not_require_address(self, ira_record):
        """Test that an IRA passes step 4 without its own address."""
        assert validate_step(WizardStep.ADDRESS_TIN, ira_record) == {}

    def test_invalid_state_code(self, individual_wire):
        individual_wire["state"] = "ZZ"
        errors = validate_step(WizardStep.ADDRESS_TIN, _record(**individual_wire))
        assert errors == {"state": "Invalid state code"}

    def test_invalid_zip(self, individual_wire):
        individual_wire["zipCode"] = "6270"
        errors = validate_step(WizardStep.ADDRESS_TIN, _record(**individual_wire))
        assert errors == {"zipCode": "Invalid ZIP code format"}

    def test_ira_requires_ira_ein(self, ira_wire):
        ira_wire["iraEin"] = ""
        errors = validate_step(WizardStep.ADDRESS_TIN, _record(**ira_wire))
        assert errors == {"iraEin": "IRA EIN is required"}

    def test_disregarded_llc_requires_ssn_and_ein(self, disregarded_llc_wire):
        """Test that a disregarded LLC needs both the owner SSN and the LLC EIN."""
        disregarded_llc_wire["ssn"] = ""
        disregarded_llc_wire["ein"] = ""
        errors = validate_step(WizardStep.ADDRESS_TIN, _record(**disregarded_llc_wire))
        assert errors == {
            "ssn": "Social Security Number is required",
            "ein": "LLC EIN is required",
        }

    def test_corporation_requires_ein_regardless_of_tin_type(self):
        errors = validate_step(
            WizardStep.ADDRESS_TIN,
            _record(accountType="corporation", tinType="ssn", ssn="123-45-6789",
                    address="1 A St", city="Boston", state="MA", zipCode="02110"),
        )
        assert errors == {"ein": "Employer Identification Number is required"}

    def test_individual_ein_format(self, individual_wire):
        individual_wire.update(tinType="ein", ein="12-34567")
        errors = validate_step(WizardStep.ADDRESS_TIN, _record(**individual_wire))
        assert errors == {"ein": "Invalid EIN format (XX-XXXXXXX)"}


class TestSignatureStep:

    def test_signature_and_date_required(self):
        errors = validate_step(WizardStep.SIGNATURE, _record(signatureType="typed", signature=" "))
        assert errors == {
            "signature": "Signature is required",
            "signatureDate": "Date is required",
        }

    def test_us_date_accepted(self):
        """Test that the widget's M/D/YYYY date is parsed."""
        record = _record(signature="x", signatureDate="5/1/2024")
        assert validate_step(WizardStep.SIGNATURE, record) == {}
        assert record.signature_date.isoformat() == "2024-05-01"


class TestFormatContracts:
    """Tests for the TIN and ZIP regex contracts."""

    @pytest.mark.parametrize("value", ["123-45-6789", "123456789", "123 45 6789", " 123-45-6789 "])
    def test_valid_ssn(self, value):
        assert is_valid_ssn(value)

    @pytest.mark.parametrize("value", ["12-345-6789", "1234567890", "abc-de-fghi", ""])
    def test_invalid_ssn(self, value):
        assert not is_valid_ssn(value)

    @pytest.mark.parametrize("value", ["12-3456789", "123456789"])
    def test_valid_ein(self, value):
        assert is_valid_ein(value)

    @pytest.mark.parametrize("value", ["123-456789", "12-345678"])
    def test_invalid_ein(self, value):
        assert not is_valid_ein(value)

    @pytest.mark.parametrize("value,expected", [
        ("62701", True), ("62701-1234", True), ("6270", False), ("62701-12", False),
    ])
    def test_zip(self, value, expected):
        assert is_valid_zip(value) is expected


class TestWholeForm:
    """Tests for validate_form and require_valid."""

    @pytest.mark.parametrize("fixture_name", [
        "individual_record", "ira_record", "disregarded_llc_record", "c_corp_llc_record",
    ])
    def test_complete_records_pass(self, fixture_name, request):
        """Test that each complete sample record validates cleanly."""
        assert validate_form(request.getfixturevalue(fixture_name)) == {}

    def test_ira_address_not_required_but_individual_is(self, ira_record, individual_wire):
        """Test that only non-IRA accounts need their own address."""
        individual_wire.pop("address")
        assert "address" not in validate_form(ira_record)
        assert "address" in validate_form(_record(**individual_wire))

    def test_require_valid_raises_with_error_map(self, individual_wire):
        """Test that require_valid raises W9ValidationError carrying the field map."""
        individual_wire["ssn"] = "12"
        with pytest.raises(W9ValidationError) as exc_info:
            require_valid(_record(**individual_wire))
        assert exc_info.value.errors == {"ssn": "Invalid SSN format (XXX-XX-XXXX)"}

    def test_require_valid_returns_record(self, individual_record):
        assert require_valid(individual_record) is individual_record
