"""
W-9 Wizard Step Validation.

Per-step required-field and format rules for the W-9 wizard. Each step
returns a mapping of field name (the camelCase name the widget uses) to an
error message. An empty mapping means the step is complete.

Nothing here raises for invalid input: the wizard polls the error map after
every step. ``require_valid`` is the single exception, for callers such as
the HTTP layer that want to stop on a bad record.
"""

from __future__ import annotations

import re
from enum import IntEnum
from typing import Dict, List, Optional

from export.w9_errors import W9ValidationError
from models.w9_form import (
    AccountType,
    Custodian,
    TaxClassification,
    TINType,
    US_STATES,
    W9FormData,
)

ValidationErrors = Dict[str, str]

SSN_PATTERN = re.compile(r"^\d{3}-?\d{2}-?\d{4}$")
EIN_PATTERN = re.compile(r"^\d{2}-?\d{7}$")
ZIP_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")
_WHITESPACE = re.compile(r"\s")


class WizardStep(IntEnum):
    """Wizard steps, numbered as the widget numbers them."""
    ACCOUNT_TYPE = 0
    CUSTODIAN = 1
    IDENTITY = 2
    TAX_CLASSIFICATION = 3
    ADDRESS_TIN = 4
    SIGNATURE = 5
    LLC_TYPE = 6


def is_valid_ssn(value: str) -> bool:
    return bool(SSN_PATTERN.match(_WHITESPACE.sub("", value or "")))


def is_valid_ein(value: str) -> bool:
    return bool(EIN_PATTERN.match(_WHITESPACE.sub("", value or "")))


def is_valid_zip(value: str) -> bool:
    return bool(ZIP_PATTERN.match((value or "").strip()))


def wizard_steps(account_type: Optional[AccountType]) -> List[WizardStep]:
    """
    Ordered steps the wizard shows for an account type.

    LLC accounts pick their LLC type right after the account type, IRA
    accounts pick their custodian.
    """
    steps = [WizardStep.ACCOUNT_TYPE]
    if account_type == AccountType.LLC:
        steps.append(WizardStep.LLC_TYPE)
    if account_type == AccountType.IRA:
        steps.append(WizardStep.CUSTODIAN)
    steps.extend([
        WizardStep.IDENTITY,
        WizardStep.TAX_CLASSIFICATION,
        WizardStep.ADDRESS_TIN,
        WizardStep.SIGNATURE,
    ])
    return steps


def validate_step(step: WizardStep, data: W9FormData) -> ValidationErrors:
    """
    Validate the fields belonging to one wizard step.

    Args:
        step: Wizard step to check
        data: The (possibly partial) form data

    Returns:
        Field name -> error message; empty when the step is complete or
        is not a known step
    """
    try:
        step = WizardStep(step)
    except ValueError:
        return {}
    validator = _STEP_VALIDATORS.get(step)
    if validator is None:
        return {}
    return validator(data)


def validate_form(data: W9FormData) -> ValidationErrors:
    """Validate every step that applies to the record's account type."""
    errors: ValidationErrors = {}
    for step in wizard_steps(data.account_type):
        for name, message in validate_step(step, data).items():
            errors.setdefault(name, message)
    return errors


def require_valid(data: W9FormData) -> W9FormData:
    """Return ``data`` unchanged, or raise W9ValidationError with the error map."""
    errors = validate_form(data)
    if errors:
        raise W9ValidationError(errors)
    return data


# ---------------------------------------------------------------------------
# Step rules
# ---------------------------------------------------------------------------

def _blank(value: str) -> bool:
    return not (value or "").strip()


def _validate_account_type(data: W9FormData) -> ValidationErrors:
    errors: ValidationErrors = {}
    if data.account_type is None:
        errors["accountType"] = "Account type is required"
    return errors


def _validate_custodian(data: W9FormData) -> ValidationErrors:
    errors: ValidationErrors = {}
    if not data.is_ira:
        return errors

    if data.custodian is None:
        errors["custodian"] = "Custodian selection is required"
    elif data.custodian == Custodian.OTHER:
        if _blank(data.custodian_name):
            errors["custodianName"] = "Custodian name is required"
        if _blank(data.custodian_address):
            errors["custodianAddress"] = "Address is required"
        if _blank(data.custodian_city):
            errors["custodianCity"] = "City is required"
        if _blank(data.custodian_state):
            errors["custodianState"] = "State is required"
        elif data.custodian_state not in US_STATES:
            errors["custodianState"] = "Invalid state code"
        if _blank(data.custodian_zip):
            errors["custodianZip"] = "ZIP code is required"
        elif not is_valid_zip(data.custodian_zip):
            errors["custodianZip"] = "Invalid ZIP code format"

    if _blank(data.ira_account_number):
        errors["iraAccountNumber"] = "IRA account number is required"
    return errors


_ENTITY_NAME_MESSAGES = {
    AccountType.TRUST: "Trust name is required",
    AccountType.LLC: "LLC name is required",
    AccountType.CORPORATION: "Corporation name is required",
    AccountType.PLAN_401K: "401k plan name is required",
}


def _validate_identity(data: W9FormData) -> ValidationErrors:
    errors: ValidationErrors = {}

    if data.is_disregarded_llc:
        if _blank(data.personal_name):
            errors["name"] = "Name is required"
        if _blank(data.entity_name):
            errors["businessName"] = _ENTITY_NAME_MESSAGES[AccountType.LLC]
    elif data.is_entity_only or data.account_type == AccountType.LLC:
        if _blank(data.entity_name):
            errors["businessName"] = _ENTITY_NAME_MESSAGES[data.account_type]
    elif _blank(data.personal_name):
        errors["name"] = "Name is required"
    return errors


def _validate_tax_classification(data: W9FormData) -> ValidationErrors:
    errors: ValidationErrors = {}
    if data.tax_classification is None:
        errors["taxClassification"] = "Tax classification is required"
    elif data.tax_classification == TaxClassification.LLC and data.llc_classification is None:
        errors["llcClassification"] = "LLC tax classification is required"
    elif data.tax_classification == TaxClassification.OTHER and _blank(data.other_description):
        errors["otherDescription"] = "Please describe your entity type"
    return errors


def _check_ssn(errors: ValidationErrors, value: str) -> None:
    if _blank(value):
        errors["ssn"] = "Social Security Number is required"
    elif not is_valid_ssn(value):
        errors["ssn"] = "Invalid SSN format (XXX-XX-XXXX)"


def _check_ein(errors: ValidationErrors, key: str, value: str, required_message: str) -> None:
    if _blank(value):
        errors[key] = required_message
    elif not is_valid_ein(value):
        errors[key] = "Invalid EIN format (XX-XXXXXXX)"


def _validate_address_tin(data: W9FormData) -> ValidationErrors:
    errors: ValidationErrors = {}

    # IRA accounts use the custodian's address
    if not data.is_ira:
        if _blank(data.address):
            errors["address"] = "Address is required"
        if _blank(data.city):
            errors["city"] = "City is required"
        if _blank(data.state):
            errors["state"] = "State is required"
        elif data.state not in US_STATES:
            errors["state"] = "Invalid state code"
        if _blank(data.zip_code):
            errors["zipCode"] = "ZIP code is required"
        elif not is_valid_zip(data.zip_code):
            errors["zipCode"] = "Invalid ZIP code format"

    if data.is_ira:
        _check_ein(errors, "iraEin", data.ira_ein, "IRA EIN is required")
    elif data.is_disregarded_llc:
        _check_ssn(errors, data.ssn)
        _check_ein(errors, "ein", data.ein, "LLC EIN is required")
    elif data.is_standard_llc:
        _check_ein(errors, "ein", data.ein, "LLC EIN is required")
    elif data.account_type in (AccountType.CORPORATION, AccountType.PLAN_401K):
        _check_ein(errors, "ein", data.ein, "Employer Identification Number is required")
    elif data.tin_type == TINType.SSN:
        _check_ssn(errors, data.ssn)
    else:
        _check_ein(errors, "ein", data.ein, "Employer Identification Number is required")
    return errors


def _validate_signature(data: W9FormData) -> ValidationErrors:
    errors: ValidationErrors = {}
    if not data.signature or (isinstance(data.signature, str) and _blank(data.signature)):
        errors["signature"] = "Signature is required"
    if data.signature_date is None:
        errors["signatureDate"] = "Date is required"
    return errors


def _validate_llc_type(data: W9FormData) -> ValidationErrors:
    errors: ValidationErrors = {}
    if data.account_type == AccountType.LLC and data.llc_type is None:
        errors["llcType"] = "Please select your LLC type"
    return errors


_STEP_VALIDATORS = {
    WizardStep.ACCOUNT_TYPE: _validate_account_type,
    WizardStep.CUSTODIAN: _validate_custodian,
    WizardStep.IDENTITY: _validate_identity,
    WizardStep.TAX_CLASSIFICATION: _validate_tax_classification,
    WizardStep.ADDRESS_TIN: _validate_address_tin,
    WizardStep.SIGNATURE: _validate_signature,
    WizardStep.LLC_TYPE: _validate_llc_type,
}
