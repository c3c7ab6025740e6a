"""
W-9 record resolution.

Turns a W9FormData record into the concrete strings that go on the form:
which name lands on line 1 and line 2, whose address is printed, and which
TIN digits fill the SSN and EIN boxes. Resolution happens before the template
is touched so that an ambiguous record never produces a partial PDF.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from export.w9_errors import RecordResolutionError
from export.w9_placements import EIN_GROUPS, SSN_GROUPS, split_tin_digits
from models.w9_form import (
    AccountType,
    LLCClassification,
    SignatureType,
    TaxClassification,
    TINType,
    W9FormData,
)

logger = logging.getLogger(__name__)


@dataclass
class ResolvedRecord:
    """Everything the fill engine stamps, already decided."""
    line1_name: str
    line2_name: str
    address: str
    city_state_zip: str
    account_numbers: str
    ssn_groups: Optional[List[str]]
    ein_groups: Optional[List[str]]
    tax_classification: Optional[TaxClassification]
    llc_letter: str
    other_description: str
    exempt_payee_code: str
    fatca_code: str
    signature: object
    signature_type: SignatureType
    signature_date: Optional[date]

    @property
    def tin_slots(self) -> List[str]:
        slots = []
        if self.ssn_groups:
            slots.append("ssn")
        if self.ein_groups:
            slots.append("ein")
        return slots


def join_city_state_zip(city: str, state: str, zip_code: str) -> str:
    """Line 6 text: non-empty parts joined with ', '."""
    return ", ".join(part.strip() for part in (city, state, zip_code) if part and part.strip())


def resolve_names(data: W9FormData) -> tuple:
    """
    Line 1 and line 2 text for the record's account type.

    Raises:
        RecordResolutionError: account type missing, or an IRA without a
            resolvable custodian
    """
    account_type = data.account_type
    personal = data.personal_name.strip()
    entity = data.entity_name.strip()

    if account_type is None:
        raise RecordResolutionError("Account type is not set")

    if account_type == AccountType.IRA:
        custodian = data.custodian_info
        if custodian is None or not custodian.name:
            raise RecordResolutionError(
                "IRA record has no custodian", {"custodian": data.custodian}
            )
        return custodian.name, f"FBO {personal} IRA"

    if account_type == AccountType.LLC:
        if data.llc_type is None:
            raise RecordResolutionError("LLC record has no LLC type")
        if data.is_disregarded_llc:
            return personal, entity
        return entity, ""

    if data.is_entity_only:
        return entity, ""

    # Individual
    return personal, entity


def _tin_digits(value: str, groups, label: str) -> List[str]:
    try:
        return split_tin_digits(value, groups)
    except ValueError as e:
        raise RecordResolutionError(f"{label} must have exactly 9 digits", {"tin": label}) from e


def resolve_tin(data: W9FormData) -> tuple:
    """
    SSN and EIN digit groups for the record; a slot is None when unused.

    Exactly one source is selected by account type:
    IRA -> IRA EIN; disregarded LLC -> owner SSN and LLC EIN; standard LLC,
    corporation and 401k -> EIN; otherwise ``tin_type`` picks SSN or EIN.
    """
    if data.is_ira:
        return None, _tin_digits(data.ira_ein, EIN_GROUPS, "IRA EIN")
    if data.is_disregarded_llc:
        return (
            _tin_digits(data.ssn, SSN_GROUPS, "SSN"),
            _tin_digits(data.ein, EIN_GROUPS, "EIN"),
        )
    if data.is_standard_llc or data.account_type in (AccountType.CORPORATION, AccountType.PLAN_401K):
        return None, _tin_digits(data.ein, EIN_GROUPS, "EIN")
    if data.tin_type == TINType.EIN:
        return None, _tin_digits(data.ein, EIN_GROUPS, "EIN")
    return _tin_digits(data.ssn, SSN_GROUPS, "SSN"), None


def resolve_record(data: W9FormData) -> ResolvedRecord:
    """
    Decide every stamped value for ``data``.

    Raises:
        RecordResolutionError: the record does not resolve to exactly one
            name rule and one TIN source
    """
    line1, line2 = resolve_names(data)
    ssn_groups, ein_groups = resolve_tin(data)

    if data.is_ira:
        custodian = data.custodian_info
        address = custodian.address
        city_state_zip = join_city_state_zip(custodian.city, custodian.state, custodian.zip_code)
        account_numbers = data.ira_account_number.strip() or data.account_numbers.strip()
    else:
        address = data.address.strip()
        city_state_zip = join_city_state_zip(data.city, data.state, data.zip_code)
        account_numbers = data.account_numbers.strip()

    classification = data.tax_classification
    llc_letter = ""
    if classification == TaxClassification.LLC and data.llc_classification is not None:
        llc_letter = LLCClassification(data.llc_classification).value.upper()
    other_description = ""
    if classification == TaxClassification.OTHER:
        other_description = data.other_description.strip()

    resolved = ResolvedRecord(
        line1_name=line1,
        line2_name=line2,
        address=address,
        city_state_zip=city_state_zip,
        account_numbers=account_numbers,
        ssn_groups=ssn_groups,
        ein_groups=ein_groups,
        tax_classification=classification,
        llc_letter=llc_letter,
        other_description=other_description,
        exempt_payee_code=data.exempt_payee_code.strip(),
        fatca_code=data.fatca_exemption_code.strip(),
        signature=data.signature,
        signature_type=data.signature_type,
        signature_date=data.signature_date,
    )
    logger.debug(
        f"Resolved W-9 record: account_type={data.account_type.value}, "
        f"tin_slots={resolved.tin_slots}"
    )
    return resolved
