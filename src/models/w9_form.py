"""
Form W-9 - Request for Taxpayer Identification Number and Certification

Data model for a W-9 submission collected by the step wizard.

The wizard builds the record incrementally, so every field has an empty
default and the validator decides what is required for the selected account
type. On the wire (JSON from the browser widget) fields use camelCase names;
in Python they are snake_case.

Account types and how they map onto the form:
- individual: line 1 is the person, line 2 the optional business name
- ira: line 1 is the custodian, line 2 is "FBO {name} IRA", IRA EIN
- trust / corporation / 401k: entity name on line 1, EIN
- llc: disregarded (owner on line 1, SSN + EIN) or standard (entity, EIN)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class AccountType(str, Enum):
    """Type of account the W-9 is collected for."""
    INDIVIDUAL = "individual"
    IRA = "ira"
    TRUST = "trust"
    LLC = "llc"
    CORPORATION = "corporation"
    PLAN_401K = "401k"


class LLCType(str, Enum):
    """How an LLC account is organized for federal tax purposes."""
    DISREGARDED = "disregarded"  # Single-member, taxed as its owner
    C_CORP = "c-corp"
    S_CORP = "s-corp"
    PARTNERSHIP = "partnership"


class TaxClassification(str, Enum):
    """Line 3a federal tax classification checkboxes."""
    INDIVIDUAL = "individual"
    C_CORPORATION = "cCorporation"
    S_CORPORATION = "sCorporation"
    PARTNERSHIP = "partnership"
    TRUST_ESTATE = "trustEstate"
    LLC = "llc"
    OTHER = "other"


class LLCClassification(str, Enum):
    """Letter entered after the LLC checkbox (C, S or P)."""
    C = "C"
    S = "S"
    P = "P"


class Custodian(str, Enum):
    """IRA custodians the widget knows about."""
    EQUITY_TRUST = "equity-trust"
    IRA_INNOVATIONS = "ira-innovations"
    IRA_FINANCIAL = "ira-financial"
    OTHER = "other"


class TINType(str, Enum):
    """Which identification number the taxpayer enters."""
    SSN = "ssn"
    EIN = "ein"


class SignatureType(str, Enum):
    """Drawn signatures are raster images, typed signatures are text."""
    DRAWN = "drawn"
    TYPED = "typed"


@dataclass(frozen=True)
class CustodianInfo:
    """Canonical name and mailing address of an IRA custodian."""
    name: str
    address: str
    city: str
    state: str
    zip_code: str


CUSTODIANS: Dict[Custodian, CustodianInfo] = {
    Custodian.EQUITY_TRUST: CustodianInfo(
        name="Equity Trust Company",
        address="1 Equity Way",
        city="Westlake",
        state="OH",
        zip_code="44145",
    ),
    Custodian.IRA_INNOVATIONS: CustodianInfo(
        name="IRA Innovations",
        address="4905 Pine Cone Dr Ste 2",
        city="Durham",
        state="NC",
        zip_code="27707",
    ),
    Custodian.IRA_FINANCIAL: CustodianInfo(
        name="IRA Financial Trust Company",
        address="1691 Michigan Ave Ste 305",
        city="Miami Beach",
        state="FL",
        zip_code="33139",
    ),
}

# 50 states plus DC
US_STATES = (
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
    "DC",
)

TAX_CLASSIFICATION_LABELS: Dict[TaxClassification, str] = {
    TaxClassification.INDIVIDUAL: "Individual/sole proprietor or single-member LLC",
    TaxClassification.C_CORPORATION: "C Corporation",
    TaxClassification.S_CORPORATION: "S Corporation",
    TaxClassification.PARTNERSHIP: "Partnership",
    TaxClassification.TRUST_ESTATE: "Trust/estate",
    TaxClassification.LLC: "Limited liability company (LLC)",
    TaxClassification.OTHER: "Other",
}

_US_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


class W9FormData(BaseModel):
    """
    A W-9 submission as collected by the wizard.

    Handed whole to the fill engine once complete; the engine keeps no copy.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        use_enum_values=False,
    )

    # Step 0: account type
    account_type: Optional[AccountType] = Field(default=None, description="Account type")

    # IRA accounts
    custodian: Optional[Custodian] = Field(default=None, description="IRA custodian")
    custodian_name: str = Field(default="", description="Custodian name when 'other'")
    custodian_address: str = Field(default="", description="Custodian street address when 'other'")
    custodian_city: str = Field(default="")
    custodian_state: str = Field(default="")
    custodian_zip: str = Field(default="")
    ira_account_number: str = Field(default="", description="IRA account number (line 7)")
    ira_ein: str = Field(default="", description="EIN of the IRA itself")

    # LLC accounts
    llc_type: Optional[LLCType] = Field(default=None, description="LLC organization type")

    # Identity (lines 1 and 2)
    personal_name: str = Field(default="", alias="name", description="Individual's name")
    entity_name: str = Field(default="", alias="businessName", description="Business/entity name")

    # Line 3a
    tax_classification: Optional[TaxClassification] = Field(default=None)
    llc_classification: Optional[LLCClassification] = Field(default=None)
    other_description: str = Field(default="")

    # Line 4 exemptions
    exempt_payee_code: str = Field(default="", max_length=4)
    fatca_exemption_code: str = Field(default="", max_length=4)

    # Lines 5-6 address
    address: str = Field(default="")
    city: str = Field(default="")
    state: str = Field(default="")
    zip_code: str = Field(default="")

    # Optional requester block and line 7
    requester_name_address: str = Field(default="")
    account_numbers: str = Field(default="")

    # Part I TIN
    tin_type: TINType = Field(default=TINType.SSN)
    ssn: str = Field(default="")
    ein: str = Field(default="")

    # Part II certification
    signature: Union[bytes, str] = Field(
        default="",
        description="Image bytes / base64 data URL when drawn, text when typed",
    )
    signature_type: SignatureType = Field(default=SignatureType.DRAWN)
    signature_date: Optional[date] = Field(default=None)

    @field_validator(
        "account_type", "custodian", "llc_type", "tax_classification",
        "llc_classification", mode="before",
    )
    @classmethod
    def _blank_enum_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("llc_classification", mode="before")
    @classmethod
    def _upper_llc_letter(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("state", "custodian_state", mode="before")
    @classmethod
    def _upper_state(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("signature_date", mode="before")
    @classmethod
    def _parse_signature_date(cls, v):
        """Accept ISO dates and the en-US M/D/YYYY format the widget sends."""
        if v is None or isinstance(v, date):
            return v.date() if isinstance(v, datetime) else v
        if isinstance(v, str):
            text = v.strip()
            if not text:
                return None
            match = _US_DATE.match(text)
            if match:
                month, day, year = (int(g) for g in match.groups())
                return date(year, month, day)
        return v

    # ------------------------------------------------------------------
    # Account type helpers
    # ------------------------------------------------------------------

    @property
    def is_ira(self) -> bool:
        return self.account_type == AccountType.IRA

    @property
    def is_disregarded_llc(self) -> bool:
        return self.account_type == AccountType.LLC and self.llc_type == LLCType.DISREGARDED

    @property
    def is_standard_llc(self) -> bool:
        return (
            self.account_type == AccountType.LLC
            and self.llc_type is not None
            and self.llc_type != LLCType.DISREGARDED
        )

    @property
    def is_entity_only(self) -> bool:
        """Trusts, corporations, 401k plans and standard LLCs file under the entity name."""
        return self.account_type in (
            AccountType.TRUST, AccountType.CORPORATION, AccountType.PLAN_401K
        ) or self.is_standard_llc

    @property
    def display_name(self) -> str:
        """Name used for filenames and delivery metadata."""
        return (self.personal_name or self.entity_name).strip()

    @property
    def custodian_info(self) -> Optional[CustodianInfo]:
        """Canonical custodian record, or the free-text one for 'other'."""
        if self.custodian is None:
            return None
        if self.custodian == Custodian.OTHER:
            return CustodianInfo(
                name=self.custodian_name.strip(),
                address=self.custodian_address.strip(),
                city=self.custodian_city.strip(),
                state=self.custodian_state.strip(),
                zip_code=self.custodian_zip.strip(),
            )
        return CUSTODIANS[self.custodian]

    def to_wire(self) -> Dict[str, object]:
        """Serialize with the camelCase names the widget uses."""
        data = self.model_dump(by_alias=True, mode="json", exclude={"signature"})
        data["signature"] = self.signature if isinstance(self.signature, str) else ""
        return data
