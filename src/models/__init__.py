from .w9_form import (
    AccountType,
    CUSTODIANS,
    Custodian,
    CustodianInfo,
    LLCClassification,
    LLCType,
    SignatureType,
    TAX_CLASSIFICATION_LABELS,
    TaxClassification,
    TINType,
    US_STATES,
    W9FormData,
)

__all__ = [
    'AccountType',
    'CUSTODIANS',
    'Custodian',
    'CustodianInfo',
    'LLCClassification',
    'LLCType',
    'SignatureType',
    'TAX_CLASSIFICATION_LABELS',
    'TaxClassification',
    'TINType',
    'US_STATES',
    'W9FormData',
]
