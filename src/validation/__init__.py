"""W-9 wizard validation module."""

from .w9_validator import (
    ValidationErrors,
    WizardStep,
    is_valid_ein,
    is_valid_ssn,
    is_valid_zip,
    require_valid,
    validate_form,
    validate_step,
    wizard_steps,
)

__all__ = [
    'ValidationErrors',
    'WizardStep',
    'is_valid_ein',
    'is_valid_ssn',
    'is_valid_zip',
    'require_valid',
    'validate_form',
    'validate_step',
    'wizard_steps',
]
