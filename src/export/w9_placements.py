"""
W-9 Field-Placement Registry.

Maps each logical field of the W-9 onto where it lands in a particular
template version. A field is either drawn at a page coordinate
(TextPlacement, for flat templates) or written into a named AcroForm widget
(FieldCandidates, for fillable templates). Coordinates are measured from the
top-left corner of the page; the engine flips them with the page height.

Registries are built from the YAML layout files in config/w9_layouts/.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from models.w9_form import TaxClassification


class LogicalField(str, Enum):
    """Single-value fields of the form."""
    LINE1_NAME = "line1_name"
    LINE2_NAME = "line2_name"
    LLC_CLASSIFICATION = "llc_classification"
    OTHER_DESCRIPTION = "other_description"
    EXEMPT_PAYEE_CODE = "exempt_payee_code"
    FATCA_CODE = "fatca_code"
    ADDRESS = "address"
    CITY_STATE_ZIP = "city_state_zip"
    ACCOUNT_NUMBERS = "account_numbers"
    SIGNATURE_DATE = "signature_date"


@dataclass(frozen=True)
class TextPlacement:
    """Text drawn at a fixed point; y is measured from the top of the page."""
    x: float
    y_from_top: float
    font_size: float = 10
    bold: bool = False

    @property
    def font_name(self) -> str:
        return "Helvetica-Bold" if self.bold else "Helvetica"


@dataclass(frozen=True)
class FieldCandidates:
    """AcroForm field names to try in order; the first one present wins."""
    names: Tuple[str, ...]


@dataclass(frozen=True)
class DigitRunPlacement:
    """
    A TIN drawn one digit per box.

    ``groups`` lists (x origin, digit count) per group; all digits share the
    same baseline and are spaced ``pitch`` points apart within a group.
    """
    y_from_top: float
    groups: Tuple[Tuple[float, int], ...]
    pitch: float = 12
    font_size: float = 10

    @property
    def digit_counts(self) -> Tuple[int, ...]:
        return tuple(count for _, count in self.groups)

    def digit_positions(self, group_index: int) -> List[Tuple[float, float]]:
        x, count = self.groups[group_index]
        return [(x + i * self.pitch, self.y_from_top) for i in range(count)]


@dataclass(frozen=True)
class FieldRunPlacement:
    """A TIN written into one named field per digit group."""
    groups: Tuple[FieldCandidates, ...]
    digits: Tuple[int, ...]

    @property
    def digit_counts(self) -> Tuple[int, ...]:
        return self.digits


@dataclass(frozen=True)
class SignatureBox:
    """Where the Part II signature goes. Always coordinate based."""
    text: TextPlacement
    image_x: float
    image_baseline_from_top: float
    max_width: float
    max_height: float
    placeholder: str = "[Signature on file]"


Placement = Union[TextPlacement, FieldCandidates]
TinPlacement = Union[DigitRunPlacement, FieldRunPlacement]

SSN_GROUPS = (3, 2, 4)
EIN_GROUPS = (2, 7)


@dataclass
class PlacementRegistry:
    """All placements for one template version."""
    version: str
    fields: Dict[LogicalField, Placement]
    checkboxes: Dict[TaxClassification, Placement]
    ssn: TinPlacement
    ein: TinPlacement
    signature: SignatureBox
    description: str = ""
    page_index: int = 0
    checkbox_mark: str = "X"
    checkbox_font_size: float = 12

    def __post_init__(self):
        if self.ssn.digit_counts != SSN_GROUPS:
            raise ValueError(f"SSN groups must be {SSN_GROUPS}, got {self.ssn.digit_counts}")
        if self.ein.digit_counts != EIN_GROUPS:
            raise ValueError(f"EIN groups must be {EIN_GROUPS}, got {self.ein.digit_counts}")

    def placement(self, logical_field: LogicalField) -> Optional[Placement]:
        return self.fields.get(logical_field)

    def checkbox(self, classification: TaxClassification) -> Optional[Placement]:
        return self.checkboxes.get(classification)

    @property
    def uses_named_fields(self) -> bool:
        """True when any placement targets an AcroForm field."""
        placements: List[Any] = list(self.fields.values()) + list(self.checkboxes.values())
        placements += [self.ssn, self.ein]
        return any(isinstance(p, (FieldCandidates, FieldRunPlacement)) for p in placements)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PlacementRegistry":
        """Build a registry from a parsed layout file."""
        try:
            fields = {
                LogicalField(name): _parse_placement(spec)
                for name, spec in (data.get("fields") or {}).items()
            }
            checkboxes = {
                TaxClassification(name): _parse_placement(spec)
                for name, spec in (data.get("checkboxes") or {}).items()
            }
            tin = data["tin"]
            signature = data["signature"]
        except (KeyError, ValueError, TypeError) as e:
            raise ValueError(f"Invalid W-9 layout: {e}") from e

        sig_text = signature["text"]
        sig_image = signature["image"]
        return cls(
            version=str(data["version"]),
            description=data.get("description", ""),
            page_index=int(data.get("page_index", 0)),
            checkbox_mark=data.get("checkbox_mark", "X"),
            checkbox_font_size=float(data.get("checkbox_font_size", 12)),
            fields=fields,
            checkboxes=checkboxes,
            ssn=_parse_tin(tin["ssn"]),
            ein=_parse_tin(tin["ein"]),
            signature=SignatureBox(
                text=_parse_text(sig_text),
                image_x=float(sig_image["x"]),
                image_baseline_from_top=float(sig_image["y"]),
                max_width=float(sig_image["max_width"]),
                max_height=float(sig_image["max_height"]),
                placeholder=signature.get("placeholder", "[Signature on file]"),
            ),
        )


def _parse_text(spec: Mapping[str, Any]) -> TextPlacement:
    return TextPlacement(
        x=float(spec["x"]),
        y_from_top=float(spec["y"]),
        font_size=float(spec.get("font_size", 10)),
        bold=bool(spec.get("bold", False)),
    )


def _parse_placement(spec: Mapping[str, Any]) -> Placement:
    if "names" in spec:
        return FieldCandidates(tuple(spec["names"]))
    return _parse_text(spec)


def _parse_tin(spec: Mapping[str, Any]) -> TinPlacement:
    if "fields" in spec:
        return FieldRunPlacement(
            groups=tuple(FieldCandidates(tuple(g["names"])) for g in spec["fields"]),
            digits=tuple(int(g["digits"]) for g in spec["fields"]),
        )
    return DigitRunPlacement(
        y_from_top=float(spec["y"]),
        groups=tuple((float(x), int(count)) for x, count in spec["groups"]),
        pitch=float(spec.get("pitch", 12)),
        font_size=float(spec.get("font_size", 10)),
    )


def resolve_field_name(candidates: FieldCandidates, available: Iterable[str]) -> Optional[str]:
    """
    Pick the first candidate name the template actually has.

    A candidate matches an available field when it equals the fully
    qualified name or its last dotted component. Returns the available
    (qualified) name, or None when no candidate is present.
    """
    names = list(available)
    exact = set(names)
    for candidate in candidates.names:
        if candidate in exact:
            return candidate
        for name in names:
            if name.rsplit(".", 1)[-1] == candidate:
                return name
    return None


_NON_DIGIT = re.compile(r"\D")


def split_tin_digits(value: str, groups: Sequence[int]) -> List[str]:
    """
    Split a TIN into its digit groups, ignoring dashes and whitespace.

    >>> split_tin_digits("123-45-6789", (3, 2, 4))
    ['123', '45', '6789']
    """
    digits = _NON_DIGIT.sub("", value or "")
    if len(digits) != sum(groups):
        raise ValueError(f"Expected {sum(groups)} digits, got {len(digits)}")
    runs = []
    start = 0
    for count in groups:
        runs.append(digits[start:start + count])
        start += count
    return runs
