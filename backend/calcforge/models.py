"""
Calculator Data Models
Specification, field and saved-calculator structures shared by the
generator, the evaluator and the storage layer.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from calcforge.errors import SpecValidationError


FIELD_TYPES = ("number", "text", "select")
DEFAULT_CTA = "Calculate"


class CalculatorKind(str, Enum):
    """Known calculator kinds the evaluator has dedicated handlers for."""

    LOAN = "loan"
    BMI = "bmi"
    TIP = "tip"
    ROI = "roi"
    MORTGAGE = "mortgage"
    CALORIE = "calorie"
    GENERIC = "generic"

    @classmethod
    def parse(cls, value: Any) -> Optional["CalculatorKind"]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @classmethod
    def from_title(cls, title: str) -> "CalculatorKind":
        """
        Infer a kind from a free-text title.

        Only used when a generated document carries no usable ``kind``;
        the evaluator itself never looks at titles.
        """
        lowered = (title or "").lower()
        for kind, keywords in _TITLE_KEYWORDS:
            if any(k in lowered for k in keywords):
                return kind
        return cls.GENERIC


_TITLE_KEYWORDS: Tuple[Tuple[CalculatorKind, Tuple[str, ...]], ...] = (
    (CalculatorKind.LOAN, ("loan", "payment")),
    (CalculatorKind.BMI, ("bmi", "body mass")),
    (CalculatorKind.TIP, ("tip",)),
    (CalculatorKind.ROI, ("roi", "return")),
    (CalculatorKind.MORTGAGE, ("mortgage", "affordability")),
    (CalculatorKind.CALORIE, ("calorie", "bmr")),
)


@dataclass(frozen=True)
class CalculatorField:
    """One labeled input slot of a calculator."""

    id: str
    label: str
    type: str = "number"
    placeholder: str = ""
    options: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "placeholder": self.placeholder,
        }
        if self.type == "select":
            data["options"] = list(self.options)
        return data

    @classmethod
    def from_dict(cls, raw: Any, index: int) -> "CalculatorField":
        """Sanitize one field entry, filling defaults for missing keys."""
        if not isinstance(raw, dict):
            raise SpecValidationError(f"Field {index + 1} is not an object")

        field_id = _text(raw.get("id")) or f"field_{index}"
        label = _text(raw.get("label")) or f"Field {index + 1}"
        field_type = raw.get("type")
        if field_type not in FIELD_TYPES:
            field_type = "number"

        options: Tuple[str, ...] = ()
        if field_type == "select":
            raw_options = raw.get("options")
            if isinstance(raw_options, list):
                options = tuple(str(o) for o in raw_options if _text(o))
            if not options:
                # nothing to choose from
                field_type = "text"

        placeholder = raw.get("placeholder")
        return cls(
            id=field_id,
            label=label,
            type=field_type,
            placeholder="" if placeholder is None else str(placeholder),
            options=options,
        )


@dataclass(frozen=True)
class CalculatorSpec:
    """
    Declarative description of a generated calculator.

    Instances are immutable; use ``dataclasses.replace`` (or
    :meth:`with_changes`) to derive an edited copy.
    """

    title: str
    fields: Tuple[CalculatorField, ...]
    formula: Optional[str] = None
    cta: str = DEFAULT_CTA
    description: Optional[str] = None
    kind: CalculatorKind = CalculatorKind.GENERIC

    def __post_init__(self):
        seen = set()
        for f in self.fields:
            if f.id in seen:
                raise SpecValidationError(f"Duplicate field id: {f.id}")
            seen.add(f.id)

    @property
    def field_ids(self) -> List[str]:
        return [f.id for f in self.fields]

    def with_changes(self, **changes: Any) -> "CalculatorSpec":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "title": self.title,
            "kind": self.kind.value,
            "fields": [f.to_dict() for f in self.fields],
            "cta": self.cta,
        }
        if self.formula:
            data["formula"] = self.formula
        if self.description:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, raw: Any) -> "CalculatorSpec":
        """
        Validate and sanitize a specification document.

        Raises SpecValidationError when ``title`` is missing or ``fields``
        is not a list, or when two fields share an id. Missing field ids,
        labels and placeholders are filled in, unknown field types become
        ``number`` and a missing ``cta`` becomes ``"Calculate"``.
        """
        if not isinstance(raw, dict):
            raise SpecValidationError("Specification must be a JSON object")

        title = _text(raw.get("title"))
        if not title:
            raise SpecValidationError("Specification has no title")
        raw_fields = raw.get("fields")
        if not isinstance(raw_fields, list):
            raise SpecValidationError("Specification fields must be a list")

        fields = tuple(CalculatorField.from_dict(f, i) for i, f in enumerate(raw_fields))
        kind = CalculatorKind.parse(raw.get("kind")) or CalculatorKind.from_title(title)

        return cls(
            title=title,
            fields=fields,
            formula=_text(raw.get("formula")) or None,
            cta=_text(raw.get("cta")) or DEFAULT_CTA,
            description=_text(raw.get("description")) or None,
            kind=kind,
        )


@dataclass
class AuthorProfile:
    """Public summary of a calculator's owner."""

    id: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass
class Calculator:
    """A saved calculator record as stored by the repository."""

    id: str
    user_id: str
    title: str
    prompt: str
    spec: CalculatorSpec
    description: Optional[str] = None
    is_public: bool = False
    is_template: bool = False
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    views_count: int = 0
    likes_count: int = 0
    forks_count: int = 0
    created_at: str = ""
    updated_at: str = ""
    profile: Optional[AuthorProfile] = None
    is_liked: bool = False
    is_forked: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "prompt": self.prompt,
            "spec": self.spec.to_dict(),
            "is_public": self.is_public,
            "is_template": self.is_template,
            "category": self.category,
            "tags": list(self.tags),
            "views_count": self.views_count,
            "likes_count": self.likes_count,
            "forks_count": self.forks_count,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "profile": self.profile.to_dict() if self.profile else None,
            "is_liked": self.is_liked,
            "is_forked": self.is_forked,
        }


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
