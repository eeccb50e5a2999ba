"""Data types shared across reconciliation stages."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Tier(str, Enum):
    """Importance of a specification."""
    PRIMARY = "Primary"
    SECONDARY = "Secondary"
    TERTIARY = "Tertiary"

    @classmethod
    def parse(cls, value: Any) -> "Tier | None":
        """Parse 'primary' / 'Secondary' / Tier.TERTIARY; None if unrecognized."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        for tier in cls:
            if tier.value.lower() == value.strip().lower():
                return tier
        return None


@dataclass
class SpecificationRecord:
    """A named specification with its option values."""
    name: str
    options: list[str] = field(default_factory=list)
    tier: Tier | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "options": list(self.options)}
        if self.tier is not None:
            data["tier"] = self.tier.value
        return data


@dataclass
class ConfigKeySet:
    """One source's extracted bundle: a config spec, up to 3 keys, up to 2 buyers."""
    config: SpecificationRecord | None = None
    keys: list[SpecificationRecord] = field(default_factory=list)
    buyers: list[SpecificationRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.config is None and not self.keys and not self.buyers

    def all_specs(self) -> list[SpecificationRecord]:
        """Config, keys and buyers that carry a name and at least one option."""
        specs = []
        if self.config is not None and self.config.name and self.config.options:
            specs.append(self.config)
        specs.extend(k for k in self.keys if k.name and k.options)
        specs.extend(b for b in self.buyers if b.name and b.options)
        return specs

    def to_dict(self) -> dict[str, Any]:
        return {
            "config": self.config.to_dict() if self.config else {"name": "", "options": []},
            "keys": [k.to_dict() for k in self.keys],
            "buyers": [b.to_dict() for b in self.buyers],
        }


@dataclass
class CommonSpecEntry:
    """A specification judged equivalent across two sources.

    ``spec_name`` and ``common_options`` always use the authoritative
    (source A) spelling.
    """
    spec_name: str
    category: str
    common_options: list[str] = field(default_factory=list)
    source_a_unique_options: list[str] = field(default_factory=list)
    source_b_unique_options: list[str] = field(default_factory=list)
    source_b_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "spec_name": self.spec_name,
            "category": self.category,
            "common_options": list(self.common_options),
            "source_a_unique_options": list(self.source_a_unique_options),
            "source_b_unique_options": list(self.source_b_unique_options),
            "source_b_name": self.source_b_name,
        }


@dataclass
class ComparisonResult:
    """Output of a cross-source comparison."""
    common: list[CommonSpecEntry] = field(default_factory=list)
    unique_a: list[SpecificationRecord] = field(default_factory=list)
    unique_b: list[SpecificationRecord] = field(default_factory=list)


@dataclass
class AuditResult:
    """Verdict for one audited specification."""
    specification: str
    status: str  # "correct" or "incorrect"
    explanation: str | None = None
    problematic_options: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditResult":
        problematic = data.get("problematic_options") or []
        return cls(
            specification=str(data.get("specification", "")),
            status=str(data.get("status", "correct")).lower(),
            explanation=data.get("explanation") or None,
            problematic_options=[str(p) for p in problematic if isinstance(p, str)],
        )


@dataclass
class Reconciliation:
    """End-to-end result: common specs plus the buyer specs derived from them."""
    common_specs: list[CommonSpecEntry] = field(default_factory=list)
    buyer_specs: list[SpecificationRecord] = field(default_factory=list)
