"""
Government Scheme Domain Objects
=================================
Shapes exchanged with the scheme matcher and returned to callers once the
cost threshold fires.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from app.domain.cost_analysis import CostAnalysis


@dataclass(frozen=True)
class Scheme:
    """One subsidy / loan scheme a plant may be eligible for."""

    name: str
    ministry: str
    level: str
    max_benefit: float
    benefit_type: str
    description: str
    eligibility_criteria: tuple[str, ...] = ()
    priority_match: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ministry": self.ministry,
            "level": self.level,
            "max_benefit": self.max_benefit,
            "benefit_type": self.benefit_type,
            "description": self.description,
            "eligibility_criteria": list(self.eligibility_criteria),
            "priority_match": self.priority_match,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Scheme":
        """
        Accepts both snake_case and camelCase keys.

        Raises:
            ValueError: If the entry has no name or a non-numeric benefit
        """
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValueError("scheme has no name")
        raw_benefit = data.get("max_benefit", data.get("maxBenefit", 0)) or 0
        criteria = data.get("eligibility_criteria", data.get("eligibilityCriteria")) or []
        if isinstance(criteria, str):
            criteria = [criteria]
        return cls(
            name=name,
            ministry=str(data.get("ministry") or ""),
            level=str(data.get("level") or ""),
            max_benefit=float(raw_benefit),
            benefit_type=str(data.get("benefit_type", data.get("benefitType")) or ""),
            description=str(data.get("description") or ""),
            eligibility_criteria=tuple(str(c) for c in criteria),
            priority_match=bool(data.get("priority_match", data.get("priorityMatch", False))),
        )


@dataclass(frozen=True)
class PlantProfile:
    """Business profile of the plant, as the scheme matcher sees it."""

    name: str
    state: str | None = None
    udyam_tier: str | None = None
    udyam_category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state,
            "udyam_tier": self.udyam_tier,
            "udyam_category": self.udyam_category,
        }


@dataclass(frozen=True)
class SchemeResult:
    """Outcome of one successful cost-threshold trigger."""

    cost_analysis: CostAnalysis
    schemes: tuple[Scheme, ...]
    triggered_at: datetime
    total_potential_benefit: float = field(init=False)

    def __post_init__(self):
        object.__setattr__(
            self, "total_potential_benefit", float(sum(s.max_benefit for s in self.schemes))
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "cost_analysis": self.cost_analysis.to_dict(),
            "schemes": [s.to_dict() for s in self.schemes],
            "total_potential_benefit": self.total_potential_benefit,
            "triggered_at": self.triggered_at.isoformat(),
        }


FALLBACK_SCHEMES: tuple[Scheme, ...] = (
    Scheme(
        name="CLCSS",
        ministry="Ministry of MSME",
        level="central",
        max_benefit=1_500_000,
        benefit_type="subsidy",
        description="15% capital subsidy for technology upgradation in manufacturing sector.",
        eligibility_criteria=("Udyam Registered", "Manufacturing sector", "Technology upgrade"),
        priority_match=True,
    ),
    Scheme(
        name="PMEGP",
        ministry="Ministry of MSME",
        level="central",
        max_benefit=2_500_000,
        benefit_type="subsidy",
        description="Credit-linked subsidy for new micro-enterprises.",
        eligibility_criteria=("New units", "Non-farm sector"),
        priority_match=False,
    ),
)
