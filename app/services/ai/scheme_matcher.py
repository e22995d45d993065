"""
Scheme Matcher
==============
Asks a language model which government schemes could offset a repair bill.

The matcher never raises for LLM trouble: a missing backend, a failed call,
or unparseable output all degrade to :data:`FALLBACK_SCHEMES`, with the same
return shape as a live answer.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Protocol

from app.domain.schemes import FALLBACK_SCHEMES, PlantProfile, Scheme
from app.services.ai.llm_backends import LLMBackend

logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")

SYSTEM_PROMPT = (
    "You are an expert on Indian government support schemes for MSMEs "
    "(central and state). Given a business profile and an operational issue, "
    "recommend the schemes most likely to fund the repair or upgrade."
)


class SchemeMatcher(Protocol):
    """Anything that can map (profile, issue) to a list of schemes."""

    def match_schemes(self, profile: PlantProfile, issue: str) -> list[Scheme]: ...


def build_user_prompt(profile: PlantProfile, issue: str) -> str:
    return (
        "Business profile:\n"
        f"- Name: {profile.name}\n"
        f"- State: {profile.state or 'Unknown'}\n"
        f"- Udyam tier: {profile.udyam_tier or 'Unknown'}\n"
        f"- Category: {profile.udyam_category or 'Unknown'}\n\n"
        f"Operational issue:\n{issue}\n\n"
        "Return ONLY a JSON array (max 5 items) of objects with keys: name, ministry, "
        "level (central|state), max_benefit (number, INR), benefit_type "
        "(subsidy|loan|grant|tax_benefit), description, eligibility_criteria (array of strings), "
        "priority_match (boolean)."
    )


def parse_schemes(text: str) -> list[Scheme]:
    """
    Extract the first JSON array from model output.

    Raises:
        ValueError: If no usable scheme list is present
    """
    match = _JSON_ARRAY.search(text or "")
    if not match:
        raise ValueError("no JSON array in model output")
    data = json.loads(match.group(0))
    if not isinstance(data, list):
        raise ValueError("model output is not a list")

    schemes: list[Scheme] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        try:
            schemes.append(Scheme.from_dict(item))
        except (TypeError, ValueError) as exc:
            logger.debug("Skipping malformed scheme entry: %s", exc)
    if not schemes:
        raise ValueError("model output contained no valid schemes")
    return schemes


class LLMSchemeMatcher:
    """Scheme matcher backed by an optional :class:`LLMBackend`."""

    def __init__(self, backend: LLMBackend | None = None, *, max_tokens: int = 2000):
        self.backend = backend
        self.max_tokens = max_tokens

    @property
    def is_live(self) -> bool:
        return self.backend is not None and self.backend.is_available

    def fallback(self) -> list[Scheme]:
        return list(FALLBACK_SCHEMES)

    def match_schemes(self, profile: PlantProfile, issue: str) -> list[Scheme]:
        if not self.is_live:
            logger.info("Scheme matcher offline; returning %d fallback schemes", len(FALLBACK_SCHEMES))
            return self.fallback()

        try:
            response = self.backend.generate(
                SYSTEM_PROMPT,
                build_user_prompt(profile, issue),
                max_tokens=self.max_tokens,
            )
            schemes = parse_schemes(response.text)
            logger.info("Scheme matcher returned %d schemes via %s (%.0f ms)",
                        len(schemes), self.backend.name, response.latency_ms)
            return schemes
        except Exception as exc:
            logger.warning("Scheme matching via %s failed, using fallback list: %s", self.backend.name, exc)
            return self.fallback()
