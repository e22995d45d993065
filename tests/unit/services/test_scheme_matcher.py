"""
Scheme matcher: LLM output parsing and the static fallback list.

No network calls: the backend is a local LLMBackend subclass.
"""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.domain.exceptions import ExternalServiceError
from app.domain.schemes import FALLBACK_SCHEMES, PlantProfile
from app.services.ai.llm_backends import AnthropicBackend, LLMBackend, LLMResponse, OpenAIBackend, create_backend
from app.services.ai.scheme_matcher import LLMSchemeMatcher, build_user_prompt, parse_schemes

PROFILE = PlantProfile(name="Pune Precision Works", state="Maharashtra", udyam_tier="Small")

SCHEMES_JSON = json.dumps(
    [
        {
            "name": "CGTMSE",
            "ministry": "Ministry of MSME",
            "level": "central",
            "maxBenefit": 5000000,
            "benefitType": "loan",
            "description": "Collateral-free credit guarantee",
            "eligibilityCriteria": ["Micro and small enterprises"],
            "priorityMatch": True,
        },
        {"ministry": "nameless entry is skipped"},
    ]
)


class ScriptedBackend(LLMBackend):
    def __init__(self, text: str = "", error: Exception | None = None, available: bool = True):
        self.text = text
        self.error = error
        self.available = available
        self.prompts: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def is_available(self) -> bool:
        return self.available

    def initialize(self) -> bool:
        return True

    def generate(self, system_prompt, user_prompt, *, max_tokens=1024, temperature=0.2):
        self.prompts.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return LLMResponse(text=self.text, model="scripted-1")


# ========================== parse_schemes ==================================


class TestParseSchemes:
    def test_extracts_array_from_chatty_output(self):
        schemes = parse_schemes(f"Here are the best matches:\n```json\n{SCHEMES_JSON}\n```\nGood luck!")
        assert [s.name for s in schemes] == ["CGTMSE"]
        assert schemes[0].max_benefit == 5_000_000
        assert schemes[0].benefit_type == "loan"
        assert schemes[0].eligibility_criteria == ("Micro and small enterprises",)
        assert schemes[0].priority_match

    @pytest.mark.parametrize("text", ["", "no schemes today", "[]", '[{"ministry": "x"}]', "[not json]"])
    def test_unusable_output(self, text):
        with pytest.raises(ValueError):
            parse_schemes(text)


# ========================== LLMSchemeMatcher ===============================


class TestLLMSchemeMatcher:
    def test_without_backend_returns_fallback(self):
        matcher = LLMSchemeMatcher(None)
        assert not matcher.is_live
        assert [s.name for s in matcher.match_schemes(PROFILE, "issue")] == [s.name for s in FALLBACK_SCHEMES]

    def test_unavailable_backend_is_not_called(self):
        backend = ScriptedBackend(SCHEMES_JSON, available=False)
        assert LLMSchemeMatcher(backend).match_schemes(PROFILE, "issue") == list(FALLBACK_SCHEMES)
        assert backend.prompts == []

    def test_live_backend(self):
        backend = ScriptedBackend(SCHEMES_JSON)
        schemes = LLMSchemeMatcher(backend).match_schemes(PROFILE, "Spindle seized")
        assert [s.name for s in schemes] == ["CGTMSE"]
        _, user_prompt = backend.prompts[0]
        assert "Maharashtra" in user_prompt
        assert "Spindle seized" in user_prompt

    @pytest.mark.parametrize(
        "backend",
        [ScriptedBackend(error=TimeoutError("slow")), ScriptedBackend("I cannot help with that.")],
    )
    def test_backend_trouble_degrades_to_fallback(self, backend):
        assert LLMSchemeMatcher(backend).match_schemes(PROFILE, "issue") == list(FALLBACK_SCHEMES)


def test_prompt_marks_unknown_profile_fields():
    prompt = build_user_prompt(PlantProfile(name="Shed 4"), "Pump failure")
    assert "- State: Unknown" in prompt
    assert "Pump failure" in prompt


@pytest.mark.parametrize("provider", ["none", "", "carrier-pigeon"])
def test_create_backend_without_provider(provider):
    assert create_backend(provider) is None


# ========================== Hosted backends ================================


class TestHostedBackends:
    def test_missing_key_is_unavailable(self):
        backend = AnthropicBackend(api_key="")
        assert backend.initialize() is False
        assert not backend.is_available
        assert create_backend("anthropic", api_key="") is None

    def test_uninitialised_generate_raises(self):
        with pytest.raises(ExternalServiceError):
            OpenAIBackend(api_key="sk-test").generate("system", "user")

    def test_anthropic_reply_is_unwrapped(self):
        backend = AnthropicBackend(api_key="sk-test")
        backend._client = MagicMock()
        backend._client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(text=SCHEMES_JSON)],
            model="claude-test",
            usage=SimpleNamespace(input_tokens=12, output_tokens=34),
        )

        response = backend.generate("system", "user", max_tokens=50)

        assert response.text == SCHEMES_JSON
        assert response.usage == {"input_tokens": 12, "output_tokens": 34}
        assert backend._client.messages.create.call_args.kwargs["system"] == "system"

    def test_sdk_failure_becomes_external_error(self):
        backend = OpenAIBackend(api_key="sk-test")
        backend._client = MagicMock()
        backend._client.chat.completions.create.side_effect = ConnectionError("reset")

        with pytest.raises(ExternalServiceError) as excinfo:
            backend.generate("system", "user")
        assert excinfo.value.http_status == 502
        assert excinfo.value.detail["error"] == "reset"
