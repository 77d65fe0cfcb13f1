# file: calcforge/agent/spec_agent.py
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import openai
import requests
from openai import OpenAI

from calcforge.agent.fallbacks import fallback_spec
from calcforge.config import Settings
from calcforge.errors import SpecValidationError
from calcforge.models import CalculatorSpec
from calcforge.utils.logging_setup import log_generation_event

logger = logging.getLogger(__name__)


_DEFAULT_PROMPT = """\
You are a calculator specification generator. Given a user's description, create a JSON specification for an interactive calculator.

IMPORTANT: Always respond with ONLY valid JSON, no explanations, no markdown formatting.

The JSON must have this exact structure:
{
  "title": "Calculator Name",
  "kind": "generic",
  "description": "One sentence on what the calculator does",
  "fields": [
    {
      "id": "field_name",
      "label": "Field Label",
      "type": "number",
      "placeholder": "Example value"
    }
  ],
  "formula": "expression using field ids",
  "cta": "Calculate Button Text"
}

Rules:
1. Use descriptive field IDs (lowercase_with_underscores)
2. Field types: "number" (default), "text", or "select"; a "select" field also needs "options": ["A", "B"]
3. Include 2-4 relevant fields
4. Always include a formula. Formulas may use field ids, numbers, + - * / % and ** (power),
   parentheses, the constants pi and e, and the functions
   PMT(rate, periods, present_value), sqrt, abs, min, max, round, pow, exp, log, log10, floor, ceil
5. "kind" is one of: loan, bmi, tip, roi, mortgage, calorie, generic. Use a specific kind only
   when the calculator is exactly that and use these field ids for it:
   - loan: amount, rate (annual %), term (years)
   - bmi: weight (kg), height (cm)
   - tip: bill_amount, tip_percentage
   - roi: investment, return_value
   - mortgage: income, expenses, down_payment, rate, term
   - calorie: weight (kg), height (cm), age, optional gender (select: male/female), optional activity_level
   Everything else is "generic".
6. Make titles and CTAs specific to the calculation type
7. Use realistic placeholder values

Examples:
- "tax calculator" -> {"title":"Tax Calculator","kind":"generic","fields":[{"id":"amount","label":"Amount","type":"number","placeholder":"1000"},{"id":"tax_rate","label":"Tax Rate (%)","type":"number","placeholder":"15"}],"formula":"amount * (tax_rate / 100)","cta":"Calculate Tax"}
- "BMI calculator" -> {"title":"BMI Calculator","kind":"bmi","fields":[{"id":"weight","label":"Weight (kg)","type":"number","placeholder":"70"},{"id":"height","label":"Height (cm)","type":"number","placeholder":"175"}],"formula":"weight / ((height/100) * (height/100))","cta":"Calculate BMI"}
- "tip calculator" -> {"title":"Tip Calculator","kind":"tip","fields":[{"id":"bill_amount","label":"Bill Amount","type":"number","placeholder":"50.00"},{"id":"tip_percentage","label":"Tip (%)","type":"number","placeholder":"18"}],"formula":"bill_amount * (tip_percentage / 100)","cta":"Calculate Tip"}
"""

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```$")


class ModelResponseError(Exception):
    """The remote model could not produce a usable specification."""

    def __init__(self, reason: str, message: str = ""):
        self.reason = reason
        super().__init__(message or reason)


@dataclass(frozen=True)
class GenerationResult:
    spec: CalculatorSpec
    source: str  # "model" or "fallback"
    reason: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.source == "fallback"


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) block."""
    content = (text or "").strip()
    if content.startswith("```"):
        content = _FENCE_END.sub("", _FENCE_START.sub("", content, count=1))
    return content.strip()


def parse_spec_response(text: str) -> CalculatorSpec:
    content = strip_code_fences(text)
    try:
        raw = json.loads(content)
    except json.JSONDecodeError as e:
        raise ModelResponseError("invalid_json", f"Invalid JSON response from AI model: {e}")
    try:
        return CalculatorSpec.from_dict(raw)
    except SpecValidationError as e:
        raise ModelResponseError("invalid_spec", str(e))


class SpecGenerator:
    """
    Turns a free-text prompt into a CalculatorSpec.

    Features
    --------
    - Gemini (REST, key as query parameter) or any OpenAI-compatible endpoint.
    - Exactly one outbound request per generation, none without a credential.
    - Code-fence stripping, JSON parsing and validation of the reply.
    - Never raises: every failure degrades to the keyword fallback table.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        instructions: Optional[str] = None,
        client: Optional[OpenAI] = None,
    ):
        self.settings = settings or Settings.from_env()
        self.instructions = (instructions or "").strip() or _DEFAULT_PROMPT
        self._client = client

    # -------- public API --------

    @property
    def provider(self) -> str:
        return self.settings.provider

    @property
    def has_api_key(self) -> bool:
        return bool(self.settings.api_key)

    def generate(self, prompt: str) -> GenerationResult:
        """
        Generate a specification for ``prompt``.

        Returns
        -------
        GenerationResult : the spec plus where it came from ("model" or
        "fallback") and, for fallbacks, a short reason code.
        """
        if not self.has_api_key:
            return self._fallback(prompt, "no_credential")

        try:
            text = self._request_text(prompt)
            spec = parse_spec_response(text)
        except ModelResponseError as e:
            logger.warning("Spec generation failed (%s): %s", e.reason, e)
            return self._fallback(prompt, e.reason)
        except Exception as e:
            logger.exception("Unexpected spec generation error: %s", e)
            return self._fallback(prompt, "unexpected_error")

        log_generation_event(logger, prompt, self.provider, "model", spec)
        return GenerationResult(spec=spec, source="model")

    def generate_spec(self, prompt: str) -> CalculatorSpec:
        return self.generate(prompt).spec

    def check_connection(self) -> bool:
        """True when the configured provider answers a lightweight request."""
        if not self.has_api_key:
            return False
        try:
            if self.provider == "gemini":
                response = requests.get(
                    f"{self.settings.gemini_api_url}/models",
                    params={"key": self.settings.api_key},
                    timeout=self.settings.timeout,
                )
                return response.ok
            self._openai_client().models.list()
            return True
        except (requests.RequestException, openai.OpenAIError) as e:
            logger.warning("Connection test for %s failed: %s", self.provider, e)
            return False

    def status(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.settings.model,
            "has_api_key": self.has_api_key,
        }

    # -------- internals --------

    def _fallback(self, prompt: str, reason: str) -> GenerationResult:
        spec = fallback_spec(prompt)
        log_generation_event(logger, prompt, self.provider, "fallback", spec, reason)
        return GenerationResult(spec=spec, source="fallback", reason=reason)

    def _request_text(self, prompt: str) -> str:
        if self.provider == "gemini":
            text = self._ask_gemini(prompt)
        else:
            text = self._ask_openai(prompt)
        if not text or not text.strip():
            raise ModelResponseError("empty_response", "No response content from AI model")
        return text

    def _ask_gemini(self, prompt: str) -> str:
        s = self.settings
        body = {
            "contents": [{
                "parts": [{
                    "text": f"{self.instructions}\n\nGenerate a calculator specification for: {prompt}"
                }]
            }],
            "generationConfig": {
                "temperature": s.temperature,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": s.max_tokens,
            },
        }
        try:
            response = requests.post(
                f"{s.gemini_api_url}/models/{s.gemini_model}:generateContent",
                params={"key": s.gemini_api_key},
                json=body,
                timeout=s.timeout,
            )
        except requests.RequestException as e:
            raise ModelResponseError("transport_error", str(e))

        if not response.ok:
            raise ModelResponseError(
                "http_error",
                f"Gemini API error: {response.status_code} {response.reason} - {response.text[:200]}",
            )

        try:
            data = response.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise ModelResponseError("empty_response", "No response content from AI model")

    def _openai_client(self) -> OpenAI:
        if self._client is None:
            s = self.settings
            self._client = OpenAI(
                api_key=s.openai_api_key,
                base_url=s.openai_base_url,
                timeout=s.timeout,
                max_retries=0,
            )
        return self._client

    def _ask_openai(self, prompt: str) -> str:
        s = self.settings
        try:
            completion = self._openai_client().chat.completions.create(
                model=s.openai_model,
                messages=[
                    {"role": "system", "content": self.instructions},
                    {"role": "user", "content": f"Generate a calculator specification for: {prompt}"},
                ],
                temperature=s.temperature,
                max_tokens=s.max_tokens,
            )
        except openai.APIStatusError as e:
            raise ModelResponseError("http_error", f"OpenAI API error: {e.status_code}")
        except openai.OpenAIError as e:
            raise ModelResponseError("transport_error", str(e))

        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""


def generate_spec(prompt: str, settings: Optional[Settings] = None) -> CalculatorSpec:
    """Convenience wrapper: one-shot generation with settings from the environment."""
    return SpecGenerator(settings).generate_spec(prompt)
