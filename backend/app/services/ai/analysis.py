"""Parse loosely-typed AI provider JSON into :class:`AIAnalysis`.

Numeric fields may arrive as numbers or strings. Scores are clamped to
``[0, 1]``; an absent, unparsable, or out-of-range ``estimatedProbability``
becomes ``None`` so that no edge can be derived from it.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.domain import AIAnalysis, RecommendedAction, RiskLevel
from app.errors import AnalysisParseError

DEFAULT_SCORE = 0.5
NO_REASONING = "No reasoning provided"

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        scale = 1.0
        if text.endswith("%"):
            text = text[:-1].strip()
            scale = 0.01
        try:
            number = float(text) * scale
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) or math.isinf(number) else number


def _clamp_unit(value: float) -> float:
    return min(max(value, 0.0), 1.0)


class AnalysisPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    should_trade: bool = Field(False, alias="shouldTrade")
    confidence: float = DEFAULT_SCORE
    attractiveness: float = DEFAULT_SCORE
    estimated_probability: float | None = Field(None, alias="estimatedProbability")
    risk_level: RiskLevel = Field(RiskLevel.MEDIUM, alias="riskLevel")
    recommended_action: RecommendedAction | None = Field(None, alias="recommendedAction")
    reasoning: str = NO_REASONING
    sources: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _fill_reasoning(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            data = dict(data)
            reasoning = data.get("reasoning")
            if not isinstance(reasoning, str) or not reasoning.strip():
                fallback = data.get("reason")
                data["reasoning"] = (
                    fallback if isinstance(fallback, str) and fallback.strip() else NO_REASONING
                )
        return data

    @field_validator("should_trade", mode="before")
    @classmethod
    def _parse_flag(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in {"true", "yes", "1"}
        if isinstance(value, (bool, int)):
            return bool(value)
        return False

    @field_validator("confidence", "attractiveness", mode="before")
    @classmethod
    def _parse_score(cls, value: Any) -> float:
        number = _to_float(value)
        return DEFAULT_SCORE if number is None else _clamp_unit(number)

    @field_validator("estimated_probability", mode="before")
    @classmethod
    def _parse_probability(cls, value: Any) -> float | None:
        number = _to_float(value)
        if number is None or not 0.0 <= number <= 1.0:
            return None
        return number

    @field_validator("risk_level", mode="before")
    @classmethod
    def _parse_risk(cls, value: Any) -> RiskLevel:
        if isinstance(value, str):
            try:
                return RiskLevel(value.strip().lower())
            except ValueError:
                pass
        return RiskLevel.MEDIUM

    @field_validator("recommended_action", mode="before")
    @classmethod
    def _parse_action(cls, value: Any) -> RecommendedAction | None:
        if not isinstance(value, str):
            return None
        normalized = value.strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return RecommendedAction(normalized)
        except ValueError:
            return None

    @field_validator("sources", mode="before")
    @classmethod
    def _parse_sources(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        sources: list[str] = []
        for entry in value:
            if isinstance(entry, str) and entry.strip():
                sources.append(entry.strip())
            elif isinstance(entry, Mapping) and isinstance(entry.get("url"), str):
                sources.append(entry["url"])
        return sources

    def to_analysis(self, market_id: str | None = None) -> AIAnalysis:
        return AIAnalysis(
            should_trade=self.should_trade,
            confidence=self.confidence,
            attractiveness=self.attractiveness,
            risk_level=self.risk_level,
            reasoning=self.reasoning,
            estimated_probability=self.estimated_probability,
            recommended_action=self.recommended_action,
            sources=list(self.sources),
            market_id=market_id,
        )


def parse_analysis(payload: Any, *, market_id: str | None = None) -> AIAnalysis:
    if not isinstance(payload, Mapping):
        raise AnalysisParseError(
            f"AI analysis must be a JSON object (got {type(payload).__name__})"
        )
    return AnalysisPayload.model_validate(payload).to_analysis(market_id)


def extract_json_object(text: str) -> dict[str, Any]:
    """Decode the JSON object in a model reply, tolerating code fences and prose."""

    cleaned = _FENCE_RE.sub("", text.strip())
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start < 0 or end <= start:
        raise AnalysisParseError("AI reply does not contain a JSON object")
    try:
        decoded = json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError as exc:
        raise AnalysisParseError(f"AI reply is not valid JSON: {exc}") from exc
    if not isinstance(decoded, dict):
        raise AnalysisParseError("AI reply JSON is not an object")
    return decoded


def conservative_analysis(reason: str, *, market_id: str | None = None) -> AIAnalysis:
    """Analysis used when the provider fails; never tradable."""

    return AIAnalysis(
        should_trade=False,
        confidence=0.0,
        attractiveness=0.0,
        risk_level=RiskLevel.HIGH,
        reasoning=reason,
        estimated_probability=None,
        recommended_action=RecommendedAction.AVOID,
        market_id=market_id,
    )


__all__ = [
    "AnalysisPayload",
    "conservative_analysis",
    "extract_json_object",
    "parse_analysis",
]
