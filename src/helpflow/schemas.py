"""
Validation of content-generation responses.

The content service returns loosely-typed JSON text. Nothing it says is
trusted until it has been decoded and validated against one of the models
below; :func:`parse_response` either returns engine value objects or raises
:class:`ResponseFormatError`.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Literal

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from .models import FaqEntry, Insight, Priority, Recommendation, TutorialPersonalization

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 3
MAX_NEXT_STEPS = 5

INSIGHT_CATEGORIES = ("productivity", "learning", "troubleshooting", "advanced")


class ResponseFormatError(ValueError):
    """The response text is not JSON or does not match the expected shape."""


class InsightModel(BaseModel):
    type: Literal["tip", "warning", "optimization", "workflow", "shortcut"] = "tip"
    title: str
    content: str
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    actionable: bool = True
    priority: Priority = Priority.MEDIUM

    def to_insight(self, category: str) -> Insight:
        return Insight(
            type=self.type,
            title=self.title,
            content=self.content,
            confidence=self.confidence,
            actionable=self.actionable,
            priority=self.priority,
            category=category,
        )


class RecommendationModel(BaseModel):
    target_id: str = Field(validation_alias=AliasChoices("targetId", "levelId", "target_id"))
    reason: str = ""
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    priority: Priority = Priority.MEDIUM

    def to_recommendation(self) -> Recommendation:
        return Recommendation(
            target_id=self.target_id,
            reason=self.reason,
            confidence=self.confidence,
            priority=self.priority,
        )


class FaqModel(BaseModel):
    question: str
    answer: str


class PersonalizationModel(BaseModel):
    difficultyAdjustments: Dict[str, Literal["easier", "harder"]] = Field(default_factory=dict)
    personalizedHints: Dict[str, List[str]] = Field(default_factory=dict)
    recommendedNext: List[str] = Field(default_factory=list)
    skipSuggestions: List[str] = Field(default_factory=list)


def decode_json(raw: str) -> Any:
    """Decode JSON text, tolerating a surrounding Markdown code fence."""
    text = (raw or "").strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    try:
        return json.loads(text)
    except (ValueError, RecursionError) as e:
        # JSONDecodeError, oversized integers and runaway nesting
        raise ResponseFormatError(f"Response is not valid JSON: {type(e).__name__}: {e}") from e


def parse_insights(data: Any) -> List[Insight]:
    """Accept either a flat list of insights or an object keyed by category."""
    if isinstance(data, list):
        grouped: Dict[str, Any] = {"productivity": data}
    elif isinstance(data, dict):
        grouped = data
    else:
        raise ResponseFormatError("Insights must be a list or an object keyed by category")

    insights: List[Insight] = []
    for category, items in grouped.items():
        if category not in INSIGHT_CATEGORIES:
            logger.debug(f"Ignoring unknown insight category {category!r}")
            continue
        if not isinstance(items, list):
            raise ResponseFormatError(f"Insight category {category!r} must hold a list")
        for item in items:
            insights.append(InsightModel.model_validate(item).to_insight(category))
    return insights


def parse_recommendations(data: Any) -> List[Recommendation]:
    if not isinstance(data, list):
        raise ResponseFormatError("Recommendations must be a JSON array")
    return [RecommendationModel.model_validate(item).to_recommendation() for item in data][:MAX_RECOMMENDATIONS]


def parse_next_steps(data: Any) -> List[str]:
    if not isinstance(data, list) or not all(isinstance(s, str) for s in data):
        raise ResponseFormatError("Next steps must be a JSON array of strings")
    return [s.strip() for s in data if s.strip()][:MAX_NEXT_STEPS]


def parse_faq(data: Any) -> List[FaqEntry]:
    if not isinstance(data, list):
        raise ResponseFormatError("FAQ must be a JSON array")
    return [FaqEntry(**FaqModel.model_validate(item).model_dump()) for item in data]


def parse_personalization(data: Any) -> TutorialPersonalization:
    if not isinstance(data, dict):
        raise ResponseFormatError("Personalization must be a JSON object")
    model = PersonalizationModel.model_validate(data)
    return TutorialPersonalization(
        difficulty_adjustments=dict(model.difficultyAdjustments),
        personalized_hints={k: list(v) for k, v in model.personalizedHints.items()},
        recommended_next=tuple(model.recommendedNext),
        skip_suggestions=tuple(model.skipSuggestions),
    )


def validate(parser, raw: str) -> Any:
    """Decode ``raw`` and run ``parser``; every failure becomes ResponseFormatError."""
    data = decode_json(raw)
    try:
        return parser(data)
    except ValidationError as e:
        raise ResponseFormatError(f"Response failed validation: {e.error_count()} error(s)") from e


__all__ = [
    "ResponseFormatError",
    "InsightModel",
    "RecommendationModel",
    "FaqModel",
    "PersonalizationModel",
    "decode_json",
    "parse_insights",
    "parse_recommendations",
    "parse_next_steps",
    "parse_faq",
    "parse_personalization",
    "validate",
    "MAX_RECOMMENDATIONS",
    "MAX_NEXT_STEPS",
]
