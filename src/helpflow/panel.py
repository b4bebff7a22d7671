"""
Contextual help panel controller.

Holds the insights shown for the current help context. Insights are fetched
through the panel's own :class:`RecommendationGateway`, keyed by context
fingerprint, and replaced (never merged) when the context changes.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, List, Optional

from .gateway import ContentRequest, LoadState, RecommendationGateway, ResponseKind, sort_by_priority
from .models import FaqEntry, HelpContext, Insight, Priority

logger = logging.getLogger(__name__)

MAX_TRACKED_INTERACTIONS = 5


def fallback_insights(context: HelpContext) -> List[Insight]:
    return [
        Insight(
            type="tip",
            title="Context-Aware Help",
            content=(
                f"Get the most out of {context.feature} by exploring the available "
                "options and keyboard shortcuts."
            ),
            confidence=0.6,
            actionable=True,
            priority=Priority.MEDIUM,
            category="productivity",
        )
    ]


def insights_request(context: HelpContext, interactions: List[str]) -> ContentRequest:
    description = (
        "Provide 4-6 contextual insights (tips, warnings, optimizations, workflows, shortcuts) "
        "grouped by category: productivity, learning, troubleshooting, advanced.\n"
        f"{context.describe()}"
    )
    if interactions:
        description += f"\nRecent Panel Interactions: {', '.join(interactions)}"
    return ContentRequest(
        kind=ResponseKind.INSIGHTS,
        context_description=description,
        structured_context=context.to_dict(),
    )


class HelpPanel:
    """Insights and FAQ for whatever context the panel is showing."""

    def __init__(self, gateway: Optional[RecommendationGateway] = None):
        self.gateway = gateway or RecommendationGateway(name="panel")
        self.insights: List[Insight] = []
        self.faq: List[FaqEntry] = []
        self._context: Optional[HelpContext] = None
        self._fingerprint: Optional[str] = None
        self._interactions: Deque[str] = deque(maxlen=MAX_TRACKED_INTERACTIONS)
        self._epoch = 0

    @property
    def context(self) -> Optional[HelpContext]:
        return self._context

    @property
    def is_loading(self) -> bool:
        if self._fingerprint is None:
            return False
        return self.gateway.state(self._fingerprint) is LoadState.LOADING

    def track_interaction(self, interaction: str) -> None:
        self._interactions.append(interaction)

    def by_category(self) -> Dict[str, List[Insight]]:
        grouped: Dict[str, List[Insight]] = {}
        for insight in self.insights:
            grouped.setdefault(insight.category, []).append(insight)
        return grouped

    async def refresh(self, context: HelpContext) -> List[Insight]:
        """Load insights for ``context``; a repeated fingerprint does nothing."""
        fingerprint = context.fingerprint
        if fingerprint == self._fingerprint:
            return self.insights

        self._context = context
        self._fingerprint = fingerprint
        items = await self.gateway.fetch_items(
            fingerprint, insights_request(context, list(self._interactions))
        )
        if fingerprint != self._fingerprint:
            logger.debug(f"Discarding stale insights for {fingerprint}")
            return self.insights

        if items:
            self.insights = sort_by_priority(items)
        else:
            logger.info(f"Using fallback insights for {fingerprint}")
            self.insights = fallback_insights(context)
        return self.insights

    async def load_faq(self, context: Optional[HelpContext] = None) -> List[FaqEntry]:
        context = context or self._context
        if context is None:
            return []
        fingerprint = f"{context.fingerprint}:faq"
        request = ContentRequest(
            kind=ResponseKind.FAQ,
            context_description=(
                f"Answer the questions users most often ask about {context.feature}.\n{context.describe()}"
            ),
            structured_context=context.to_dict(),
        )
        owner = (self._fingerprint, self._epoch)
        entries = await self.gateway.fetch_items(fingerprint, request)
        if (self._fingerprint, self._epoch) != owner:
            logger.debug(f"Discarding stale FAQ for {fingerprint}")
            return self.faq
        self.faq = entries
        return self.faq

    def close(self) -> None:
        """Forget the current context; replies still in flight are dropped."""
        self._epoch += 1
        self._context = None
        self._fingerprint = None
        self.insights = []
        self.faq = []


__all__ = ["HelpPanel", "fallback_insights", "insights_request"]
