"""
Heuristic photo strategies: gallery clustering and the strict flat fallback.
"""

from typing import List

from ..models import ExtractionResult, ExtractionStrategy, PhotoCandidate
from ..scoring import get_scoring_profile, score_candidates, select_gallery, select_flat_fallback
from .base import BaseStrategy, ExtractionContext


def scored_candidates(context: ExtractionContext) -> List[PhotoCandidate]:
    """Score the context's harvested matches once per run."""
    if 'candidates' not in context.cache:
        profile = get_scoring_profile(context.site)
        context.cache['candidates'] = score_candidates(context.document, context.matches, profile)
    return context.cache['candidates']


class GalleryClusterStrategy(BaseStrategy):
    """Best URL cluster by average score plus gallery-size bonus."""

    strategy_type = ExtractionStrategy.GALLERY_CLUSTER

    def can_handle(self, context: ExtractionContext) -> bool:
        return bool(context.matches)

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        photos = select_gallery(scored_candidates(context), get_scoring_profile(context.site))
        if not photos:
            return ExtractionResult.failure(self.strategy_type, "No positively scored gallery")
        return ExtractionResult.from_fields(self.strategy_type, photos=photos)


class ScoredFallbackStrategy(BaseStrategy):
    """Flat list of high-confidence URLs when no gallery could be inferred."""

    strategy_type = ExtractionStrategy.SCORED_FALLBACK

    def can_handle(self, context: ExtractionContext) -> bool:
        return bool(context.matches)

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        photos = select_flat_fallback(scored_candidates(context), get_scoring_profile(context.site))
        if not photos:
            return ExtractionResult.failure(self.strategy_type, "No candidate passed the fallback threshold")
        return ExtractionResult.from_fields(self.strategy_type, photos=photos)
