"""
AI-assisted photo selection strategy.

The model gets the harvested candidate URLs plus site hints and picks the
genuine listing photos. Its answer replaces the heuristic ranking when it
yields at least one valid URL.
"""

from typing import List, Optional

from ..errors import AIExtractionError, AIServiceError
from ..json_parsing import find_first_json
from ..llm import LLMHandler
from ..logger import get_strategy_logger
from ..models import ExtractionResult, ExtractionStrategy, MAX_LISTING_PHOTOS
from ..photo_harvest import unique_urls
from ..prompts import build_photo_selection_prompt
from ..sites import SiteProfile, is_site_image_url
from .base import BaseStrategy, ExtractionContext

log = get_strategy_logger('ai_photos')


class AIPhotoSelector:
    """Asks the model which candidate URLs are listing photos."""

    def __init__(self, handler: Optional[LLMHandler] = None, max_photos: int = MAX_LISTING_PHOTOS):
        self.handler = handler or LLMHandler()
        self.max_photos = max_photos

    def select(self, urls: List[str], profile: SiteProfile) -> List[str]:
        """
        Returns:
            up to max_photos validated URLs in the model's order (may be empty)

        Raises:
            AIExtractionError: model call failed or no JSON array in the reply
        """
        if not urls:
            return []

        prompt = build_photo_selection_prompt(profile.display_name, urls, profile.ai_hints, self.max_photos)
        log.info(f"Asking model to pick listing photos from {len(urls)} candidates")
        try:
            reply = self.handler.call(prompt, max_tokens=2000)
        except AIServiceError as e:
            raise AIExtractionError(f"AI photo selection failed: {e}") from e

        selected = find_first_json(reply, list)
        if selected is None:
            raise AIExtractionError("No JSON array found in model response")

        photos = []
        for url in selected:
            if not is_site_image_url(url, profile):
                log.debug(f"Discarding model URL outside {profile.image_cdn_domains}: {url!r}")
                continue
            if url not in photos:
                photos.append(url)
        log.info(f"Model identified {len(photos)} listing photos")
        return photos[:self.max_photos]


class AiPhotoStrategy(BaseStrategy):
    """Photo selection by language model."""

    strategy_type = ExtractionStrategy.AI_PHOTOS

    def __init__(self, selector: AIPhotoSelector):
        self.selector = selector

    def can_handle(self, context: ExtractionContext) -> bool:
        return bool(context.matches)

    def extract(self, context: ExtractionContext) -> ExtractionResult:
        urls = unique_urls(context.matches)
        try:
            photos = self.selector.select(urls, context.profile)
        except AIExtractionError as e:
            return ExtractionResult.failure(self.strategy_type, str(e))
        if not photos:
            return ExtractionResult.failure(self.strategy_type, "Model selected no valid photos")
        return ExtractionResult.from_fields(self.strategy_type, photos=photos)
