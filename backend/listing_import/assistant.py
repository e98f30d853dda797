"""
Item assistant: model-backed helpers for filling in a listing.

All calls go through LLMHandler, so they share the process-wide rate
limiter with AI photo selection.
"""

from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import AIServiceError
from .json_parsing import find_first_json
from .llm import LLMHandler
from .logger import get_strategy_logger
from .prompts import PHOTO_ANALYSIS_PROMPT, build_description_prompt, build_pricing_prompt

log = get_strategy_logger('assistant')


class PhotoAnalysis(BaseModel):
    """What the model could tell from one item photo."""
    category: str
    manufacturer: str = "Unknown"
    model: str = "Unknown"
    condition: int = Field(description="1-10")
    description: str
    confidence: int = Field(default=50, description="0-100")
    suggestions: List[str] = Field(default_factory=list)

    @field_validator('condition', mode='before')
    @classmethod
    def clamp_condition(cls, value):
        return max(1, min(10, int(round(float(value)))))

    @field_validator('confidence', mode='before')
    @classmethod
    def clamp_confidence(cls, value):
        if value is None:
            return 50
        return max(0, min(100, int(round(float(value)))))


class PriceRange(BaseModel):
    min: float = 800
    max: float = 1200


class PricingSuggestion(BaseModel):
    suggested_price: float = Field(default=1000, alias='suggestedPrice')
    price_range: PriceRange = Field(default_factory=PriceRange, alias='priceRange')
    market_insights: List[str] = Field(default_factory=lambda: ['Market data unavailable'], alias='marketInsights')

    model_config = {'populate_by_name': True}


def default_pricing() -> PricingSuggestion:
    return PricingSuggestion(market_insights=['Unable to fetch current market pricing'])


class ItemAssistant:
    """Photo analysis, description writing and pricing suggestions."""

    def __init__(self, handler: Optional[LLMHandler] = None):
        self.handler = handler or LLMHandler()

    def analyze_photo(self, data: bytes, mime_type: str) -> PhotoAnalysis:
        return self.analyze_photos([(data, mime_type)])

    def analyze_photos(self, photos: List[Tuple[bytes, str]]) -> PhotoAnalysis:
        """
        One analysis of the item shown in (data, mime_type) photos.

        Raises:
            ValueError: no photos, or an empty one
            AIServiceError: model unavailable or reply not a usable analysis
        """
        if not photos or not all(data for data, _ in photos):
            raise ValueError("At least one photo is required for analysis")
        reply = self.handler.call(PHOTO_ANALYSIS_PROMPT, max_tokens=1500, images=list(photos))
        payload = find_first_json(reply, dict)
        if payload is None:
            raise AIServiceError("Failed to parse AI analysis result: no JSON found")
        try:
            return PhotoAnalysis.model_validate(payload)
        except (ValidationError, TypeError, ValueError) as e:
            raise AIServiceError(f"Invalid analysis result structure: {e}") from e

    def generate_description(self, category: str, manufacturer: str, model: str,
                             condition: int, details: Optional[str] = None) -> str:
        prompt = build_description_prompt(category, manufacturer, model, condition, details)
        return self.handler.call(prompt, max_tokens=800).strip()

    def pricing_suggestions(self, category: str, manufacturer: str, model: str,
                            year: Optional[int] = None, condition: Optional[int] = None) -> PricingSuggestion:
        """Market pricing; falls back to fixed defaults when the reply is unusable."""
        prompt = build_pricing_prompt(category, manufacturer, model, year, condition)
        reply = self.handler.call(prompt, max_tokens=800)
        payload = find_first_json(reply, dict)
        if payload is None:
            log.warning("No JSON found in pricing response, using defaults")
            return default_pricing()
        # null fields take the defaults
        payload = {k: v for k, v in payload.items() if v}
        try:
            return PricingSuggestion.model_validate(payload)
        except ValidationError as e:
            log.warning(f"Unusable pricing response ({e.error_count()} errors), using defaults")
            return default_pricing()
