"""
Extraction strategies for marketplace listing pages.
"""

from .base import BaseStrategy, ExtractionContext
from .structured_data import StructuredDataStrategy
from .text_patterns import TextPatternStrategy
from .ai_photos import AIPhotoSelector, AiPhotoStrategy
from .photo_ranking import GalleryClusterStrategy, ScoredFallbackStrategy
from .chain import StrategyChain

__all__ = [
    'BaseStrategy',
    'ExtractionContext',
    'StructuredDataStrategy',
    'TextPatternStrategy',
    'AIPhotoSelector',
    'AiPhotoStrategy',
    'GalleryClusterStrategy',
    'ScoredFallbackStrategy',
    'StrategyChain',
]
