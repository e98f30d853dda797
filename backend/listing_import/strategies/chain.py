"""
Strategy chain: ordered strategies, first satisfying result wins.

Results are memoized per run, so a strategy that appears in both the photo
chain and the text chain (structured data) runs once.
"""

from typing import Callable, Dict, List, Optional, Tuple

from ..logger import get_strategy_logger
from ..models import ExtractionResult, ExtractionStrategy
from .base import BaseStrategy, ExtractionContext

log = get_strategy_logger('chain')


class StrategyChain:
    """Runs strategies against one ExtractionContext."""

    def __init__(self, context: ExtractionContext):
        self.context = context
        self._results: Dict[ExtractionStrategy, ExtractionResult] = {}

    def result_for(self, strategy: BaseStrategy) -> ExtractionResult:
        """Run a strategy once; never raises."""
        key = strategy.strategy_type
        if key in self._results:
            return self._results[key]

        if not strategy.can_handle(self.context):
            result = ExtractionResult.failure(key, "Not applicable")
        else:
            try:
                result = strategy.extract(self.context)
            except Exception as e:
                log.warning(f"{key.value} raised {type(e).__name__}: {e}")
                result = ExtractionResult.failure(key, f"Error: {e}")

        if not result.success:
            log.debug(f"{key.value} declined: {result.error}")
        self._results[key] = result
        return result

    def first(self, strategies: List[BaseStrategy],
              satisfied: Callable[[ExtractionResult], bool]) -> Optional[Tuple[BaseStrategy, ExtractionResult]]:
        """First strategy whose successful result satisfies the predicate."""
        for strategy in strategies:
            result = self.result_for(strategy)
            if result.success and satisfied(result):
                return strategy, result
            log.debug(f"{strategy.strategy_type.value} did not satisfy, trying next strategy")
        return None

    def first_value(self, strategies: List[BaseStrategy], field: str):
        """First non-empty value of one field across the strategies, in order."""
        for strategy in strategies:
            result = self.result_for(strategy)
            value = getattr(result, field)
            if result.success and value is not None:
                return value, strategy.strategy_type
        return None, None

    @property
    def attempted(self) -> List[ExtractionStrategy]:
        return list(self._results)
