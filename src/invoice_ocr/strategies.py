"""
Ordered strategy cascades.

Each cascade is a tuple of ``Strategy`` descriptors. ``first_valid`` runs them
in order and returns the first result that its own predicate accepts, so
adding or reordering strategies is a data change.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _is_present(result: Any) -> bool:
    return result is not None


@dataclass(frozen=True)
class Strategy(Generic[T]):
    name: str
    run: Callable[..., Optional[T]]
    accept: Callable[[T], bool] = _is_present


def first_valid(strategies: Sequence[Strategy], *args, **kwargs) -> Optional[Tuple[str, Any]]:
    """
    Run strategies in order and stop at the first accepted result.

    Returns:
        ``(strategy_name, result)`` or None when no strategy produced an
        accepted result.
    """
    for strategy in strategies:
        result = strategy.run(*args, **kwargs)
        if result is not None and strategy.accept(result):
            logger.debug(f"Strategy '{strategy.name}' accepted")
            return strategy.name, result
    return None
