"""Signal generators sharing the :class:`TradingStrategy` contract."""

from .ai_driven import AIDrivenStrategy, calculate_order_size
from .base import BaseStrategy, TradingStrategy
from .endgame import EndgameStrategy
from .high_confidence import HighConfidenceStrategy
from .registry import available_strategies, build_ai_controller, get_strategy

__all__ = [
    "AIDrivenStrategy",
    "BaseStrategy",
    "EndgameStrategy",
    "HighConfidenceStrategy",
    "TradingStrategy",
    "available_strategies",
    "build_ai_controller",
    "calculate_order_size",
    "get_strategy",
]
