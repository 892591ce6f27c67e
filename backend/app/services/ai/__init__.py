"""AI analysis gate: parsing, caching, budgeting, and the edge check."""

from .analysis import conservative_analysis, extract_json_object, parse_analysis
from .analyzer import MarketAnalyzer, NewsProvider, build_prompt, select_markets
from .budget import AIBudget, BudgetState, cost_per_market
from .cache import AnalysisCache, utc_now
from .controller import AIController
from .edge import EdgeDecision, direction_from_estimate, evaluate_edge
from .request_queue import QueueStats, RequestQueue

__all__ = [
    "AIBudget",
    "AIController",
    "AnalysisCache",
    "BudgetState",
    "EdgeDecision",
    "MarketAnalyzer",
    "NewsProvider",
    "QueueStats",
    "RequestQueue",
    "build_prompt",
    "conservative_analysis",
    "cost_per_market",
    "direction_from_estimate",
    "evaluate_edge",
    "extract_json_object",
    "parse_analysis",
    "select_markets",
    "utc_now",
]
