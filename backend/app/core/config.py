from functools import lru_cache
from typing import Any

from pydantic import AnyUrl, BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return []
        return [part.strip() for part in stripped.split(",") if part.strip()]
    return value


class StrategyConfig(BaseModel):
    """Options shared by every signal generator."""

    order_size: float = Field(10.0, gt=0)
    max_position: float = Field(100.0, gt=0)
    spread: float = Field(0.02, ge=0, le=1)
    profit_threshold: float = Field(0.99, ge=0)
    stop_loss: float | None = Field(default=None, ge=0)
    min_price: float = Field(0.01, ge=0, le=1)
    max_price: float = Field(0.99, ge=0, le=1)
    exclude_neg_risk: bool = True
    max_markets: int = Field(20, ge=1)
    min_liquidity: float = Field(0.0, ge=0)
    min_volume: float = Field(0.0, ge=0)


class EndgameConfig(StrategyConfig):
    order_size: float = Field(10.0, gt=0)
    max_acceptable_loss: float = Field(0.03, gt=0, lt=1)
    min_probability: float = Field(0.90, gt=0, lt=1)
    max_probability: float = Field(0.99, gt=0, lt=1)
    max_days_to_resolution: float = Field(7.0, ge=0)
    early_exit_threshold: float = Field(0.995, gt=0, le=1)

    @model_validator(mode="after")
    def _check_window(self) -> "EndgameConfig":
        if self.min_probability >= self.max_probability:
            raise ValueError("min_probability must be below max_probability")
        return self


class AIStrategyConfig(StrategyConfig):
    profit_threshold: float = Field(0.15, ge=0)
    stop_loss: float | None = Field(default=0.10, ge=0)
    use_ai: bool = True
    use_news: bool = False
    min_ai_attractiveness: float = Field(0.6, ge=0, le=1)
    max_ai_risk: str = Field("medium", pattern="^(low|medium|high)$")
    max_markets_for_ai: int = Field(20, ge=0)
    max_ai_budget_per_cycle: float = Field(0.5, ge=0)
    max_ai_budget_per_day: float = Field(5.0, ge=0)
    ai_cache_ttl_seconds: float = Field(300.0, ge=0)
    ai_cache_max_entries: int = Field(500, ge=1)
    min_edge: float = Field(0.10, ge=0, le=1)
    check_liquidity: bool = False
    preferred_categories: list[str] = Field(default_factory=list)
    excluded_categories: list[str] = Field(default_factory=list)

    @field_validator("preferred_categories", "excluded_categories", mode="before")
    @classmethod
    def _parse_categories(cls, value: Any) -> Any:
        return _split_csv(value)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    environment: str = Field(
        default="development",
        description="Runtime environment (development|staging|production)",
    )
    clob_base_url: AnyUrl = Field(
        default="https://clob.polymarket.com",
        description="Base URL for the Polymarket CLOB API",
    )
    gamma_base_url: AnyUrl = Field(
        default="https://gamma-api.polymarket.com",
        description="Base URL for the Polymarket Gamma markets API",
    )
    http_timeout_seconds: float = Field(
        default=10.0, description="Timeout applied to outbound HTTP calls", gt=0
    )
    strategy: str = Field(
        default="ai",
        description="Strategy used by the trading loop (market_making|high_confidence|endgame|ai)",
    )
    dry_run: bool = Field(
        default=True,
        description="Generate and validate signals without submitting orders",
    )

    # Trading
    order_size: float = Field(10.0, description="Base order size in shares", gt=0)
    max_position: float = Field(100.0, description="Maximum shares held per token", gt=0)
    spread: float = Field(0.02, description="Market-making quote spread", ge=0, le=1)
    profit_threshold: float = Field(
        0.99, description="Price (or AI profit fraction) that triggers an exit", ge=0
    )
    stop_loss: float | None = Field(
        default=None, description="Stop-loss price (or AI loss fraction)", ge=0
    )
    min_price: float = Field(0.01, description="Lowest YES price considered", ge=0, le=1)
    max_price: float = Field(0.99, description="Highest YES price considered", ge=0, le=1)
    exclude_neg_risk: bool = Field(True, description="Skip negative-risk markets")
    max_markets: int = Field(20, description="Markets processed per cycle", ge=1)
    min_liquidity: float = Field(
        1000.0, description="Minimum order book depth (USD) for AI candidates", ge=0
    )
    min_volume: float = Field(0.0, description="Minimum traded volume", ge=0)

    # Endgame
    max_acceptable_loss: float = Field(
        0.03, description="Loss fraction capped by the NO hedge", gt=0, lt=1
    )
    min_probability: float = Field(0.90, description="Lower YES price bound", gt=0, lt=1)
    max_probability: float = Field(0.99, description="Upper YES price bound", gt=0, lt=1)
    max_days_to_resolution: float = Field(
        7.0, description="Only markets resolving within this many days", ge=0
    )
    early_exit_threshold: float = Field(
        0.995, description="Exit once the YES price reaches this level", gt=0, le=1
    )

    # AI
    use_ai: bool = Field(True, description="Enable AI market analysis")
    ai_use_news: bool = Field(
        False, description="Augment AI prompts with news context (higher cost tier)"
    )
    ai_provider: str = Field("openai", description="Registered LLM provider name")
    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    openai_api_base: AnyUrl | str | None = Field(
        default=None, description="Optional override for the OpenAI API base URL"
    )
    openai_model: str = Field("gpt-4o-mini", description="OpenAI model for analysis")
    gemini_api_key: str | None = Field(default=None, description="Gemini API key")
    gemini_model: str = Field("gemini-2.5-flash", description="Gemini model for analysis")
    ai_profit_threshold: float = Field(
        0.15, description="Exit once gain over entry price reaches this fraction", ge=0
    )
    ai_stop_loss: float | None = Field(
        0.10, description="Exit once loss over entry price reaches this fraction", ge=0
    )
    min_ai_attractiveness: float = Field(0.6, ge=0, le=1)
    max_ai_risk: str = Field("medium", description="Highest accepted risk level")
    max_markets_for_ai: int = Field(20, ge=0)
    max_ai_budget_per_cycle: float = Field(0.20, description="USD per cycle", ge=0)
    max_ai_budget_per_day: float = Field(2.0, description="USD per calendar day", ge=0)
    ai_cache_ttl_seconds: float = Field(300.0, ge=0)
    ai_cache_max_entries: int = Field(500, ge=1)
    min_edge_percentage_points: float = Field(
        10.0,
        description="Minimum |estimate - price| in percentage points",
        ge=0,
        le=100,
    )
    ai_check_liquidity: bool = Field(
        False, description="Check order book depth before AI analysis"
    )
    preferred_categories: list[str] | str = Field(default_factory=list)
    excluded_categories: list[str] | str = Field(default_factory=list)
    ai_max_concurrent: int = Field(3, ge=1)
    ai_request_delay_ms: int = Field(150, ge=0)
    ai_max_retries: int = Field(3, ge=0)
    ai_retry_base_ms: int = Field(1000, ge=0)

    # Loop
    update_interval_seconds: float = Field(60.0, ge=0)
    error_backoff_seconds: float = Field(10.0, ge=0)
    lookup_batch_size: int = Field(
        10, description="Concurrent per-market lookups per batch", ge=1
    )
    lookup_batch_delay_seconds: float = Field(
        0.2, description="Pause between lookup batches", ge=0
    )

    @field_validator("preferred_categories", "excluded_categories", mode="before")
    @classmethod
    def _parse_categories(cls, value: Any) -> list[str]:
        return _split_csv(value)

    @field_validator("max_ai_risk")
    @classmethod
    def _validate_risk(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"low", "medium", "high"}:
            raise ValueError("max_ai_risk must be one of low|medium|high")
        return normalized

    @model_validator(mode="after")
    def _validate_probability_window(self) -> "Settings":
        if self.min_probability >= self.max_probability:
            raise ValueError("min_probability must be below max_probability")
        return self

    def _common_options(self) -> dict[str, Any]:
        return {
            "order_size": self.order_size,
            "max_position": self.max_position,
            "spread": self.spread,
            "profit_threshold": self.profit_threshold,
            "stop_loss": self.stop_loss,
            "min_price": self.min_price,
            "max_price": self.max_price,
            "exclude_neg_risk": self.exclude_neg_risk,
            "max_markets": self.max_markets,
            "min_liquidity": self.min_liquidity,
            "min_volume": self.min_volume,
        }

    def strategy_config(self) -> StrategyConfig:
        return StrategyConfig(**self._common_options())

    def endgame_config(self) -> EndgameConfig:
        return EndgameConfig(
            **self._common_options(),
            max_acceptable_loss=self.max_acceptable_loss,
            min_probability=self.min_probability,
            max_probability=self.max_probability,
            max_days_to_resolution=self.max_days_to_resolution,
            early_exit_threshold=self.early_exit_threshold,
        )

    def ai_config(self) -> AIStrategyConfig:
        options = self._common_options()
        options["profit_threshold"] = self.ai_profit_threshold
        options["stop_loss"] = self.ai_stop_loss
        return AIStrategyConfig(
            **options,
            use_ai=self.use_ai,
            use_news=self.ai_use_news,
            min_ai_attractiveness=self.min_ai_attractiveness,
            max_ai_risk=self.max_ai_risk,
            max_markets_for_ai=self.max_markets_for_ai,
            max_ai_budget_per_cycle=self.max_ai_budget_per_cycle,
            max_ai_budget_per_day=self.max_ai_budget_per_day,
            ai_cache_ttl_seconds=self.ai_cache_ttl_seconds,
            ai_cache_max_entries=self.ai_cache_max_entries,
            min_edge=self.min_edge_percentage_points / 100.0,
            check_liquidity=self.ai_check_liquidity,
            preferred_categories=list(self.preferred_categories),
            excluded_categories=list(self.excluded_categories),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
