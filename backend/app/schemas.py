from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class PositionView(_CamelModel):
    token_id: str
    position_type: str
    size: float
    avg_price: float
    current_price: float | None = None
    is_resolved: bool = False
    winner: str | None = None
    result: str
    pnl: float | None = None
    pnl_percent: float | None = None
    outcome: str | None = None
    condition_id: str | None = None
    market_question: str | None = None
    market_url: str | None = None

    @field_validator("position_type", "result", mode="before")
    @classmethod
    def _enum_value(cls, value: Any) -> Any:
        return getattr(value, "value", value)


class MarketTokenView(_CamelModel):
    token_id: str
    outcome: str
    price: float | None = None
    winner: bool = False


class MarketView(_CamelModel):
    condition_id: str
    question: str
    is_resolved: bool = False
    winner: str | None = None
    tokens: list[MarketTokenView] = Field(default_factory=list)
    market_url: str


class PositionSummaryStats(_CamelModel):
    total_positions: int = 0
    winning_positions: int = 0
    losing_positions: int = 0
    pending_positions: int = 0
    total_pnl: float = Field(default=0.0, alias="totalPnL")
    total_pnl_percent: float = Field(default=0.0, alias="totalPnLPercent")
    long_positions: int = 0
    short_positions: int = 0
    resolved_pnl: float = Field(default=0.0, alias="resolvedPnL")
    unrealized_pnl: float = Field(default=0.0, alias="unrealizedPnL")


class PositionFilters(_CamelModel):
    position_type: str | None = None
    result: str | None = None
    resolved: bool | None = None


class WalletPositionsSummary(_CamelModel):
    positions: list[PositionView] = Field(default_factory=list)
    markets: list[MarketView] = Field(default_factory=list)
    summary: PositionSummaryStats = Field(default_factory=PositionSummaryStats)
    filters: PositionFilters | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
