from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from app.core.config import Settings
from app.services.ledger import PositionLedger


@dataclass(slots=True)
class CycleContext:
    """Runtime state shared by the steps of one trading cycle."""

    cycle_id: int
    started_at: datetime
    settings: Settings
    dry_run: bool
    ledger: PositionLedger
    closed_tokens: set[str] = field(default_factory=set)
