"""
Tradewise API Dependencies

Container holding the engine instances used by the routers. The app
stores one container in ``app.state.container``; tests can build their own
and pass it to ``create_app``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request

from ..backtesting import PerformanceAnalytics
from ..signals import SignalAggregationEngine
from ..signals.aggregation import AsyncMomentumProvider
from ..signals.narrative import Narrator

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """
    Service container for the API.

    Attributes:
        analytics: Backtest performance calculator
        engine: Signal aggregation engine (owns the opportunity cache)
        momentum_provider: Optional async source of momentum symbols
        narrator: Optional async summary writer, handed to the engine
    """

    analytics: PerformanceAnalytics = field(default_factory=PerformanceAnalytics)
    engine: SignalAggregationEngine = field(default_factory=SignalAggregationEngine)
    momentum_provider: Optional[AsyncMomentumProvider] = None
    narrator: Optional[Narrator] = None

    def __post_init__(self):
        if self.narrator is not None:
            self.engine.narrator = self.narrator

    def health(self) -> Dict[str, bool]:
        """Health of each component."""
        return {
            "performance_analytics": self.analytics.health_check(),
            "signal_aggregation": self.engine.health_check(),
        }


def get_container(request: Request) -> Container:
    """FastAPI dependency returning the app's container."""
    container: Any = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="Application state not initialized")
    return container
