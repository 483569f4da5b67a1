"""
Tradewise API Routers

Router Structure:
-----------------
- system.py        : /api/health - Health and component status
- analytics.py     : /api/analytics/* - Backtest performance metrics
- opportunities.py : /api/opportunities/* - Signal aggregation and ranking
"""

import logging
from typing import List

from fastapi import FastAPI

from . import analytics, opportunities, system

logger = logging.getLogger(__name__)

ROUTER_MODULES = (system, analytics, opportunities)


def register_routers(app: FastAPI) -> List[str]:
    """
    Register all API routers with the FastAPI application.

    Returns:
        Names of the registered router modules
    """
    registered = []
    for module in ROUTER_MODULES:
        app.include_router(module.router)
        name = module.__name__.rsplit(".", 1)[-1]
        registered.append(name)
        logger.info(f"Registered router: {name}")
    return registered
