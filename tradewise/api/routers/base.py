"""
Tradewise API Router Base Utilities

Response envelope and helpers shared by all routers.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ApiResponse(BaseModel):
    """
    Standard API response wrapper.

    Every endpoint returns its payload wrapped in this model.
    """

    success: bool = Field(..., description="Whether the request succeeded")
    data: Optional[Any] = Field(default=None, description="Response payload")
    error: Optional[str] = Field(default=None, description="Error message if failed")
    timestamp: str = Field(..., description="ISO timestamp of response")


def get_timestamp() -> str:
    """Current UTC time as an ISO string with Z suffix."""
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


def convert_numpy_types(obj: Any) -> Any:
    """
    Convert numpy and pandas scalars to native Python types for JSON.

    NaN becomes None.
    """
    if isinstance(obj, dict):
        return {k: convert_numpy_types(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_numpy_types(v) for v in obj]
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, (float, np.floating)):
        return float(obj) if not np.isnan(obj) else None
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, pd.Timestamp):
        return obj.isoformat()
    return obj


def create_response(
    data: Any = None,
    error: Optional[str] = None,
    success: bool = True,
) -> ApiResponse:
    """
    Create a standardized API response.

    Example:
        >>> create_response(data={"winRate": 60.0})
        ApiResponse(success=True, data={"winRate": 60.0}, error=None, timestamp="...")
    """
    converted_data = convert_numpy_types(data) if data is not None else None

    return ApiResponse(
        success=success and error is None,
        data=converted_data,
        error=error,
        timestamp=get_timestamp(),
    )
