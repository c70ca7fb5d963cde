"""
Input Message Schema
====================

This module defines the Pydantic model for face-count samples received
from the external face-detection sensor (WebSocket or HTTP).

Input Contract (from the sensor):
    {
        "face_count": 2,
        "timestamp": 1707321234.567
    }

The sensor is not trusted for rate or regularity. A missing, negative or
non-numeric count is not rejected; it is coerced to 0 so that a single bad
sample is handled as a zero-face observation.

Example:
    from screenguard_agent.models.input import ObservationMessage

    message = ObservationMessage.model_validate_json(raw)
    throttle.submit(message.face_count, message.timestamp)
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


def coerce_face_count(value: Any) -> int:
    """Coerce an untrusted face count to a non-negative int (invalid -> 0)."""
    if isinstance(value, bool):
        return 0
    try:
        if isinstance(value, (str, bytes)):
            # Numeric strings truncate like numbers: "2.5" -> 2
            value = float(value)
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, count)


class ObservationMessage(BaseModel):
    """
    Schema for one face-count sample.

    Attributes:
        face_count: Number of faces visible in the sampled frame
        timestamp: Sensor timestamp in seconds (optional, arrival time if absent)
    """

    face_count: int = Field(
        default=0,
        ge=0,
        description="Number of simultaneously visible faces",
    )

    timestamp: Optional[float] = Field(
        default=None,
        description="Sensor timestamp in seconds",
    )

    @field_validator("face_count", mode="before")
    @classmethod
    def _clamp_face_count(cls, value: Any) -> int:
        return coerce_face_count(value)

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "face_count": 2,
                "timestamp": 1707321234.567,
            }
        }
