"""
Observation Data Model
======================

Internal representation of one face-count sample.

Design Rules:
    - This is the ONLY sample format passed to the throttle
    - Observations are transient; only the most recent count is kept
      by the state machine, never the sample itself
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Observation:
    """
    Face-count sample with its arrival time.

    Attributes:
        face_count: Number of faces visible (already clamped to >= 0)
        arrival_time: Clock time the sample reached the agent (seconds)
    """

    face_count: int
    arrival_time: float

    def __repr__(self) -> str:
        return f"Observation(face_count={self.face_count}, t={self.arrival_time:.3f})"
