# piecesync/schemas/metrics.py
from typing import Dict
from pydantic import BaseModel, Field


class MetricsSummary(BaseModel):
    total_pieces: int = 0
    total_weight: float = 0.0
    total_volume: float = 0.0
    avg_weight: float = 0.0
    max_weight: float = 0.0
    avg_length: float = 0.0
    max_length: float = 0.0


class VolumeBreakdown(BaseModel):
    by_type: Dict[str, float] = Field(default_factory=dict)
    total: float = 0.0
