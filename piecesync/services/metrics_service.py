# piecesync/services/metrics_service.py
'''
汇总指标：输入 PieceRecord / PieceGroupData / PieceGroup 序列，只读 quantity、weight、length、unit_volume、piece_type
空输入返回全 0，不产生 NaN
'''
from typing import Iterable

import pandas as pd

from piecesync.schemas.metrics import MetricsSummary, VolumeBreakdown

_COLUMNS = ["piece_type", "quantity", "weight", "length", "unit_volume"]


def _to_frame(pieces: Iterable) -> pd.DataFrame:
    rows = [
        {
            "piece_type": p.piece_type or "",
            "quantity": p.quantity or 0,
            "weight": p.weight or 0.0,
            "length": p.length or 0.0,
            "unit_volume": p.unit_volume or 0.0,
        }
        for p in pieces
    ]
    df = pd.DataFrame(rows, columns=_COLUMNS)
    return df.fillna({"quantity": 0, "weight": 0.0, "length": 0.0, "unit_volume": 0.0})


def _safe_max(series: pd.Series) -> float:
    if series.empty:
        return 0.0
    return float(series.max())


def compute_metrics(pieces: Iterable) -> MetricsSummary:
    '''
    total_pieces = Σ quantity
    total_weight / total_volume 按数量加权
    avg_weight / avg_length = Σ(value × quantity) / Σ quantity，Σ quantity 为 0 时取 0
    '''
    df = _to_frame(pieces)
    total_qty = float(df["quantity"].sum())
    weighted_weight = float((df["weight"] * df["quantity"]).sum())
    weighted_length = float((df["length"] * df["quantity"]).sum())
    total_volume = float((df["unit_volume"] * df["quantity"]).sum())

    return MetricsSummary(
        total_pieces=int(total_qty),
        total_weight=weighted_weight,
        total_volume=total_volume,
        avg_weight=weighted_weight / total_qty if total_qty else 0.0,
        max_weight=_safe_max(df["weight"]),
        avg_length=weighted_length / total_qty if total_qty else 0.0,
        max_length=_safe_max(df["length"]),
    )


def volume_by_type(pieces: Iterable) -> VolumeBreakdown:
    df = _to_frame(pieces)
    if df.empty:
        return VolumeBreakdown()
    df["volume"] = df["unit_volume"] * df["quantity"]
    by_type = df.groupby("piece_type", sort=True)["volume"].sum()
    return VolumeBreakdown(
        by_type={str(k): float(v) for k, v in by_type.items()},
        total=float(df["volume"].sum()),
    )
