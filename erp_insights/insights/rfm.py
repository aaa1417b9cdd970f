"""
RFM Scoring

Recency, Frequency, Monetary scores per customer, recomputed from orders.
Each dimension is scored 1-5 by quintile across the organization's
customers; the composite score (3-15) maps to a label through a band table.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import polars as pl
import structlog

from erp_insights.database.models import Order
from erp_insights.insights.calculations import ZERO, quantize_money, rate, to_decimal
from erp_insights.insights.schemas import RfmAnalysis, RfmCustomerScore, RfmSegmentSummary

logger = structlog.get_logger(__name__)

RFM_SCHEMA = {
    "customer_id": pl.Int64,
    "recency_days": pl.Int64,
    "frequency": pl.Int64,
    "monetary": pl.Float64,
}


def _segment_expr(bands: Sequence[Tuple[int, str]]) -> pl.Expr:
    """Map ``rfm_score`` to a label, highest band first"""
    ordered = sorted(bands, key=lambda band: band[0], reverse=True)
    expr = None
    for threshold, label in ordered:
        condition = pl.col("rfm_score") >= threshold
        if expr is None:
            expr = pl.when(condition).then(pl.lit(label))
        else:
            expr = expr.when(condition).then(pl.lit(label))
    return expr.otherwise(pl.lit(ordered[-1][1])).alias("rfm_segment")


def _quintile(column: str, descending: bool = False) -> pl.Expr:
    """
    Score 1-5 by rank: ceil(rank * 5 / n).

    Tied values share the highest rank of their group, so the best value
    always scores 5 and n distinct values fill every bucket evenly.
    """
    rank = pl.col(column).rank("max", descending=descending).cast(pl.Int64)
    count = pl.len().cast(pl.Int64)
    return (rank * 5 + count - 1) // count


def score_frame(frame: pl.DataFrame, bands: Sequence[Tuple[int, str]]) -> pl.DataFrame:
    """
    Add quintile scores, composite score and segment label.

    Args:
        frame: One row per customer with recency_days, frequency, monetary
        bands: (minimum composite score, label) pairs

    Returns:
        DataFrame with rfm_recency_score, rfm_frequency_score,
        rfm_monetary_score, rfm_score and rfm_segment columns
    """
    scored = frame.with_columns([
        # Fewer days since the last order scores higher
        _quintile("recency_days", descending=True).alias("rfm_recency_score"),
        _quintile("frequency").alias("rfm_frequency_score"),
        _quintile("monetary").alias("rfm_monetary_score"),
    ])

    scored = scored.with_columns(
        (pl.col("rfm_recency_score")
         + pl.col("rfm_frequency_score")
         + pl.col("rfm_monetary_score"))
        .alias("rfm_score")
    )

    return scored.with_columns(_segment_expr(bands))


def score_customers(
    orders: Sequence[Order],
    now: datetime,
    bands: Sequence[Tuple[int, str]],
    names: Optional[Mapping[int, str]] = None,
) -> RfmAnalysis:
    """
    RFM analysis over the organization's non-cancelled orders.

    Args:
        orders: Non-cancelled orders up to ``now``
        now: Reference instant for recency
        bands: Segment band table
        names: Optional customer id to name mapping
    """
    names = names or {}
    last_order: Dict[int, datetime] = {}
    frequency: Dict[int, int] = defaultdict(int)
    monetary: Dict[int, Decimal] = defaultdict(lambda: ZERO)

    for order in orders:
        cid = order.customer_id
        frequency[cid] += 1
        monetary[cid] += to_decimal(order.total)
        if cid not in last_order or order.order_date > last_order[cid]:
            last_order[cid] = order.order_date

    if not frequency:
        return RfmAnalysis()

    customer_ids = sorted(frequency)
    frame = pl.DataFrame(
        {
            "customer_id": customer_ids,
            "recency_days": [max((now - last_order[c]).days, 0) for c in customer_ids],
            "frequency": [frequency[c] for c in customer_ids],
            "monetary": [float(monetary[c]) for c in customer_ids],
        },
        schema=RFM_SCHEMA,
    )

    scored = score_frame(frame, bands).sort(
        ["rfm_score", "customer_id"], descending=[True, False]
    )

    customers: List[RfmCustomerScore] = []
    for row in scored.iter_rows(named=True):
        cid = row["customer_id"]
        customers.append(RfmCustomerScore(
            customer_id=cid,
            name=names.get(cid),
            recency_days=row["recency_days"],
            frequency=row["frequency"],
            monetary=quantize_money(monetary[cid]),
            recency_score=row["rfm_recency_score"],
            frequency_score=row["rfm_frequency_score"],
            monetary_score=row["rfm_monetary_score"],
            rfm_score=row["rfm_score"],
            rfm_code=f"{row['rfm_recency_score']}{row['rfm_frequency_score']}{row['rfm_monetary_score']}",
            rfm_segment=row["rfm_segment"],
        ))

    summary = (
        scored.group_by("rfm_segment")
        .agg([
            pl.len().alias("count"),
            pl.col("recency_days").mean().alias("avg_recency"),
            pl.col("frequency").mean().alias("avg_frequency"),
            pl.col("monetary").mean().alias("avg_monetary"),
        ])
        .sort(["count", "rfm_segment"], descending=[True, False])
    )

    total = len(customer_ids)
    segments = [
        RfmSegmentSummary(
            segment=row["rfm_segment"],
            count=row["count"],
            percentage=rate(row["count"], total),
            avg_recency=quantize_money(row["avg_recency"]),
            avg_frequency=quantize_money(row["avg_frequency"]),
            avg_monetary=quantize_money(row["avg_monetary"]),
        )
        for row in summary.iter_rows(named=True)
    ]

    logger.debug("RFM scores computed", customers=total, segments=len(segments))

    return RfmAnalysis(total_customers=total, segments=segments, customers=customers)
