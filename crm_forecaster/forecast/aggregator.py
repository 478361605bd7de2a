"""
Risk-adjusted revenue forecast and stage funnel.

Usage flow
----------
1. group_by_seller(deals)
   -> dict[seller, SellerAggregate]  (closed vs. active split per seller)

2. aggregate_forecast(deals, reliability_scores_by_seller, stage_list)
   -> ForecastSummary  (totals, per-seller rows, funnel, data warnings)

``build_seller_forecast(deals, lookup)`` runs reliability scoring and step 2
in one call.

Definitions
-----------
Negotiation pipeline (per seller)
  Σ (probability / 100) * estimated_value over the seller's active deals whose
  stage equals the negotiation stage.

Adjusted value (per seller)
  negotiation pipeline * reliability score / 100.

Total pipeline
  Σ estimated_value over ALL active deals, unweighted.

Seller ordering
  Descending by negotiation pipeline, not by adjusted value: a low-reliability
  seller with a large live pipeline must still surface near the top.  Ties
  keep first-appearance order.

Null numerics count as zero.  Stage labels outside ``stage_list`` are left
out of the funnel but still count toward totals.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Optional

from crm_forecaster.models.deal import Deal
from crm_forecaster.scoring.reliability import (
    DEFAULT_SHRINKAGE,
    ProbabilityLookup,
    score_all_sellers,
)
from crm_forecaster.taxonomy.deal_taxonomy import (
    DEFAULT_LOST_MARKERS,
    DEFAULT_PIPELINE_STAGES,
    DEFAULT_WON_MARKERS,
    DealStage,
    FunnelTone,
    funnel_tone,
    is_closed_stage,
)

logger = logging.getLogger(__name__)

DEFAULT_GOAL_MULTIPLIER = 1.5
DEFAULT_TEAM_GOAL       = 1_000_000.0


@dataclass
class SellerAggregate:
    """Working set for one seller during a single aggregation.

    Attributes:
        name:                 Seller key.
        historical_deals:     Closed (won/lost) deals.
        active_deals:         Everything else.
        reliability_score:    Score supplied by the caller (0 if absent).
        negotiation_pipeline: Probability-weighted negotiation-stage value.
    """

    name:                 str
    historical_deals:     list[Deal] = field(default_factory=list)
    active_deals:         list[Deal] = field(default_factory=list)
    reliability_score:    float = 0.0
    negotiation_pipeline: float = 0.0

    @property
    def adjusted_value(self) -> float:
        return self.negotiation_pipeline * (self.reliability_score / 100)


@dataclass(frozen=True)
class SellerForecast:
    """Per-seller forecast row."""

    name: str
    negotiation_pipeline: float
    adjusted_value: float
    reliability_score: float
    historical_count: int
    active_count: int


@dataclass(frozen=True)
class FunnelRow:
    """Deals currently sitting in one pipeline stage."""

    stage: str
    count: int
    value: float
    tone: FunnelTone


@dataclass(frozen=True)
class ForecastSummary:
    """Dashboard-level forecast output.

    Attributes:
        total_pipeline:    Σ estimated value of active deals.
        adjusted_forecast: Σ seller adjusted values.
        sellers:           Per-seller rows, negotiation pipeline descending.
        funnel:            One row per configured stage, in stage order.
        active_count:      Number of active deals.
        data_warnings:     Active deals with missing or zero estimated value.
        team_goal:         Max seller pipeline * goal multiplier (or default).
        goal_progress_pct: adjusted_forecast / team_goal * 100; 0.0 when the
                           goal is not positive.
    """

    total_pipeline: float
    adjusted_forecast: float
    sellers: list[SellerForecast]
    funnel: list[FunnelRow]
    active_count: int
    data_warnings: int
    team_goal: float
    goal_progress_pct: float


def negotiation_value(deal: Deal) -> float:
    """Probability-weighted value of one deal; nulls count as zero."""
    return (deal.probability or 0) / 100 * (deal.estimated_value or 0)


def group_by_seller(
    deals: Iterable[Deal],
    reliability_scores_by_seller: Optional[Mapping[str, float]] = None,
    negotiation_stage: str = DealStage.NEGOTIATION,
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
    lost_markers: Sequence[str] = DEFAULT_LOST_MARKERS,
) -> dict[str, SellerAggregate]:
    """Split each seller's deals into closed/active and total the negotiation pipeline."""
    scores = reliability_scores_by_seller or {}
    groups: dict[str, SellerAggregate] = {}

    for deal in deals:
        seller = deal.seller_key
        agg = groups.get(seller)
        if agg is None:
            agg = SellerAggregate(name=seller, reliability_score=scores.get(seller, 0.0))
            groups[seller] = agg
        if is_closed_stage(deal.stage, won_markers, lost_markers):
            agg.historical_deals.append(deal)
        else:
            agg.active_deals.append(deal)
            if deal.stage == negotiation_stage:
                agg.negotiation_pipeline += negotiation_value(deal)

    return groups


def team_goal(
    sellers: Sequence[SellerForecast],
    goal_multiplier: float = DEFAULT_GOAL_MULTIPLIER,
    default_goal: float = DEFAULT_TEAM_GOAL,
) -> float:
    """Stretch goal: best seller's negotiation pipeline times ``goal_multiplier``."""
    best = max((s.negotiation_pipeline for s in sellers), default=0.0)
    goal = best * goal_multiplier
    return goal if goal > 0 else default_goal


def aggregate_forecast(
    all_deals: Iterable[Deal],
    reliability_scores_by_seller: Mapping[str, float],
    stage_list: Optional[Sequence[str]] = None,
    negotiation_stage: str = DealStage.NEGOTIATION,
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
    lost_markers: Sequence[str] = DEFAULT_LOST_MARKERS,
    goal_multiplier: float = DEFAULT_GOAL_MULTIPLIER,
    default_goal: float = DEFAULT_TEAM_GOAL,
) -> ForecastSummary:
    """Build the risk-adjusted forecast, seller ranking and stage funnel.

    Args:
        all_deals:                    Every deal, open and closed.
        reliability_scores_by_seller: Seller key -> reliability score (0–100).
        stage_list:                   Funnel stages in display order.
        negotiation_stage:            Stage whose deals form the pipeline.

    Returns:
        ForecastSummary.
    """
    deals  = list(all_deals)
    stages = list(stage_list) if stage_list is not None else list(DEFAULT_PIPELINE_STAGES)

    groups = group_by_seller(
        deals, reliability_scores_by_seller, negotiation_stage, won_markers, lost_markers,
    )
    ordered = sorted(groups.values(), key=lambda s: -s.negotiation_pipeline)
    sellers = [
        SellerForecast(
            name=s.name,
            negotiation_pipeline=s.negotiation_pipeline,
            adjusted_value=s.adjusted_value,
            reliability_score=s.reliability_score,
            historical_count=len(s.historical_deals),
            active_count=len(s.active_deals),
        )
        for s in ordered
    ]

    active = [d for d in deals if not is_closed_stage(d.stage, won_markers, lost_markers)]
    total_pipeline    = sum(d.estimated_value or 0 for d in active)
    adjusted_forecast = sum(s.adjusted_value for s in sellers)
    data_warnings     = sum(1 for d in active if not d.estimated_value)
    if data_warnings:
        logger.warning("%d active deal(s) have no estimated value", data_warnings)

    funnel: list[FunnelRow] = []
    for stage in stages:
        in_stage = [d for d in deals if d.stage == stage]
        funnel.append(
            FunnelRow(
                stage=stage,
                count=len(in_stage),
                value=sum(d.estimated_value or 0 for d in in_stage),
                tone=funnel_tone(stage, negotiation_stage, won_markers, lost_markers),
            )
        )

    goal = team_goal(sellers, goal_multiplier, default_goal)

    return ForecastSummary(
        total_pipeline=total_pipeline,
        adjusted_forecast=adjusted_forecast,
        sellers=sellers,
        funnel=funnel,
        active_count=len(active),
        data_warnings=data_warnings,
        team_goal=goal,
        goal_progress_pct=adjusted_forecast / goal * 100 if goal > 0 else 0.0,
    )


def build_seller_forecast(
    deals: Iterable[Deal],
    probability_history_lookup: Optional[ProbabilityLookup] = None,
    stage_list: Optional[Sequence[str]] = None,
    negotiation_stage: str = DealStage.NEGOTIATION,
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
    lost_markers: Sequence[str] = DEFAULT_LOST_MARKERS,
    shrinkage: float = DEFAULT_SHRINKAGE,
    goal_multiplier: float = DEFAULT_GOAL_MULTIPLIER,
    default_goal: float = DEFAULT_TEAM_GOAL,
) -> ForecastSummary:
    """Score every seller's reliability, then aggregate the forecast."""
    deals = list(deals)
    scores = score_all_sellers(
        deals, probability_history_lookup, shrinkage, won_markers, lost_markers,
    )
    return aggregate_forecast(
        deals,
        scores,
        stage_list=stage_list,
        negotiation_stage=negotiation_stage,
        won_markers=won_markers,
        lost_markers=lost_markers,
        goal_multiplier=goal_multiplier,
        default_goal=default_goal,
    )
