"""
gTrade (Gains Network) - Velocity funding adapter.

gTrade has no settlement schedule: each pair publishes its last funding
rate per second and the time it was set, and the rate then drifts with
the open-interest skew. The current rate is reconstructed with the
VelocityFundingModel.

Expected /trading-variables shape (numbers already decoded):
    {
      "pairs": [{"from": "BTC", "to": "USD", "groupIndex": 0}, ...],
      "collaterals": [{
        "symbol": "USDC",
        "prices": {"collateralPriceUsd": 1.0},
        "pairOis": [{"oiLongToken", "oiShortToken",
                     "oiLongCollateral", "oiShortCollateral"}, ...],
        "fundingFees": {
          "pairParams": [{"skewCoefficientPerYear", "absoluteVelocityPerYearCap",
                          "absoluteRatePerSecondCap", "thetaThresholdUsd"}, ...],
          "pairData": [{"lastFundingRatePerSecondP", "lastFundingUpdateTs"}, ...]
        }
      }, ...]
    }

A pair can trade against several collaterals; the collateral carrying the
most open interest in USD decides the published rate.
"""

import logging
from typing import Any, Optional

from data_sources.base import ExchangeSource, ensure, fetch_json, parse_float
from data_sources.http_client import ResilientFetchClient
from data_sources.models import AssetClass, DataKind, FundingRecord
from data_sources.velocity_funding import (
    VelocityFundingModel,
    VelocityPairParams,
    VelocityPairState,
)
from normalizers.symbol_classifier import classify


logger = logging.getLogger(__name__)

# gTrade pair groups
GROUP_ASSET_CLASS = {
    0: AssetClass.CRYPTO,        # BTC, ETH
    1: AssetClass.FOREX,         # majors
    2: AssetClass.STOCKS,
    3: AssetClass.STOCKS,
    4: AssetClass.STOCKS,
    5: AssetClass.STOCKS,        # indices
    6: AssetClass.COMMODITIES,   # metals
    7: AssetClass.COMMODITIES,   # energy, agriculture
    8: AssetClass.FOREX,         # crosses
    9: AssetClass.FOREX,         # emerging markets
    10: AssetClass.CRYPTO,
    11: AssetClass.CRYPTO,
}


def pair_symbol(pair: dict[str, Any]) -> str:
    """Raw symbol for a gTrade pair (BTC/USD -> BTC, USD/JPY -> USDJPY)."""
    base = str(pair.get("from", "")).upper()
    quote = str(pair.get("to", "")).upper()
    return base if quote == "USD" else base + quote


def _params(raw: dict[str, Any]) -> VelocityPairParams:
    return VelocityPairParams(
        skew_coeff_per_year=parse_float(raw.get("skewCoefficientPerYear"), 0.0),
        velocity_cap_per_year=parse_float(raw.get("absoluteVelocityPerYearCap"), 0.0),
        rate_per_second_cap=parse_float(raw.get("absoluteRatePerSecondCap"), 0.0),
        theta_threshold_usd=parse_float(raw.get("thetaThresholdUsd"), 0.0),
    )


def _state(data: dict[str, Any], oi: dict[str, Any], collateral_price: float) -> VelocityPairState:
    return VelocityPairState(
        last_rate_per_second=parse_float(data.get("lastFundingRatePerSecondP"), 0.0),
        last_update_ts=parse_float(data.get("lastFundingUpdateTs"), 0.0),
        oi_long_token=parse_float(oi.get("oiLongToken"), 0.0),
        oi_short_token=parse_float(oi.get("oiShortToken"), 0.0),
        oi_long_collateral=parse_float(oi.get("oiLongCollateral"), 0.0),
        oi_short_collateral=parse_float(oi.get("oiShortCollateral"), 0.0),
        collateral_price_usd=collateral_price,
    )


def _at(items: list[Any], index: int) -> dict[str, Any]:
    return items[index] if index < len(items) and isinstance(items[index], dict) else {}


class GTradeSource(ExchangeSource):
    """gTrade synthetic perpetuals on Arbitrum."""

    name = "gTrade"
    KINDS = (DataKind.FUNDING,)

    URL = "https://backend-arbitrum.gains.trade/trading-variables"

    def __init__(self, model: Optional[VelocityFundingModel] = None) -> None:
        self._model = model or VelocityFundingModel()

    async def fetch_funding(self, client: ResilientFetchClient) -> list[FundingRecord]:
        data = await fetch_json(client, self.URL, self.name)
        ensure(
            isinstance(data, dict) and isinstance(data.get("pairs"), list),
            "Missing pairs",
            self.name,
            data,
        )
        collaterals = [c for c in data.get("collaterals") or [] if isinstance(c, dict)]

        records = []
        dormant = 0
        for index, pair in enumerate(data["pairs"]):
            chosen = self._dominant_state(index, collaterals)
            if chosen is None:
                continue
            params, state = chosen

            rate = self._model.rate_for_interval(params, state)
            if rate is None:
                dormant += 1
                continue

            classified = classify(pair_symbol(pair), self.name)
            asset_class = classified.asset_class
            group_class = GROUP_ASSET_CLASS.get(int(parse_float(pair.get("groupIndex"), 0.0)))
            if asset_class == AssetClass.CRYPTO and group_class is not None:
                asset_class = group_class

            records.append(FundingRecord(
                symbol=classified.symbol,
                exchange=self.name,
                asset_class=asset_class,
                funding_rate=rate,
                mark_price=state.token_price_usd,
            ))

        logger.debug(f"[{self.name}] {len(records)} pairs priced, {dormant} dormant")
        return records

    def _dominant_state(
        self,
        index: int,
        collaterals: list[dict[str, Any]],
    ) -> Optional[tuple[VelocityPairParams, VelocityPairState]]:
        """Params and state from the collateral with the most OI for a pair."""
        best = None
        best_oi_usd = -1.0
        for collateral in collaterals:
            funding = collateral.get("fundingFees") or {}
            raw_params = _at(funding.get("pairParams") or [], index)
            if not raw_params:
                continue
            price = parse_float((collateral.get("prices") or {}).get("collateralPriceUsd"), 0.0)
            state = _state(
                _at(funding.get("pairData") or [], index),
                _at(collateral.get("pairOis") or [], index),
                price,
            )
            oi_usd = (state.oi_long_collateral + state.oi_short_collateral) * price
            if oi_usd > best_oi_usd:
                best = (_params(raw_params), state)
                best_oi_usd = oi_usd
        return best
