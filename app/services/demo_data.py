"""Synthetic option chains shown when live data is unavailable."""
import numpy as np
from datetime import datetime
from typing import Optional

from app.providers.models import CALL, PUT, OptionChainSnapshot, OptionLeg, StrikeRecord
from app.utils.time import market_now


MOCK_EXPIRY = "MOCK-DATA"
STRIKE_COUNT = 40
STRIKE_STEP = 50

BASE_PRICES = {
    "NIFTY": 22000.0,
    "BANKNIFTY": 47000.0,
}
DEFAULT_BASE_PRICE = 20500.0


def generate_mock_chain(
    symbol: str,
    underlying_value: Optional[float] = None,
    timestamp: Optional[datetime] = None,
    seed: Optional[int] = None
) -> OptionChainSnapshot:
    """
    Generate a random option chain around a base price.

    Args:
        symbol: Index symbol, selects the base price
        underlying_value: Spot price (default: base price +/- 50)
        timestamp: Snapshot time (default: now, exchange time, naive)
        seed: Seed for reproducible output

    Returns:
        OptionChainSnapshot with 40 strikes at 50 point spacing
    """
    rng = np.random.default_rng(seed)

    if underlying_value is None:
        base = BASE_PRICES.get(symbol.upper(), DEFAULT_BASE_PRICE)
        underlying_value = round(base + (rng.random() - 0.5) * 100, 2)
    if timestamp is None:
        timestamp = market_now().replace(tzinfo=None, microsecond=0)

    start_strike = int(underlying_value // STRIKE_STEP) * STRIKE_STEP - 1000

    strikes = []
    for i in range(STRIKE_COUNT):
        strike = float(start_strike + i * STRIKE_STEP)
        legs = {}
        for option_type, iv_floor, intrinsic in (
            (CALL, 12.0, underlying_value - strike),
            (PUT, 14.0, strike - underlying_value),
        ):
            legs[option_type] = OptionLeg(
                strike_price=strike,
                expiry_date=MOCK_EXPIRY,
                option_type=option_type,
                open_interest=int(rng.integers(0, 100000)),
                change_in_open_interest=int(rng.integers(-5000, 15000)),
                total_traded_volume=int(rng.integers(0, 500000)),
                last_price=round(max(0.0, intrinsic + rng.random() * 50), 2),
                underlying_value=underlying_value,
                underlying=symbol,
                implied_volatility=round(iv_floor + rng.random() * 5, 2),
            )
        strikes.append(StrikeRecord(
            strike_price=strike,
            expiry_date=MOCK_EXPIRY,
            call=legs[CALL],
            put=legs[PUT],
        ))

    return OptionChainSnapshot(
        symbol=symbol,
        underlying_value=underlying_value,
        timestamp=timestamp,
        expiry_dates=[MOCK_EXPIRY],
        strikes=strikes,
    )
