"""Option chain analytics: PCR, Max Pain, ATM, support/resistance and trend."""
import numpy as np
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Sequence

from app.providers.models import AnalysisResult, OptionChainSnapshot, StrikeRecord


BULLISH = "Bullish"
BEARISH = "Bearish"
NEUTRAL = "Neutral"

# PCR thresholds for the trend cascade
PCR_BULLISH_ABOVE = 1.2
PCR_BEARISH_BELOW = 0.6


def ratio(numerator: float, denominator: float) -> float:
    """Ratio rounded half up to 2 decimals, 0 when the denominator is 0."""
    if denominator == 0:
        return 0.0
    # exact binary value of the quotient, halves away from zero
    value = Decimal(numerator / denominator).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(value)


def _paired(strikes: Iterable[StrikeRecord]) -> List[StrikeRecord]:
    return [s for s in strikes if s.has_both_legs]


def pcr_oi(strikes: Sequence[StrikeRecord]) -> float:
    """Put-Call Ratio of open interest over strikes with both legs."""
    paired = _paired(strikes)
    return ratio(sum(s.put.open_interest for s in paired), sum(s.call.open_interest for s in paired))


def pcr_volume(strikes: Sequence[StrikeRecord]) -> float:
    """Put-Call Ratio of traded volume over strikes with both legs."""
    paired = _paired(strikes)
    return ratio(
        sum(s.put.total_traded_volume for s in paired),
        sum(s.call.total_traded_volume for s in paired)
    )


def pcr_change_oi(put_change_oi: float, call_change_oi: float) -> float:
    """Put-Call Ratio of change in open interest."""
    return ratio(put_change_oi, call_change_oi)


def atm_strike(underlying_value: float, strike_prices: Sequence[float]) -> float:
    """
    Find the At The Money strike.

    Args:
        underlying_value: Spot price
        strike_prices: Strikes in ascending order

    Returns:
        Strike closest to the spot (lowest on ties), or 0 if there are none
    """
    if not strike_prices:
        return 0
    # min() keeps the first of equal keys
    return min(strike_prices, key=lambda strike: abs(strike - underlying_value))


def support(strikes: Sequence[StrikeRecord]) -> float:
    """Strike with the highest put OI (lowest strike on ties), 0 if no put OI."""
    best_strike, best_oi = 0, 0
    for record in strikes:
        if record.put_oi > best_oi:
            best_strike, best_oi = record.strike_price, record.put_oi
    return best_strike


def resistance(strikes: Sequence[StrikeRecord]) -> float:
    """Strike with the highest call OI (lowest strike on ties), 0 if no call OI."""
    best_strike, best_oi = 0, 0
    for record in strikes:
        if record.call_oi > best_oi:
            best_strike, best_oi = record.strike_price, record.call_oi
    return best_strike


def writer_losses(strikes: Sequence[StrikeRecord]) -> np.ndarray:
    """
    Total option writer loss for expiry at each distinct strike.

    For an expiry at E the loss is
        sum((E - S) * CallOI(S) for S < E) + sum((S - E) * PutOI(S) for S > E)

    Returns:
        Losses aligned with the sorted, de-duplicated strike prices
    """
    prices = np.array([s.strike_price for s in strikes], dtype=float)
    call_oi = np.array([s.call_oi for s in strikes], dtype=float)
    put_oi = np.array([s.put_oi for s in strikes], dtype=float)

    candidates = np.unique(prices)
    # rows: candidate expiry E, columns: strike S
    distance = candidates[:, None] - prices[None, :]
    call_loss = np.where(distance > 0, distance, 0.0) @ call_oi
    put_loss = np.where(distance < 0, -distance, 0.0) @ put_oi
    return call_loss + put_loss


def max_pain(strikes: Sequence[StrikeRecord]) -> float:
    """
    Calculate the Max Pain strike.

    Max Pain is the expiry strike at which option writers lose the least.
    Only strikes present in the chain are candidates; the lowest strike
    wins ties.
    """
    if not strikes:
        return 0
    candidates = np.unique([s.strike_price for s in strikes])
    # argmin returns the first occurrence
    return float(candidates[int(np.argmin(writer_losses(strikes)))])


def classify_trend(pcr: float, put_change_oi: float, call_change_oi: float) -> str:
    """
    Classify market bias from PCR and OI change.

    Evaluated in order: PCR above 1.2 is bullish, PCR below 0.6 is bearish,
    then more put writing is bullish and more call writing is bearish.
    """
    if pcr > PCR_BULLISH_ABOVE:
        return BULLISH
    if pcr < PCR_BEARISH_BELOW:
        return BEARISH
    if put_change_oi > call_change_oi:
        return BULLISH
    if call_change_oi > put_change_oi:
        return BEARISH
    return NEUTRAL


def analyze_option_chain(snapshot: OptionChainSnapshot) -> AnalysisResult:
    """
    Compute all summary metrics for a snapshot.

    Totals and ratios cover strikes with both legs present. An empty
    chain yields zeros and a Neutral trend.

    Args:
        snapshot: Parsed option chain

    Returns:
        AnalysisResult
    """
    strikes = snapshot.strikes
    paired = _paired(strikes)

    call_oi = sum(s.call.open_interest for s in paired)
    put_oi = sum(s.put.open_interest for s in paired)
    call_change_oi = sum(s.call.change_in_open_interest for s in paired)
    put_change_oi = sum(s.put.change_in_open_interest for s in paired)

    pcr = ratio(put_oi, call_oi)

    if not strikes:
        return AnalysisResult(
            pcr=0.0,
            pcr_volume=0.0,
            max_pain=0,
            call_oi=0,
            put_oi=0,
            call_change_oi=0,
            put_change_oi=0,
            atm_strike=0,
            trend=NEUTRAL,
            support=0,
            resistance=0
        )

    return AnalysisResult(
        pcr=pcr,
        pcr_volume=pcr_volume(strikes),
        max_pain=max_pain(strikes),
        call_oi=call_oi,
        put_oi=put_oi,
        call_change_oi=call_change_oi,
        put_change_oi=put_change_oi,
        atm_strike=atm_strike(snapshot.underlying_value, snapshot.strike_prices),
        trend=classify_trend(pcr, put_change_oi, call_change_oi),
        support=support(strikes),
        resistance=resistance(strikes)
    )
