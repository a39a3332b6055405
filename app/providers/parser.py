"""Normalize raw Trendlyne live-OI payloads into option chain snapshots."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from app.providers.models import CALL, PUT, OptionChainSnapshot, OptionLeg, StrikeRecord
from app.utils.time import market_today, parse_time_label


logger = logging.getLogger(__name__)


class MalformedPayload(Exception):
    """Raised when a payload lacks the minimum structure for a snapshot."""
    pass


# Per-side raw field names in oiData entries
_LEG_FIELDS = {
    CALL: {"oi": "callOi", "oi_change": "callOiChange", "volume": "callVol", "ltp": "callLtp"},
    PUT: {"oi": "putOi", "oi_change": "putOiChange", "volume": "putVol", "ltp": "putLtp"},
}


def _to_int(value: Any) -> int:
    """Coerce a raw numeric field to int, defaulting to 0."""
    if value is None or value == "":
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        logger.debug(f"Unparseable integer field {value!r}, using 0")
        return 0


def _to_float(value: Any) -> float:
    """Coerce a raw numeric field to float, defaulting to 0.0."""
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug(f"Unparseable float field {value!r}, using 0.0")
        return 0.0


def _underlying_value(body: Mapping[str, Any]) -> float:
    """Read the spot price from inputData.lp, falling back to stockData.lp."""
    for section in ("inputData", "stockData"):
        data = body.get(section) or {}
        if isinstance(data, Mapping) and data.get("lp"):
            return _to_float(data["lp"])
    return 0.0


def _build_leg(
    option_type: str,
    raw: Mapping[str, Any],
    strike_price: float,
    expiry_date: str,
    underlying_value: float,
    symbol: str
) -> OptionLeg:
    fields = _LEG_FIELDS[option_type]
    return OptionLeg(
        strike_price=strike_price,
        expiry_date=expiry_date,
        option_type=option_type,
        open_interest=max(_to_int(raw.get(fields["oi"])), 0),
        change_in_open_interest=_to_int(raw.get(fields["oi_change"])),
        total_traded_volume=max(_to_int(raw.get(fields["volume"])), 0),
        last_price=max(_to_float(raw.get(fields["ltp"])), 0.0),
        underlying_value=underlying_value,
        underlying=symbol,
    )


def _snapshot_timestamp(trading_date: Optional[str], time_label: str) -> datetime:
    hour, minute = parse_time_label(time_label)
    if trading_date:
        try:
            day = datetime.strptime(str(trading_date)[:10], "%Y-%m-%d").date()
        except ValueError:
            raise MalformedPayload(f"Unparseable trading date: {trading_date!r}")
    else:
        day = market_today()
    return datetime(day.year, day.month, day.day, hour, minute)


def parse_snapshot(
    payload: Any,
    expiry_date: str,
    time_label: str,
    symbol: str
) -> OptionChainSnapshot:
    """
    Parse a live-oi-data payload into an OptionChainSnapshot.

    Missing per-strike numeric fields default to zero. Only structural
    problems fail: an error status, a missing body or strike mapping, an
    unparseable strike key, or a zero price together with no strikes.

    Args:
        payload: Decoded JSON response
        expiry_date: Expiry the payload was requested for
        time_label: HH:MM cutoff the payload was requested for
        symbol: Index symbol

    Returns:
        OptionChainSnapshot with strikes sorted ascending

    Raises:
        MalformedPayload: If the payload has no usable data
    """
    if not isinstance(payload, Mapping):
        raise MalformedPayload("Payload is not a JSON object")

    head = payload.get("head") or {}
    status = head.get("status") if isinstance(head, Mapping) else None
    if status not in (None, 0, "0"):
        description = head.get("description") or head.get("statusDescription") or "unknown error"
        raise MalformedPayload(f"Provider returned status {status}: {description}")

    body = payload.get("body")
    if not isinstance(body, Mapping):
        raise MalformedPayload("Payload has no body")

    oi_data = body.get("oiData")
    if not isinstance(oi_data, Mapping):
        raise MalformedPayload("Payload has no strike mapping (oiData)")

    underlying_value = _underlying_value(body)
    if underlying_value == 0 and len(oi_data) == 0:
        raise MalformedPayload("Empty strike mapping with zero underlying price")

    input_data = body.get("inputData") or {}
    trading_date = input_data.get("tradingDate") if isinstance(input_data, Mapping) else None

    strikes: List[StrikeRecord] = []
    for strike_str, raw in oi_data.items():
        try:
            strike_price = float(strike_str)
        except (TypeError, ValueError):
            raise MalformedPayload(f"Unparseable strike price: {strike_str!r}")

        if not isinstance(raw, Mapping):
            raw = {}

        strikes.append(StrikeRecord(
            strike_price=strike_price,
            expiry_date=expiry_date,
            call=_build_leg(CALL, raw, strike_price, expiry_date, underlying_value, symbol),
            put=_build_leg(PUT, raw, strike_price, expiry_date, underlying_value, symbol),
        ))

    try:
        snapshot = OptionChainSnapshot(
            symbol=symbol,
            underlying_value=underlying_value,
            timestamp=_snapshot_timestamp(trading_date, time_label),
            expiry_dates=[expiry_date],
            strikes=strikes,
        )
    except ValueError as e:
        # Duplicate strikes such as "22000" and "22000.0"
        raise MalformedPayload(str(e))

    logger.debug(f"Parsed {len(snapshot.strikes)} strikes for {symbol} at {time_label} (spot {underlying_value})")
    return snapshot
