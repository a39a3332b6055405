"""Data models for option chain snapshots and derived analytics."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


CALL = "CE"
PUT = "PE"


@dataclass(frozen=True)
class OptionLeg:
    """Call or put contract at one strike and expiry."""
    strike_price: float
    expiry_date: str
    option_type: str  # "CE" or "PE"
    open_interest: int = 0
    change_in_open_interest: int = 0
    total_traded_volume: int = 0
    last_price: float = 0.0
    underlying_value: float = 0.0
    underlying: str = ""
    # Not covered by the upstream feed, always zero
    pchange_in_open_interest: float = 0.0
    implied_volatility: float = 0.0
    change: float = 0.0
    pchange: float = 0.0
    total_buy_quantity: int = 0
    total_sell_quantity: int = 0
    bid_qty: int = 0
    bid_price: float = 0.0
    ask_qty: int = 0
    ask_price: float = 0.0

    @property
    def identifier(self) -> str:
        return f"{self.option_type}{self.strike_price}"


@dataclass(frozen=True)
class StrikeRecord:
    """One strike with optional call and put legs."""
    strike_price: float
    expiry_date: str
    call: Optional[OptionLeg] = None
    put: Optional[OptionLeg] = None

    def __post_init__(self):
        for leg in (self.call, self.put):
            if leg is not None and leg.strike_price != self.strike_price:
                raise ValueError(
                    f"Leg strike {leg.strike_price} does not match record strike {self.strike_price}"
                )

    @property
    def has_both_legs(self) -> bool:
        return self.call is not None and self.put is not None

    @property
    def call_oi(self) -> int:
        return self.call.open_interest if self.call else 0

    @property
    def put_oi(self) -> int:
        return self.put.open_interest if self.put else 0


@dataclass(frozen=True)
class OptionChainSnapshot:
    """Complete option chain for one index and expiry at a point in time.

    Strikes are re-sorted ascending on construction and must be unique.
    """
    symbol: str
    underlying_value: float
    timestamp: datetime
    expiry_dates: List[str]
    strikes: List[StrikeRecord] = field(default_factory=list)

    def __post_init__(self):
        ordered = sorted(self.strikes, key=lambda s: s.strike_price)
        prices = [s.strike_price for s in ordered]
        if len(prices) != len(set(prices)):
            raise ValueError("Strike prices within a snapshot must be unique")
        # frozen dataclass, so bypass __setattr__
        object.__setattr__(self, "strikes", ordered)
        object.__setattr__(self, "expiry_dates", list(self.expiry_dates))

    @property
    def strike_prices(self) -> List[float]:
        return [s.strike_price for s in self.strikes]

    @property
    def expiry_date(self) -> Optional[str]:
        return self.expiry_dates[0] if self.expiry_dates else None

    def to_document(self) -> Dict[str, Any]:
        """Serialize to a JSON-ready document in the upstream record layout."""
        def leg_doc(leg: Optional[OptionLeg]) -> Optional[Dict[str, Any]]:
            if leg is None:
                return None
            return {
                "strikePrice": leg.strike_price,
                "expiryDate": leg.expiry_date,
                "underlying": leg.underlying,
                "identifier": leg.identifier,
                "openInterest": leg.open_interest,
                "changeinOpenInterest": leg.change_in_open_interest,
                "pchangeinOpenInterest": leg.pchange_in_open_interest,
                "totalTradedVolume": leg.total_traded_volume,
                "impliedVolatility": leg.implied_volatility,
                "lastPrice": leg.last_price,
                "change": leg.change,
                "pChange": leg.pchange,
                "totalBuyQuantity": leg.total_buy_quantity,
                "totalSellQuantity": leg.total_sell_quantity,
                "bidQty": leg.bid_qty,
                "bidprice": leg.bid_price,
                "askQty": leg.ask_qty,
                "askPrice": leg.ask_price,
                "underlyingValue": leg.underlying_value,
            }

        data = []
        for record in self.strikes:
            row = {"strikePrice": record.strike_price, "expiryDate": record.expiry_date}
            if record.call is not None:
                row["CE"] = leg_doc(record.call)
            if record.put is not None:
                row["PE"] = leg_doc(record.put)
            data.append(row)

        return {
            "records": {
                "expiryDates": list(self.expiry_dates),
                "data": data,
                "timestamp": self.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                "underlyingValue": self.underlying_value,
                "strikePrices": self.strike_prices,
            }
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Metrics derived from one option chain snapshot."""
    pcr: float
    pcr_volume: float
    max_pain: float
    call_oi: int
    put_oi: int
    call_change_oi: int
    put_change_oi: int
    atm_strike: float
    trend: str  # "Bullish", "Bearish" or "Neutral"
    support: float
    resistance: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pcr": self.pcr,
            "pcrVol": self.pcr_volume,
            "maxPain": self.max_pain,
            "callOI": self.call_oi,
            "putOI": self.put_oi,
            "callChangeOI": self.call_change_oi,
            "putChangeOI": self.put_change_oi,
            "atmStrike": self.atm_strike,
            "trend": self.trend,
            "support": self.support,
            "resistance": self.resistance,
        }


@dataclass(frozen=True)
class SnapshotSummary:
    """Persisted time-series point compressed from one analyzed snapshot."""
    id: str
    timestamp: datetime
    underlying_value: float
    pcr: float
    max_pain: float
    ce_total_oi: int
    pe_total_oi: int
    pcr_change_oi: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "underlyingValue": self.underlying_value,
            "pcr": self.pcr,
            "maxPain": self.max_pain,
            "ceTotalOI": self.ce_total_oi,
            "peTotalOI": self.pe_total_oi,
        }
        if self.pcr_change_oi is not None:
            data["pcrChangeOI"] = self.pcr_change_oi
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SnapshotSummary":
        pcr_change_oi = data.get("pcrChangeOI")
        return cls(
            id=str(data["id"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            underlying_value=float(data.get("underlyingValue", 0.0)),
            pcr=float(data.get("pcr", 0.0)),
            max_pain=float(data.get("maxPain", 0.0)),
            ce_total_oi=int(data.get("ceTotalOI", 0)),
            pe_total_oi=int(data.get("peTotalOI", 0)),
            pcr_change_oi=float(pcr_change_oi) if pcr_change_oi is not None else None,
        )
