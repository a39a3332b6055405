"""Shared pytest fixtures for option chain analyzer tests."""
import pytest
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from app.providers.models import (
    CALL,
    PUT,
    AnalysisResult,
    OptionChainSnapshot,
    OptionLeg,
    SnapshotSummary,
    StrikeRecord,
)


DEFAULT_EXPIRY = "2024-03-28"
DEFAULT_TIMESTAMP = datetime(2024, 3, 28, 15, 30)


def create_leg(
    strike: float,
    option_type: str = CALL,
    open_interest: int = 1000,
    change_in_open_interest: int = 0,
    total_traded_volume: int = 0,
    last_price: float = 10.0,
    underlying_value: float = 18000.0,
    expiry_date: str = DEFAULT_EXPIRY,
    symbol: str = "NIFTY"
) -> OptionLeg:
    """Factory function to create OptionLeg instances for testing."""
    return OptionLeg(
        strike_price=strike,
        expiry_date=expiry_date,
        option_type=option_type,
        open_interest=open_interest,
        change_in_open_interest=change_in_open_interest,
        total_traded_volume=total_traded_volume,
        last_price=last_price,
        underlying_value=underlying_value,
        underlying=symbol,
    )


def create_strike(
    strike: float,
    call_oi: Optional[int] = 1000,
    put_oi: Optional[int] = 1000,
    call_change: int = 0,
    put_change: int = 0,
    call_volume: int = 0,
    put_volume: int = 0,
    expiry_date: str = DEFAULT_EXPIRY
) -> StrikeRecord:
    """Factory function to create StrikeRecord instances.

    Pass ``None`` as an OI to leave that leg out.
    """
    call = None
    if call_oi is not None:
        call = create_leg(
            strike, CALL, call_oi, call_change, call_volume, expiry_date=expiry_date
        )
    put = None
    if put_oi is not None:
        put = create_leg(
            strike, PUT, put_oi, put_change, put_volume, expiry_date=expiry_date
        )
    return StrikeRecord(strike_price=strike, expiry_date=expiry_date, call=call, put=put)


def create_snapshot(
    strikes: Sequence[StrikeRecord] = None,
    underlying_value: float = 18000.0,
    symbol: str = "NIFTY",
    timestamp: datetime = None,
    expiry_dates: List[str] = None
) -> OptionChainSnapshot:
    """Factory function to create OptionChainSnapshot instances for testing."""
    if strikes is None:
        strikes = [
            create_strike(17900.0, call_oi=3000, put_oi=1000),
            create_strike(18000.0, call_oi=2000, put_oi=4000),
            create_strike(18100.0, call_oi=5000, put_oi=500),
        ]
    return OptionChainSnapshot(
        symbol=symbol,
        underlying_value=underlying_value,
        timestamp=timestamp or DEFAULT_TIMESTAMP,
        expiry_dates=expiry_dates or [DEFAULT_EXPIRY],
        strikes=list(strikes),
    )


def create_summary(
    timestamp: datetime,
    summary_id: str = None,
    pcr: float = 1.0,
    underlying_value: float = 18000.0
) -> SnapshotSummary:
    """Factory function to create SnapshotSummary instances for testing."""
    return SnapshotSummary(
        id=summary_id or f"id-{timestamp.isoformat()}",
        timestamp=timestamp,
        underlying_value=underlying_value,
        pcr=pcr,
        max_pain=18000.0,
        ce_total_oi=1000,
        pe_total_oi=int(1000 * pcr),
    )


def create_analysis(pcr: float = 1.0, trend: str = "Neutral") -> AnalysisResult:
    """Factory function to create AnalysisResult instances for testing."""
    return AnalysisResult(
        pcr=pcr,
        pcr_volume=1.0,
        max_pain=18000.0,
        call_oi=1000,
        put_oi=int(1000 * pcr),
        call_change_oi=0,
        put_change_oi=0,
        atm_strike=18000.0,
        trend=trend,
        support=18000.0,
        resistance=18000.0,
    )


def create_payload(
    oi_data: Dict[str, Dict] = None,
    lp: float = 22005.5,
    trading_date: str = "2024-03-28",
    status: int = 0
) -> Dict:
    """Factory function to create live-oi-data payloads."""
    if oi_data is None:
        oi_data = {
            "21950": {"callOi": 1200, "callOiChange": 100, "callVol": 5000, "callLtp": 80.5,
                      "putOi": 2500, "putOiChange": 300, "putVol": 7000, "putLtp": 30.0},
            "22000": {"callOi": 4000, "callOiChange": -200, "callVol": 9000, "callLtp": 45.0,
                      "putOi": 3000, "putOiChange": 150, "putVol": 8000, "putLtp": 42.0},
            "22050": {"callOi": 3500, "callOiChange": 50, "callVol": 6000, "callLtp": 20.0,
                      "putOi": 800, "putOiChange": -20, "putVol": 1500, "putLtp": 70.0},
        }
    return {
        "head": {"status": status},
        "body": {
            "inputData": {"lp": lp, "tradingDate": trading_date},
            "oiData": oi_data,
        },
    }


@pytest.fixture
def sample_snapshot():
    """Three-strike NIFTY chain around 18000."""
    return create_snapshot()


@pytest.fixture
def sample_payload():
    """Three-strike live-oi-data payload around 22000."""
    return create_payload()
