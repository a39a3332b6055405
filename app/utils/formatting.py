"""Formatting utilities for exports and status messages."""
import time
from typing import Any, Dict, Optional

from app.providers.models import AnalysisResult, OptionChainSnapshot


def export_filename(symbol: str, timestamp_ms: Optional[int] = None) -> str:
    """
    Build the download filename for an exported snapshot.

    Args:
        symbol: Index symbol
        timestamp_ms: Epoch milliseconds (defaults to now)

    Returns:
        Filename such as ``NSE_NIFTY_1711617000000.json``
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"NSE_{symbol.upper()}_{timestamp_ms}.json"


def build_export_document(
    snapshot: OptionChainSnapshot,
    analysis: Optional[AnalysisResult] = None,
    source: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build a JSON-ready export of a snapshot.

    The ``records`` section follows the NSE option chain layout; the
    analysis and source are attached when given.
    """
    document = {"symbol": snapshot.symbol, **snapshot.to_document()}
    if analysis is not None:
        document["analysis"] = analysis.to_dict()
    if source is not None:
        document["source"] = source
    return document


def format_analysis_message(symbol: str, snapshot: OptionChainSnapshot, analysis: AnalysisResult) -> str:
    """
    Format a one-line summary of an analysis.

    Args:
        symbol: Index symbol
        snapshot: Analyzed snapshot
        analysis: Its analysis result

    Returns:
        Summary string
    """
    return (
        f"{symbol} @ {snapshot.underlying_value:.2f} | "
        f"PCR {analysis.pcr:.2f} (vol {analysis.pcr_volume:.2f}) | "
        f"Max Pain {analysis.max_pain:g} | ATM {analysis.atm_strike:g} | "
        f"S {analysis.support:g} / R {analysis.resistance:g} | {analysis.trend}"
    )
