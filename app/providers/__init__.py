"""Abstract interface for option chain providers."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class OptionChainProvider(ABC):
    """Abstract base class for upstream option chain data providers."""

    @abstractmethod
    async def resolve_stock_id(self, symbol: str) -> Optional[str]:
        """
        Resolve an index symbol to the provider's internal identifier.

        Args:
            symbol: Index symbol (e.g. NIFTY)

        Returns:
            Identifier string, or None if not found
        """
        pass

    @abstractmethod
    async def get_expiry_dates(self, stock_id: str) -> List[str]:
        """
        List expiry dates for an identifier, nearest first.

        Returns:
            Ordered expiry date strings, empty if none are available
        """
        pass

    @abstractmethod
    async def get_snapshot_payload(self, stock_id: str, expiry_date: str, time_label: str) -> Dict[str, Any]:
        """
        Fetch the raw option chain payload up to a time-of-day cutoff.

        Args:
            stock_id: Provider identifier
            expiry_date: Expiry to fetch
            time_label: Cutoff in HH:MM

        Returns:
            Raw provider payload

        Raises:
            ProviderError: If API call fails
        """
        pass

    async def close(self):
        """Release any held resources."""
        pass


class ProviderError(Exception):
    """Exception raised when provider API fails (transport failure)."""
    pass


class LookupFailure(Exception):
    """Raised when a symbol identifier or its expiry dates cannot be found."""
    pass
