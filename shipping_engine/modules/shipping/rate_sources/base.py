"""
Base Rate Source Interface

A RateSource quotes one package between two addresses, buys the label for a
chosen rate and voids purchased labels. Implementations:
- EasyPostRateSource: EasyPost REST API over httpx
- MockRateSource: deterministic rates for local development and tests
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from shipping_engine.core.config import Settings
from shipping_engine.models.rates import AddressInput, Label, Package, Rate, VoidResult


class RateSource(ABC):
    """
    Abstract base class for rate sources.

    Sources may hold network clients; use them as async context managers or
    call close() when done.
    """

    #: Registry name, set by @register_rate_source
    source_name: str = ""

    def __init__(self, source_settings: Optional[Settings] = None):
        self._settings = source_settings

    @property
    def is_mock(self) -> bool:
        return False

    @abstractmethod
    async def get_rates(
        self,
        from_address: AddressInput,
        to_address: AddressInput,
        package: Package,
        carrier_account_ids: Sequence[str] = (),
    ) -> List[Rate]:
        """
        Quote one package.

        Args:
            from_address: Origin address
            to_address: Destination address
            package: Weight (oz) and dimensions (in) of a single box
            carrier_account_ids: Carrier accounts to quote with; empty means
                every account the source knows

        Returns:
            Rates, each carrying the shipment id needed to buy it

        Raises:
            RateSourceError: the source could not produce rates
        """
        pass

    @abstractmethod
    async def buy_shipment(self, shipment_id: str, rate_id: str) -> Label:
        """
        Purchase the label for one shipment at the given rate.

        Raises:
            RateSourceError: the purchase failed
        """
        pass

    @abstractmethod
    async def void_label(self, shipment_id: str) -> VoidResult:
        """
        Void (refund) a purchased label.

        Returns:
            VoidResult; approved is False when the carrier rejected the void

        Raises:
            RateSourceError: the request itself failed
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
