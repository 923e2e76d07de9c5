"""
EasyPost Rate Source

Talks to the EasyPost v2 REST API with httpx:
- POST /shipments                 create a shipment, returns rates
- POST /shipments/{id}/buy        buy the label for a rate
- POST /shipments/{id}/refund     void (refund) a label

Authentication is HTTP basic auth with the API key as the username.
Parcel weight is sent in ounces, dimensions in inches.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import httpx

from shipping_engine.core.config import Settings
from shipping_engine.core.exceptions import RateSourceError
from shipping_engine.models.rates import AddressInput, Label, Package, Rate, VoidResult
from shipping_engine.modules.shipping.rate_sources import EASYPOST, register_rate_source
from shipping_engine.modules.shipping.rate_sources.base import RateSource

logger = logging.getLogger(__name__)

# Refund statuses that mean the void was accepted
APPROVED_REFUND_STATUSES = ("submitted", "refunded")


def _address_payload(address: AddressInput) -> Dict[str, Any]:
    payload = {
        "name": address.name,
        "company": address.company_name,
        "street1": address.address_line1,
        "street2": address.address_line2,
        "city": address.city_locality,
        "state": address.state_province,
        "zip": address.postal_code,
        "country": address.country_code,
        "phone": address.phone,
        "email": address.email,
        "residential": address.residential,
    }
    return {k: v for k, v in payload.items() if v is not None}


def _parse_amount(value: Any) -> float:
    """EasyPost sends money as strings ("5.25")."""
    if value in (None, ""):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"EasyPost returned unparseable amount: {value!r}")
        return 0.0


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@register_rate_source(EASYPOST)
class EasyPostRateSource(RateSource):
    """
    EasyPost API client.

    The underlying httpx.AsyncClient is created on first use and released by
    close(). A transport may be injected for testing.
    """

    def __init__(
        self,
        source_settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(source_settings)
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def _api_key(self) -> str:
        return self._settings.EASYPOST_API_KEY if self._settings else ""

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if not self._api_key:
            raise RateSourceError("EasyPost API key is not configured", source=EASYPOST)

        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._settings.EASYPOST_API_BASE,
                auth=(self._api_key, ""),
                timeout=self._settings.EASYPOST_TIMEOUT_SECONDS,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _post(self, path: str, data: Optional[Dict] = None) -> Dict:
        """POST to the API and return the decoded body."""
        client = self._get_http_client()

        try:
            response = await client.post(path, json=data or {})
        except httpx.RequestError as e:
            logger.error(f"EasyPost request failed: POST {path}: {e}")
            raise RateSourceError(f"Network error: {e}", source=EASYPOST) from e

        logger.debug(f"EasyPost POST {path} -> {response.status_code}")

        if response.status_code >= 400:
            error_msg = "EasyPost API error"
            try:
                error_data = response.json()
            except ValueError:
                error_data = {"raw": response.text[:500]}
            error = error_data.get("error") if isinstance(error_data, dict) else None
            if isinstance(error, dict) and error.get("message"):
                error_msg = error["message"]

            logger.error(f"EasyPost API error: {response.status_code} - {error_msg}")
            raise RateSourceError(
                error_msg,
                source=EASYPOST,
                status_code=response.status_code,
                details={"response": error_data},
            )

        try:
            return response.json()
        except ValueError as e:
            raise RateSourceError(
                "EasyPost returned invalid JSON",
                source=EASYPOST,
                status_code=response.status_code,
            ) from e

    # ==================== Rates ====================

    async def get_rates(
        self,
        from_address: AddressInput,
        to_address: AddressInput,
        package: Package,
        carrier_account_ids: Sequence[str] = (),
    ) -> List[Rate]:
        shipment: Dict[str, Any] = {
            "from_address": _address_payload(from_address),
            "to_address": _address_payload(to_address),
            "parcel": {
                "length": package.length,
                "width": package.width,
                "height": package.height,
                "weight": round(package.weight_oz, 2),
            },
        }
        if carrier_account_ids:
            shipment["carrier_accounts"] = list(carrier_account_ids)

        logger.info(
            f"Creating EasyPost shipment: from={from_address.postal_code} to={to_address.postal_code} "
            f"weight={package.weight_oz:.2f}oz dims={package.length}x{package.width}x{package.height} "
            f"accounts={list(carrier_account_ids) or 'all'}"
        )

        data = await self._post("/shipments", {"shipment": shipment})
        shipment_id = data.get("id", "")
        raw_rates = data.get("rates") or []

        if not raw_rates:
            logger.warning(f"EasyPost returned 0 rates for {shipment_id}: {data.get('messages')}")

        return [self._to_rate(raw, shipment_id) for raw in raw_rates]

    @staticmethod
    def _to_rate(raw: Dict[str, Any], shipment_id: str) -> Rate:
        return Rate(
            rate_id=raw.get("id", ""),
            carrier_name=raw.get("carrier", ""),
            service_name=raw.get("service", ""),
            price=_parse_amount(raw.get("rate")),
            currency=(raw.get("currency") or "USD").upper(),
            shipment_id=raw.get("shipment_id") or shipment_id,
            carrier_id=raw.get("carrier_account_id", ""),
            carrier_code=(raw.get("carrier") or "").lower(),
            service_code=raw.get("service", ""),
            delivery_days=raw.get("delivery_days") or 0,
            estimated_date=raw.get("delivery_date") or "",
        )

    # ==================== Labels ====================

    async def buy_shipment(self, shipment_id: str, rate_id: str) -> Label:
        data = await self._post(f"/shipments/{shipment_id}/buy", {"rate": {"id": rate_id}})

        selected = data.get("selected_rate") or {}
        postage = data.get("postage_label") or {}
        label = Label(
            label_id=data.get("id", shipment_id),
            shipment_id=shipment_id,
            tracking_number=data.get("tracking_code") or "",
            price=_parse_amount(selected.get("rate")),
            currency=(selected.get("currency") or "USD").upper(),
            carrier_name=selected.get("carrier", ""),
            service_name=selected.get("service", ""),
            label_url=postage.get("label_pdf_url") or postage.get("label_url"),
            status=data.get("status") or "purchased",
            created_at=_parse_datetime(data.get("created_at")),
        )

        logger.info(f"EasyPost label purchased: {shipment_id} tracking={label.tracking_number}")
        return label

    async def void_label(self, shipment_id: str) -> VoidResult:
        data = await self._post(f"/shipments/{shipment_id}/refund")
        status = data.get("refund_status") or ""
        return VoidResult(
            approved=status in APPROVED_REFUND_STATUSES,
            message=f"Refund status: {status or 'unknown'}",
        )
