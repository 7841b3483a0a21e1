"""HTTP client for the POS backend."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import requests

from caja_pos.config import BACKEND_TIMEOUT_SECONDS, BACKEND_URL
from caja_pos.errors import CollaboratorError
from caja_pos.logs import get_logger
from caja_pos.models import money_to_wire

logger = get_logger(__name__)

GENERIC_FAILURE_MESSAGE = "No se pudo completar la operación."


def _error_message(response: requests.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ("error", "message", "mensaje"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def _as_list(data: Any) -> list[dict[str, Any]]:
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


class BackendClient:
    """Thin JSON client; every failure is raised as CollaboratorError."""

    def __init__(
        self,
        base_url: str = BACKEND_URL,
        timeout: float = BACKEND_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.location_id = ""

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        headers = kwargs.pop("headers", {})
        if self.location_id:
            headers["X-Local-Id"] = self.location_id
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("backend_unreachable", method=method, path=path, error=str(exc))
            raise CollaboratorError(GENERIC_FAILURE_MESSAGE) from exc

        if not response.ok:
            message = _error_message(response)
            logger.info("backend_rejected", method=method, path=path, status=response.status_code, error=message)
            raise CollaboratorError(
                message or GENERIC_FAILURE_MESSAGE, status_code=response.status_code, from_backend=message is not None
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    # Catalog

    def list_products(self) -> list[dict[str, Any]]:
        return _as_list(self._request("GET", "/productos"))

    # Sales

    def submit_sale(
        self, lines: list[dict[str, Any]], total: Decimal, payment_type: str, order_type: str
    ) -> dict[str, Any]:
        payload = {
            "productos": lines,
            "total": money_to_wire(total),
            "tipo_pago": payment_type,
            "tipo_pedido": order_type,
        }
        data = self._request("POST", "/ventas", json=payload)
        return data if isinstance(data, dict) else {}

    def list_sales(self, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        return _as_list(self._request("GET", "/ventas", params=params or {}))

    # Held tickets

    def save_held_ticket(self, name: str, lines: list[dict[str, Any]], total: Decimal) -> dict[str, Any]:
        payload = {"nombre": name, "productos": lines, "total": money_to_wire(total)}
        data = self._request("POST", "/tickets", json=payload)
        return data if isinstance(data, dict) else {}

    def list_held_tickets(self) -> list[dict[str, Any]]:
        return _as_list(self._request("GET", "/tickets"))

    def discard_held_ticket(self, ticket_id: str) -> None:
        self._request("DELETE", f"/tickets/{ticket_id}")

    # Register

    def open_register(self, opening_float: Decimal) -> dict[str, Any]:
        data = self._request("POST", "/caja/abrir", json={"monto_inicial": money_to_wire(opening_float)})
        return data if isinstance(data, dict) else {}

    def close_register(self, operator_name: str) -> dict[str, Any]:
        data = self._request("POST", "/caja/cerrar", json={"nombre": operator_name})
        return data if isinstance(data, dict) else {}

    def list_register_history(self) -> list[dict[str, Any]]:
        return _as_list(self._request("GET", "/caja/historial"))

    # Polled feeds

    def list_pending_web_orders(self) -> list[dict[str, Any]]:
        return _as_list(self._request("GET", "/pedidos-web"))

    def list_pending_table_charges(self) -> list[dict[str, Any]]:
        return _as_list(self._request("GET", "/restaurante/comandas/pendientes-caja"))

    # Receipt

    def get_receipt_config(self) -> dict[str, Any]:
        data = self._request("GET", "/config-recibo")
        return data if isinstance(data, dict) else {}
