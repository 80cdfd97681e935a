import logging
import time
from typing import Any, Dict, List, Optional

import requests

from tailor_intake.config import ORDER_STORE_MAX_RETRIES, ORDER_STORE_TIMEOUT, ORDER_STORE_URL
from tailor_intake.models.intake import Customer, Preset

logger = logging.getLogger(__name__)


class OrderStoreError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class OrderStoreClient:
    """HTTP client for the order history store and preset catalog.

    GETs are retried with linear backoff on transport errors and 5xx;
    writes are sent once.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = ORDER_STORE_TIMEOUT,
        max_retries: int = ORDER_STORE_MAX_RETRIES,
        backoff: float = 0.5,
    ):
        self.base_url = (base_url or ORDER_STORE_URL).rstrip("/")
        self.token = token
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff = backoff
        logger.debug("OrderStoreClient initialized with base_url=%s max_retries=%s", self.base_url, self.max_retries)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, *, json: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        attempts = self.max_retries if method == "GET" else 1
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                logger.debug("%s %s attempt=%s params=%s", method, url, attempt, params)
                resp = requests.request(method, url, json=json, params=params, headers=self._headers(), timeout=self.timeout)
            except requests.RequestException as e:
                logger.warning("Attempt %s %s %s failed: %s", attempt, method, url, e)
                last_error = e
            else:
                if resp.status_code < 400:
                    return resp.json() if resp.content else None
                detail = self._detail(resp)
                if resp.status_code < 500:
                    raise OrderStoreError(f"{method} {path} failed: {detail}", resp.status_code, detail)
                logger.warning("Attempt %s %s %s returned %s: %s", attempt, method, url, resp.status_code, detail)
                last_error = OrderStoreError(f"{method} {path} failed: {detail}", resp.status_code, detail)
            if attempt < attempts:
                time.sleep(self.backoff * attempt)

        if isinstance(last_error, OrderStoreError):
            raise last_error
        raise OrderStoreError(f"{method} {path} failed: {last_error}") from last_error

    @staticmethod
    def _detail(resp: requests.Response) -> Any:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or f"HTTP {resp.status_code}"
        if isinstance(body, dict) and "detail" in body:
            return body["detail"]
        return body

    def get_presets(self, shop_id: str) -> List[Preset]:
        data = self._request("GET", f"/presets/{shop_id}") or {}
        return [Preset.model_validate(p) for p in data.get("presets", [])]

    def get_customers(self, shop_id: str) -> List[Customer]:
        data = self._request("GET", f"/orders/customers/{shop_id}") or []
        return [Customer.model_validate(c) for c in data if c.get("name") and c.get("phone")]

    def get_orders(self, shop_id: str, customer_phone: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if customer_phone:
            params["customer_phone"] = customer_phone
        if limit:
            params["limit"] = limit
        data = self._request("GET", f"/orders/{shop_id}", params=params) or {}
        return data.get("orders", [])

    def get_draft(self, draft_id: Any) -> Dict[str, Any]:
        data = self._request("GET", f"/orders/details/{draft_id}") or {}
        return data.get("order") or {}

    def create_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/orders", json=payload) or {}

    def update_order(self, order_id: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request("PUT", f"/orders/{order_id}", json=payload) or {}
        return data.get("order") or {}

    def delete_order(self, order_id: Any) -> None:
        self._request("DELETE", f"/orders/{order_id}")

    def promote_draft(self, draft_id: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create the final order and remove the draft in one server-side transaction."""
        return self._request("POST", f"/orders/drafts/{draft_id}/promote", json=payload) or {}
