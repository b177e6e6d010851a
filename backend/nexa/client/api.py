# Overview: HTTP client for the NexaERP API.

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx


class ApiError(Exception):
    """Non-2xx answer from the API. The body is kept for details (e.g. stock conflicts)."""

    def __init__(self, status_code: int, payload: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.payload = payload or {}
        super().__init__(self.payload.get("error") or f"HTTP {status_code}")

    @property
    def details(self) -> Dict[str, Any]:
        return self.payload.get("details") or {}


class PermissionDenied(Exception):
    """The session lacks the permission; no request was sent."""


class PosApiClient:
    """
    Session-scoped API client.

    login() creates the session context (user, roles, permissions); logout()
    tears it down. Screens ask can() before offering an action, and the server
    checks again.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)
        self.token: Optional[str] = None
        self.current_user: Optional[Dict] = None
        self.roles: List[str] = []
        self.permissions: set[str] = set()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _headers(self, extra: Optional[Dict] = None) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if extra:
            headers.update(extra)
        return headers

    def request(self, method: str, path: str, *, json: Optional[Dict] = None,
                params: Optional[Dict] = None, headers: Optional[Dict] = None) -> Dict:
        response = self.client.request(
            method, path, json=json, params=params, headers=self._headers(headers),
        )
        try:
            body = response.json()
        except ValueError:
            body = {"error": response.text or f"HTTP {response.status_code}"}
        if response.status_code >= 400:
            raise ApiError(response.status_code, body)
        return body

    # Session

    def login(self, username: str, password: str) -> Dict:
        data = self.request("POST", "/api/auth/login", json={"username": username, "password": password})
        self.token = data["token"]
        self.current_user = data.get("user")
        self.roles = list(data.get("roles") or [])
        self.permissions = set(data.get("permissions") or [])
        return data

    def logout(self) -> None:
        try:
            if self.token:
                self.request("POST", "/api/auth/logout")
        finally:
            self.token = None
            self.current_user = None
            self.roles = []
            self.permissions = set()

    def can(self, permission_code: str) -> bool:
        return permission_code in self.permissions

    def require(self, permission_code: str) -> None:
        if not self.can(permission_code):
            raise PermissionDenied(f"Missing permission: {permission_code}")

    # Catalog and sales

    def search_products(self, query: str) -> List[Dict]:
        return self.request("GET", "/api/products/search", params={"q": query})["items"]

    def finalize_sale(self, payload: Dict, idempotency_key: str) -> Dict:
        return self.request(
            "POST", "/api/sales/finalize",
            json={**payload, "idempotency_key": idempotency_key},
            headers={"Idempotency-Key": idempotency_key},
        )

    def get_sale_by_key(self, idempotency_key: str) -> Optional[Dict]:
        try:
            return self.request("GET", f"/api/sales/by-key/{idempotency_key}")["sale"]
        except ApiError as e:
            if e.status_code == 404:
                return None
            raise

    # Fiscal

    def emit_invoice(self, sale_id: int) -> Dict:
        self.require("EMIT_INVOICE")
        return self.request("POST", "/api/fiscal/nfe", json={"action": "emit", "sale_id": sale_id})

    def cancel_invoice(self, invoice_id: int, reason: Optional[str] = None) -> Dict:
        self.require("CANCEL_INVOICE")
        return self.request(
            "POST", "/api/fiscal/nfe",
            json={"action": "cancel", "invoice_id": invoice_id, "reason": reason},
        )

    def correct_invoice(self, invoice_id: int, correction_text: str) -> Dict:
        self.require("CORRECT_INVOICE")
        return self.request(
            "POST", "/api/fiscal/nfe",
            json={"action": "correction", "invoice_id": invoice_id, "correction_text": correction_text},
        )

    def close(self):
        self.client.close()
