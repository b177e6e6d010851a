# Overview: Transport to the fiscal authority (sandbox simulation or HTTP endpoint).

"""
Fiscal Authority Gateways

Two implementations share one small interface:

    authorize(request) -> AuthorizationResult
    cancel(invoice, reason) -> EventResult
    correct(invoice, sequence, text) -> EventResult

SandboxFiscalGateway simulates the homologation environment: every document is
authorized, with a real-format 44-digit access key, a protocol number and a
minimal nfeProc XML. It never touches the network.

HttpFiscalGateway posts {"action": ..., ...} to FISCAL_ENDPOINT_URL and maps a
response of {status, number?, access_key?, protocol?, rejection_reason?,
message} or {error}. Transport failures raise FiscalGatewayError; the caller
decides what that means for the invoice.
"""

from __future__ import annotations

import re
import secrets
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime

import httpx
from flask import current_app

from ..time_utils import utcnow

NFCE_MODEL = "65"
ENVIRONMENT_CODES = {"producao": "1", "homologacao": "2"}


class FiscalGatewayError(Exception):
    """The fiscal authority could not be reached or returned an unusable answer."""


@dataclass
class AuthorizationRequest:
    invoice_id: int
    sale: object
    company: object | None
    number: int
    series: int
    issued_at: datetime = field(default_factory=utcnow)


@dataclass
class AuthorizationResult:
    status: str
    number: int | None = None
    access_key: str | None = None
    protocol: str | None = None
    xml: str | None = None
    rejection_reason: str | None = None
    message: str | None = None

    @property
    def authorized(self) -> bool:
        return self.status == "autorizada"


@dataclass
class EventResult:
    protocol: str | None = None
    message: str | None = None


def mod11_check_digit(digits: str) -> int:
    """NF-e check digit: weights 2..9 from the right, remainder 0 or 1 gives 0."""
    total = 0
    weight = 2
    for ch in reversed(digits):
        total += int(ch) * weight
        weight = 2 if weight == 9 else weight + 1
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def build_access_key(
    *,
    state_code: str,
    issued_at: datetime,
    cnpj: str | None,
    series: int,
    number: int,
    numeric_code: int,
    model: str = NFCE_MODEL,
    emission_type: str = "1",
) -> str:
    """cUF(2) AAMM(4) CNPJ(14) mod(2) serie(3) nNF(9) tpEmis(1) cNF(8) cDV(1)."""
    cnpj_digits = re.sub(r"\D", "", cnpj or "").rjust(14, "0")[:14]
    base = (
        f"{int(state_code):02d}"
        f"{issued_at:%y%m}"
        f"{cnpj_digits}"
        f"{model}"
        f"{series:03d}"
        f"{number:09d}"
        f"{emission_type}"
        f"{numeric_code:08d}"
    )
    return base + str(mod11_check_digit(base))


def _protocol(state_code: str, environment: str, issued_at: datetime) -> str:
    return (
        f"{ENVIRONMENT_CODES.get(environment, '2')}"
        f"{int(state_code):02d}"
        f"{issued_at:%y}"
        f"{secrets.randbelow(10 ** 10):010d}"
    )


def _cents(value: int) -> str:
    return f"{value / 100:.2f}"


def build_nfce_xml(request: AuthorizationRequest, access_key: str, protocol: str) -> str:
    sale = request.sale
    company = request.company

    proc = ET.Element("nfeProc", versao="4.00")
    nfe = ET.SubElement(proc, "NFe")
    inf = ET.SubElement(nfe, "infNFe", Id=f"NFe{access_key}", versao="4.00")

    ide = ET.SubElement(inf, "ide")
    ET.SubElement(ide, "mod").text = NFCE_MODEL
    ET.SubElement(ide, "serie").text = str(request.series)
    ET.SubElement(ide, "nNF").text = str(request.number)
    ET.SubElement(ide, "dhEmi").text = request.issued_at.strftime("%Y-%m-%dT%H:%M:%S+00:00")

    emit = ET.SubElement(inf, "emit")
    if company is not None:
        ET.SubElement(emit, "CNPJ").text = re.sub(r"\D", "", company.cnpj or "")
        ET.SubElement(emit, "xNome").text = company.company_name

    if sale.customer_cpf:
        dest = ET.SubElement(inf, "dest")
        ET.SubElement(dest, "CPF").text = sale.customer_cpf

    for index, item in enumerate(sale.items, start=1):
        det = ET.SubElement(inf, "det", nItem=str(index))
        prod = ET.SubElement(det, "prod")
        ET.SubElement(prod, "xProd").text = item.product_name
        ET.SubElement(prod, "qCom").text = str(item.quantity)
        ET.SubElement(prod, "vUnCom").text = _cents(item.unit_price_cents)
        ET.SubElement(prod, "vProd").text = _cents(item.total_cents)

    total = ET.SubElement(ET.SubElement(inf, "total"), "ICMSTot")
    ET.SubElement(total, "vProd").text = _cents(sale.subtotal_cents)
    ET.SubElement(total, "vDesc").text = _cents(sale.discount_cents)
    ET.SubElement(total, "vNF").text = _cents(sale.total_cents)

    prot = ET.SubElement(ET.SubElement(proc, "protNFe", versao="4.00"), "infProt")
    ET.SubElement(prot, "chNFe").text = access_key
    ET.SubElement(prot, "nProt").text = protocol
    ET.SubElement(prot, "cStat").text = "100"
    ET.SubElement(prot, "xMotivo").text = "Autorizado o uso da NF-e"

    return ET.tostring(proc, encoding="unicode")


class SandboxFiscalGateway:
    """Homologation simulator. Always authorizes."""

    environment = "homologacao"

    def __init__(self, state_code: str = "35"):
        self.state_code = state_code

    def authorize(self, request: AuthorizationRequest) -> AuthorizationResult:
        access_key = build_access_key(
            state_code=self.state_code,
            issued_at=request.issued_at,
            cnpj=getattr(request.company, "cnpj", None),
            series=request.series,
            number=request.number,
            numeric_code=secrets.randbelow(10 ** 8),
        )
        protocol = _protocol(self.state_code, self.environment, request.issued_at)
        return AuthorizationResult(
            status="autorizada",
            number=request.number,
            access_key=access_key,
            protocol=protocol,
            xml=build_nfce_xml(request, access_key, protocol),
            message="NFC-e emitida em ambiente de HOMOLOGACAO (sem valor fiscal)",
        )

    def cancel(self, invoice, reason: str | None = None) -> EventResult:
        return EventResult(
            protocol=_protocol(self.state_code, self.environment, utcnow()),
            message="NFC-e cancelada (homologacao)",
        )

    def correct(self, invoice, sequence: int, text: str) -> EventResult:
        return EventResult(
            protocol=_protocol(self.state_code, self.environment, utcnow()),
            message="CC-e registrada (homologacao)",
        )


class HttpFiscalGateway:
    """Client for an external emission endpoint."""

    def __init__(
        self,
        endpoint_url: str,
        *,
        api_token: str | None = None,
        timeout: float = 15.0,
        environment: str = "homologacao",
        transport: httpx.BaseTransport | None = None,
    ):
        if not endpoint_url:
            raise ValueError("FISCAL_ENDPOINT_URL is required for the http fiscal mode")
        self.endpoint_url = endpoint_url
        self.api_token = api_token
        self.timeout = timeout
        self.environment = environment
        self._transport = transport

    def _post(self, payload: dict) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(self.endpoint_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise FiscalGatewayError(f"Fiscal endpoint unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise FiscalGatewayError(
                f"Fiscal endpoint returned non-JSON response (HTTP {response.status_code})"
            ) from e

        if not isinstance(body, dict):
            raise FiscalGatewayError("Fiscal endpoint returned an unexpected payload")
        if body.get("error"):
            raise FiscalGatewayError(str(body["error"]))
        if response.status_code >= 400:
            raise FiscalGatewayError(f"Fiscal endpoint returned HTTP {response.status_code}")
        return body

    def authorize(self, request: AuthorizationRequest) -> AuthorizationResult:
        sale = request.sale
        body = self._post({
            "action": "emit",
            "sale_id": sale.id,
            "invoice_id": request.invoice_id,
            "number": request.number,
            "series": request.series,
            "total_cents": sale.total_cents,
            "customer_cpf": sale.customer_cpf,
            "items": [
                {
                    "product_name": item.product_name,
                    "quantity": item.quantity,
                    "unit_price_cents": item.unit_price_cents,
                    "total_cents": item.total_cents,
                }
                for item in sale.items
            ],
        })

        status = body.get("status")
        if status == "autorizada":
            if not body.get("access_key"):
                raise FiscalGatewayError("Authorized response without access_key")
            return AuthorizationResult(
                status=status,
                number=body.get("number") or request.number,
                access_key=body["access_key"],
                protocol=body.get("protocol"),
                xml=body.get("xml"),
                message=body.get("message"),
            )
        if status == "rejeitada":
            return AuthorizationResult(
                status=status,
                rejection_reason=body.get("rejection_reason") or body.get("message") or "Rejeitada",
                message=body.get("message"),
            )
        raise FiscalGatewayError(f"Unexpected fiscal status: {status!r}")

    def cancel(self, invoice, reason: str | None = None) -> EventResult:
        body = self._post({
            "action": "cancel",
            "invoice_id": invoice.id,
            "access_key": invoice.access_key,
            "reason": reason,
        })
        if body.get("status") != "cancelada":
            raise FiscalGatewayError(body.get("message") or "Cancellation not confirmed")
        return EventResult(protocol=body.get("protocol"), message=body.get("message"))

    def correct(self, invoice, sequence: int, text: str) -> EventResult:
        body = self._post({
            "action": "correction",
            "invoice_id": invoice.id,
            "access_key": invoice.access_key,
            "sequence": sequence,
            "correction_text": text,
        })
        return EventResult(protocol=body.get("protocol"), message=body.get("message"))


def get_gateway():
    """Build the gateway selected by FISCAL_MODE."""
    config = current_app.config
    override = current_app.extensions.get("fiscal_gateway")
    if override is not None:
        return override

    mode = config.get("FISCAL_MODE", "sandbox")
    if mode == "sandbox":
        return SandboxFiscalGateway(state_code=config.get("FISCAL_STATE_CODE", "35"))
    if mode == "http":
        return HttpFiscalGateway(
            config.get("FISCAL_ENDPOINT_URL"),
            api_token=config.get("FISCAL_API_TOKEN"),
            timeout=config.get("FISCAL_TIMEOUT_SECONDS", 15.0),
        )
    raise ValueError(f"Unknown FISCAL_MODE: {mode}")
