# Overview: Plain-text sale receipts (thermal "compact" and full-page "report").

from __future__ import annotations

from ..models import CompanySettings, Sale

DEFAULT_COMPANY_NAME = "NexaERP"
COMPACT_WIDTH = 40
REPORT_WIDTH = 80
LAYOUTS = ("compact", "report")

PAYMENT_LABELS = {
    "cash": "DINHEIRO",
    "card": "CARTAO",
    "pix": "PIX",
}


def format_brl(cents: int) -> str:
    """1234567 -> 'R$ 12.345,67'."""
    sign = "-" if cents < 0 else ""
    reais, centavos = divmod(abs(cents), 100)
    grouped = f"{reais:,}".replace(",", ".")
    return f"{sign}R$ {grouped},{centavos:02d}"


def _address(company: CompanySettings, with_zip: bool) -> str | None:
    if not company.address_street:
        return None
    line = company.address_street
    if company.address_number:
        line += f", {company.address_number}"
    line += f" - {company.address_city or ''}/{company.address_state or ''}"
    if with_zip and company.address_zip:
        line += f" - CEP: {company.address_zip}"
    return line


def _two_columns(left: str, right: str, width: int) -> str:
    gap = max(width - len(left) - len(right), 1)
    return f"{left}{' ' * gap}{right}"


def _header(company: CompanySettings | None, width: int, centered: bool, with_zip: bool) -> list[str]:
    align = (lambda s: s.center(width).rstrip()) if centered else (lambda s: s)
    if company is None:
        return [align(DEFAULT_COMPANY_NAME)]

    lines = [align(company.display_name)]
    if company.cnpj:
        lines.append(align(f"CNPJ: {company.cnpj}"))
    address = _address(company, with_zip)
    if address:
        lines.append(align(address[:width]))
    contact = " | ".join(x for x in (
        f"Tel: {company.phone}" if company.phone else None,
        company.email if not centered else None,
    ) if x)
    if contact:
        lines.append(align(contact))
    return lines


def _sale_date(sale: Sale) -> str:
    return sale.created_at.strftime("%d/%m/%Y %H:%M") if sale.created_at else ""


def _operator(sale: Sale) -> str | None:
    if sale.user is None:
        return None
    return sale.user.full_name or sale.user.username


def render_compact(sale: Sale, company: CompanySettings | None = None) -> str:
    width = COMPACT_WIDTH
    rule = "-" * width
    lines = _header(company, width, centered=True, with_zip=False)
    lines.append("DOCUMENTO NAO FISCAL".center(width).rstrip())
    lines.append(rule)

    lines.append(f"Venda No: {sale.sale_number}")
    lines.append(f"Data: {_sale_date(sale)}")
    operator = _operator(sale)
    if operator:
        lines.append(f"Operador: {operator}")
    if sale.customer_name:
        lines.append(f"Cliente: {sale.customer_name}")
    if sale.customer_cpf:
        lines.append(f"CPF: {sale.customer_cpf}")
    lines.append(f"Pagamento: {PAYMENT_LABELS.get(sale.payment_method, sale.payment_method.upper())}")
    lines.append(rule)

    for item in sale.items:
        lines.append(item.product_name[:width])
        lines.append(_two_columns(
            f"  {item.quantity} x {format_brl(item.unit_price_cents)}",
            format_brl(item.total_cents),
            width,
        ))
    lines.append(rule)

    lines.append(_two_columns("Subtotal:", format_brl(sale.subtotal_cents), width))
    if sale.discount_cents > 0:
        lines.append(_two_columns("Desconto:", f"- {format_brl(sale.discount_cents)}", width))
    lines.append(_two_columns("TOTAL:", format_brl(sale.total_cents), width))
    lines.append("")
    lines.append("Obrigado pela preferencia!".center(width).rstrip())
    return "\n".join(lines) + "\n"


def render_report(sale: Sale, company: CompanySettings | None = None) -> str:
    width = REPORT_WIDTH
    rule = "=" * width
    lines = _header(company, width, centered=False, with_zip=True)
    lines.append(rule)
    lines.append(f"Comprovante de Venda #{sale.sale_number}")
    lines.append("")

    info = [
        ("Data:", _sale_date(sale)),
        ("Cliente:", sale.customer_name or "Nao identificado"),
        ("CPF:", sale.customer_cpf or "-"),
        ("Pagamento:", PAYMENT_LABELS.get(sale.payment_method, sale.payment_method.upper())),
        ("Operador:", _operator(sale) or "-"),
    ]
    for label, value in info:
        lines.append(f"{label:<12}{value}")
    lines.append("")

    lines.append(f"{'Produto':<44}{'Qtd':>6}{'Unitario':>15}{'Total':>15}")
    lines.append("-" * width)
    for item in sale.items:
        lines.append(
            f"{item.product_name[:43]:<44}{item.quantity:>6}"
            f"{format_brl(item.unit_price_cents):>15}{format_brl(item.total_cents):>15}"
        )
    lines.append("-" * width)

    lines.append(_two_columns("Subtotal:", format_brl(sale.subtotal_cents), width))
    if sale.discount_cents > 0:
        lines.append(_two_columns("Desconto:", f"- {format_brl(sale.discount_cents)}", width))
    lines.append(_two_columns("TOTAL:", format_brl(sale.total_cents), width))
    return "\n".join(lines) + "\n"


def render_receipt(sale: Sale, company: CompanySettings | None = None, layout: str = "compact") -> str:
    if layout == "compact":
        return render_compact(sale, company)
    if layout == "report":
        return render_report(sale, company)
    raise ValueError(f"layout must be one of: {', '.join(LAYOUTS)}")
