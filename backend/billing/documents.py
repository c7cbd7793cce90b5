"""
Receipt documents

Structured receipts for bills and payments. The header block puts the
hospital first when the organization runs in org mode, and the doctor
first otherwise.
"""
from typing import Iterable, List, Optional

from .calculator import BillTotals
from .formatting import format_currency, format_date


def build_header(organization, doctor_name: Optional[str] = None,
                 doctor_specialization: Optional[str] = None) -> dict:
    metadata = organization.metadata_ or {}
    org_mode = bool(metadata.get("org_mode", True))

    hospital_block = {
        "type": "hospital",
        "name": organization.name,
        "logo": organization.logo,
        "address": metadata.get("address") or "-",
        "phone": metadata.get("phone") or "-",
        "email": metadata.get("email") or "-",
    }
    doctor_block = None
    if doctor_name:
        doctor_block = {
            "type": "doctor",
            "name": f"Dr. {doctor_name}",
            "specialization": doctor_specialization or "",
        }

    blocks = [hospital_block, doctor_block] if org_mode else [doctor_block, hospital_block]
    return {
        "org_mode": org_mode,
        "blocks": [block for block in blocks if block],
    }


def totals_section(totals: BillTotals, paid_amount, balance_amount) -> List[dict]:
    rows = [
        ("Total", totals.base_amount),
        ("Discount", -totals.discount_amount),
        ("Taxable Amount", totals.taxable_amount),
        (f"Tax ({totals.tax_percent.normalize():f}%)", totals.tax_amount),
        ("Net Amount", totals.net_amount),
        ("Paid", paid_amount),
        ("Balance", balance_amount),
    ]
    return [{"label": label, "value": format_currency(value)} for label, value in rows]


def payments_section(payments: Iterable) -> List[dict]:
    return [
        {
            "date": format_date(p.payment_date, with_time=True),
            "mode": p.mode,
            "reference_no": p.reference_no or "-",
            "amount": format_currency(p.amount),
        }
        for p in payments
    ]


def build_receipt(
    title: str,
    organization,
    number: str,
    issued_at,
    patient: dict,
    lines: List[dict],
    totals: BillTotals,
    paid_amount,
    balance_amount,
    payments: Iterable = (),
    doctor_name: Optional[str] = None,
    doctor_specialization: Optional[str] = None,
    status: Optional[str] = None,
) -> dict:
    return {
        "title": title,
        "header": build_header(organization, doctor_name, doctor_specialization),
        "number": number,
        "date": format_date(issued_at),
        "status": status,
        "patient": patient,
        "lines": lines,
        "totals": totals_section(totals, paid_amount, balance_amount),
        "payments": payments_section(payments),
    }
