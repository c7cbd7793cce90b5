from datetime import date, datetime
from types import SimpleNamespace

from billing import Discount, compute_bill_totals
from billing.documents import build_header, build_receipt, totals_section
from billing.formatting import format_currency, format_date


def make_org(org_mode=True):
    return SimpleNamespace(
        name="City Hospital",
        logo=None,
        metadata_={"address": "1 Station Road", "phone": "0201234", "org_mode": org_mode},
    )


def test_format_currency():
    assert format_currency(1568) == "₹1,568.00"
    assert format_currency("-12.5") == "-₹12.50"
    assert format_currency(None) == "₹0.00"


def test_format_date():
    assert format_date(date(2024, 1, 5)) == "05 Jan 2024"
    assert format_date(datetime(2024, 1, 5, 14, 30), with_time=True) == "05 Jan 2024, 02:30 PM"
    assert format_date(None) == "-"
    assert format_date("2024-03-09") == "09 Mar 2024"


def test_header_puts_hospital_first_in_org_mode():
    header = build_header(make_org(True), "Neha Sharma", "Pathology")

    assert header["org_mode"] is True
    assert [b["type"] for b in header["blocks"]] == ["hospital", "doctor"]
    assert header["blocks"][1]["name"] == "Dr. Neha Sharma"
    assert header["blocks"][0]["email"] == "-"


def test_header_puts_doctor_first_outside_org_mode():
    header = build_header(make_org(False), "Neha Sharma")
    assert [b["type"] for b in header["blocks"]] == ["doctor", "hospital"]


def test_header_without_doctor_has_only_hospital():
    header = build_header(make_org(False))
    assert [b["type"] for b in header["blocks"]] == ["hospital"]


def test_totals_section_labels_and_values():
    totals = compute_bill_totals(1500, Discount.flat(100), 12)
    rows = {row["label"]: row["value"] for row in totals_section(totals, 1000, 568)}

    assert rows["Discount"] == "-₹100.00"
    assert rows["Tax (12%)"] == "₹168.00"
    assert rows["Net Amount"] == "₹1,568.00"
    assert rows["Balance"] == "₹568.00"


def test_build_receipt_lists_payments():
    totals = compute_bill_totals(500)
    payment = SimpleNamespace(payment_date=datetime(2024, 5, 1, 10, 0), mode="UPI",
                              reference_no="UTR123", amount=500)

    receipt = build_receipt("Pathology Bill", make_org(), "PATH-202405-0001", date(2024, 5, 1),
                            {"name": "Rahul Kumar"}, [], totals, 500, 0, payments=[payment], status="paid")

    assert receipt["number"] == "PATH-202405-0001"
    assert receipt["date"] == "01 May 2024"
    assert receipt["payments"] == [
        {"date": "01 May 2024, 10:00 AM", "mode": "UPI", "reference_no": "UTR123", "amount": "₹500.00"}
    ]
