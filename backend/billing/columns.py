"""
Column visibility for list screens

A selection is a set of visible keys drawn from the module's columns.
`actions` is not part of that set: it is always rendered, always last.
"""
from typing import Dict, FrozenSet, Iterable, List, Optional

from .exceptions import ColumnConfigError

ACTIONS_COLUMN = "actions"

# module -> (all columns in display order, default visible subset)
MODULE_COLUMNS: Dict[str, dict] = {
    "employees": {
        "columns": ["name", "email", "role", "mobile_number", "gender", "department",
                    "joining_date", "specialization", "qualification", "consultation_fee", "status"],
        "default": ["name", "email", "role", "mobile_number", "department", "status"],
    },
    "ambulance_bookings": {
        "columns": ["patient_name", "patient_phone", "vehicle_number", "driver_name", "pickup_location",
                    "drop_location", "trip_type", "booking_date", "standard_charge", "discount_amount",
                    "tax_percent", "net_amount", "paid_amount", "balance_amount", "payment_status"],
        "default": ["patient_name", "vehicle_number", "booking_date", "net_amount",
                    "paid_amount", "balance_amount", "payment_status"],
    },
    "pathology_bills": {
        "columns": ["bill_no", "patient_name", "doctor_name", "bill_date", "total_amount",
                    "discount_amount", "tax_amount", "net_amount", "paid_amount", "balance_amount", "payment_status"],
        "default": ["bill_no", "patient_name", "bill_date", "net_amount", "paid_amount", "payment_status"],
    },
    "radiology_bills": {
        "columns": ["bill_no", "patient_name", "doctor_name", "bill_date", "total_amount",
                    "discount_amount", "tax_amount", "net_amount", "paid_amount", "balance_amount", "payment_status"],
        "default": ["bill_no", "patient_name", "bill_date", "net_amount", "paid_amount", "payment_status"],
    },
    "ipd_consultations": {
        "columns": ["doctor_name", "applied_date", "consultation_date", "consultation_details", "is_deleted"],
        "default": ["doctor_name", "applied_date", "consultation_date", "consultation_details"],
    },
    "ipd_operations": {
        "columns": ["operation_name", "operation_date", "doctors", "anaesthetist",
                    "anaesthesia_type", "operation_details", "is_deleted"],
        "default": ["operation_name", "operation_date", "doctors", "anaesthesia_type"],
    },
    "ipd_payments": {
        "columns": ["payment_date", "mode", "amount", "reference_no", "note", "to_credit"],
        "default": ["payment_date", "mode", "amount", "reference_no", "to_credit"],
    },
}


class ColumnSelection:
    def __init__(self, module: str, visible: Optional[Iterable[str]] = None):
        if module not in MODULE_COLUMNS:
            raise ColumnConfigError(f"Unknown module '{module}'", field="module")
        self.module = module
        self.available: List[str] = list(MODULE_COLUMNS[module]["columns"])
        keys = MODULE_COLUMNS[module]["default"] if visible is None else visible
        for key in keys:
            self._check(key)
        self.visible: FrozenSet[str] = frozenset(keys)

    @classmethod
    def from_query(cls, module: str, fields: Optional[str]) -> "ColumnSelection":
        """`fields=a,b,c` query param; empty means the module default"""
        if not fields:
            return cls(module)
        keys = [key.strip() for key in fields.split(",") if key.strip()]
        keys = [key for key in keys if key != ACTIONS_COLUMN]
        return cls(module, keys)

    def _check(self, key: str) -> None:
        if key == ACTIONS_COLUMN:
            raise ColumnConfigError("The actions column cannot be toggled", field="fields")
        if key not in self.available:
            raise ColumnConfigError(f"Unknown column '{key}' for {self.module}", field="fields")

    def toggle(self, key: str) -> "ColumnSelection":
        self._check(key)
        return ColumnSelection(self.module, self.visible ^ {key})

    def set(self, key: str, checked: bool) -> "ColumnSelection":
        self._check(key)
        keys = self.visible | {key} if checked else self.visible - {key}
        return ColumnSelection(self.module, keys)

    def visible_columns(self) -> List[str]:
        ordered = [key for key in self.available if key in self.visible]
        return ordered + [ACTIONS_COLUMN]

    def project(self, row: dict) -> dict:
        """Keep id, the visible fields and the row's actions"""
        projected = {"id": row.get("id")}
        for key in self.visible_columns():
            if key in row:
                projected[key] = row[key]
        projected.setdefault(ACTIONS_COLUMN, [])
        return projected

    def to_dict(self) -> dict:
        return {
            "module": self.module,
            "available": self.available,
            "visible": self.visible_columns(),
        }

    def __eq__(self, other):
        return isinstance(other, ColumnSelection) and (self.module, self.visible) == (other.module, other.visible)

    def __repr__(self):
        return f"ColumnSelection({self.module!r}, {sorted(self.visible)!r})"
