# Billing Package - business rules shared by every billing router

from .calculator import (
    Discount,
    BillTotals,
    compute_bill_totals,
    sum_line_items,
    combine_totals,
    quantize,
    to_decimal,
)
from .ledger import (
    PaymentMode,
    BillStatus,
    BillAction,
    validate_payment,
    ensure_within_balance,
    total_paid,
    due_amount,
    derive_bill_status,
    bill_actions,
    summarize_ipd_payments,
)
from .lifecycle import soft_delete, restore, permanently_delete
from .capabilities import AdmissionCapabilities, DischargeStatus, Mutation
from .columns import ColumnSelection, MODULE_COLUMNS, ACTIONS_COLUMN
from .exceptions import (
    BillingError,
    BillingValidationError,
    PaymentValidationError,
    RecordNotFound,
    InvalidTransition,
    AdmissionReadOnly,
    ColumnConfigError,
)

__all__ = [
    # Calculator
    "Discount",
    "BillTotals",
    "compute_bill_totals",
    "sum_line_items",
    "combine_totals",
    "quantize",
    "to_decimal",

    # Ledger
    "PaymentMode",
    "BillStatus",
    "BillAction",
    "validate_payment",
    "ensure_within_balance",
    "total_paid",
    "due_amount",
    "derive_bill_status",
    "bill_actions",
    "summarize_ipd_payments",

    # Lifecycle
    "soft_delete",
    "restore",
    "permanently_delete",

    # Discharge gate
    "AdmissionCapabilities",
    "DischargeStatus",
    "Mutation",

    # Columns
    "ColumnSelection",
    "MODULE_COLUMNS",
    "ACTIONS_COLUMN",

    # Errors
    "BillingError",
    "BillingValidationError",
    "PaymentValidationError",
    "RecordNotFound",
    "InvalidTransition",
    "AdmissionReadOnly",
    "ColumnConfigError",
]
