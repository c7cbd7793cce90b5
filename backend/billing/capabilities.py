"""
Discharge gate

Once an admission leaves the "pending" discharge state, everything under
it (consultant register, operations, charges, payments) becomes read-only.
The capability object is built once per request and handed to each
operation.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .exceptions import AdmissionReadOnly


class DischargeStatus(str, Enum):
    PENDING = "pending"
    NORMAL = "normal"
    REFERRAL = "referral"
    DEATH = "death"


class Mutation(str, Enum):
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"
    RESTORE = "restore"


@dataclass(frozen=True)
class AdmissionCapabilities:
    can_add: bool
    can_edit: bool
    can_delete: bool
    can_restore: bool
    reason: Optional[str] = None

    @property
    def read_only(self) -> bool:
        return not (self.can_add or self.can_edit or self.can_delete or self.can_restore)

    @classmethod
    def for_status(cls, discharge_status: Optional[str]) -> "AdmissionCapabilities":
        status = DischargeStatus(discharge_status or DischargeStatus.PENDING.value)
        if status is DischargeStatus.PENDING:
            return cls(True, True, True, True)
        return cls(False, False, False, False, reason=f"Patient discharged ({status.value})")

    @classmethod
    def for_admission(cls, admission) -> "AdmissionCapabilities":
        return cls.for_status(admission.discharge_status)

    def allows(self, mutation: Mutation) -> bool:
        return {
            Mutation.ADD: self.can_add,
            Mutation.EDIT: self.can_edit,
            Mutation.DELETE: self.can_delete,
            Mutation.RESTORE: self.can_restore,
        }[Mutation(mutation)]

    def require(self, mutation: Mutation) -> None:
        if not self.allows(mutation):
            raise AdmissionReadOnly(
                f"Cannot {Mutation(mutation).value}: {self.reason or 'admission is read-only'}"
            )

    def to_dict(self) -> dict:
        return {
            "can_add": self.can_add,
            "can_edit": self.can_edit,
            "can_delete": self.can_delete,
            "can_restore": self.can_restore,
            "read_only": self.read_only,
            "reason": self.reason,
        }
