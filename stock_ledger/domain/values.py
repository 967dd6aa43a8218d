"""
Value enums shared by the domain, the models and the services.

Architecture position:
    Ledger > Domain -- pure, zero I/O.  Models store the ``.value`` strings
    of these enums; DTOs carry the enum members.
"""

from enum import Enum


class MovementType(str, Enum):
    """Kind of stock movement.

    Contract: each type fixes the sign its delta must carry.  ADJUSTMENT is
    the only type that may move either way.
    """

    RECEIPT = "RECEIPT"
    DELIVERY = "DELIVERY"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"

    @property
    def expected_sign(self) -> int:
        """+1, -1, or 0 when either sign is allowed."""
        return _EXPECTED_SIGN[self]

    def accepts(self, quantity_delta: int) -> bool:
        """Whether a non-zero delta carries the sign this type requires."""
        sign = self.expected_sign
        if sign == 0:
            return quantity_delta != 0
        return quantity_delta * sign > 0


_EXPECTED_SIGN = {
    MovementType.RECEIPT: 1,
    MovementType.TRANSFER_IN: 1,
    MovementType.DELIVERY: -1,
    MovementType.TRANSFER_OUT: -1,
    MovementType.ADJUSTMENT: 0,
}


class DocumentType(str, Enum):
    """Direction of a document."""

    RECEIPT = "RECEIPT"
    DELIVERY = "DELIVERY"

    @property
    def movement_type(self) -> MovementType:
        """Movement type written for each line when the document completes."""
        if self is DocumentType.RECEIPT:
            return MovementType.RECEIPT
        return MovementType.DELIVERY


class DocumentStatus(str, Enum):
    """Document lifecycle status.

    Contract: DRAFT -> READY -> DONE.  DONE is terminal.
    """

    DRAFT = "DRAFT"
    READY = "READY"
    DONE = "DONE"
