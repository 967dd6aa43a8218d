"""
Document workflow (``stock_ledger.domain.workflow``).

Responsibility
--------------
The receipt/delivery state machine as pure data, plus the checks the
document service runs before it touches the database.

Architecture position
---------------------
**Ledger domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Status only advances DRAFT -> READY -> DONE.  DONE has no outgoing
  transitions.
* Only the READY -> DONE transition moves stock.
* Every line must carry a location before a document leaves DRAFT.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from stock_ledger.domain.dtos import DocumentLineInfo
from stock_ledger.domain.values import DocumentStatus
from stock_ledger.exceptions import DocumentIncompleteError, InvalidTransitionError


@dataclass(frozen=True)
class Guard:
    """A condition that must hold before a transition fires.

    Descriptive only; the document service evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid status change.  ``moves_stock=True`` marks the completing transition."""
    from_state: DocumentStatus
    to_state: DocumentStatus
    action: str
    guards: tuple[Guard, ...] = ()
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: DocumentStatus
    states: tuple[DocumentStatus, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[DocumentStatus, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"Initial state {self.initial_state} is not a workflow state")
        for transition in self.transitions:
            if transition.from_state not in self.states or transition.to_state not in self.states:
                raise ValueError(f"Transition {transition.action} references unknown state")

    def find(self, from_state: DocumentStatus, to_state: DocumentStatus) -> Transition | None:
        for transition in self.transitions:
            if transition.from_state == from_state and transition.to_state == to_state:
                return transition
        return None

    def source_of(self, to_state: DocumentStatus) -> DocumentStatus | None:
        """The one status a document must be in to move to ``to_state``."""
        for transition in self.transitions:
            if transition.to_state == to_state:
                return transition.from_state
        return None


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_LINES = Guard(
    name="has_lines",
    description="Document has at least one line",
)

LINES_LOCATED = Guard(
    name="lines_located",
    description="Every line names a location",
)

STOCK_AVAILABLE = Guard(
    name="stock_available",
    description="Each outbound line is covered by stock at its location",
)


# -----------------------------------------------------------------------------
# Workflows
# -----------------------------------------------------------------------------

RECEIPT_WORKFLOW = Workflow(
    name="receipt",
    description="Inbound goods from a supplier",
    initial_state=DocumentStatus.DRAFT,
    states=(DocumentStatus.DRAFT, DocumentStatus.READY, DocumentStatus.DONE),
    transitions=(
        Transition(
            DocumentStatus.DRAFT,
            DocumentStatus.READY,
            action="validate",
            guards=(HAS_LINES, LINES_LOCATED),
        ),
        Transition(
            DocumentStatus.READY,
            DocumentStatus.DONE,
            action="receive",
            moves_stock=True,
        ),
    ),
    terminal_states=(DocumentStatus.DONE,),
)

DELIVERY_WORKFLOW = Workflow(
    name="delivery",
    description="Outbound goods to a customer",
    initial_state=DocumentStatus.DRAFT,
    states=(DocumentStatus.DRAFT, DocumentStatus.READY, DocumentStatus.DONE),
    transitions=(
        Transition(
            DocumentStatus.DRAFT,
            DocumentStatus.READY,
            action="validate",
            guards=(HAS_LINES, LINES_LOCATED, STOCK_AVAILABLE),
        ),
        Transition(
            DocumentStatus.READY,
            DocumentStatus.DONE,
            action="ship",
            moves_stock=True,
        ),
    ),
    terminal_states=(DocumentStatus.DONE,),
)


def resolve_transition(
    workflow: Workflow,
    document_id: UUID,
    current: DocumentStatus,
    requested: DocumentStatus,
) -> Transition:
    """
    Look up the transition from ``current`` to ``requested``.

    Raises:
        InvalidTransitionError: no such transition.  Carries the status the
            document would need to be in, or None when ``requested`` cannot
            be reached at all.
    """
    transition = workflow.find(current, requested)
    if transition is None:
        required = workflow.source_of(requested)
        raise InvalidTransitionError(
            document_id=document_id,
            current_status=current.value,
            requested_status=requested.value,
            required_status=required.value if required is not None else None,
        )
    return transition


def check_lines_complete(document_id: UUID, lines: Iterable[DocumentLineInfo]) -> None:
    """
    Raises:
        DocumentIncompleteError: no lines, or a line without a location.
    """
    lines = list(lines)
    if not lines:
        raise DocumentIncompleteError(document_id, "document has no lines")
    for line in lines:
        if line.location_id is None:
            raise DocumentIncompleteError(
                document_id,
                f"line {line.line_number} has no location",
            )


def required_quantities(
    lines: Iterable[DocumentLineInfo],
) -> dict[tuple[UUID, UUID], int]:
    """Intended quantity per (product_id, location_id), summed across lines."""
    required: dict[tuple[UUID, UUID], int] = defaultdict(int)
    for line in lines:
        required[(line.product_id, line.location_id)] += line.intended_quantity
    return dict(required)
