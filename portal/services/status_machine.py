"""Request status transition tables."""
from typing import Dict, FrozenSet

from portal.errors import InvalidTransition

CANCELED = "canceled"

BASIC_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"approved", "rejected", "in-progress"}),
    "approved": frozenset({"in-progress", "completed"}),
    "in-progress": frozenset({"completed"}),
    "rejected": frozenset(),
    "completed": frozenset(),
    "canceled": frozenset(),
}

PURCHASE_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"analyzing"}),
    "analyzing": frozenset({"approved", "rejected"}),
    "approved": frozenset({"waitingDelivery"}),
    "waitingDelivery": frozenset({"delivered"}),
    "delivered": frozenset({"completed"}),
    "rejected": frozenset(),
    "completed": frozenset(),
    "canceled": frozenset(),
}

TRANSITIONS: Dict[str, Dict[str, FrozenSet[str]]] = {
    "reservation": BASIC_TRANSITIONS,
    "support": BASIC_TRANSITIONS,
    "purchase": PURCHASE_TRANSITIONS,
}

TERMINAL_STATUSES = frozenset({"completed", "canceled", "rejected"})
# Statuses after which a request drops out of the default listing.
CLOSED_STATUSES = TERMINAL_STATUSES | {"delivered"}

STATUS_LABELS = {
    "pending": "Pendente",
    "analyzing": "Em análise",
    "approved": "Aprovada",
    "rejected": "Reprovada",
    "in-progress": "Em andamento",
    "waitingDelivery": "Aguardando entrega",
    "delivered": "Entregue",
    "completed": "Concluída",
    "canceled": "Cancelada",
}


def allowed_targets(request_type: str, current: str) -> FrozenSet[str]:
    """Statuses reachable in one step; ``canceled`` from any non-terminal state."""
    table = TRANSITIONS[request_type]
    targets = table.get(current, frozenset())
    if current in table and current not in TERMINAL_STATUSES:
        targets = targets | {CANCELED}
    return targets


def validate_transition(request_type: str, current: str, target: str) -> None:
    if target not in TRANSITIONS[request_type]:
        raise InvalidTransition(request_type, current, target)
    if target not in allowed_targets(request_type, current):
        raise InvalidTransition(request_type, current, target)
