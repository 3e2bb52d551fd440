"""
Tabla de presentación de estados: etiqueta, icono y clase de estilo
para cada valor de BookIssueStatus y CounselingStatus.

No hay valor por defecto: un estado sin entrada es un error y debe
fallar en voz alta (KeyError), nunca mostrarse como algo genérico.
"""
from dataclasses import dataclass
from enum import Enum

from school_portal.db.models import BookIssueStatus, CounselingStatus


@dataclass(frozen=True)
class StatusBadge:
    label: str
    icon: str
    style: str


_YELLOW = "bg-yellow-100 text-yellow-800 border-yellow-200"
_BLUE = "bg-blue-100 text-blue-800 border-blue-200"
_GREEN = "bg-green-100 text-green-800 border-green-200"
_RED = "bg-red-100 text-red-800 border-red-200"


BADGES: dict[Enum, StatusBadge] = {
    # Biblioteca
    BookIssueStatus.REQUESTED: StatusBadge("Requested", "clock", _YELLOW),
    BookIssueStatus.ISSUED: StatusBadge("Issued", "book-open", _BLUE),
    BookIssueStatus.RETURNED: StatusBadge("Returned", "check-circle", _GREEN),
    BookIssueStatus.OVERDUE: StatusBadge("Overdue", "alert-triangle", _RED),
    # Orientación
    CounselingStatus.PENDING: StatusBadge("Pending", "clock", _YELLOW),
    CounselingStatus.ACCEPTED: StatusBadge("Accepted", "message-circle", _BLUE),
    CounselingStatus.COMPLETED: StatusBadge("Completed", "check-circle", _GREEN),
    CounselingStatus.CANCELLED: StatusBadge("Cancelled", "x-circle", _RED),
}


def _check_complete() -> None:
    for enum_cls in (BookIssueStatus, CounselingStatus):
        missing = [member for member in enum_cls if member not in BADGES]
        if missing:
            raise RuntimeError(f"Status badges missing for {enum_cls.__name__}: {missing}")


_check_complete()


def badge_for(status: Enum) -> StatusBadge:
    """Devuelve el badge del estado; KeyError si el estado no está mapeado."""
    if not isinstance(status, (BookIssueStatus, CounselingStatus)):
        raise KeyError(f"Unmapped status value: {status!r}")
    return BADGES[status]
