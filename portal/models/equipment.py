from typing import Literal, Optional

from pydantic import constr

from portal.models.request import DocumentModel


class Equipment(DocumentModel):
    """Schema de validação para um equipamento emprestável."""
    id: Optional[str] = None
    name: constr(min_length=1)
    type: constr(min_length=1)
    is_available_for_reservation: bool = True
    status: Literal["disponível", "em uso", "em manutenção"] = "disponível"
    location: Optional[str] = None
    serial_number: Optional[str] = None

    def is_kind(self, kind: str) -> bool:
        """Case-insensitive match of the free-text type, e.g. ``is_kind("ipad")``."""
        return kind.lower() in self.type.lower()
