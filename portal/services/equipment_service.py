# Equipment registry
import logging
from typing import Dict, Iterable, List, Optional

from portal.auth.permissions import PermissionModel
from portal.errors import NotFound
from portal.models.equipment import Equipment
from portal.models.user import CurrentUser
from portal.services.store import DocumentStore, Write

logger = logging.getLogger(__name__)

COLLECTION = "equipment"
DEFAULT_NAME = "Equipamento"


class EquipmentService:
    """Catalog of loanable devices."""

    def __init__(self, store: DocumentStore, permissions: PermissionModel):
        self.store = store
        self.permissions = permissions

    def get_all(self) -> List[Equipment]:
        items = [Equipment(**doc) for doc in self.store.get_docs(COLLECTION)]
        return sorted(items, key=lambda e: (e.type.lower(), e.name.lower()))

    def get_by_id(self, equipment_id: str) -> Equipment:
        doc = self.store.get_doc(COLLECTION, equipment_id)
        if doc is None:
            raise NotFound(COLLECTION, equipment_id)
        return Equipment(**doc)

    def get_reservable(self) -> List[Equipment]:
        return [e for e in self.get_all() if e.is_available_for_reservation]

    def filter_by_type(self, kind: str) -> List[Equipment]:
        """Free-text type match, case-insensitive (``"ipad"`` matches ``"iPad"``)."""
        return [e for e in self.get_all() if e.is_kind(kind)]

    def get_names(self, equipment_ids: Iterable[str]) -> Dict[str, str]:
        """Maps ids to names; unknown ids map to a generic label."""
        names = {}
        for equipment_id in equipment_ids:
            doc = self.store.get_doc(COLLECTION, equipment_id)
            names[equipment_id] = doc.get("name", DEFAULT_NAME) if doc else DEFAULT_NAME
        return names

    def add_equipment(self, actor: CurrentUser, equipment: Equipment) -> str:
        self.permissions.require(actor, "equipamentos")
        equipment_id = self.store.add_doc(COLLECTION, equipment.to_document())
        logger.info(f"Equipamento '{equipment.name}' ({equipment.type}) cadastrado por {actor.email}.")
        return equipment_id

    def add_many(self, actor: CurrentUser, items: List[Equipment]) -> List[str]:
        self.permissions.require(actor, "equipamentos")
        writes, ids = [], []
        for item in items:
            equipment_id = self.store.new_id(COLLECTION)
            ids.append(equipment_id)
            writes.append(Write("set", COLLECTION, equipment_id, item.to_document()))
        self.store.commit(writes)
        logger.info(f"{len(ids)} equipamentos cadastrados por {actor.email}.")
        return ids

    def update(self, actor: CurrentUser, equipment_id: str, name: Optional[str] = None,
               status: Optional[str] = None, is_available_for_reservation: Optional[bool] = None) -> None:
        self.permissions.require(actor, "equipamentos")
        current = self.get_by_id(equipment_id)
        changes = {}
        if name is not None:
            changes["name"] = name
        if status is not None:
            changes["status"] = status
        if is_available_for_reservation is not None:
            changes["is_available_for_reservation"] = is_available_for_reservation
        updated = current.model_copy(update=changes)
        Equipment.model_validate(updated.model_dump())
        self.store.update_doc(COLLECTION, equipment_id, updated.to_document())

    def delete(self, actor: CurrentUser, equipment_id: str) -> None:
        self.permissions.require(actor, "equipamentos")
        self.store.delete_doc(COLLECTION, equipment_id)
        logger.info(f"Equipamento {equipment_id} excluído por {actor.email}.")

    def delete_many(self, actor: CurrentUser, equipment_ids: List[str]) -> None:
        self.permissions.require(actor, "equipamentos")
        self.store.commit([Write("delete", COLLECTION, equipment_id) for equipment_id in equipment_ids])
        logger.info(f"{len(equipment_ids)} equipamentos excluídos por {actor.email}.")
