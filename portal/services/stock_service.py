# Inventory of consumables and fixed assets (coleção "estoque")
import logging
from typing import Any, Iterable, List, Optional

from portal.auth.permissions import PermissionModel
from portal.clock import Clock, utcnow
from portal.errors import DuplicateStockItem, NotFound
from portal.models.stock import StockItem
from portal.models.user import CurrentUser
from portal.services.store import DocumentStore, Write

logger = logging.getLogger(__name__)

COLLECTION = "estoque"


class StockService:
    """
    CRUD over the stock collection.

    Adding an item whose name is already registered raises ``DuplicateStockItem``
    carrying the existing item, so the UI can offer to edit it instead. Passing
    ``allow_duplicate=True`` creates the new item anyway.
    """

    def __init__(self, store: DocumentStore, permissions: PermissionModel, clock: Clock = utcnow):
        self.store = store
        self.permissions = permissions
        self.clock = clock

    def get_all(self) -> List[StockItem]:
        items = [StockItem(**doc) for doc in self.store.get_docs(COLLECTION)]
        return sorted(items, key=lambda i: i.name.lower())

    def get_by_id(self, item_id: str) -> StockItem:
        doc = self.store.get_doc(COLLECTION, item_id)
        if doc is None:
            raise NotFound(COLLECTION, item_id)
        return StockItem(**doc)

    def find_by_name(self, name: str) -> Optional[StockItem]:
        name = name.strip()
        return next((item for item in self.get_all() if item.name == name), None)

    @staticmethod
    def filter(items: Iterable[StockItem], category: Optional[str] = None, location: Optional[str] = None,
               text: Optional[str] = None) -> List[StockItem]:
        """
        Narrows a list of items.

        Args:
            items: Items to filter.
            category: Exact category, or empty for all.
            location: Exact location, or empty for all.
            text: Case-insensitive term searched in the name and the description.
        """
        term = (text or "").strip().lower()
        result = []
        for item in items:
            if category and item.category != category:
                continue
            if location and item.location != location:
                continue
            if term and term not in item.name.lower() and term not in (item.description or "").lower():
                continue
            result.append(item)
        return result

    @staticmethod
    def locations_in_use(items: Iterable[StockItem]) -> List[str]:
        return sorted({item.location for item in items if item.location})

    def add_item(self, actor: CurrentUser, item: StockItem, allow_duplicate: bool = False) -> str:
        self.permissions.require(actor, "estoque")
        if not allow_duplicate:
            existing = self.find_by_name(item.name)
            if existing is not None:
                logger.warning(f"Item '{item.name}' já existe no estoque ({existing.id}).")
                raise DuplicateStockItem(existing)
        stored = item.model_copy(update={"created_at": self.clock()})
        item_id = self.store.add_doc(COLLECTION, stored.to_document())
        logger.info(f"Item '{item.name}' ({item.quantity} un.) adicionado ao estoque por {actor.email}.")
        return item_id

    def add_series(self, actor: CurrentUser, base_name: str, count: int, category: str, unit: str,
                   location: str, condition: str = "Bom") -> List[str]:
        """
        Registers ``count`` single units named ``"<base_name> 1"`` … ``"<base_name> <count>"`` in one batch.
        """
        self.permissions.require(actor, "estoque")
        base_name = base_name.strip()
        if not base_name:
            raise ValueError("Nome base é obrigatório.")
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise ValueError("Quantidade deve ser um número inteiro positivo.")
        now = self.clock()
        writes, ids = [], []
        for index in range(1, count + 1):
            item = StockItem(name=f"{base_name} {index}", quantity=1, category=category, unit=unit,
                             location=location, condition=condition, created_at=now)
            item_id = self.store.new_id(COLLECTION)
            ids.append(item_id)
            writes.append(Write("set", COLLECTION, item_id, item.to_document()))
        self.store.commit(writes)
        logger.info(f"{count} itens '{base_name}' adicionados ao estoque por {actor.email}.")
        return ids

    def update(self, actor: CurrentUser, item_id: str, **changes: Any) -> StockItem:
        """Applies field changes (by field name, e.g. ``quantity=3``) after validating the result."""
        self.permissions.require(actor, "estoque")
        unknown = set(changes) - (set(StockItem.model_fields) - {"id", "created_at"})
        if unknown:
            raise ValueError(f"Campos desconhecidos: {', '.join(sorted(unknown))}")
        current = self.get_by_id(item_id)
        data = current.model_dump()
        data.update(changes)
        updated = StockItem.model_validate(data)
        self.store.set_doc(COLLECTION, item_id, updated.to_document())
        logger.info(f"Item {item_id} do estoque atualizado por {actor.email}.")
        return updated.model_copy(update={"id": item_id})

    def delete(self, actor: CurrentUser, item_id: str) -> None:
        self.permissions.require(actor, "estoque")
        self.store.delete_doc(COLLECTION, item_id)
        logger.info(f"Item {item_id} removido do estoque por {actor.email}.")

    def delete_many(self, actor: CurrentUser, item_ids: List[str]) -> None:
        self.permissions.require(actor, "estoque")
        self.store.commit([Write("delete", COLLECTION, item_id) for item_id in item_ids])
        logger.info(f"{len(item_ids)} itens removidos do estoque por {actor.email}.")
