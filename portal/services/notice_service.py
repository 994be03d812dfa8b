# Notice board (avisos)
import logging
import re
from typing import Callable, List, Optional

from portal.auth.permissions import PermissionModel
from portal.clock import Clock, utcnow
from portal.errors import NotFound
from portal.models.notice import PRIORITY_RANK, Notice, NoticeData, NoticeImage
from portal.models.user import CurrentUser
from portal.services.store import DocumentStore, Unsubscribe

logger = logging.getLogger(__name__)

COLLECTION = "avisos"


def _board_order(notices: List[Notice]) -> List[Notice]:
    return sorted(notices, key=lambda n: (PRIORITY_RANK[n.priority], n.created_at.timestamp() if n.created_at else 0),
                  reverse=True)


class NoticeService:
    """
    Shared notice board. The only list the UI follows live, via ``subscribe_active``.
    """

    def __init__(self, store: DocumentStore, permissions: PermissionModel, clock: Clock = utcnow):
        self.store = store
        self.permissions = permissions
        self.clock = clock

    def _upload_image(self, notice_id: str, image: NoticeImage) -> dict:
        safe_name = re.sub(r"[^\w.\-]", "_", image.file_name)
        path = f"avisos/{notice_id}/{int(self.clock().timestamp() * 1000)}_{safe_name}"
        url = self.store.upload_file(path, image.data, image.content_type)
        return {"imageUrl": url, "imagePath": path}

    def get_notice(self, notice_id: str) -> Notice:
        doc = self.store.get_doc(COLLECTION, notice_id)
        if doc is None:
            raise NotFound(COLLECTION, notice_id)
        return Notice(**doc)

    def get_all_notices(self) -> List[Notice]:
        notices = [Notice(**doc) for doc in self.store.get_docs(COLLECTION)]
        return sorted(notices, key=lambda n: n.created_at.timestamp() if n.created_at else 0, reverse=True)

    def get_active_notices(self) -> List[Notice]:
        return _board_order([Notice(**doc) for doc in self.store.get_docs(COLLECTION, [("isActive", "==", True)])])

    def subscribe_active(self, callback: Callable[[List[Notice]], None]) -> Unsubscribe:
        def on_change(docs):
            callback(_board_order([Notice(**doc) for doc in docs]))

        return self.store.subscribe(COLLECTION, [("isActive", "==", True)], on_change)

    def create_notice(self, actor: CurrentUser, data: NoticeData, image: Optional[NoticeImage] = None) -> str:
        """
        Creates a notice; an image is uploaded after the document exists so its
        path can carry the notice id.
        """
        self.permissions.require(actor, "notice-board-edit")
        notice = Notice(created_at=self.clock(), created_by=actor.email, **data.model_dump())
        notice_id = self.store.add_doc(COLLECTION, notice.to_document())
        if image is not None and data.type == "image":
            self.store.update_doc(COLLECTION, notice_id, self._upload_image(notice_id, image))
        logger.info(f"Aviso {notice_id} criado por {actor.email}.")
        return notice_id

    def update_notice(self, actor: CurrentUser, notice_id: str, data: NoticeData,
                      image: Optional[NoticeImage] = None) -> None:
        self.permissions.require(actor, "notice-board-edit")
        current = self.get_notice(notice_id)
        update = {
            "type": data.type,
            "title": data.title,
            "content": data.content,
            "priority": data.priority,
            "expiresAt": data.expires_at,
            "isActive": data.is_active,
            "updatedAt": self.clock(),
            "updatedBy": actor.email,
        }
        if image is not None and data.type == "image":
            if current.image_path:
                self.store.delete_file(current.image_path)
            update.update(self._upload_image(notice_id, image))
        self.store.update_doc(COLLECTION, notice_id, update)
        logger.info(f"Aviso {notice_id} atualizado por {actor.email}.")

    def deactivate_notice(self, actor: CurrentUser, notice_id: str) -> None:
        self.permissions.require(actor, "notice-board-edit")
        self.store.update_doc(COLLECTION, notice_id,
                              {"isActive": False, "updatedAt": self.clock(), "updatedBy": actor.email})

    def delete_notice(self, actor: CurrentUser, notice_id: str) -> None:
        """Hard delete, removing the image from storage too."""
        self.permissions.require(actor, "notice-board-edit")
        current = self.get_notice(notice_id)
        if current.image_path:
            self.store.delete_file(current.image_path)
        self.store.delete_doc(COLLECTION, notice_id)
        logger.info(f"Aviso {notice_id} excluído por {actor.email}.")

    def cleanup_expired(self) -> int:
        """Deactivates active notices past their expiry date."""
        now = self.clock()
        expired = [n for n in (Notice(**doc) for doc in self.store.get_docs(COLLECTION, [("isActive", "==", True)]))
                   if n.is_expired(now)]
        for notice in expired:
            self.store.update_doc(COLLECTION, notice.id, {"isActive": False, "updatedAt": now, "updatedBy": "system"})
        if expired:
            logger.info(f"{len(expired)} avisos expirados desativados.")
        return len(expired)
