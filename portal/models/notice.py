from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, constr

from portal.models.request import DocumentModel

PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}


class Notice(DocumentModel):
    """An entry of the shared notice board (``avisos``)."""
    id: Optional[str] = None
    type: Literal["text", "image"] = "text"
    title: constr(min_length=1)
    content: str = ""
    image_url: str = ""
    image_path: str = ""
    priority: Literal["low", "medium", "high"] = "medium"
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True
    created_by: str = ""
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at


class NoticeData(BaseModel):
    """Campos editáveis de um aviso."""
    type: Literal["text", "image"] = "text"
    title: constr(min_length=1)
    content: str = ""
    priority: Literal["low", "medium", "high"] = "medium"
    expires_at: Optional[datetime] = None
    is_active: bool = True


class NoticeImage(BaseModel):
    file_name: constr(min_length=1)
    content_type: str = "application/octet-stream"
    data: bytes
