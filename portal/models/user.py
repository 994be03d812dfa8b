from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, constr

from portal.models.request import DocumentModel


class User(DocumentModel):
    """Schema para validação de dados de usuário."""
    uid: str
    email: EmailStr
    display_name: constr(min_length=1)
    role: str = "user"
    blocked: bool = False
    created_at: Optional[datetime] = None
    last_active: Optional[datetime] = None
    department: str = "Não definido"


class CurrentUser(BaseModel):
    """The authenticated actor handed to every service call."""
    uid: str
    email: str
    display_name: str
    role: str
    blocked: bool = False
