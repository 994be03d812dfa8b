# Pydantic models for requests and their message threads
import datetime as dt
import re
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, constr,
                      model_validator)
from pydantic.alias_generators import to_camel

RequestType = Literal["reservation", "purchase", "support"]

TYPE_TO_COLLECTION: Dict[str, str] = {
    "reservation": "reservations",
    "purchase": "purchases",
    "support": "supports",
}
COLLECTION_TO_TYPE: Dict[str, str] = {v: k for k, v in TYPE_TO_COLLECTION.items()}
REQUEST_COLLECTIONS = tuple(TYPE_TO_COLLECTION.values())

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def check_hhmm(value: str) -> str:
    if not isinstance(value, str) or not _HHMM.match(value):
        raise ValueError(f"Horário inválido '{value}', use HH:mm")
    return value


def check_iso_date(value: Any) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    return dt.date.fromisoformat(str(value)).isoformat()


HHMM = Annotated[str, AfterValidator(check_hhmm)]
IsoDate = Annotated[str, BeforeValidator(check_iso_date)]


class DocumentModel(BaseModel):
    """Base for documents stored with camelCase field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"id", "collection_name"}, exclude_none=True)


class Message(DocumentModel):
    """A single entry of a request's chat thread."""
    id: str
    message: constr(min_length=1)
    is_admin: bool
    user_name: str
    user_id: str = ""
    timestamp: datetime


class RequestBase(DocumentModel):
    id: Optional[str] = None
    collection_name: Optional[str] = None
    status: str = "pending"
    user_id: str
    user_name: str
    user_email: str
    created_at: Optional[datetime] = None
    messages: List[Message] = []
    hidden: bool = False
    has_unread_messages: bool = False


class ReservationRequest(RequestBase):
    type: Literal["reservation"] = "reservation"
    date: IsoDate
    start_time: HHMM
    end_time: HHMM
    equipment_ids: List[str]
    equipment_names: List[str] = []
    location: str = ""
    purpose: str = ""


class PurchaseRequest(RequestBase):
    type: Literal["purchase"] = "purchase"
    item_name: str
    quantity: int
    unit_price: float = 0.0
    urgency: str = "normal"
    justification: str = ""
    tipo: str
    delivery_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    financeiro_visible: bool = False


class SupportRequest(RequestBase):
    type: Literal["support"] = "support"
    unit: str = ""
    location: str = ""
    category: str = ""
    priority: str = "media"
    device_info: str = ""
    description: str = ""


Request = Annotated[Union[ReservationRequest, PurchaseRequest, SupportRequest], Field(discriminator="type")]
_request_adapter = TypeAdapter(Request)


def request_from_document(doc: Dict[str, Any], collection: str) -> Union[ReservationRequest, PurchaseRequest, SupportRequest]:
    """Parses a stored document, tolerating documents written without ``type``."""
    data = dict(doc)
    data.setdefault("type", COLLECTION_TO_TYPE[collection])
    data["collectionName"] = collection
    return _request_adapter.validate_python(data)


# -----------------------------------------------------------------------------
# Drafts submitted by requesters
# -----------------------------------------------------------------------------

class ReservationData(BaseModel):
    """Schema de validação para uma nova reserva."""
    request_type: Literal["reservation"] = "reservation"
    date: dt.date
    start_time: HHMM
    end_time: HHMM
    equipment_ids: List[str] = Field(..., min_length=1)
    location: constr(min_length=1)
    purpose: str = ""

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_time <= self.start_time:
            raise ValueError("O horário final deve ser posterior ao inicial")
        return self


class PurchaseData(BaseModel):
    """Schema de validação para uma nova compra."""
    request_type: Literal["purchase"] = "purchase"
    item_name: constr(min_length=1)
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(0.0, ge=0)
    urgency: str = "normal"
    justification: constr(min_length=1)
    tipo: Literal["Pedagógico", "Administrativo", "Financeiro"]


class SupportData(BaseModel):
    """Schema de validação para um novo chamado de suporte."""
    request_type: Literal["support"] = "support"
    unit: constr(min_length=1)
    location: str = ""
    category: constr(min_length=1)
    priority: Literal["baixa", "media", "alta"] = "media"
    device_info: str = ""
    description: constr(min_length=5)


RequestDraft = Union[ReservationData, PurchaseData, SupportData]
