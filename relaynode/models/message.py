# relaynode/models/message.py
import uuid
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Message(BaseModel):
    """An encrypted message waiting for its recipient.

    ``encrypted_payload`` is opaque and never interpreted. Timestamps are
    epoch seconds. ``expires_at == 0`` only appears on input; stored
    messages always carry a real expiry.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        validate_by_name=True,
        serialize_by_alias=True,
    )

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    sender_id: str = ""
    sender_username: str = ""
    sender_device_id: int = 0
    recipient_id: str = ""
    recipient_username: str = ""
    recipient_device_id: Optional[int] = None
    message_type: str = ""
    encrypted_payload: str = ""
    timestamp: int = 0
    delivered: bool = False
    delivered_at: Optional[int] = None
    expires_at: int = 0
    revision: Optional[str] = Field(default=None, alias="_rev")

    @field_validator("id")
    @classmethod
    def assign_blank_id(cls, v: str) -> str:
        # a blank id could never be addressed by /messages/{id}
        return v if v.strip() else uuid.uuid4().hex

    def is_live(self, now: float) -> bool:
        return self.expires_at == 0 or now <= self.expires_at

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(by_alias=True, exclude={"id", "revision"})
        if self.revision is not None:
            doc["_rev"] = self.revision
        return doc

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "Message":
        data = dict(doc)
        data["id"] = data.pop("_id", None)
        return cls.model_validate(data)


class MessageList(BaseModel):
    messages: List[Message]
    count: int


class DeliveryReceipt(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, validate_by_name=True)

    delivered_at: Optional[int] = None
