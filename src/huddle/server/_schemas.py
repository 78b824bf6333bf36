"""Request and response bodies for the chat API."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from huddle.storage import UserSummary

NonEmpty = Annotated[str, Field(min_length=1)]


class _RequestModel(BaseModel):
    # Accept both snake_case and camelCase keys
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(_RequestModel):
    id: int
    username: NonEmpty
    password: NonEmpty


class LoginRequest(_RequestModel):
    id: int
    password: NonEmpty


class AutoLoginRequest(_RequestModel):
    token: NonEmpty


class CreateChannelRequest(_RequestModel):
    name: NonEmpty


class CreateGroupRequest(_RequestModel):
    name: NonEmpty
    member_ids: list[int] = Field(default_factory=list)


class RenameChannelRequest(_RequestModel):
    name: NonEmpty


class MembersRequest(_RequestModel):
    user_ids: list[int]


class CreateMessageRequest(_RequestModel):
    channel_id: int
    text: NonEmpty
    reply_to_id: int | None = None


class MarkReadRequest(_RequestModel):
    last_message_id: Annotated[int, Field(ge=1)]


class LoginResponse(BaseModel):
    user: UserSummary
    token: str


class MessageResponse(BaseModel):
    message: str


class LastReadResponse(BaseModel):
    last_read_message_id: int


class ImportUsersResponse(BaseModel):
    imported: int
    skipped: int


class HealthResponse(BaseModel):
    status: str
    connections: int
