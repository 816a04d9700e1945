"""Request models shared by the API routes.

Clients send camelCase JSON; snake_case is accepted too.
"""

from datetime import datetime
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel, to_snake

from ..models import Account, PortalCredentials

Text = Union[str, dict[str, str]]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def camelize(data: dict) -> dict:
    """Rename top-level keys to camelCase."""
    return {to_camel(key): value for key, value in data.items()}


def snakify(data: dict) -> dict:
    """Rename top-level keys to snake_case."""
    return {to_snake(key): value for key, value in data.items()}


# Store
CONTENT_OPTIONS = {
    "type",
    "priority",
    "data",
    "action_url",
    "image_url",
    "expires_at",
    "scheduled_for",
}


class NotificationContent(CamelModel):
    title: Text
    message: Text
    type: str = "general"
    priority: str = "normal"
    data: dict[str, Any] = Field(default_factory=dict)
    action_url: str | None = None
    image_url: str | None = None
    expires_at: str | None = None
    scheduled_for: str | None = None

    def options(self) -> dict:
        """Keyword options for NotificationService.send."""
        return self.model_dump(include=CONTENT_OPTIONS)


class SendRequest(NotificationContent):
    patient_id: str


class BulkSendRequest(NotificationContent):
    patient_ids: list[str]


class BroadcastRequest(NotificationContent):
    target_groups: list[str] | None = None
    exclude_patient_ids: list[str] = Field(default_factory=list)


class PatientRequest(CamelModel):
    patient_id: str


class DeviceRequest(CamelModel):
    patient_id: str
    token: str
    platform: str | None = None
    app_version: str | None = None


class PreferencesRequest(CamelModel):
    patient_id: str
    preferences: dict[str, Any]


class SyncRequest(CamelModel):
    patient_id: str
    last_sync_time: datetime | None = None


# Portal
class PortalUser(CamelModel):
    id: str
    name: str
    username: str
    password: str
    push_token: str | None = None
    push_tokens: list[str] = Field(default_factory=list)

    def to_account(self) -> Account:
        tokens = list(self.push_tokens)
        if self.push_token and self.push_token not in tokens:
            tokens.insert(0, self.push_token)
        return Account(
            account_id=self.id,
            display_name=self.name,
            credentials=PortalCredentials(username=self.username, password=self.password),
            push_tokens=tokens,
        )


class CheckRequest(CamelModel):
    users: list[PortalUser] | None = None


class PushRequest(CamelModel):
    push_token: str
    title: str
    body: str
    data: dict[str, Any] = Field(default_factory=dict)
