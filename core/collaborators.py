import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Protocol
from uuid import UUID, uuid4

import structlog

from .errors import DependencyFailureError, ForbiddenError, UnauthorizedError
from .storage import InMemoryStorage

logger = structlog.get_logger()


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    user_id: UUID
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class StoredBlob:
    id: str
    url: str


class ActivityType(str, Enum):
    GIFT_CARD_SUBMISSION = "gift_card_submission"
    REDEMPTION = "redemption"
    WITHDRAWAL = "withdrawal"
    REFERRAL = "referral"


@dataclass
class NotificationEvent:
    user_id: UUID
    type: ActivityType
    title: str
    description: str
    metadata: dict = field(default_factory=dict)


class IdentityProvider(Protocol):
    def issue(self, user_id: UUID, role: Role = Role.USER) -> str: ...

    def resolve(self, token: str) -> Identity: ...


class BlobStore(Protocol):
    def upload(self, data: bytes, filename: str = "") -> StoredBlob: ...

    def delete(self, blob_id: str) -> None: ...


class NotificationSink(Protocol):
    def notify(self, event: NotificationEvent) -> None: ...


class InMemoryIdentityProvider:
    """Opaque bearer tokens mapped to identities. Stands in for a real
    token issuer in development and tests."""

    def __init__(self):
        self.tokens: dict[str, Identity] = {}

    def issue(self, user_id: UUID, role: Role = Role.USER) -> str:
        token = secrets.token_urlsafe(24)
        self.tokens[token] = Identity(user_id=user_id, role=role)
        return token

    def revoke(self, token: str) -> None:
        self.tokens.pop(token, None)

    def resolve(self, token: str) -> Identity:
        identity = self.tokens.get(token)
        if identity is None:
            raise UnauthorizedError("Invalid or expired token")
        return identity


class InMemoryBlobStore:
    def __init__(self, base_url: str = "memory://proofs"):
        self.base_url = base_url.rstrip("/")
        self.blobs: dict[str, bytes] = {}

    def upload(self, data: bytes, filename: str = "") -> StoredBlob:
        if not data:
            raise DependencyFailureError("Cannot upload an empty image")
        blob_id = uuid4().hex
        self.blobs[blob_id] = data
        name = filename or "image"
        return StoredBlob(id=blob_id, url=f"{self.base_url}/{blob_id}/{name}")

    def delete(self, blob_id: str) -> None:
        self.blobs.pop(blob_id, None)


class ActivityLogSink:
    """Records notifications as per-user activity entries."""

    def __init__(self, storage: InMemoryStorage):
        self.storage = storage

    def notify(self, event: NotificationEvent) -> None:
        activity_id = uuid4()
        with self.storage.atomic():
            self.storage.activities[activity_id] = {
                "id": activity_id,
                "user_id": event.user_id,
                "type": event.type,
                "title": event.title,
                "description": event.description,
                "metadata": dict(event.metadata),
                "created_at": datetime.now(timezone.utc),
            }
        logger.info("Activity logged", user_id=str(event.user_id), title=event.title)

    def list_activities(self, user_id: Optional[UUID] = None) -> list[dict]:
        with self.storage.atomic():
            activities = [
                dict(a) for a in self.storage.activities.values()
                if user_id is None or a["user_id"] == user_id
            ]
        activities.sort(key=lambda a: a["created_at"], reverse=True)
        return activities


def notify_safely(sink: Optional[NotificationSink], event: NotificationEvent, warnings: list[str]) -> None:
    """Best-effort delivery. Failures are logged and appended to ``warnings``."""
    if sink is None:
        return
    try:
        sink.notify(event)
    except Exception as e:
        logger.warning("Notification failed", user_id=str(event.user_id), title=event.title, error=str(e))
        warnings.append(f"Notification '{event.title}' could not be delivered")


def require_admin(identity: Identity) -> None:
    if not identity.is_admin:
        raise ForbiddenError("Access denied: Admins only")
