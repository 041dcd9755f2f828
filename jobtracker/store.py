"""Firestore client for the per-user application collection."""

import asyncio
import logging
from typing import Any, Optional, Protocol

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from .auth import Session
from .config import get_config
from .models import JobApplication

logger = logging.getLogger(__name__)

PAGE_SIZE = 300


class ApplicationStore(Protocol):
    """Durable storage for one user's applications, keyed by user id and record id."""

    async def list(self, user_id: str) -> list[JobApplication]: ...

    async def create(self, user_id: str, app: JobApplication) -> None: ...

    async def update(self, user_id: str, app: JobApplication) -> None: ...

    async def delete(self, user_id: str, app_id: str) -> None: ...


def get_credentials(session: Session) -> Credentials:
    """Wrap the user's Firebase ID token as bearer credentials."""
    return Credentials(token=session.id_token)


def encode_value(value: Any) -> dict:
    """Encode a field as a Firestore value."""
    if value is None:
        return {"nullValue": None}
    return {"stringValue": str(value)}


def decode_value(value: dict) -> Any:
    """Decode a Firestore value into a field, rendering non-string scalars as text."""
    if "stringValue" in value:
        return value["stringValue"]
    if "nullValue" in value:
        return None
    if "timestampValue" in value:
        return value["timestampValue"]
    for key in ("integerValue", "doubleValue", "booleanValue"):
        if key in value:
            return str(value[key])
    raise ValueError(f"Unsupported Firestore value: {sorted(value)}")


def to_fields(app: JobApplication) -> dict[str, dict]:
    """Firestore fields for an application document."""
    return {key: encode_value(value) for key, value in app.to_document().items()}


def from_document(document: dict) -> JobApplication:
    """Parse a Firestore document, taking the id from its name if the field is missing."""
    data = {key: decode_value(value) for key, value in document.get("fields", {}).items()}
    data.setdefault("id", document["name"].rsplit("/", 1)[-1])
    return JobApplication.from_document(data)


class FirestoreStore:
    """Application documents under users/{user_id}/{collection}/{id}."""

    def __init__(
        self,
        service,
        project_id: str,
        database: str = "(default)",
        collection: str = "applications",
    ):
        self.service = service
        self.root = f"projects/{project_id}/databases/{database}/documents"
        self.collection = collection

    @classmethod
    def connect(cls, session: Session) -> "FirestoreStore":
        config = get_config()
        service = build(
            "firestore",
            "v1",
            credentials=get_credentials(session),
            cache_discovery=False,
        )
        return cls(
            service,
            config.firebase_project_id,
            config.firestore_database,
            config.collection,
        )

    def _parent(self, user_id: str) -> str:
        return f"{self.root}/users/{user_id}"

    def _name(self, user_id: str, app_id: str) -> str:
        return f"{self._parent(user_id)}/{self.collection}/{app_id}"

    def _documents(self):
        return self.service.projects().databases().documents()

    def _list_sync(self, user_id: str) -> list[JobApplication]:
        apps = []
        page_token: Optional[str] = None

        while True:
            result = (
                self._documents()
                .list(
                    parent=self._parent(user_id),
                    collectionId=self.collection,
                    pageSize=PAGE_SIZE,
                    pageToken=page_token,
                )
                .execute()
            )
            apps.extend(from_document(doc) for doc in result.get("documents", []))
            page_token = result.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Fetched {len(apps)} applications")
        return apps

    def _create_sync(self, user_id: str, app: JobApplication) -> None:
        self._documents().patch(
            name=self._name(user_id, app.id),
            body={"fields": to_fields(app)},
        ).execute()
        logger.info(f"Wrote application document {app.id}")

    def _update_sync(self, user_id: str, app: JobApplication) -> None:
        fields = to_fields(app)
        self._documents().patch(
            name=self._name(user_id, app.id),
            body={"fields": fields},
            updateMask_fieldPaths=list(fields),
            currentDocument_exists=True,
        ).execute()
        logger.info(f"Updated application document {app.id}")

    def _delete_sync(self, user_id: str, app_id: str) -> None:
        self._documents().delete(name=self._name(user_id, app_id)).execute()
        logger.info(f"Deleted application document {app_id}")

    async def list(self, user_id: str) -> list[JobApplication]:
        """Fetch every application for the user, in backend order."""
        return await asyncio.to_thread(self._list_sync, user_id)

    async def create(self, user_id: str, app: JobApplication) -> None:
        """Write a new document keyed by the application id, overwriting any existing one."""
        await asyncio.to_thread(self._create_sync, user_id, app)

    async def update(self, user_id: str, app: JobApplication) -> None:
        """Overwrite the fields of an existing document."""
        await asyncio.to_thread(self._update_sync, user_id, app)

    async def delete(self, user_id: str, app_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, user_id, app_id)
