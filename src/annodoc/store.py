"""Record store adapters: the collaborator contract and two implementations."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from annodoc.config import ANNODOC_STORE_API_KEY, ANNODOC_STORE_URL
from annodoc.exceptions import NotFoundError, PersistenceError
from annodoc.http_utils import create_client, request_with_retries
from annodoc.schemas import Comment, DocumentRecord, User

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Async contract for loading and persisting documents and comments.

    Implementations raise NotFoundError for missing records and
    PersistenceError for any other storage failure.
    """

    async def get_current_user(self) -> User | None:
        ...

    async def load_document(self, document_id: str) -> DocumentRecord:
        ...

    async def save_document_content(
        self, document_id: str, content: dict[str, Any], updated_at: datetime
    ) -> None:
        ...

    async def save_document_title(self, document_id: str, title: str) -> None:
        ...

    async def delete_document(self, document_id: str) -> None:
        ...

    async def list_comments(self, document_id: str) -> list[Comment]:
        ...

    async def insert_comment(self, comment: Comment) -> None:
        ...

    async def update_comment(self, comment_id: str, *, resolved: bool) -> None:
        ...

    async def delete_comment(self, comment_id: str) -> None:
        ...


class InMemoryStore:
    """Dict-backed store for tests and local use."""

    def __init__(self, user: User | None = None) -> None:
        self.user = user
        self.documents: dict[str, DocumentRecord] = {}
        self.comments: dict[str, Comment] = {}

    def add_document(self, record: DocumentRecord) -> DocumentRecord:
        self.documents[record.id] = record
        return record

    async def get_current_user(self) -> User | None:
        return self.user

    async def load_document(self, document_id: str) -> DocumentRecord:
        record = self.documents.get(document_id)
        if record is None:
            raise NotFoundError(f"Document {document_id} not found")
        return record.model_copy(deep=True)

    async def save_document_content(
        self, document_id: str, content: dict[str, Any], updated_at: datetime
    ) -> None:
        record = self.documents.get(document_id)
        if record is None:
            raise NotFoundError(f"Document {document_id} not found")
        self.documents[document_id] = record.model_copy(
            update={"content": content, "updated_at": updated_at}
        )

    async def save_document_title(self, document_id: str, title: str) -> None:
        record = self.documents.get(document_id)
        if record is None:
            raise NotFoundError(f"Document {document_id} not found")
        self.documents[document_id] = record.model_copy(
            update={"title": title, "updated_at": datetime.now(timezone.utc)}
        )

    async def delete_document(self, document_id: str) -> None:
        if self.documents.pop(document_id, None) is None:
            raise NotFoundError(f"Document {document_id} not found")
        for comment_id in [c.id for c in self.comments.values() if c.document_id == document_id]:
            del self.comments[comment_id]

    async def list_comments(self, document_id: str) -> list[Comment]:
        found = [c for c in self.comments.values() if c.document_id == document_id]
        return sorted(found, key=lambda comment: comment.created_at)

    async def insert_comment(self, comment: Comment) -> None:
        self.comments[comment.id] = comment.model_copy()

    async def update_comment(self, comment_id: str, *, resolved: bool) -> None:
        comment = self.comments.get(comment_id)
        if comment is None:
            raise NotFoundError(f"Comment {comment_id} not found")
        self.comments[comment_id] = comment.model_copy(update={"resolved": resolved})

    async def delete_comment(self, comment_id: str) -> None:
        if self.comments.pop(comment_id, None) is None:
            raise NotFoundError(f"Comment {comment_id} not found")


class RestStore:
    """PostgREST-style adapter (``/rest/v1/<table>?id=eq.<id>``).

    Usage:
        async with RestStore(access_token=token) as store:
            record = await store.load_document(document_id)
    """

    def __init__(
        self,
        base_url: str = ANNODOC_STORE_URL,
        *,
        api_key: str = ANNODOC_STORE_API_KEY,
        access_token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"apikey": api_key, "Authorization": f"Bearer {access_token or api_key}"}
        self._owns_client = client is None
        self._client = client or create_client(base_url.rstrip("/"), headers)

    async def __aenter__(self) -> "RestStore":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def get_current_user(self) -> User | None:
        try:
            response = await request_with_retries(self._client, "GET", "/auth/v1/user")
        except NotFoundError:
            return None
        data = response.json()
        metadata = data.get("user_metadata") or {}
        email = data.get("email")
        return User(
            id=data["id"],
            display_name=metadata.get("full_name") or metadata.get("name") or email or data["id"],
            avatar_url=metadata.get("avatar_url"),
            email=email,
        )

    async def load_document(self, document_id: str) -> DocumentRecord:
        response = await request_with_retries(
            self._client,
            "GET",
            "/rest/v1/documents",
            params={"id": f"eq.{document_id}", "select": "*"},
            not_found_message=f"Document {document_id} not found",
        )
        rows = response.json()
        if not rows:
            raise NotFoundError(f"Document {document_id} not found")
        try:
            return DocumentRecord.model_validate(rows[0])
        except ValidationError as exc:
            raise PersistenceError(f"Malformed document record {document_id}: {exc}") from exc

    async def save_document_content(
        self, document_id: str, content: dict[str, Any], updated_at: datetime
    ) -> None:
        await self._patch(
            "documents",
            document_id,
            {"content": content, "updated_at": updated_at.isoformat()},
        )

    async def save_document_title(self, document_id: str, title: str) -> None:
        await self._patch(
            "documents",
            document_id,
            {"title": title, "updated_at": datetime.now(timezone.utc).isoformat()},
        )

    async def delete_document(self, document_id: str) -> None:
        await request_with_retries(
            self._client, "DELETE", "/rest/v1/documents", params={"id": f"eq.{document_id}"}
        )

    async def list_comments(self, document_id: str) -> list[Comment]:
        response = await request_with_retries(
            self._client,
            "GET",
            "/rest/v1/comments",
            params={
                "document_id": f"eq.{document_id}",
                "select": "*",
                "order": "created_at.asc",
            },
        )
        try:
            return [Comment.model_validate(row) for row in response.json()]
        except ValidationError as exc:
            raise PersistenceError(f"Malformed comment records for {document_id}: {exc}") from exc

    async def insert_comment(self, comment: Comment) -> None:
        await request_with_retries(
            self._client,
            "POST",
            "/rest/v1/comments",
            json=comment.model_dump(mode="json"),
            headers={"Prefer": "return=minimal"},
        )

    async def update_comment(self, comment_id: str, *, resolved: bool) -> None:
        await self._patch("comments", comment_id, {"resolved": resolved})

    async def delete_comment(self, comment_id: str) -> None:
        await request_with_retries(
            self._client, "DELETE", "/rest/v1/comments", params={"id": f"eq.{comment_id}"}
        )

    async def _patch(self, table: str, record_id: str, values: dict[str, Any]) -> None:
        await request_with_retries(
            self._client,
            "PATCH",
            f"/rest/v1/{table}",
            params={"id": f"eq.{record_id}"},
            json=values,
            headers={"Prefer": "return=minimal"},
            not_found_message=f"{table[:-1].capitalize()} {record_id} not found",
        )
