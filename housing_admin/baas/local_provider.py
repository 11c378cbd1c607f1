"""
Local stand-in for the hosted platform, for development and tests.
Keeps documents as JSON rows through SQLAlchemy and files on the local filesystem.
"""
import json
import mimetypes
import os
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Sequence, Tuple

import jwt
import structlog
from slugify import slugify
from sqlalchemy.orm import Session, sessionmaker

from ..config import settings
from ..db import Base, SessionLocal
from ..models.models import StoredDocument, StoredFile
from .provider import BaaSError, BaaSProvider
from .query import Query, apply_queries


logger = structlog.get_logger(__name__)

FunctionHandler = Callable[["LocalProvider", Dict[str, Any]], Dict[str, Any]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat(timespec="milliseconds")


def new_id() -> str:
    return uuid.uuid4().hex[:20]


def _ensure_sqlite_dir(url: str) -> None:
    if url.startswith("sqlite:///"):
        path = url[len("sqlite:///"):]
        folder = os.path.dirname(path)
        if path != ":memory:" and folder:
            os.makedirs(folder, exist_ok=True)


class LocalProvider(BaaSProvider):
    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        storage_dir: Optional[str] = None,
        database_id: Optional[str] = None,
        bucket_id: Optional[str] = None,
    ):
        if session_factory is None:
            _ensure_sqlite_dir(settings.database_url)
            session_factory = SessionLocal
        self._sessions = session_factory
        self.database_id = database_id or settings.baas_database_id
        self.bucket_id = bucket_id or settings.baas_bucket_id
        self.page_size = settings.baas_page_size
        self.base_dir = Path(storage_dir or settings.local_storage_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.recoveries: List[Dict[str, Any]] = []
        self._functions: Dict[str, FunctionHandler] = {
            settings.create_user_function_id: _create_user_function,
            settings.update_user_function_id: _update_user_function,
            settings.delete_user_function_id: _delete_user_function,
        }
        if settings.auto_create_db:
            Base.metadata.create_all(bind=self._sessions.kw["bind"])

    # ----- helpers -----
    def _session(self) -> Session:
        return self._sessions()

    def _to_dict(self, row: StoredDocument) -> Dict[str, Any]:
        out = dict(row.data or {})
        out.update({
            "$id": row.id,
            "$collectionId": row.collection_id,
            "$databaseId": row.database_id,
            "$createdAt": _iso(row.created_at),
            "$updatedAt": _iso(row.updated_at),
        })
        return out

    def _find(self, db: Session, collection_id: str, document_id: str) -> StoredDocument:
        row = db.query(StoredDocument).filter(
            StoredDocument.id == document_id,
            StoredDocument.database_id == self.database_id,
            StoredDocument.collection_id == collection_id,
        ).first()
        if row is None:
            raise BaaSError("Document with the requested ID could not be found.", code=404, type="document_not_found")
        return row

    @staticmethod
    def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
        # Round-trip through JSON so stored values match what the REST API would return
        return json.loads(json.dumps({k: v for k, v in data.items() if not k.startswith("$")}, default=str))

    # ----- documents -----
    def list_documents(self, collection_id: str, queries: Sequence[Query] = ()) -> Dict[str, Any]:
        db = self._session()
        try:
            rows = db.query(StoredDocument).filter(
                StoredDocument.database_id == self.database_id,
                StoredDocument.collection_id == collection_id,
            ).all()
            docs = [self._to_dict(r) for r in rows]
        finally:
            db.close()
        page, total = apply_queries(docs, list(queries))
        return {"total": total, "documents": page}

    def get_document(self, collection_id: str, document_id: str) -> Dict[str, Any]:
        db = self._session()
        try:
            return self._to_dict(self._find(db, collection_id, document_id))
        finally:
            db.close()

    def create_document(self, collection_id: str, data: Dict[str, Any], document_id: Optional[str] = None) -> Dict[str, Any]:
        db = self._session()
        try:
            doc_id = document_id if document_id and document_id != "unique()" else new_id()
            if db.query(StoredDocument).filter(StoredDocument.id == doc_id).first():
                raise BaaSError("Document with the requested ID already exists.", code=409, type="document_already_exists")
            now = _now()
            row = StoredDocument(
                id=doc_id,
                database_id=self.database_id,
                collection_id=collection_id,
                data=self._clean(data),
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return self._to_dict(row)
        finally:
            db.close()

    def update_document(self, collection_id: str, document_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        db = self._session()
        try:
            row = self._find(db, collection_id, document_id)
            merged = dict(row.data or {})
            merged.update(self._clean(data))
            row.data = merged
            row.updated_at = _now()
            db.commit()
            db.refresh(row)
            return self._to_dict(row)
        finally:
            db.close()

    def delete_document(self, collection_id: str, document_id: str) -> None:
        db = self._session()
        try:
            row = self._find(db, collection_id, document_id)
            db.delete(row)
            db.commit()
        finally:
            db.close()

    # ----- storage -----
    def _file_path(self, key: str) -> Path:
        clean_key = key.lstrip("/").replace("..", "").replace("\\", "/")
        return self.base_dir / clean_key

    def create_file(self, stream: BinaryIO, filename: str, content_type: Optional[str] = None, file_id: Optional[str] = None) -> Dict[str, Any]:
        fid = file_id if file_id and file_id != "unique()" else new_id()
        stem, ext = os.path.splitext(filename or "file")
        key = f"{self.bucket_id}/{fid}_{slugify(stem) or 'file'}{ext.lower()}"
        path = self._file_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        content = stream.read()
        with open(path, "wb") as f:
            f.write(content)

        db = self._session()
        try:
            row = StoredFile(
                id=fid,
                bucket_id=self.bucket_id,
                name=filename or "file",
                key=key,
                content_type=content_type or mimetypes.guess_type(filename or "")[0],
                size_bytes=len(content),
                created_at=_now(),
            )
            db.add(row)
            db.commit()
            return {
                "$id": row.id,
                "bucketId": row.bucket_id,
                "name": row.name,
                "mimeType": row.content_type,
                "sizeOriginal": row.size_bytes,
                "$createdAt": _iso(row.created_at),
            }
        finally:
            db.close()

    def open_file(self, file_id: str) -> Tuple[Path, Optional[str]]:
        db = self._session()
        try:
            row = db.query(StoredFile).filter(StoredFile.id == file_id).first()
            if row is None:
                raise BaaSError("The requested file could not be found.", code=404, type="storage_file_not_found")
            path = self._file_path(row.key)
            if not path.exists():
                raise BaaSError("The requested file could not be found.", code=404, type="storage_file_not_found")
            return path, row.content_type
        finally:
            db.close()

    def file_view_url(self, file_id: str) -> str:
        return f"{settings.public_base_url}/files/local/{file_id}"

    def file_preview_url(self, file_id: str) -> str:
        return f"{settings.public_base_url}/files/local/{file_id}"

    # ----- functions -----
    def register_function(self, function_id: str, handler: FunctionHandler) -> None:
        self._functions[function_id] = handler

    def execute_function(self, function_id: str, body: str) -> Dict[str, Any]:
        handler = self._functions.get(function_id)
        if handler is None:
            raise BaaSError("Function with the requested ID could not be found.", code=404, type="function_not_found")
        try:
            wrapper = json.loads(body or "{}")
            payload = json.loads(wrapper.get("body") or "{}") if isinstance(wrapper, dict) else {}
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            result = {"success": False, "message": "Invalid request body"}
        else:
            result = handler(self, payload)
        return {
            "$id": new_id(),
            "functionId": function_id,
            "status": "completed",
            "responseStatusCode": 200 if result.get("success") else 400,
            "responseBody": json.dumps(result),
        }

    # ----- account -----
    def issue_token(self, user_id: str, email: Optional[str] = None, name: Optional[str] = None) -> str:
        now = _now()
        payload = {
            "sub": user_id,
            "email": email,
            "name": name,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=settings.jwt_ttl_seconds)).timestamp()),
        }
        return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)

    def get_account(self, jwt_token: str) -> Dict[str, Any]:
        try:
            claims = jwt.decode(jwt_token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            raise BaaSError("Session expired", code=401, type="user_jwt_invalid")
        except jwt.InvalidTokenError:
            raise BaaSError("Invalid session token", code=401, type="user_jwt_invalid")
        return {"$id": str(claims.get("sub")), "email": claims.get("email"), "name": claims.get("name")}

    def create_recovery(self, email: str, url: str, jwt_token: Optional[str] = None) -> Dict[str, Any]:
        token = {"$id": new_id(), "email": email, "url": url, "expire": _iso(_now() + timedelta(hours=1))}
        self.recoveries.append(token)
        logger.info("local_recovery_created", email=email)
        return token


# ----- stand-ins for the user management functions -----
def _create_user_function(provider: LocalProvider, payload: Dict[str, Any]) -> Dict[str, Any]:
    email = (payload.get("email") or "").strip()
    if not email or not payload.get("password"):
        return {"success": False, "message": "email and password are required"}
    existing = provider.list_documents(settings.users_collection_id, [Query.equal("email", email), Query.limit(1)])
    if existing["total"]:
        return {"success": False, "message": "A user with the same email already exists"}
    return {"success": True, "message": "User created", "userId": new_id()}


def _update_user_function(provider: LocalProvider, payload: Dict[str, Any]) -> Dict[str, Any]:
    user_id = payload.get("userId")
    collection_id = payload.get("collectionId") or settings.users_collection_id
    fields = {k: payload[k] for k in ("name", "email", "phone", "role", "isActive") if k in payload}
    fields["updatedBy"] = payload.get("updatedBy")
    fields["updatedAt"] = _iso(_now())
    try:
        provider.update_document(collection_id, user_id, fields)
    except BaaSError as e:
        return {"success": False, "message": e.message}
    return {"success": True, "message": "User updated"}


def _delete_user_function(provider: LocalProvider, payload: Dict[str, Any]) -> Dict[str, Any]:
    user_id = payload.get("userId")
    collection_id = payload.get("collectionId") or settings.users_collection_id
    now = _iso(_now())
    try:
        provider.update_document(collection_id, user_id, {
            "isDeleted": True,
            "isActive": False,
            "deletedAt": now,
            "deletedBy": payload.get("deletedBy"),
            "updatedAt": now,
        })
    except BaaSError as e:
        return {"success": False, "message": e.message}
    return {"success": True, "message": "User deleted"}
