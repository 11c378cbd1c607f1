"""
Appwrite REST provider
Talks to the hosted platform's database, storage, functions and account APIs
"""
from typing import Any, BinaryIO, Dict, Optional, Sequence

import httpx
import structlog

from ..config import settings
from .provider import BaaSError, BaaSProvider
from .query import Query


logger = structlog.get_logger(__name__)

UNIQUE_ID = "unique()"


class AppwriteProvider(BaaSProvider):
    """Client for the hosted platform's REST API"""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        project_id: Optional[str] = None,
        api_key: Optional[str] = None,
        database_id: Optional[str] = None,
        bucket_id: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.endpoint = (endpoint or settings.baas_endpoint).rstrip("/")
        self.project_id = project_id or settings.baas_project_id
        self.api_key = api_key or settings.baas_api_key
        self.database_id = database_id or settings.baas_database_id
        self.bucket_id = bucket_id or settings.baas_bucket_id
        self.page_size = settings.baas_page_size

        if not self.api_key:
            raise ValueError("BAAS_API_KEY is required for the appwrite provider")

        self._client = httpx.Client(
            base_url=self.endpoint,
            timeout=settings.baas_timeout_s,
            transport=transport,
        )

    def _headers(self, jwt_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"X-Appwrite-Project": self.project_id}
        if jwt_token:
            # Account calls act as the signed-in user, not as the server key
            headers["X-Appwrite-JWT"] = jwt_token
        else:
            headers["X-Appwrite-Key"] = self.api_key
        return headers

    def _request(self, method: str, path: str, jwt_token: Optional[str] = None, **kwargs) -> Any:
        try:
            response = self._client.request(method, path, headers=self._headers(jwt_token), **kwargs)
        except httpx.HTTPError as e:
            logger.error("baas_transport_error", method=method, path=path, error=str(e))
            raise BaaSError(f"Could not reach backend: {e}", code=503, type="transport_error") from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            raise BaaSError(
                body.get("message") or response.reason_phrase or "Request failed",
                code=int(body.get("code") or response.status_code),
                type=body.get("type"),
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _documents_path(self, collection_id: str, document_id: Optional[str] = None) -> str:
        path = f"/databases/{self.database_id}/collections/{collection_id}/documents"
        return f"{path}/{document_id}" if document_id else path

    # ----- documents -----
    def list_documents(self, collection_id: str, queries: Sequence[Query] = ()) -> Dict[str, Any]:
        params = [("queries[]", q.to_string()) for q in queries]
        return self._request("GET", self._documents_path(collection_id), params=params)

    def get_document(self, collection_id: str, document_id: str) -> Dict[str, Any]:
        return self._request("GET", self._documents_path(collection_id, document_id))

    def create_document(self, collection_id: str, data: Dict[str, Any], document_id: Optional[str] = None) -> Dict[str, Any]:
        payload = {"documentId": document_id or UNIQUE_ID, "data": data}
        return self._request("POST", self._documents_path(collection_id), json=payload)

    def update_document(self, collection_id: str, document_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PATCH", self._documents_path(collection_id, document_id), json={"data": data})

    def delete_document(self, collection_id: str, document_id: str) -> None:
        self._request("DELETE", self._documents_path(collection_id, document_id))

    # ----- storage -----
    def create_file(self, stream: BinaryIO, filename: str, content_type: Optional[str] = None, file_id: Optional[str] = None) -> Dict[str, Any]:
        files = {"file": (filename, stream, content_type or "application/octet-stream")}
        data = {"fileId": file_id or UNIQUE_ID, "permissions[]": 'read("any")'}
        return self._request("POST", f"/storage/buckets/{self.bucket_id}/files", data=data, files=files)

    def file_view_url(self, file_id: str) -> str:
        return f"{self.endpoint}/storage/buckets/{self.bucket_id}/files/{file_id}/view?project={self.project_id}"

    def file_preview_url(self, file_id: str) -> str:
        return f"{self.endpoint}/storage/buckets/{self.bucket_id}/files/{file_id}/preview?project={self.project_id}"

    # ----- functions -----
    def execute_function(self, function_id: str, body: str) -> Dict[str, Any]:
        return self._request("POST", f"/functions/{function_id}/executions", json={"body": body, "async": False})

    # ----- account -----
    def get_account(self, jwt_token: str) -> Dict[str, Any]:
        return self._request("GET", "/account", jwt_token=jwt_token)

    def create_recovery(self, email: str, url: str, jwt_token: Optional[str] = None) -> Dict[str, Any]:
        return self._request("POST", "/account/recovery", jwt_token=jwt_token, json={"email": email, "url": url})
