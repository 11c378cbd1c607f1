from typing import Any, BinaryIO, Dict, List, Optional, Sequence

from .query import Query


class BaaSError(Exception):
    """Failure reported by the hosted platform (or the local stand-in)."""

    def __init__(self, message: str, code: int = 500, type: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.type = type

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class BaaSProvider:
    """Generic verbs over a hosted document database, file storage, functions and auth.

    Documents are plain dicts carrying the platform metadata keys
    (``$id``, ``$createdAt``, ``$updatedAt``) next to their business fields.
    """

    database_id: str
    bucket_id: str
    page_size: int = 1000

    # ----- documents -----
    def list_documents(self, collection_id: str, queries: Sequence[Query] = ()) -> Dict[str, Any]:
        raise NotImplementedError

    def get_document(self, collection_id: str, document_id: str) -> Dict[str, Any]:
        raise NotImplementedError

    def create_document(self, collection_id: str, data: Dict[str, Any], document_id: Optional[str] = None) -> Dict[str, Any]:
        raise NotImplementedError

    def update_document(self, collection_id: str, document_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def delete_document(self, collection_id: str, document_id: str) -> None:
        raise NotImplementedError

    def list_all(self, collection_id: str, queries: Sequence[Query] = ()) -> List[Dict[str, Any]]:
        """Fetch every matching document, one page at a time."""
        base = [q for q in queries if q.method not in ("limit", "offset")]
        out: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = self.list_documents(
                collection_id,
                base + [Query.limit(self.page_size), Query.offset(offset)],
            )
            docs = page.get("documents") or []
            out.extend(docs)
            offset += len(docs)
            if not docs or offset >= int(page.get("total") or 0):
                return out

    # ----- storage -----
    def create_file(self, stream: BinaryIO, filename: str, content_type: Optional[str] = None, file_id: Optional[str] = None) -> Dict[str, Any]:
        raise NotImplementedError

    def file_view_url(self, file_id: str) -> str:
        raise NotImplementedError

    def file_preview_url(self, file_id: str) -> str:
        raise NotImplementedError

    # ----- functions -----
    def execute_function(self, function_id: str, body: str) -> Dict[str, Any]:
        """Run a function synchronously; ``body`` is passed through as the request body."""
        raise NotImplementedError

    # ----- account -----
    def get_account(self, jwt_token: str) -> Dict[str, Any]:
        raise NotImplementedError

    def create_recovery(self, email: str, url: str, jwt_token: Optional[str] = None) -> Dict[str, Any]:
        raise NotImplementedError
