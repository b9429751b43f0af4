"""ProjectWise WSG REST API client.

Read-only: every operation is a single GET. Non-2xx responses raise
ApiError; network failures surface as ``httpx.TransportError`` untouched.
"""

from urllib.parse import quote

import httpx

from projectwise_mcp import odata
from projectwise_mcp.config import Config

DEFAULT_SEARCH_LIMIT = 50


class ApiError(Exception):
    """WSG answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str, body: str):
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(f"WSG API Error: {status_code} {reason}\n{body}")


class WsgClient:
    """Builds authenticated WSG requests for one repository."""

    def __init__(self, config: Config, http: httpx.AsyncClient):
        self.config = config
        self.http = http
        self.repository_path = f"/Repositories/{quote(config.repository_id, safe='')}"

    def headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Mas-App-Guid": self.config.app_guid,
            "Mas-Uuid": self.config.session_uuid,
            "Authorization": f"Bearer {self.config.token}",
        }

    def build_url(self, endpoint: str, params: dict[str, str] | None = None) -> httpx.URL:
        # Plain concatenation keeps the base path (e.g. /ws/v2.8).
        url = self.config.base_url.rstrip("/") + "/" + endpoint.lstrip("/")
        return httpx.URL(url, params=params)

    def collection_path(self, collection: str, item_id: str | None = None) -> str:
        path = f"{self.repository_path}/PW_WSG/{collection}"
        if item_id is not None:
            path += "/" + quote(item_id, safe="")
        return path

    async def get(self, endpoint: str, params: dict[str, str] | None = None):
        """GET ``endpoint`` and return the decoded JSON body."""
        response = await self.http.get(self.build_url(endpoint, params), headers=self.headers())
        if not response.is_success:
            raise ApiError(response.status_code, response.reason_phrase, response.text)
        return response.json()

    # ------------------------------------------------------------------
    # Repository operations
    # ------------------------------------------------------------------

    async def get_repository(self):
        return await self.get(self.repository_path)

    async def list_folders(self, parent_id: str | None = None):
        """List folders under ``parent_id``, or the root folders when omitted."""
        filter_ = odata.and_(
            odata.eq("TypeString", "Folder"),
            odata.eq("ParentGuid", parent_id or None),
        )
        return await self.get(self.collection_path("Project"), {"$filter": filter_})

    async def list_documents(self, folder_id: str):
        return await self.get(
            self.collection_path("Document"),
            {"$filter": odata.eq("ParentGuid", folder_id)},
        )

    async def get_document(self, document_id: str):
        return await self.get(self.collection_path("Document", document_id))

    async def get_folder(self, folder_id: str):
        return await self.get(self.collection_path("Project", folder_id))

    async def search_documents(self, name_pattern: str, max_results: int = DEFAULT_SEARCH_LIMIT):
        """Documents whose name contains ``name_pattern``, at most ``max_results``."""
        return await self.get(
            self.collection_path("Document"),
            {
                "$filter": odata.contains("Name", name_pattern),
                "$top": str(max_results),
            },
        )

    async def list_projects(self):
        return await self.get(self.collection_path("Project"))
