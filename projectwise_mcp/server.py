"""ProjectWise MCP Server: browse and search a ProjectWise repository over WSG."""

import json
import logging
import sys
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from dataclasses import dataclass

import httpx
from mcp.server.fastmcp import FastMCP, Context
from mcp.server.fastmcp.exceptions import ToolError

from projectwise_mcp.client import DEFAULT_SEARCH_LIMIT, ApiError, WsgClient
from projectwise_mcp.config import Config, ConfigurationError, load_config

logger = logging.getLogger(__name__)

# Set by main() so the lifespan reuses the config (and session id) checked at startup.
_config: Config | None = None

# ---------------------------------------------------------------------------
# Lifespan: shared WSG client
# ---------------------------------------------------------------------------


@dataclass
class AppContext:
    client: WsgClient


@asynccontextmanager
async def app_lifespan(app: FastMCP) -> AsyncIterator[AppContext]:
    config = _config or load_config()
    async with httpx.AsyncClient(timeout=httpx.Timeout(30.0)) as http:
        logger.info("Connected to %s (repository %s)", config.base_url, config.repository_id)
        yield AppContext(client=WsgClient(config, http))


mcp = FastMCP(
    "projectwise",
    instructions=(
        "Read-only access to a Bentley ProjectWise repository through the WSG REST API. "
        "Browsing: list_folders (root or children of a folder), list_documents, "
        "get_folder, get_document. Search: search_documents (name substring). "
        "Repository: list_projects, get_repository_info. "
        "Typical workflow: list_folders -> list_folders(parent_id) -> list_documents -> get_document."
    ),
    lifespan=app_lifespan,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_client(ctx: Context) -> WsgClient:
    return ctx.request_context.lifespan_context.client


async def _call(action: str, request, **details) -> str:
    """Await a client request and format its JSON result for the caller.

    Failures are logged and re-raised as ToolError so the result carries
    the error flag.
    """
    logger.info("%s %s", action.capitalize(), details or "")
    try:
        result = await request
    except (ApiError, httpx.TransportError) as exc:
        logger.error("Failed %s: %s", action, exc)
        raise ToolError(f"Error {action}: {exc}") from exc
    except ValueError as exc:
        # A 2xx answer that is not JSON, e.g. an SSO login page.
        logger.error("Failed %s: response is not JSON: %s", action, exc)
        raise ToolError(f"Error {action}: response is not JSON ({exc})") from exc
    return json.dumps(result, indent=2)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
async def list_folders(parent_id: str = "", ctx: Context = None) -> str:
    """List folders in ProjectWise. If parent_id is omitted, lists root folders.

    Args:
        parent_id: Parent folder GUID (omit for root folders).
    """
    client = _get_client(ctx)
    return await _call("listing folders", client.list_folders(parent_id or None), parent_id=parent_id)


@mcp.tool()
async def list_documents(folder_id: str, ctx: Context = None) -> str:
    """List documents in a ProjectWise folder.

    Args:
        folder_id: Folder GUID to list documents from.
    """
    client = _get_client(ctx)
    return await _call("listing documents", client.list_documents(folder_id), folder_id=folder_id)


@mcp.tool()
async def get_document(document_id: str, ctx: Context = None) -> str:
    """Get metadata for a specific document in ProjectWise.

    Args:
        document_id: Document GUID.
    """
    client = _get_client(ctx)
    return await _call("getting document", client.get_document(document_id), document_id=document_id)


@mcp.tool()
async def search_documents(
    name_pattern: str,
    max_results: int = DEFAULT_SEARCH_LIMIT,
    ctx: Context = None,
) -> str:
    """Search for documents by name pattern in ProjectWise.

    Args:
        name_pattern: Search pattern (partial name match).
        max_results: Maximum results to return (default 50).
    """
    client = _get_client(ctx)
    return await _call(
        "searching documents",
        client.search_documents(name_pattern, max_results),
        name_pattern=name_pattern,
        max_results=max_results,
    )


@mcp.tool()
async def get_folder(folder_id: str, ctx: Context = None) -> str:
    """Get metadata for a specific folder in ProjectWise.

    Args:
        folder_id: Folder GUID.
    """
    client = _get_client(ctx)
    return await _call("getting folder", client.get_folder(folder_id), folder_id=folder_id)


@mcp.tool()
async def list_projects(ctx: Context = None) -> str:
    """List all projects in the ProjectWise repository."""
    client = _get_client(ctx)
    return await _call("listing projects", client.list_projects())


@mcp.tool()
async def get_repository_info(ctx: Context = None) -> str:
    """Get information about the connected ProjectWise repository."""
    client = _get_client(ctx)
    return await _call("getting repository info", client.get_repository())


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    global _config
    try:
        _config = load_config()
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    logger.info("Starting ProjectWise MCP server (stdio)")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
