"""
MCP tool server over a squirt application.

The application is built and started in the server lifespan and stopped
when the server shuts down. Tool results are JSON payloads; squirt errors
surface as ``{"error": ...}`` dictionaries carrying the error's code and
user message.

Decision: D-016
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from squirt.app import SquirtApp, build_app
from squirt.config import Settings
from squirt.errors import SquirtError

LOG = logging.getLogger("squirt.server")

try:
    from mcp.server.fastmcp import Context, FastMCP
except ImportError as exc:  # pragma: no cover - dependency is optional at import time
    FastMCP = None
    Context = Any  # type: ignore[misc,assignment]
    _IMPORT_ERROR = exc
else:
    _IMPORT_ERROR = None


def _require_server(lifespan: Any) -> "FastMCP":
    if FastMCP is None:
        raise SystemExit(
            "The mcp package is required to run the server. "
            "Install it with `pip install 'squirt[server]'`."
        ) from _IMPORT_ERROR
    return FastMCP("squirt", lifespan=lifespan)


def _json_payload(model) -> dict:
    return model.model_dump(mode="json")


def _error_payload(error: SquirtError) -> dict:
    return {"error": error.to_dict()}


def _app(ctx: "Context") -> SquirtApp:
    return ctx.request_context.lifespan_context


def build_server(settings: Settings | None = None) -> "FastMCP":

    @asynccontextmanager
    async def app_lifespan(server) -> AsyncIterator[SquirtApp]:
        app = build_app(settings)
        await app.start()
        try:
            yield app
        finally:
            await app.stop()

    server = _require_server(app_lifespan)

    @server.tool(description="Create a post (entry, link, wiki, profile or chat) and return its id.")
    async def create_post(
        ctx: Context,
        type: str,
        content: Optional[str] = None,
        title: Optional[str] = None,
        tags: Optional[list[str]] = None,
        url: Optional[str] = None,
        graph: Optional[str] = None,
    ) -> dict:
        data = {"type": type, "content": content, "title": title, "tags": tags or [], "url": url, "graph": graph}
        try:
            created = _app(ctx).posts.create_post(data)
        except SquirtError as exc:
            return _error_payload(exc)
        return {"id": created.id, "quads_added": created.quads_added}

    @server.tool(description="Fetch one post by id.")
    async def get_post(ctx: Context, id: str) -> dict:
        post = _app(ctx).posts.get_post(id)
        if post is None:
            return {"error": {"code": "NOT_FOUND", "message": f"Post not found: {id}"}}
        return _json_payload(post)

    @server.tool(description="List posts, newest first, optionally filtered by type, tag and graph.")
    async def list_posts(
        ctx: Context,
        type: Optional[str] = None,
        tag: Optional[str] = None,
        graph: Optional[str] = None,
        limit: int = 50,
    ) -> dict:
        posts = _app(ctx).posts.get_posts(type=type, tag=tag, graph=graph, limit=limit)
        return {"posts": [_json_payload(post) for post in posts], "count": len(posts)}

    @server.tool(description="Delete a post and every quad describing it.")
    async def delete_post(ctx: Context, id: str) -> dict:
        return {"deleted": _app(ctx).posts.delete_post(id)}

    @server.tool(description="Pull data from the active query endpoint into the local store.")
    async def load_from_endpoint(ctx: Context, graph: Optional[str] = None) -> dict:
        try:
            added = await _app(ctx).sync.load_from_endpoint(graph)
        except SquirtError as exc:
            return _error_payload(exc)
        return {"quads_added": added}

    @server.tool(description="Push the local store into a graph on the active update endpoint.")
    async def sync_with_endpoint(ctx: Context, graph: Optional[str] = None) -> dict:
        app = _app(ctx)
        try:
            pushed = await app.sync.sync_with_endpoint(graph or app.settings.sync_graph)
        except SquirtError as exc:
            return _error_payload(exc)
        return {"quads_pushed": pushed}

    @server.tool(description="List registered SPARQL endpoints with their health status.")
    async def list_endpoints(ctx: Context) -> dict:
        return {"endpoints": [_json_payload(endpoint) for endpoint in _app(ctx).registry.endpoints()]}

    @server.tool(description="Register a SPARQL endpoint (type 'query' or 'update') and probe it.")
    async def add_endpoint(
        ctx: Context,
        url: str,
        label: str,
        type: str = "query",
        user: Optional[str] = None,
        password: Optional[str] = None,
    ) -> dict:
        credentials = {"user": user, "password": password or ""} if user else None
        registry = _app(ctx).registry
        try:
            registry.add_endpoint(url, label, type, credentials)
            await registry.wait_for_probes()
        except SquirtError as exc:
            return _error_payload(exc)
        return _json_payload(registry.get_endpoint(url))

    @server.tool(description="Probe every endpoint now and return the health summary.")
    async def check_endpoints(ctx: Context) -> dict:
        summary = await _app(ctx).registry.check_endpoints_health()
        return _json_payload(summary)

    return server


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    server = build_server(settings)
    server.run()


if __name__ == "__main__":
    main()
