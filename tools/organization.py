"""Teams, admin roles and webhooks."""

from typing import Annotated, Literal, Optional

from fastmcp import FastMCP
from pydantic import Field

from featurebase_client import FeaturebaseClient
from tools.base import Cursor, PageLimit, call, compact, set_clearable, split_csv

WebhookId = Annotated[str, Field(description="Webhook unique identifier")]

WEBHOOK_TOPICS = (
    "post.created",
    "post.updated",
    "post.deleted",
    "post.voted",
    "changelog.published",
    "comment.created",
    "comment.updated",
    "comment.deleted",
)


def register(mcp: FastMCP, client: FeaturebaseClient) -> None:

    @mcp.tool
    async def list_teams() -> str:
        """List the teams in the organization."""
        return await call("list_teams", client.get("/v2/teams"))

    @mcp.tool
    async def get_team(id: Annotated[str, Field(description="Team unique identifier")]) -> str:
        """Get a team by its ID."""
        return await call("get_team", client.get(f"/v2/teams/{id}"))

    @mcp.tool
    async def list_admin_roles() -> str:
        """List the admin roles defined in the organization."""
        return await call("list_admin_roles", client.get("/v2/admins/roles"))

    # ----- webhooks -----

    @mcp.tool
    async def list_webhooks(
        limit: Annotated[PageLimit, Field(description="Number of webhooks to return (1-100, default 10)")] = None,
        cursor: Cursor = None,
        status: Annotated[
            Optional[Literal["active", "paused", "suspended"]], Field(description="Filter webhooks by status")
        ] = None,
    ) -> str:
        """List webhooks, optionally filtered by status."""
        query = {"limit": limit, "cursor": cursor, "status": status}
        return await call("list_webhooks", client.get("/v2/webhooks", query))

    @mcp.tool
    async def create_webhook(
        name: Annotated[str, Field(max_length=100, description="Human-readable webhook name (max 100 chars)")],
        url: Annotated[str, Field(description="Webhook endpoint URL (must be HTTPS)")],
        topics: Annotated[
            str,
            Field(description="Comma-separated event topics to subscribe to. Available: " + ", ".join(WEBHOOK_TOPICS)),
        ],
        description: Annotated[
            Optional[str], Field(max_length=500, description="Optional description (max 500 chars)")
        ] = None,
    ) -> str:
        """Create a webhook that receives event notifications."""
        body = compact(name=name, url=url, topics=split_csv(topics), description=description)
        return await call("create_webhook", client.post("/v2/webhooks", body))

    @mcp.tool
    async def get_webhook(id: WebhookId) -> str:
        """Get a webhook by its ID."""
        return await call("get_webhook", client.get(f"/v2/webhooks/{id}"))

    @mcp.tool
    async def update_webhook(
        id: WebhookId,
        name: Annotated[Optional[str], Field(max_length=255, description="Human-readable webhook name")] = None,
        url: Annotated[Optional[str], Field(description="Webhook endpoint URL (must be HTTPS)")] = None,
        description: Annotated[Optional[str], Field(description="Description (empty string to clear)")] = None,
        topics: Annotated[Optional[str], Field(description="Comma-separated event topics to subscribe to")] = None,
        status: Annotated[
            Optional[Literal["active", "paused"]],
            Field(description="Set to 'active' to reactivate or 'paused' to pause delivery"),
        ] = None,
    ) -> str:
        """Update a webhook. Only provided fields are changed."""
        body = compact(name=name, url=url, topics=split_csv(topics), status=status)
        set_clearable(body, "description", description)
        return await call("update_webhook", client.patch(f"/v2/webhooks/{id}", body))

    @mcp.tool
    async def delete_webhook(id: WebhookId) -> str:
        """Permanently delete a webhook. This cannot be undone."""
        return await call("delete_webhook", client.delete(f"/v2/webhooks/{id}"))
