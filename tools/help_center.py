"""Help centers, articles and collections."""

from typing import Annotated, Literal, Optional

from fastmcp import FastMCP
from pydantic import Field

from featurebase_client import FeaturebaseClient
from tools.base import Cursor, PageLimit, call, compact, parse_json

Limit = Annotated[PageLimit, Field(description="Number of items to return (1-100, default 10)")]
Formatter = Annotated[
    Optional[Literal["default", "ai"]],
    Field(description="Content formatter: 'default' or 'ai' (AI converts markdown/html to Featurebase format)"),
]
Translations = Annotated[Optional[str], Field(description="JSON string of translations keyed by locale code")]
Icon = Annotated[
    Optional[str],
    Field(description="Icon as JSON string with type ('emoji' or 'predefined') and value fields"),
]


def register(mcp: FastMCP, client: FeaturebaseClient) -> None:

    @mcp.tool
    async def list_help_centers(limit: Limit = None, cursor: Cursor = None) -> str:
        """List the organization's help centers."""
        query = {"limit": limit, "cursor": cursor}
        return await call("list_help_centers", client.get("/v2/help_center/help_centers", query))

    @mcp.tool
    async def get_help_center(id: Annotated[str, Field(description="Help center unique identifier")]) -> str:
        """Get a help center by its ID."""
        return await call("get_help_center", client.get(f"/v2/help_center/help_centers/{id}"))

    # ----- articles -----

    @mcp.tool
    async def list_articles(
        limit: Limit = None,
        cursor: Cursor = None,
        state: Annotated[
            Optional[Literal["live", "draft", "all"]], Field(description="Filter by article state (default 'live')")
        ] = None,
        parentId: Annotated[Optional[str], Field(description="Filter by parent collection ID")] = None,
    ) -> str:
        """List help center articles."""
        query = {"limit": limit, "cursor": cursor, "state": state, "parentId": parentId}
        return await call("list_articles", client.get("/v2/help_center/articles", query))

    @mcp.tool
    async def create_article(
        title: Annotated[str, Field(description="The title of the article")],
        description: Annotated[Optional[str], Field(description="A brief description of the article")] = None,
        body: Annotated[
            Optional[str],
            Field(description="The HTML content of the article (supports external image URLs and base64 data URIs)"),
        ] = None,
        formatter: Formatter = None,
        parentId: Annotated[Optional[str], Field(description="The ID of the parent collection")] = None,
        icon: Icon = None,
        state: Annotated[
            Optional[Literal["live", "draft"]], Field(description="Article state: 'live' or 'draft' (defaults to 'draft')")
        ] = None,
        translations: Translations = None,
    ) -> str:
        """Create a help center article."""
        payload = compact(
            title=title,
            description=description,
            body=body,
            formatter=formatter,
            parentId=parentId,
            icon=parse_json("icon", icon),
            state=state,
            translations=parse_json("translations", translations),
        )
        return await call("create_article", client.post("/v2/help_center/articles", payload))

    @mcp.tool
    async def get_article(
        id: Annotated[str, Field(description="Article unique identifier")],
        state: Annotated[
            Optional[Literal["live", "draft"]], Field(description="Article state to retrieve (default 'live')")
        ] = None,
    ) -> str:
        """Get an article by its ID."""
        return await call("get_article", client.get(f"/v2/help_center/articles/{id}", {"state": state}))

    @mcp.tool
    async def update_article(
        id: Annotated[str, Field(description="The unique identifier of the article to update")],
        title: Annotated[Optional[str], Field(description="The new title of the article")] = None,
        description: Annotated[Optional[str], Field(description="The new description of the article")] = None,
        body: Annotated[Optional[str], Field(description="The new HTML content of the article")] = None,
        formatter: Formatter = None,
        icon: Icon = None,
        parentId: Annotated[Optional[str], Field(description="New parent collection ID")] = None,
        authorId: Annotated[
            Optional[str], Field(description="ID of the new author (must be a member of the organization)")
        ] = None,
        state: Annotated[
            Optional[Literal["live", "draft"]],
            Field(description="'live' publishes immediately, 'draft' saves as draft"),
        ] = None,
        translations: Translations = None,
    ) -> str:
        """Update an article. Only provided fields are changed."""
        payload = compact(
            title=title,
            description=description,
            body=body,
            formatter=formatter,
            icon=parse_json("icon", icon),
            parentId=parentId,
            authorId=authorId,
            state=state,
            translations=parse_json("translations", translations),
        )
        return await call("update_article", client.patch(f"/v2/help_center/articles/{id}", payload))

    @mcp.tool
    async def delete_article(id: Annotated[str, Field(description="The unique identifier of the article to delete")]) -> str:
        """Delete an article."""
        return await call("delete_article", client.delete(f"/v2/help_center/articles/{id}"))

    # ----- collections -----

    @mcp.tool
    async def list_collections(limit: Limit = None, cursor: Cursor = None) -> str:
        """List help center collections (groups of articles)."""
        query = {"limit": limit, "cursor": cursor}
        return await call("list_collections", client.get("/v2/help_center/collections", query))

    @mcp.tool
    async def create_collection(
        name: Annotated[str, Field(description="The name of the collection")],
        description: Annotated[Optional[str], Field(description="A description of the collection")] = None,
        icon: Icon = None,
        parentId: Annotated[Optional[str], Field(description="The ID of the parent collection, if any")] = None,
        translations: Translations = None,
    ) -> str:
        """Create a help center collection."""
        body = compact(
            name=name,
            description=description,
            icon=parse_json("icon", icon),
            parentId=parentId,
            translations=parse_json("translations", translations),
        )
        return await call("create_collection", client.post("/v2/help_center/collections", body))

    @mcp.tool
    async def get_collection(id: Annotated[str, Field(description="Collection unique identifier")]) -> str:
        """Get a collection by its ID."""
        return await call("get_collection", client.get(f"/v2/help_center/collections/{id}"))

    @mcp.tool
    async def update_collection(
        id: Annotated[str, Field(description="The unique identifier of the collection to update")],
        name: Annotated[Optional[str], Field(description="The new name of the collection")] = None,
        description: Annotated[Optional[str], Field(description="The new description of the collection")] = None,
        icon: Icon = None,
        parentId: Annotated[Optional[str], Field(description="The new parent collection ID")] = None,
        translations: Translations = None,
    ) -> str:
        """Update a collection. Only provided fields are changed."""
        body = compact(
            name=name,
            description=description,
            icon=parse_json("icon", icon),
            parentId=parentId,
            translations=parse_json("translations", translations),
        )
        return await call("update_collection", client.patch(f"/v2/help_center/collections/{id}", body))

    @mcp.tool
    async def delete_collection(
        id: Annotated[str, Field(description="The unique identifier of the collection to delete")],
    ) -> str:
        """Delete a collection."""
        return await call("delete_collection", client.delete(f"/v2/help_center/collections/{id}"))
