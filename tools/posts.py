"""Posts, post voters, boards and post statuses."""

from typing import Annotated, Literal, Optional

from fastmcp import FastMCP
from pydantic import Field

from featurebase_client import FeaturebaseClient
from tools.base import Cursor, PageLimit, call, compact, set_clearable, split_csv

PostId = Annotated[str, Field(description="Post unique identifier")]
Visibility = Optional[Literal["public", "authorOnly", "companyOnly"]]


def register(mcp: FastMCP, client: FeaturebaseClient) -> None:

    @mcp.tool
    async def list_posts(
        limit: Annotated[PageLimit, Field(description="Number of posts to return (1-100, default 10)")] = None,
        cursor: Cursor = None,
        boardId: Annotated[Optional[str], Field(description="Filter by board (category) ID")] = None,
        statusId: Annotated[Optional[str], Field(description="Filter by status ID")] = None,
        tags: Annotated[Optional[str], Field(description="Filter by tag names (comma-separated)")] = None,
        q: Annotated[Optional[str], Field(description="Search query to filter posts by title/content")] = None,
        inReview: Annotated[Optional[bool], Field(description="Include posts that are in review")] = None,
        sortBy: Annotated[
            Optional[Literal["createdAt", "upvotes", "trending", "recent"]],
            Field(description="Sort order for posts (default: createdAt)"),
        ] = None,
        sortOrder: Annotated[Optional[Literal["asc", "desc"]], Field(description="Sort direction (default: desc)")] = None,
    ) -> str:
        """List feedback posts with filtering, search, sorting and cursor-based pagination."""
        query = {
            "limit": limit,
            "cursor": cursor,
            "boardId": boardId,
            "statusId": statusId,
            "tags": tags,
            "q": q,
            "inReview": inReview,
            "sortBy": sortBy,
            "sortOrder": sortOrder,
        }
        return await call("list_posts", client.get("/v2/posts", query))

    @mcp.tool
    async def create_post(
        title: Annotated[str, Field(description="Post title (minimum 2 characters)")],
        boardId: Annotated[str, Field(description="Board ID to create the post in")],
        content: Annotated[Optional[str], Field(description="Post content in HTML format")] = None,
        tags: Annotated[Optional[str], Field(description="Comma-separated tag names to attach")] = None,
        statusId: Annotated[Optional[str], Field(description="Status ID to set (defaults to board's default status)")] = None,
        commentsEnabled: Annotated[Optional[bool], Field(description="Whether comments are allowed (default: true)")] = None,
        inReview: Annotated[Optional[bool], Field(description="Whether post is pending moderation (default: false)")] = None,
        authorEmail: Annotated[Optional[str], Field(description="Author email to attribute the post to")] = None,
        authorName: Annotated[Optional[str], Field(description="Author display name")] = None,
        assigneeId: Annotated[Optional[str], Field(description="Admin ID to assign this post to")] = None,
        eta: Annotated[Optional[str], Field(description="Estimated completion date (ISO 8601)")] = None,
        visibility: Annotated[Visibility, Field(description="Post visibility: public, authorOnly, or companyOnly")] = None,
    ) -> str:
        """Create a new feedback post on a board."""
        body = compact(
            title=title,
            boardId=boardId,
            content=content,
            tags=split_csv(tags),
            statusId=statusId,
            commentsEnabled=commentsEnabled,
            inReview=inReview,
            assigneeId=assigneeId,
            eta=eta,
            visibility=visibility,
        )
        author = compact(email=authorEmail or None, name=authorName or None)
        if author:
            body["author"] = author
        return await call("create_post", client.post("/v2/posts", body))

    @mcp.tool
    async def get_post(id: PostId) -> str:
        """Get a single post by its unique ID."""
        return await call("get_post", client.get(f"/v2/posts/{id}"))

    @mcp.tool
    async def update_post(
        id: PostId,
        title: Annotated[Optional[str], Field(description="Post title (minimum 2 characters)")] = None,
        content: Annotated[Optional[str], Field(description="Post content in HTML format")] = None,
        boardId: Annotated[Optional[str], Field(description="Board ID to move post to")] = None,
        statusId: Annotated[Optional[str], Field(description="Status ID to set")] = None,
        tags: Annotated[Optional[str], Field(description="Comma-separated tag names to set (replaces existing)")] = None,
        commentsEnabled: Annotated[Optional[bool], Field(description="Whether comments are enabled on this post")] = None,
        inReview: Annotated[Optional[bool], Field(description="Whether post is pending moderation")] = None,
        assigneeId: Annotated[Optional[str], Field(description="Admin ID to assign this post to (empty string to unassign)")] = None,
        eta: Annotated[Optional[str], Field(description="Estimated completion date (ISO 8601, empty string to clear)")] = None,
        visibility: Annotated[Visibility, Field(description="Post visibility: public, authorOnly, or companyOnly")] = None,
        sendStatusUpdateEmail: Annotated[
            Optional[bool], Field(description="Notify voters by email when the status changes")
        ] = None,
    ) -> str:
        """Update an existing post. Only provided fields are changed."""
        body = compact(
            title=title,
            content=content,
            boardId=boardId,
            statusId=statusId,
            tags=split_csv(tags),
            commentsEnabled=commentsEnabled,
            inReview=inReview,
            visibility=visibility,
            sendStatusUpdateEmail=sendStatusUpdateEmail,
        )
        set_clearable(body, "assigneeId", assigneeId)
        set_clearable(body, "eta", eta)
        return await call("update_post", client.patch(f"/v2/posts/{id}", body))

    @mcp.tool
    async def delete_post(id: PostId) -> str:
        """Permanently delete a post. This cannot be undone."""
        return await call("delete_post", client.delete(f"/v2/posts/{id}"))

    # ----- voters -----

    @mcp.tool
    async def list_post_voters(
        id: PostId,
        limit: Annotated[PageLimit, Field(description="Number of voters to return (1-100, default 10)")] = None,
        cursor: Cursor = None,
    ) -> str:
        """List the voters (upvoters) of a post."""
        query = {"limit": limit, "cursor": cursor}
        return await call("list_post_voters", client.get(f"/v2/posts/{id}/voters", query))

    @mcp.tool
    async def add_post_voter(
        id: PostId,
        voterId: Annotated[Optional[str], Field(description="Featurebase user ID to add as voter")] = None,
        voterUserId: Annotated[Optional[str], Field(description="External user ID from your system (matched via SSO)")] = None,
        voterEmail: Annotated[Optional[str], Field(description="Voter email (used to find or create user)")] = None,
        voterName: Annotated[Optional[str], Field(description="Voter display name (used when creating new user)")] = None,
        voterProfilePicture: Annotated[Optional[str], Field(description="Voter profile picture URL")] = None,
    ) -> str:
        """Add an upvote to a post.

        Identify the voter by Featurebase user ID, external user ID, or email.
        Without a voter the authenticated user's vote is added.
        """
        body = compact(
            id=voterId,
            userId=voterUserId,
            email=voterEmail,
            name=voterName,
            profilePicture=voterProfilePicture,
        )
        return await call("add_post_voter", client.post(f"/v2/posts/{id}/voters", body))

    @mcp.tool
    async def remove_post_voter(
        id: PostId,
        voterId: Annotated[Optional[str], Field(description="Featurebase user ID to remove as voter")] = None,
        voterUserId: Annotated[Optional[str], Field(description="External user ID from your system (matched via SSO)")] = None,
        voterEmail: Annotated[Optional[str], Field(description="Voter email to identify user")] = None,
    ) -> str:
        """Remove an upvote from a post."""
        body = compact(id=voterId, userId=voterUserId, email=voterEmail)
        return await call("remove_post_voter", client.delete(f"/v2/posts/{id}/voters", body=body))

    # ----- boards and statuses -----

    @mcp.tool
    async def list_boards() -> str:
        """List all boards (post categories) in the organization."""
        return await call("list_boards", client.get("/v2/boards"))

    @mcp.tool
    async def list_post_statuses() -> str:
        """List all post statuses in the organization."""
        return await call("list_post_statuses", client.get("/v2/post_statuses"))

    @mcp.tool
    async def get_post_status(id: Annotated[str, Field(description="Post status unique identifier")]) -> str:
        """Get a single post status by its ID."""
        return await call("get_post_status", client.get(f"/v2/post_statuses/{id}"))
