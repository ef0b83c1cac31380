"""Comments on posts and changelogs."""

from typing import Annotated, Literal, Optional

from fastmcp import FastMCP
from pydantic import Field

from featurebase_client import FeaturebaseClient
from tools.base import Cursor, PageLimit, call, compact

CommentId = Annotated[str, Field(description="Comment unique identifier")]


def register(mcp: FastMCP, client: FeaturebaseClient) -> None:

    @mcp.tool
    async def list_comments(
        postId: Annotated[Optional[str], Field(description="Filter comments by post ID")] = None,
        changelogId: Annotated[Optional[str], Field(description="Filter comments by changelog ID")] = None,
        privacy: Annotated[
            Optional[Literal["public", "private", "all"]],
            Field(description="Filter comments by privacy: public, private, or all"),
        ] = None,
        inReview: Annotated[Optional[bool], Field(description="Filter by moderation review status")] = None,
        sortBy: Annotated[
            Optional[Literal["best", "top", "new", "old"]],
            Field(description="Sort order: best (default, confidence), top (net score), new, old"),
        ] = None,
        limit: Annotated[PageLimit, Field(description="Max comments to return (1-100, default 10)")] = None,
        cursor: Cursor = None,
    ) -> str:
        """List comments for a post or changelog."""
        query = {
            "postId": postId,
            "changelogId": changelogId,
            "privacy": privacy,
            "inReview": inReview,
            "sortBy": sortBy,
            "limit": limit,
            "cursor": cursor,
        }
        return await call("list_comments", client.get("/v2/comments", query))

    @mcp.tool
    async def create_comment(
        content: Annotated[str, Field(description="Comment content in HTML format")],
        postId: Annotated[Optional[str], Field(description="Post ID to comment on (accepts ObjectId or slug)")] = None,
        changelogId: Annotated[
            Optional[str], Field(description="Changelog ID to comment on (accepts ObjectId or slug)")
        ] = None,
        parentCommentId: Annotated[Optional[str], Field(description="Parent comment ID if this is a reply")] = None,
        isPrivate: Annotated[
            Optional[bool], Field(description="Whether the comment is private (only visible to admins)")
        ] = None,
        sendNotification: Annotated[
            Optional[bool], Field(description="Whether to notify voters about the comment (default true)")
        ] = None,
        authorId: Annotated[Optional[str], Field(description="Featurebase user ID to attribute the comment to")] = None,
        authorUserId: Annotated[Optional[str], Field(description="External user ID from your system (matched via SSO)")] = None,
        authorEmail: Annotated[Optional[str], Field(description="Author email (used to find or create user)")] = None,
        authorName: Annotated[Optional[str], Field(description="Author display name")] = None,
        authorProfilePicture: Annotated[Optional[str], Field(description="Author profile picture URL")] = None,
        createdAt: Annotated[
            Optional[str], Field(description="ISO 8601 timestamp to backdate creation (useful for imports)")
        ] = None,
        upvotes: Annotated[Optional[int], Field(description="Initial upvotes count (useful for imports)")] = None,
        downvotes: Annotated[Optional[int], Field(description="Initial downvotes count (useful for imports)")] = None,
    ) -> str:
        """Create a comment or reply on a post or changelog."""
        body = compact(
            content=content,
            postId=postId,
            changelogId=changelogId,
            parentCommentId=parentCommentId,
            isPrivate=isPrivate,
            sendNotification=sendNotification,
            createdAt=createdAt,
            upvotes=upvotes,
            downvotes=downvotes,
        )
        author = compact(
            id=authorId or None,
            userId=authorUserId or None,
            email=authorEmail or None,
            name=authorName or None,
            profilePicture=authorProfilePicture or None,
        )
        if author:
            body["author"] = author
        return await call("create_comment", client.post("/v2/comments", body))

    @mcp.tool
    async def get_comment(id: CommentId) -> str:
        """Get a single comment by its ID."""
        return await call("get_comment", client.get(f"/v2/comments/{id}"))

    @mcp.tool
    async def update_comment(
        id: CommentId,
        content: Annotated[Optional[str], Field(description="Comment content in HTML format")] = None,
        isPrivate: Annotated[
            Optional[bool], Field(description="Whether the comment is private (only visible to admins)")
        ] = None,
        isPinned: Annotated[Optional[bool], Field(description="Whether the comment is pinned at the top")] = None,
        inReview: Annotated[Optional[bool], Field(description="Whether the comment is pending moderation review")] = None,
        createdAt: Annotated[Optional[str], Field(description="Update the creation date (useful for imports)")] = None,
        upvotes: Annotated[Optional[int], Field(description="Set the upvotes count directly")] = None,
        downvotes: Annotated[Optional[int], Field(description="Set the downvotes count directly")] = None,
    ) -> str:
        """Update a comment. Only provided fields are changed."""
        body = compact(
            content=content,
            isPrivate=isPrivate,
            isPinned=isPinned,
            inReview=inReview,
            createdAt=createdAt,
            upvotes=upvotes,
            downvotes=downvotes,
        )
        return await call("update_comment", client.patch(f"/v2/comments/{id}", body))

    @mcp.tool
    async def delete_comment(id: CommentId) -> str:
        """Delete a comment."""
        return await call("delete_comment", client.delete(f"/v2/comments/{id}"))
