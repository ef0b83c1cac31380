"""Changelogs, publishing and changelog subscribers."""

from typing import Annotated, Literal, Optional

from fastmcp import FastMCP
from pydantic import Field

from featurebase_client import FeaturebaseClient
from tools.base import Cursor, PageLimit, call, compact

ChangelogId = Annotated[str, Field(description="Changelog unique identifier")]
Categories = Annotated[
    Optional[list[str]], Field(description="Array of category names (e.g. ['New', 'Fixed', 'Improved'])")
]
SegmentIds = Annotated[
    Optional[list[str]], Field(description="Array of segment IDs allowed to view this changelog")
]
Emails = Annotated[list[str], Field(min_length=1, max_length=1000)]


def register(mcp: FastMCP, client: FeaturebaseClient) -> None:

    @mcp.tool
    async def list_changelogs(
        id: Annotated[Optional[str], Field(description="Find changelog by its ID or slug")] = None,
        q: Annotated[Optional[str], Field(description="Search for changelogs by title or content")] = None,
        categories: Annotated[
            Optional[str], Field(description="Filter by category names, comma-separated (e.g. 'New,Fixed')")
        ] = None,
        locale: Annotated[
            Optional[str], Field(description="Locale of the changelogs (e.g. 'en'). Defaults to org default.")
        ] = None,
        state: Annotated[
            Optional[Literal["draft", "live", "all"]],
            Field(description="Filter by state: draft, live, or all (default: live)"),
        ] = None,
        startDate: Annotated[
            Optional[str], Field(description="Include changelogs dated on or after this date (e.g. 2024-01-01)")
        ] = None,
        endDate: Annotated[
            Optional[str], Field(description="Include changelogs dated on or before this date (e.g. 2024-12-31)")
        ] = None,
        sortBy: Annotated[Optional[Literal["date"]], Field(description="Field to sort by (currently only 'date')")] = None,
        sortOrder: Annotated[
            Optional[Literal["asc", "desc"]], Field(description="Sort direction: asc or desc (default: desc)")
        ] = None,
        limit: Annotated[PageLimit, Field(description="Maximum number of changelogs to return (1-100, default 10)")] = None,
        cursor: Cursor = None,
    ) -> str:
        """List changelogs, filtered by search query, categories, locale, state or date range."""
        query = {
            "id": id,
            "q": q,
            "categories": categories,
            "locale": locale,
            "state": state,
            "startDate": startDate,
            "endDate": endDate,
            "sortBy": sortBy,
            "sortOrder": sortOrder,
            "limit": limit,
            "cursor": cursor,
        }
        return await call("list_changelogs", client.get("/v2/changelogs", query))

    @mcp.tool
    async def create_changelog(
        title: Annotated[str, Field(description="The title of the changelog")],
        htmlContent: Annotated[
            Optional[str], Field(description="HTML content. Provide either htmlContent or markdownContent.")
        ] = None,
        markdownContent: Annotated[
            Optional[str], Field(description="Markdown content. Provide either htmlContent or markdownContent.")
        ] = None,
        categories: Categories = None,
        featuredImage: Annotated[Optional[str], Field(description="URL of the featured image")] = None,
        allowedSegmentIds: SegmentIds = None,
        locale: Annotated[Optional[str], Field(description="Locale of the changelog (defaults to org default)")] = None,
        date: Annotated[Optional[str], Field(description="The date of the changelog (e.g. 2024-01-15)")] = None,
        state: Annotated[
            Optional[Literal["draft", "live"]], Field(description="State of the changelog: draft (default) or live")
        ] = None,
    ) -> str:
        """Create a changelog entry."""
        body = compact(
            title=title,
            htmlContent=htmlContent,
            markdownContent=markdownContent,
            categories=categories,
            featuredImage=featuredImage,
            allowedSegmentIds=allowedSegmentIds,
            locale=locale,
            date=date,
            state=state,
        )
        return await call("create_changelog", client.post("/v2/changelogs", body))

    @mcp.tool
    async def get_changelog(id: Annotated[str, Field(description="Changelog unique identifier or slug")]) -> str:
        """Get a single changelog by its ID or slug."""
        return await call("get_changelog", client.get(f"/v2/changelogs/{id}"))

    @mcp.tool
    async def update_changelog(
        id: ChangelogId,
        title: Annotated[Optional[str], Field(description="New title for the changelog")] = None,
        htmlContent: Annotated[Optional[str], Field(description="New HTML content for the changelog")] = None,
        markdownContent: Annotated[Optional[str], Field(description="New markdown content for the changelog")] = None,
        categories: Categories = None,
        featuredImage: Annotated[Optional[str], Field(description="URL of the featured image")] = None,
        allowedSegmentIds: SegmentIds = None,
        date: Annotated[Optional[str], Field(description="The date of the changelog (e.g. 2024-01-15)")] = None,
    ) -> str:
        """Update a changelog. All fields are optional."""
        body = compact(
            title=title,
            htmlContent=htmlContent,
            markdownContent=markdownContent,
            categories=categories,
            featuredImage=featuredImage,
            allowedSegmentIds=allowedSegmentIds,
            date=date,
        )
        return await call("update_changelog", client.patch(f"/v2/changelogs/{id}", body))

    @mcp.tool
    async def delete_changelog(id: ChangelogId) -> str:
        """Permanently delete a changelog and its comments. This cannot be undone."""
        return await call("delete_changelog", client.delete(f"/v2/changelogs/{id}"))

    @mcp.tool
    async def publish_changelog(
        id: ChangelogId,
        sendEmail: Annotated[
            Optional[bool], Field(description="Whether to send email notifications to subscribers (default: false)")
        ] = None,
        locales: Annotated[
            Optional[list[str]], Field(description="Locales to publish to. An empty array publishes to all locales.")
        ] = None,
        scheduledDate: Annotated[
            Optional[str], Field(description="Future date/time to schedule publishing (ISO 8601). Omit to publish now.")
        ] = None,
    ) -> str:
        """Publish a changelog, optionally emailing subscribers or scheduling it for later."""
        body = compact(sendEmail=sendEmail, locales=locales, scheduledDate=scheduledDate)
        return await call("publish_changelog", client.post(f"/v2/changelogs/{id}/publish", body))

    @mcp.tool
    async def unpublish_changelog(
        id: ChangelogId,
        locales: Annotated[
            Optional[list[str]],
            Field(description="Locales to unpublish from. An empty array unpublishes from all locales."),
        ] = None,
    ) -> str:
        """Unpublish a changelog. The content is kept as a draft."""
        body = compact(locales=locales)
        return await call("unpublish_changelog", client.post(f"/v2/changelogs/{id}/unpublish", body))

    # ----- subscribers -----

    @mcp.tool
    async def add_changelog_subscribers(
        emails: Annotated[Emails, Field(description="Email addresses to add as subscribers (1-1000)")],
        locale: Annotated[
            Optional[str], Field(description="Locale for the subscribers (defaults to organization default)")
        ] = None,
    ) -> str:
        """Subscribe email addresses to changelog notifications in bulk."""
        body = compact(emails=emails, locale=locale)
        return await call("add_changelog_subscribers", client.post("/v2/changelogs/subscribers", body))

    @mcp.tool
    async def remove_changelog_subscribers(
        emails: Annotated[Emails, Field(description="Email addresses to remove from subscribers (1-1000)")],
    ) -> str:
        """Unsubscribe email addresses from changelog notifications in bulk."""
        return await call(
            "remove_changelog_subscribers",
            client.delete("/v2/changelogs/subscribers", body={"emails": emails}),
        )
