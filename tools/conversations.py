"""Inbox conversations, participants and message redaction."""

from typing import Annotated, Literal, Optional

from fastmcp import FastMCP
from pydantic import Field

from featurebase_client import FeaturebaseClient
from tools.base import Cursor, PageLimit, call, compact, parse_json, set_clearable, split_csv

ConversationId = Annotated[str, Field(description="Conversation short ID")]
ActingAdminId = Annotated[Optional[str], Field(description="Admin ID performing the action (for attribution)")]


def register(mcp: FastMCP, client: FeaturebaseClient) -> None:

    @mcp.tool
    async def list_conversations(
        limit: Annotated[PageLimit, Field(description="Number of conversations to return (1-100, default 10)")] = None,
        cursor: Cursor = None,
    ) -> str:
        """List conversations with state, participants, source and timestamps."""
        query = {"limit": limit, "cursor": cursor}
        return await call("list_conversations", client.get("/v2/conversations", query))

    @mcp.tool
    async def create_conversation(
        fromType: Annotated[
            Literal["contact", "admin"],
            Field(description="Type of sender: 'contact' for customer/lead, 'admin' for admin-initiated outreach"),
        ],
        fromId: Annotated[str, Field(description="Featurebase ID of the sender (24-character ObjectId)")],
        bodyMarkdown: Annotated[str, Field(description="Initial message content in markdown format")],
        toType: Annotated[
            Optional[Literal["contact"]],
            Field(description="Recipient type for admin-initiated conversations (must be 'contact')"),
        ] = None,
        toId: Annotated[
            Optional[str], Field(description="Featurebase ID of the recipient contact for admin-initiated conversations")
        ] = None,
        channel: Annotated[
            Optional[Literal["desktop", "email"]], Field(description="Channel: 'desktop' (default) or 'email'")
        ] = None,
        createdAt: Annotated[
            Optional[str], Field(description="ISO timestamp for backdating creation (useful for migrations)")
        ] = None,
    ) -> str:
        """Start a conversation, either contact-initiated or as admin outreach to a contact."""
        body = {"from": {"type": fromType, "id": fromId}, "bodyMarkdown": bodyMarkdown}
        if toType is not None and toId is not None:
            body["to"] = {"type": toType, "id": toId}
        body.update(compact(channel=channel, createdAt=createdAt))
        return await call("create_conversation", client.post("/v2/conversations", body))

    @mcp.tool
    async def get_conversation(id: ConversationId) -> str:
        """Get a conversation with up to 500 of its parts (messages)."""
        return await call("get_conversation", client.get(f"/v2/conversations/{id}"))

    @mcp.tool
    async def update_conversation(
        id: ConversationId,
        actingAdminId: ActingAdminId = None,
        state: Annotated[Optional[Literal["open", "closed", "snoozed"]], Field(description="Conversation state")] = None,
        snoozedUntil: Annotated[
            Optional[str], Field(description="ISO datetime when to unsnooze (required when state is 'snoozed')")
        ] = None,
        adminAssigneeId: Annotated[Optional[str], Field(description="Admin ID to assign, or empty string to unassign")] = None,
        teamAssigneeId: Annotated[Optional[str], Field(description="Team ID to assign, or empty string to unassign")] = None,
        title: Annotated[Optional[str], Field(description="Conversation title")] = None,
        customAttributes: Annotated[
            Optional[str], Field(description="JSON string of custom attributes to set on the conversation")
        ] = None,
        markAsReadAllAdmins: Annotated[Optional[bool], Field(description="Mark conversation as read for all admins")] = None,
        markAsReadAllContacts: Annotated[
            Optional[bool], Field(description="Mark conversation as read for all contacts")
        ] = None,
        markAsReadAdminIds: Annotated[Optional[str], Field(description="Comma-separated admin IDs to mark as read")] = None,
        markAsReadContactIds: Annotated[
            Optional[str], Field(description="Comma-separated contact IDs to mark as read")
        ] = None,
    ) -> str:
        """Update state, assignment, title, custom attributes or read receipts of a conversation."""
        body = compact(
            actingAdminId=actingAdminId,
            state=state,
            snoozedUntil=snoozedUntil,
            title=title,
            customAttributes=parse_json("customAttributes", customAttributes),
        )
        set_clearable(body, "adminAssigneeId", adminAssigneeId)
        set_clearable(body, "teamAssigneeId", teamAssigneeId)
        mark_as_read = compact(
            allAdmins=markAsReadAllAdmins,
            allContacts=markAsReadAllContacts,
            adminIds=split_csv(markAsReadAdminIds),
            contactIds=split_csv(markAsReadContactIds),
        )
        if mark_as_read:
            body["markAsRead"] = mark_as_read
        return await call("update_conversation", client.patch(f"/v2/conversations/{id}", body))

    @mcp.tool
    async def delete_conversation(id: ConversationId) -> str:
        """Permanently delete a conversation and all of its messages."""
        return await call("delete_conversation", client.delete(f"/v2/conversations/{id}"))

    @mcp.tool
    async def reply_to_conversation(
        id: ConversationId,
        type: Annotated[
            Literal["contact", "admin"],
            Field(description="Type of reply author: 'contact' for customer/lead, 'admin' for admin"),
        ],
        bodyMarkdown: Annotated[str, Field(description="Message content in markdown format")],
        messageType: Annotated[
            Literal["reply", "note"],
            Field(description="'reply' for customer-visible reply, 'note' for internal admin note (admin only)"),
        ],
        authorId: Annotated[
            Optional[str], Field(description="Featurebase ID of the author (required for admin replies)")
        ] = None,
        userId: Annotated[
            Optional[str], Field(description="External user ID from your system (for contact replies)")
        ] = None,
        contactId: Annotated[Optional[str], Field(description="Featurebase contact ID (for contact replies)")] = None,
    ) -> str:
        """Reply to a conversation as a contact, or as an admin (reply or internal note)."""
        body = {"type": type, "bodyMarkdown": bodyMarkdown, "messageType": messageType}
        if type == "admin":
            body.update(compact(id=authorId))
        else:
            body.update(compact(id=contactId, userId=userId))
        return await call("reply_to_conversation", client.post(f"/v2/conversations/{id}/reply", body))

    # ----- participants -----

    @mcp.tool
    async def add_conversation_participant(
        id: ConversationId,
        participantId: Annotated[
            Optional[str], Field(description="Featurebase ID of the contact to add (24-character ObjectId)")
        ] = None,
        participantUserId: Annotated[
            Optional[str], Field(description="External user ID from your system (matches customer only)")
        ] = None,
        participantEmail: Annotated[
            Optional[str], Field(description="Email address of the contact (matches customer only)")
        ] = None,
        actingAdminId: ActingAdminId = None,
    ) -> str:
        """Add a contact to a conversation, identified by Featurebase ID, external user ID or email."""
        participant = compact(id=participantId, userId=participantUserId, email=participantEmail)
        body = compact(participant=participant, actingAdminId=actingAdminId)
        return await call(
            "add_conversation_participant",
            client.post(f"/v2/conversations/{id}/participants", body),
        )

    @mcp.tool
    async def remove_conversation_participant(
        conversationId: ConversationId,
        contactId: Annotated[
            str, Field(description="Featurebase ID of the contact to remove (24-character ObjectId)")
        ],
        actingAdminId: ActingAdminId = None,
    ) -> str:
        """Remove a contact from a conversation. The last participant cannot be removed."""
        body = compact(id=contactId, actingAdminId=actingAdminId)
        return await call(
            "remove_conversation_participant",
            client.delete(f"/v2/conversations/{conversationId}/participants", body=body),
        )

    @mcp.tool
    async def redact_conversation_part(
        conversationId: ConversationId,
        partId: Annotated[str, Field(description="ID of the conversation part (message) to redact")],
    ) -> str:
        """Redact the content of a single message in a conversation."""
        return await call(
            "redact_conversation_part",
            client.post(f"/v2/conversations/{conversationId}/parts/{partId}/redact"),
        )
