"""
Tests for the tool groups.

Tools are called through fastmcp's in-memory client; the Featurebase API is
an httpx.MockTransport that records what each tool sent.
"""

import json

import pytest
from fastmcp import Client

from tools import build_server

EXPECTED_TOOLS = {
    # posts, voters, boards, statuses
    "list_posts", "create_post", "get_post", "update_post", "delete_post",
    "list_post_voters", "add_post_voter", "remove_post_voter",
    "list_boards", "list_post_statuses", "get_post_status",
    # comments
    "list_comments", "create_comment", "get_comment", "update_comment", "delete_comment",
    # changelogs
    "list_changelogs", "create_changelog", "get_changelog", "update_changelog", "delete_changelog",
    "publish_changelog", "unpublish_changelog", "add_changelog_subscribers", "remove_changelog_subscribers",
    # help center
    "list_help_centers", "get_help_center",
    "list_articles", "create_article", "get_article", "update_article", "delete_article",
    "list_collections", "create_collection", "get_collection", "update_collection", "delete_collection",
    # contacts and companies
    "list_contacts", "upsert_contact", "get_contact", "delete_contact",
    "get_contact_by_user_id", "delete_contact_by_user_id", "block_contact", "unblock_contact",
    "list_companies", "create_company", "get_company", "delete_company",
    "list_company_contacts", "add_company_contact", "remove_company_contact",
    # conversations
    "list_conversations", "create_conversation", "get_conversation", "update_conversation",
    "delete_conversation", "reply_to_conversation",
    "add_conversation_participant", "remove_conversation_participant", "redact_conversation_part",
    # organization
    "list_teams", "get_team", "list_admin_roles",
    "list_webhooks", "create_webhook", "get_webhook", "update_webhook", "delete_webhook",
}


@pytest.fixture
def server(featurebase):
    return build_server(featurebase)


async def call(server, name, arguments=None):
    async with Client(server) as client:
        return await client.call_tool_mcp(name, arguments or {})


def text_of(result):
    return result.content[0].text


async def test_every_tool_registered(server):
    async with Client(server) as client:
        tools = await client.list_tools()

    assert {tool.name for tool in tools} == EXPECTED_TOOLS
    assert all(tool.description for tool in tools)


async def test_result_is_pretty_printed_json(server, api):
    api.reply(200, {"id": "p1", "title": "Dark mode"})

    result = await call(server, "get_post", {"id": "p1"})

    assert not result.isError
    assert text_of(result) == json.dumps({"id": "p1", "title": "Dark mode"}, indent=2)
    assert api.last.url.path == "/v2/posts/p1"


async def test_api_error_is_tool_error(server, api):
    api.reply(403, {"message": "Forbidden for this key"})

    result = await call(server, "list_boards")

    assert result.isError
    assert "Forbidden for this key" in text_of(result)
    assert "403" in text_of(result)


class TestPosts:
    async def test_list_posts_query(self, server, api):
        await call(server, "list_posts", {"limit": 20, "sortBy": "upvotes", "inReview": False})

        assert api.last.method == "GET"
        assert dict(api.last.url.params) == {"limit": "20", "sortBy": "upvotes", "inReview": "false"}

    async def test_create_post_body(self, server, api):
        await call(
            server,
            "create_post",
            {
                "title": "Dark mode",
                "boardId": "b1",
                "tags": "ui, theme",
                "authorEmail": "jo@example.com",
            },
        )

        assert api.last.method == "POST"
        assert api.last.url.path == "/v2/posts"
        assert api.last_json() == {
            "title": "Dark mode",
            "boardId": "b1",
            "tags": ["ui", "theme"],
            "author": {"email": "jo@example.com"},
        }

    async def test_update_post_clears_with_empty_string(self, server, api):
        await call(server, "update_post", {"id": "p1", "assigneeId": "", "eta": "", "title": "Renamed"})

        assert api.last.method == "PATCH"
        assert api.last_json() == {"title": "Renamed", "assigneeId": None, "eta": None}

    async def test_limit_out_of_range_rejected(self, server, api):
        result = await call(server, "list_posts", {"limit": 0})

        assert result.isError
        assert api.requests == []

    async def test_remove_voter_sends_body(self, server, api):
        await call(server, "remove_post_voter", {"id": "p1", "voterEmail": "jo@example.com"})

        assert api.last.method == "DELETE"
        assert api.last.url.path == "/v2/posts/p1/voters"
        assert api.last_json() == {"email": "jo@example.com"}


class TestComments:
    async def test_create_comment_author(self, server, api):
        await call(
            server,
            "create_comment",
            {"content": "<p>Hi</p>", "postId": "p1", "authorUserId": "u-42", "authorName": "Jo"},
        )

        assert api.last_json() == {
            "content": "<p>Hi</p>",
            "postId": "p1",
            "author": {"userId": "u-42", "name": "Jo"},
        }


class TestChangelogs:
    async def test_publish(self, server, api):
        await call(server, "publish_changelog", {"id": "c1", "sendEmail": True, "locales": []})

        assert api.last.method == "POST"
        assert api.last.url.path == "/v2/changelogs/c1/publish"
        assert api.last_json() == {"sendEmail": True, "locales": []}

    async def test_remove_subscribers(self, server, api):
        await call(server, "remove_changelog_subscribers", {"emails": ["a@example.com", "b@example.com"]})

        assert api.last.method == "DELETE"
        assert api.last.url.path == "/v2/changelogs/subscribers"
        assert api.last_json() == {"emails": ["a@example.com", "b@example.com"]}


class TestHelpCenter:
    async def test_create_article_parses_json_fields(self, server, api):
        await call(
            server,
            "create_article",
            {"title": "Setup", "icon": '{"type": "emoji", "value": "📘"}', "state": "draft"},
        )

        assert api.last_json() == {"title": "Setup", "icon": {"type": "emoji", "value": "📘"}, "state": "draft"}

    async def test_invalid_json_parameter(self, server, api):
        result = await call(server, "create_collection", {"name": "Guides", "translations": "{nope"})

        assert result.isError
        assert "translations must be valid JSON" in text_of(result)
        assert api.requests == []


class TestContacts:
    async def test_lookup_by_user_id(self, server, api):
        await call(server, "get_contact_by_user_id", {"userId": "ext-1"})

        assert api.last.url.path == "/v2/contacts/by-user-id/ext-1"

    async def test_remove_company_contact(self, server, api):
        await call(server, "remove_company_contact", {"id": "co1", "contactId": "ct1"})

        assert api.last.method == "DELETE"
        assert api.last.url.path == "/v2/companies/co1/contacts/ct1"


class TestConversations:
    async def test_update_conversation(self, server, api):
        await call(
            server,
            "update_conversation",
            {
                "id": "42",
                "adminAssigneeId": "",
                "customAttributes": '{"tier": "gold"}',
                "markAsReadAllAdmins": True,
                "markAsReadContactIds": "c1, c2",
            },
        )

        assert api.last.method == "PATCH"
        assert api.last_json() == {
            "customAttributes": {"tier": "gold"},
            "adminAssigneeId": None,
            "markAsRead": {"allAdmins": True, "contactIds": ["c1", "c2"]},
        }

    async def test_admin_reply(self, server, api):
        await call(
            server,
            "reply_to_conversation",
            {"id": "42", "type": "admin", "bodyMarkdown": "Fixed", "messageType": "note", "authorId": "a1", "userId": "x"},
        )

        assert api.last.url.path == "/v2/conversations/42/reply"
        assert api.last_json() == {"type": "admin", "bodyMarkdown": "Fixed", "messageType": "note", "id": "a1"}

    async def test_contact_reply(self, server, api):
        await call(
            server,
            "reply_to_conversation",
            {"id": "42", "type": "contact", "bodyMarkdown": "Thanks", "messageType": "reply", "userId": "ext-1"},
        )

        assert api.last_json() == {"type": "contact", "bodyMarkdown": "Thanks", "messageType": "reply", "userId": "ext-1"}

    async def test_create_admin_outreach(self, server, api):
        await call(
            server,
            "create_conversation",
            {"fromType": "admin", "fromId": "a1", "bodyMarkdown": "Hello", "toType": "contact", "toId": "c1"},
        )

        assert api.last_json() == {
            "from": {"type": "admin", "id": "a1"},
            "bodyMarkdown": "Hello",
            "to": {"type": "contact", "id": "c1"},
        }


class TestWebhooks:
    async def test_create_webhook_splits_topics(self, server, api):
        await call(
            server,
            "create_webhook",
            {"name": "Sync", "url": "https://hooks.example/fb", "topics": "post.created, post.voted"},
        )

        assert api.last_json() == {
            "name": "Sync",
            "url": "https://hooks.example/fb",
            "topics": ["post.created", "post.voted"],
        }

    async def test_update_webhook_clears_description(self, server, api):
        await call(server, "update_webhook", {"id": "w1", "description": "", "status": "paused"})

        assert api.last_json() == {"status": "paused", "description": None}
