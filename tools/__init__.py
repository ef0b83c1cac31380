"""MCP tools exposed to clients.

Each module registers one group of Featurebase resources on a FastMCP
server. Tools are thin: they shape arguments into a request, call the API
and return the JSON response as text.
"""

import logging

from fastmcp import FastMCP

from featurebase_client import FeaturebaseClient
from tools import changelogs, comments, contacts, conversations, help_center, organization, posts

logger = logging.getLogger(__name__)

SERVER_NAME = "featurebase-mcp-server"

TOOL_GROUPS = (posts, comments, changelogs, help_center, contacts, conversations, organization)


def build_server(client: FeaturebaseClient, name: str = SERVER_NAME) -> FastMCP:
    """Create a FastMCP server with every tool group registered against ``client``."""
    mcp = FastMCP(name)
    for group in TOOL_GROUPS:
        group.register(mcp, client)
    logger.debug(f"[STARTUP] Registered tool groups: {', '.join(g.__name__ for g in TOOL_GROUPS)}")
    return mcp
