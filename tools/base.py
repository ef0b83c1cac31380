"""Helpers shared by the tool groups."""

import json
import logging
from typing import Annotated, Any, Awaitable, Optional

from fastmcp.exceptions import ToolError
from pydantic import Field

from featurebase_client import FeaturebaseError

logger = logging.getLogger(__name__)

# Page size accepted by every list endpoint
PageLimit = Optional[Annotated[int, Field(ge=1, le=100)]]

Cursor = Annotated[
    Optional[str],
    Field(description="Opaque cursor from a previous response's nextCursor field for pagination"),
]


async def call(tool: str, request: Awaitable[Any]) -> str:
    """Await a Featurebase request and render the result for the caller.

    API failures become a ToolError, which the client sees as an error result
    carrying the API's message.
    """
    logger.info(f"[TOOL] {tool} invoked")
    try:
        result = await request
    except FeaturebaseError as e:
        logger.warning(f"[TOOL] {tool} failed: {e}")
        raise ToolError(str(e)) from e
    return json.dumps(result, indent=2)


def compact(**fields) -> dict:
    """Request body with unset (None) fields left out."""
    return {key: value for key, value in fields.items() if value is not None}


def split_csv(value: Optional[str]) -> Optional[list[str]]:
    if value is None:
        return None
    return [item.strip() for item in value.split(",")]


def parse_json(name: str, value: Optional[str]) -> Any:
    """Decode a parameter passed as a JSON string."""
    if value is None:
        return None
    try:
        return json.loads(value)
    except ValueError as e:
        raise ToolError(f"{name} must be valid JSON: {e}") from e


def set_clearable(body: dict, key: str, value: Optional[str]) -> None:
    """Set ``key`` if given; an empty string is sent as null to clear the field."""
    if value is None:
        return
    body[key] = None if value == "" else value
