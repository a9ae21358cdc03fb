"""
Shared pytest fixtures for the agent core.
Backends and the completion gateway are replaced by the in-memory fakes in
helpers.py, which speak the same MCP / gateway types as the real ones.
"""

import os

# Use litellm's bundled model cost map instead of fetching it over the network
# at import time (the fetch fails offline and can deadlock under pytest).
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import pytest
from helpers import (
    CRYPTO_PRICE_SCHEMA,
    SAVE_TO_FILE_SCHEMA,
    FakeToolSession,
    make_tool,
    text_result,
)

from toolchat.core.registry import ToolRegistry


@pytest.fixture
def crypto_session():
    """Backend exposing the crypto price and file tools"""
    return FakeToolSession(
        tools=[
            make_tool("get_crypto_price", CRYPTO_PRICE_SCHEMA, "Getter for crypto price"),
            make_tool("save_to_file", SAVE_TO_FILE_SCHEMA, "Saves text content to a file"),
        ],
        results={
            "get_crypto_price": text_result("price: 65000"),
            "save_to_file": text_result('{"success": true}'),
        },
    )


@pytest.fixture
def unicode_session():
    """Backend exposing the unicode converter"""
    return FakeToolSession(
        tools=[make_tool("text_to_unicode", {"type": "object"}, "Converts text to unicode codes")],
        results={"text_to_unicode": text_result("U+0048 U+0069")},
    )


@pytest.fixture
async def registry(crypto_session, unicode_session):
    """Open registry over the crypto and unicode fake backends"""
    registry = ToolRegistry.from_sessions(
        {"crypto": crypto_session, "unicode": unicode_session}
    )
    async with registry:
        yield registry
