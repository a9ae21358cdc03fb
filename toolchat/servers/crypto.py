"""
Demo MCP server: greeting, crypto prices and a few file helpers.

Run with ``python -m toolchat.servers.crypto``; it speaks MCP over stdio.
"""

import os
from pathlib import Path
from typing import Any, Optional

import httpx
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
COINGECKO_API_KEY_HEADER = "x-cg-demo-api-key"
DEFAULT_TIMEOUT = 30

mcp = FastMCP("greeter")


def files_root() -> Path:
    return Path(os.environ.get("TOOLCHAT_FILES_ROOT", ".")).resolve()


def greet(name: str, second_name: str) -> dict[str, str]:
    """Say hi to a person by first and second name"""
    return {"greeting": f"Hi {name} {second_name}!"}


async def fetch_coin_price(
    client: httpx.AsyncClient,
    coin_id: str,
    currency: str,
    api_key: Optional[str] = None,
) -> float:
    """Query the CoinGecko simple price endpoint for one coin in one currency"""
    headers = {COINGECKO_API_KEY_HEADER: api_key} if api_key else {}
    resp = await client.get(
        f"{COINGECKO_BASE_URL}/simple/price",
        params={"ids": coin_id, "vs_currencies": currency},
        headers=headers,
    )
    resp.raise_for_status()
    data = resp.json()

    coin_data = data.get(coin_id)
    if coin_data is None:
        raise ToolError(f"Coin {coin_id} not found in response")
    price = coin_data.get(currency)
    if price is None:
        raise ToolError(f"Currency {currency} not found for coin {coin_id}")
    return float(price)


async def get_crypto_price(coin_id: str, currency: str) -> dict[str, Any]:
    """
    Get the current price of a cryptocurrency.

    Args:
        coin_id: The ID of the cryptocurrency (e.g. bitcoin, ethereum, solana)
        currency: The currency to get the price in (e.g. usd, eur, gbp)
    """
    try:
        async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
            price = await fetch_coin_price(
                client, coin_id, currency, os.environ.get("COINGECKO_API_KEY")
            )
    except httpx.HTTPStatusError as e:
        raise ToolError(f"Failed to get price: HTTP {e.response.status_code}") from e
    except httpx.RequestError as e:
        raise ToolError(f"Failed to get price: {e}") from e

    return {"coin_id": coin_id, "currency": currency, "price": price}


def search_files(pattern: str) -> dict[str, list[str]]:
    """Search files under the root directory whose name matches a glob pattern (e.g. *.txt, *.md)"""
    root = files_root()
    try:
        files = sorted(str(path) for path in root.rglob(pattern) if path.is_file())
    except (OSError, ValueError) as e:
        raise ToolError(f"Failed to search files: {e}") from e
    return {"files": files}


def read_files(files: list[str]) -> dict[str, str]:
    """Read text files and return their combined content"""
    parts = []
    for file_path in files:
        file_path = file_path.strip()
        if not file_path:
            continue
        try:
            content = Path(file_path).read_text()
        except OSError as e:
            raise ToolError(f"Failed to read file {file_path}: {e}") from e
        parts.append(f"\n=== {file_path} ===\n{content}\n")
    return {"text": "".join(parts)}


def save_to_file(filename: str, text: str) -> dict[str, Any]:
    """Save text content to a file in the root directory"""
    root = files_root()
    file_path = (root / filename).resolve()
    if not file_path.is_relative_to(root):
        raise ToolError(f"Refusing to write outside {root}: {filename}")

    try:
        file_path.write_text(text)
    except OSError as e:
        raise ToolError(f"Failed to save file: {e}") from e
    return {"file_path": str(file_path), "success": True}


for tool in (greet, get_crypto_price, search_files, read_files, save_to_file):
    mcp.tool(tool)


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
