"""Demo MCP server converting text to unicode code points"""

from fastmcp import FastMCP

mcp = FastMCP("unicode-converter")


def text_to_unicode(text: str) -> str:
    """Converts text to unicode codes. Returns unicode code points for each character in the format U+XXXX."""
    return " ".join(f"U+{ord(char):04X}" for char in text)


mcp.tool(text_to_unicode)


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
