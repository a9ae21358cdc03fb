"""
Example MCP servers used by the CLI demos
"""
