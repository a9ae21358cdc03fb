"""
toolchat: chat model agent that calls tools hosted by MCP servers
"""

__version__ = "0.1.0"
