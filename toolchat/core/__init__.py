"""
Core agent implementation
Contains the tool registry, the tool invoker and the completion / function-call loop.

Import from the submodules (``toolchat.core.agent_loop``, ``toolchat.core.registry``,
...); ``toolchat.config`` depends on ``toolchat.core.errors``, so this package
does not import them eagerly.
"""
