"""
ai-cli - Terminal client for a hosted language model.

Authenticates with the device authorization flow, then chats with the
model in one of three modes:
- chat: streaming conversation
- tool: conversation with provider-side tools (search, code execution)
- agent: generates complete application projects into the current directory

Usage:
    ai-cli login                      # Authenticate
    ai-cli whoami                     # Show current user
    ai-cli wakeup                     # Pick a mode and start
    ai-cli logout                     # Clear stored token
"""

__version__ = "0.1.0"
__author__ = "ai-cli Team"
