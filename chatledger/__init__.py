"""
Chatledger - persistence and resumable delivery for conversational AI chats.

Stores chats, messages, votes and generation attempts while tolerating an
unavailable backing store, and lets clients reattach to in-flight
responses.
"""

from chatledger.version import VERSION

__version__ = VERSION
