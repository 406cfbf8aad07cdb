"""
Inception Chat core package.

This package contains the chat history store, the settings store, the
per-window session state and the Inception Labs API client used by the
desktop chat app.
"""

from .chat import ChatReply, ChatService
from .config import AppConfig
from .history import ConversationStore
from .results import FailureReason, Result
from .session import ChatSession
from .settings import Settings, SettingsStore
