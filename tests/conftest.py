import pytest

from inception_chat.history import ConversationStore
from inception_chat.session import ChatSession
from inception_chat.settings import SettingsStore


@pytest.fixture
def store(tmp_path):
    conversation_store = ConversationStore.open(tmp_path / "data" / "inception-chat.db")
    yield conversation_store
    conversation_store.close()


@pytest.fixture
def session():
    return ChatSession()


@pytest.fixture
def settings_store(tmp_path):
    return SettingsStore(
        tmp_path / "data" / "settings.json",
        tmp_path / "home" / ".inception" / "config.json",
    )
