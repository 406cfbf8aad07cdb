from inception_chat.session import ChatSession, SessionState


def test_new_session_has_no_conversation():
    session = ChatSession()

    assert session.current_conversation_id is None
    assert session.state is SessionState.NO_CONVERSATION


def test_activate_and_reset():
    session = ChatSession()
    session.activate(4)
    assert session.state is SessionState.ACTIVE

    session.begin_user_turn()
    assert session.state is SessionState.NO_CONVERSATION

    session.activate(5)
    session.new_chat()
    assert session.current_conversation_id is None


def test_new_chat_keeps_stored_history(store, session):
    store.append_message(session, "user", "keep me")
    conversation_id = session.current_conversation_id

    session.new_chat()

    assert session.state is SessionState.NO_CONVERSATION
    assert [m.content for m in store.list_messages(conversation_id).value] == ["keep me"]
