from datetime import timedelta

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from conftest import connect, record_sessions, sid_of
from hub_server.exception.NotFoundError import NotFoundError
from hub_server.websocket.event_emitter import EventEmitter
from hub_server.websocket.rooms import user_room, conversation_room


def test_start_or_get_creates_conversation_once(messaging, users, db):
    first, created_first = messaging.conversations.start_or_get(users.client, users.expert_profile_id)
    second, created_second = messaging.conversations.start_or_get(users.client, users.expert_profile_id)

    assert created_first is True
    assert created_second is False
    assert first.id == second.id
    assert db['conversations'].count_documents({}) == 1


def test_new_conversation_shape(messaging, users):
    summary, _ = messaging.conversations.start_or_get(users.client, users.expert_profile_id)
    data = summary.to_dict()

    assert sorted(data['participants']) == sorted([users.client, users.expert])
    assert data['clientId'] == users.client
    assert data['expertId'] == users.expert
    assert data['lastMessage'] == ''
    assert data['lastMessageAt'] == data['createdAt']
    assert data['role'] == 'client'
    assert data['counterpart']['name'] == 'Eve Expert'
    assert data['counterpart']['title'] == 'Automation Engineer'
    assert data['counterpart']['avatar'] == 'https://img.example.com/eve.png'
    assert data['client']['name'] == 'Carla Client'


def test_start_or_get_unknown_expert(messaging, users):
    with pytest.raises(NotFoundError):
        messaging.conversations.start_or_get(users.client, str(ObjectId()))
    with pytest.raises(NotFoundError):
        messaging.conversations.start_or_get(users.client, 'not-an-id')


def test_start_or_get_requires_expert_id(messaging, users):
    with pytest.raises(ValueError):
        messaging.conversations.start_or_get(users.client, '')
    with pytest.raises(ValueError):
        messaging.conversations.start_or_get(users.client, None)


def test_expert_cannot_start_conversation_with_self(messaging, users):
    with pytest.raises(ValueError):
        messaging.conversations.start_or_get(users.expert, users.expert_profile_id)


def test_get_by_id_for_each_participant(messaging, users, conversation):
    as_client = messaging.conversations.get_by_id(users.client, conversation.id)
    as_expert = messaging.conversations.get_by_id(users.expert, conversation.id)

    assert as_client.id == as_expert.id == conversation.id
    assert as_expert.to_dict()['role'] == 'expert'
    assert as_expert.counterpart.name == 'Carla Client'


def test_non_participant_sees_not_found(messaging, users, conversation):
    missing = str(ObjectId())
    outcomes = []
    for conversation_id in (conversation.id, missing, 'garbage'):
        with pytest.raises(NotFoundError) as exc:
            messaging.conversations.get_by_id(users.outsider, conversation_id)
        outcomes.append(str(exc.value))
        with pytest.raises(NotFoundError) as exc:
            messaging.conversations.delete(users.outsider, conversation_id)
        outcomes.append(str(exc.value))

    assert len(set(outcomes)) == 1
    assert messaging.conversation_repo.find_scoped(conversation.id, users.client) is not None


def test_list_for_user_orders_by_recent_activity(messaging, users, db):
    second_profile = ObjectId()
    second_expert = ObjectId()
    db['users'].insert_one({'_id': second_expert, 'name': 'Sam Second'})
    db['experts'].insert_one({'_id': second_profile, 'userId': str(second_expert), 'name': 'Sam Second'})

    older, _ = messaging.conversations.start_or_get(users.client, users.expert_profile_id)
    newer, _ = messaging.conversations.start_or_get(users.client, str(second_profile))
    messaging.conversation_repo.record_last_message(
        older.conversation.conversation_id, 'bump', newer.conversation.last_message_at + timedelta(minutes=5)
    )

    listed, next_cursor = messaging.conversations.list_for_user(users.client)

    assert [c.id for c in listed] == [older.id, newer.id]
    assert next_cursor is None
    assert messaging.conversations.list_for_user(users.outsider) == ([], None)


def test_list_for_user_cursor_pagination(messaging, users, db):
    created = []
    for i in range(5):
        profile_id, user_id = ObjectId(), ObjectId()
        db['experts'].insert_one({'_id': profile_id, 'userId': user_id, 'name': f'Expert {i}'})
        summary, _ = messaging.conversations.start_or_get(users.client, str(profile_id))
        created.append(summary.id)

    seen = []
    cursor = None
    pages = 0
    while True:
        page, cursor = messaging.conversations.list_for_user(users.client, limit=2, cursor=cursor)
        seen.extend(c.id for c in page)
        pages += 1
        if cursor is None:
            break

    assert pages == 3
    assert sorted(seen) == sorted(created)
    assert len(seen) == len(set(seen))


def test_list_for_user_rejects_bad_cursor(messaging, users):
    with pytest.raises(ValueError):
        messaging.conversations.list_for_user(users.client, limit=2, cursor='%%%')


def test_delete_cascades_to_messages(messaging, users, conversation, db):
    messaging.messages.send(users.client, conversation.id, users.expert, 'Hello')
    messaging.messages.send(users.expert, conversation.id, users.client, 'Hi there')

    messaging.conversations.delete(users.expert, conversation.id)

    assert db['conversations'].count_documents({'_id': conversation.conversation_id}) == 0
    assert db['messages'].count_documents({'conversationId': conversation.conversation_id}) == 0


def test_delete_notifies_peers_once_and_closes_room(messaging, users, conversation, socketio, app, hub):
    client_phone = connect(socketio, app, users.client)
    expert_laptop = connect(socketio, app, users.expert)
    expert_tablet = connect(socketio, app, users.expert)
    for live in (client_phone, expert_tablet):
        live.emit('join_conversation', {'conversationId': conversation.id}, callback=True)

    messaging.conversations.delete(users.client, conversation.id)

    expected = {'conversationId': conversation.id, 'deletedBy': users.client}
    for live in (client_phone, expert_laptop, expert_tablet):
        assert [(e['name'], e['args'][0]) for e in live.get_received()] == [
            (EventEmitter.CONVERSATION_DELETED, expected)
        ]
    assert hub.rooms.members_of(conversation_room(conversation.id)) == set()
    assert hub.rooms.members_of(user_room(users.client)) == {sid_of(socketio, client_phone)}


def test_delete_runs_in_one_transaction(messaging, users, conversation, db, transactions, monkeypatch):
    calls = []
    record_sessions(monkeypatch, messaging.message_repo, 'insert', calls)
    record_sessions(monkeypatch, messaging.conversation_repo, 'record_last_message', calls)
    record_sessions(monkeypatch, messaging.conversation_repo, 'delete', calls)
    record_sessions(monkeypatch, messaging.message_repo, 'delete_for_conversation', calls)
    messaging.messages.send(users.client, conversation.id, users.expert, 'Hello')
    del calls[:]

    messaging.conversations.delete(users.client, conversation.id)

    assert calls == [('delete', transactions), ('delete_for_conversation', transactions)]
    assert transactions.transactions == 2  # the send, then the cascade
    assert transactions.ended
    assert db['conversations'].count_documents({}) == 0
    assert db['messages'].count_documents({}) == 0


def test_start_or_get_recovers_from_duplicate_key_race(messaging, users, conversation, db, monkeypatch):
    # Another request inserts the pair between our lookup and our insert
    lookups = []
    find_by_pair = messaging.conversation_repo.find_by_pair

    def racing_find_by_pair(*args, **kwargs):
        lookups.append(args)
        return None if len(lookups) == 1 else find_by_pair(*args, **kwargs)

    def racing_create(*args, **kwargs):
        raise DuplicateKeyError('E11000 duplicate key error collection: conversations')

    monkeypatch.setattr(messaging.conversation_repo, 'find_by_pair', racing_find_by_pair)
    monkeypatch.setattr(messaging.conversation_repo, 'create', racing_create)

    summary, created = messaging.conversations.start_or_get(users.client, users.expert_profile_id)

    assert created is False
    assert summary.id == conversation.id
    assert len(lookups) == 2
    assert db['conversations'].count_documents({}) == 1


def test_start_or_get_reraises_unexplained_duplicate_key(messaging, users, monkeypatch):
    def failing_create(*args, **kwargs):
        raise DuplicateKeyError('E11000 duplicate key error collection: conversations')

    monkeypatch.setattr(messaging.conversation_repo, 'create', failing_create)

    with pytest.raises(DuplicateKeyError):
        messaging.conversations.start_or_get(users.client, users.expert_profile_id)


def test_purge_orphans_removes_unreachable_messages(messaging, users, conversation, db):
    messaging.messages.send(users.client, conversation.id, users.expert, 'Hello')
    # Simulates a delete that stopped after removing the conversation
    db['conversations'].delete_one({'_id': conversation.conversation_id})

    assert messaging.purge_orphans() == 1
    assert db['messages'].count_documents({}) == 0
    assert messaging.purge_orphans() == 0
