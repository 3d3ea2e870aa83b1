import pytest
from pymongo.errors import PyMongoError

from conftest import auth_headers, connect, received, sid_of


@pytest.fixture
def conversation_id(http, users):
    resp = http.post('/api/conversations/start', json={'expertId': users.expert_profile_id},
                     headers=auth_headers(users.client))
    return resp.get_json()['conversation']['id']


def test_handshake_without_valid_token_is_refused(socketio, app, users):
    assert not socketio.test_client(app).is_connected()
    assert not socketio.test_client(app, auth={'token': 'bad.token.value'}).is_connected()
    assert not socketio.test_client(app, auth={'token': ''}).is_connected()


def test_handshake_accepts_authorization_header(socketio, app, users):
    client = socketio.test_client(app, headers=auth_headers(users.client))
    assert client.is_connected()
    client.disconnect()


def test_join_requires_participant(socketio, app, users, conversation_id):
    client = connect(socketio, app, users.client)
    outsider = connect(socketio, app, users.outsider)

    assert client.emit('join_conversation', {'conversationId': conversation_id}, callback=True) == {
        'success': True, 'conversationId': conversation_id
    }
    assert outsider.emit('join_conversation', conversation_id, callback=True) == {
        'success': False, 'error': 'Conversation not found'
    }
    assert client.emit('join_conversation', {}, callback=True)['success'] is False


def test_send_message_broadcasts_and_notifies(socketio, app, users, conversation_id):
    client = connect(socketio, app, users.client)
    expert = connect(socketio, app, users.expert)
    client.emit('join_conversation', {'conversationId': conversation_id}, callback=True)

    ack = client.emit('send_message', {
        'conversationId': conversation_id,
        'content': 'Hello',
        'receiverId': users.expert,
        'messageType': 'text',
    }, callback=True)

    assert ack['success'] is True
    broadcast = received(client, 'new_message')
    assert len(broadcast) == 1
    assert broadcast[0]['id'] == ack['messageId']
    assert broadcast[0]['content'] == 'Hello'

    notifications = received(expert, 'message_notification')
    assert len(notifications) == 1
    assert notifications[0]['conversationId'] == conversation_id
    assert notifications[0]['unreadCount'] == 1
    assert notifications[0]['message']['id'] == ack['messageId']


def test_live_message_matches_rest_history(socketio, app, http, users, conversation_id):
    client = connect(socketio, app, users.client)
    client.emit('join_conversation', {'conversationId': conversation_id}, callback=True)
    client.emit('send_message', {
        'conversationId': conversation_id,
        'content': 'Hello',
        'receiverId': users.expert,
    }, callback=True)
    broadcast = received(client, 'new_message')[0]

    history = http.get(f'/api/conversations/{conversation_id}/messages',
                       headers=auth_headers(users.expert)).get_json()

    assert history['messages'] == [broadcast]


def test_rest_send_reaches_live_viewers(socketio, app, http, users, conversation_id):
    expert = connect(socketio, app, users.expert)
    expert.emit('join_conversation', {'conversationId': conversation_id}, callback=True)

    http.post(f'/api/conversations/{conversation_id}/messages', headers=auth_headers(users.client),
              json={'content': 'From REST', 'receiverId': users.expert})

    received = expert.get_received()
    names = sorted(event['name'] for event in received)
    assert names == ['message_notification', 'new_message']


def test_send_failure_only_reaches_sender(socketio, app, users, conversation_id, db):
    client = connect(socketio, app, users.client)
    expert = connect(socketio, app, users.expert)
    client.emit('join_conversation', {'conversationId': conversation_id}, callback=True)
    expert.emit('join_conversation', {'conversationId': conversation_id}, callback=True)

    ack = client.emit('send_message', {
        'conversationId': conversation_id,
        'content': '   ',
        'receiverId': users.expert,
    }, callback=True)

    assert ack['success'] is False
    errors = received(client, 'message_error')
    assert errors == [{'error': 'content is required', 'conversationId': conversation_id}]
    assert expert.get_received() == []
    assert db['messages'].count_documents({}) == 0


def test_rejected_send_reports_generic_error(socketio, app, users, conversation_id, db):
    client = connect(socketio, app, users.client)
    expert = connect(socketio, app, users.expert)
    expert.emit('join_conversation', {'conversationId': conversation_id}, callback=True)

    ack = client.emit('send_message', {
        'conversationId': conversation_id,
        'content': 'Hello',
        'receiverId': users.outsider,
    }, callback=True)

    assert ack == {'success': False, 'error': 'Failed to send message'}
    assert received(client, 'message_error') == [
        {'error': 'Failed to send message', 'conversationId': conversation_id}
    ]
    assert expert.get_received() == []
    assert db['messages'].count_documents({}) == 0


def test_stored_message_is_acknowledged_when_fanout_fails(socketio, app, users, conversation_id,
                                                           messaging, db, monkeypatch):
    def broken(*args, **kwargs):
        raise PyMongoError('unread count failed')

    client = connect(socketio, app, users.client)
    expert = connect(socketio, app, users.expert)
    expert.emit('join_conversation', {'conversationId': conversation_id}, callback=True)
    monkeypatch.setattr(messaging.message_repo, 'count_unread', broken)

    ack = client.emit('send_message', {
        'conversationId': conversation_id,
        'content': 'Hello',
        'receiverId': users.expert,
    }, callback=True)

    assert ack['success'] is True
    assert received(client, 'message_error') == []
    assert [m['id'] for m in received(expert, 'new_message')] == [ack['messageId']]
    assert db['messages'].count_documents({}) == 1


def test_typing_is_relayed_to_others_in_room(socketio, app, users, conversation_id):
    client = connect(socketio, app, users.client)
    expert = connect(socketio, app, users.expert)
    expert_other_device = connect(socketio, app, users.expert)
    client.emit('join_conversation', {'conversationId': conversation_id}, callback=True)
    expert.emit('join_conversation', {'conversationId': conversation_id}, callback=True)

    client.emit('typing_start', {'conversationId': conversation_id})
    client.emit('typing_stop', {'conversationId': conversation_id})

    expected = {'userId': users.client, 'conversationId': conversation_id}
    received = expert.get_received()
    assert [(e['name'], e['args'][0]) for e in received] == [
        ('user_typing', expected),
        ('user_stop_typing', expected),
    ]
    assert client.get_received() == []
    assert expert_other_device.get_received() == []


def test_typing_ignored_without_join(socketio, app, users, conversation_id):
    outsider = connect(socketio, app, users.outsider)
    expert = connect(socketio, app, users.expert)
    expert.emit('join_conversation', {'conversationId': conversation_id}, callback=True)

    outsider.emit('typing_start', {'conversationId': conversation_id})

    assert expert.get_received() == []


def test_mark_messages_read_over_socket(socketio, app, http, users, conversation_id, db):
    http.post(f'/api/conversations/{conversation_id}/messages', headers=auth_headers(users.client),
              json={'content': 'Hello', 'receiverId': users.expert})
    client = connect(socketio, app, users.client)
    expert = connect(socketio, app, users.expert)
    client.emit('join_conversation', {'conversationId': conversation_id}, callback=True)
    expert.emit('join_conversation', {'conversationId': conversation_id}, callback=True)

    ack = expert.emit('mark_messages_read', {'conversationId': conversation_id}, callback=True)

    assert ack == {'success': True, 'conversationId': conversation_id, 'updated': 1}
    assert received(client, 'messages_read') == [{'conversationId': conversation_id, 'readBy': users.expert}]
    assert expert.get_received() == []
    assert db['messages'].count_documents({'isRead': False}) == 0


def test_delete_notifies_other_participant_and_viewers(socketio, app, http, users, conversation_id):
    client = connect(socketio, app, users.client)
    expert = connect(socketio, app, users.expert)
    client.emit('join_conversation', {'conversationId': conversation_id}, callback=True)
    expert.emit('join_conversation', {'conversationId': conversation_id}, callback=True)

    resp = http.delete(f'/api/conversations/{conversation_id}', headers=auth_headers(users.client))
    assert resp.status_code == 200

    expected = {'conversationId': conversation_id, 'deletedBy': users.client}
    assert received(expert, 'conversation_deleted') == [expected]
    assert received(client, 'conversation_deleted') == [expected]

    # The room is gone: typing no longer reaches anyone
    client.emit('typing_start', {'conversationId': conversation_id})
    assert expert.get_received() == []


def test_leave_conversation_stops_room_events(socketio, app, http, users, conversation_id):
    expert = connect(socketio, app, users.expert)
    expert.emit('join_conversation', {'conversationId': conversation_id}, callback=True)
    assert expert.emit('leave_conversation', {'conversationId': conversation_id}, callback=True)['success']

    http.post(f'/api/conversations/{conversation_id}/messages', headers=auth_headers(users.client),
              json={'content': 'Hello', 'receiverId': users.expert})

    assert [e['name'] for e in expert.get_received()] == ['message_notification']


def test_disconnect_releases_rooms(socketio, app, hub, users, conversation_id):
    client = connect(socketio, app, users.client)
    sid = sid_of(socketio, client)
    client.emit('join_conversation', {'conversationId': conversation_id}, callback=True)
    assert hub.rooms.members_of(f'conversation:{conversation_id}') == {sid}

    client.disconnect()

    assert hub.rooms.user_of(sid) is None
    assert hub.rooms.members_of(f'conversation:{conversation_id}') == set()
    assert hub.rooms.members_of(f'user:{users.client}') == set()


def test_room_ids_are_case_insensitive(socketio, app, http, hub, users, conversation_id):
    client = connect(socketio, app, users.client)
    expert = connect(socketio, app, users.expert)
    expert_sid = sid_of(socketio, expert)
    room = f'conversation:{conversation_id}'
    client.emit('join_conversation', {'conversationId': conversation_id}, callback=True)
    assert expert.emit('join_conversation', conversation_id.upper(), callback=True) == {
        'success': True, 'conversationId': conversation_id
    }

    client.emit('typing_start', {'conversationId': conversation_id.upper()})
    assert received(expert, 'user_typing') == [{'userId': users.client, 'conversationId': conversation_id}]

    ack = expert.emit('leave_conversation', {'conversationId': conversation_id.upper()}, callback=True)
    assert ack == {'success': True, 'conversationId': conversation_id}
    assert not hub.rooms.is_member(room, expert_sid)

    http.post(f'/api/conversations/{conversation_id}/messages', headers=auth_headers(users.client),
              json={'content': 'Hello', 'receiverId': users.expert})
    assert [e['name'] for e in expert.get_received()] == ['message_notification']
