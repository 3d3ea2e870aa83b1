import mongomock
import pytest
from bson import ObjectId

from hub_server.repository.mongo_helper import MongoRepositorySingleton, ensure_indexes
from hub_server.security.authentication import AuthSecurity

TEST_SECRET = 'test-secret'


class Users:
    def __init__(self, client, expert, outsider, expert_profile_id):
        self.client = client
        self.expert = expert
        self.outsider = outsider
        self.expert_profile_id = expert_profile_id


def token_for(user_id):
    return AuthSecurity.encode_token({'user_id': user_id})


def auth_headers(user_id):
    return {'Authorization': f'Bearer {token_for(user_id)}'}


def connect(socketio, app, user_id):
    client = socketio.test_client(app, auth={'token': token_for(user_id)})
    assert client.is_connected()
    return client


def sid_of(socketio, client):
    """Server-side Socket.IO sid of a test client."""
    return socketio.server.manager.sid_from_eio_sid(client.eio_sid, '/')


def received(client, name):
    return [event['args'][0] for event in client.get_received() if event['name'] == name]


class RecordingSession:
    """Takes the place of a pymongo ClientSession; runs each callback as one transaction."""

    def __init__(self):
        self.transactions = 0
        self.ended = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.ended = True

    def with_transaction(self, callback):
        self.transactions += 1
        return callback(self)


class TransactionalDb:
    """Only the ``client.start_session()`` surface that run_atomic touches."""

    def __init__(self):
        self.session = RecordingSession()
        self.client = self

    def start_session(self):
        return self.session


def record_sessions(monkeypatch, repo, method, calls):
    """Record the session each ``repo.method`` call receives, then write without it.

    mongomock has no session support, so the write itself runs sessionless.
    """
    original = getattr(repo, method)

    def recorded(*args, session=None, **kwargs):
        calls.append((method, session))
        return original(*args, **kwargs)

    monkeypatch.setattr(repo, method, recorded)


@pytest.fixture(autouse=True)
def auth_config():
    AuthSecurity.configure(secret_key=TEST_SECRET)
    yield


@pytest.fixture
def db():
    database = mongomock.MongoClient()['automatehub_test']
    ensure_indexes(database)
    MongoRepositorySingleton.use_db(database)
    yield database
    MongoRepositorySingleton.reset()


@pytest.fixture
def users(db):
    client_id, expert_id, outsider_id, profile_id = ObjectId(), ObjectId(), ObjectId(), ObjectId()
    db['users'].insert_many([
        {'_id': client_id, 'firstName': 'Carla', 'lastName': 'Client', 'email': 'carla@example.com'},
        {'_id': expert_id, 'name': 'Eve Expert', 'email': 'eve@example.com', 'avatar': 'eve-user.png'},
        {'_id': outsider_id, 'name': 'Oscar Outsider', 'email': 'oscar@example.com'},
    ])
    db['experts'].insert_one({
        '_id': profile_id,
        'userId': expert_id,
        'name': 'Eve Expert',
        'title': 'Automation Engineer',
        'portfolio': [{'imageUrl': 'https://img.example.com/eve.png'}],
    })
    return Users(str(client_id), str(expert_id), str(outsider_id), str(profile_id))


@pytest.fixture
def app_and_socketio(db):
    from server import create_app

    app, socketio = create_app(use_transaction=False)
    app.config['TESTING'] = True
    return app, socketio


@pytest.fixture
def app(app_and_socketio):
    return app_and_socketio[0]


@pytest.fixture
def socketio(app_and_socketio):
    return app_and_socketio[1]


@pytest.fixture
def http(app):
    return app.test_client()


@pytest.fixture
def hub(app):
    return app.extensions['websocket_hub']


@pytest.fixture
def messaging(app):
    return app.extensions['messaging']


@pytest.fixture
def conversation(messaging, users):
    conv, _ = messaging.conversations.start_or_get(users.client, users.expert_profile_id)
    return conv.conversation


@pytest.fixture
def transactions(messaging):
    """Switch both services to transactional writes; yields the recording session."""
    db = TransactionalDb()
    for service in (messaging.conversations, messaging.messages):
        service.db = db
        service.use_transaction = True
    return db.session
