import uuid


def test_register_login_logout_cycle(client):
    username = f"cycle-{uuid.uuid4().hex[:8]}"
    r = client.post('/api/register', json={'username': username, 'password': 'secret-pw', 'email': 'me@example.com'})
    assert r.status_code == 201
    assert r.json()['username'] == username
    assert 'password' not in r.json()

    assert client.get('/api/user').json()['username'] == username

    assert client.post('/api/logout').status_code == 200
    assert client.get('/api/user').status_code == 401

    assert client.post('/api/login', json={'username': username, 'password': 'wrong'}).status_code == 401
    r = client.post('/api/login', json={'username': username, 'password': 'secret-pw'})
    assert r.status_code == 200
    assert client.get('/api/user').status_code == 200


def test_duplicate_username_rejected(client):
    username = f"dup-{uuid.uuid4().hex[:8]}"
    assert client.post('/api/register', json={'username': username, 'password': 'a'}).status_code == 201
    r = client.post('/api/register', json={'username': username, 'password': 'b'})
    assert r.status_code == 400


def test_protected_routes_require_session(client):
    for method, path in [('get', '/api/contexts'), ('get', '/api/tasks'), ('get', '/api/email/inbox'),
                         ('post', '/api/email/sync'), ('get', '/api/learning-progress')]:
        assert getattr(client, method)(path).status_code == 401


def test_register_validates_body(client):
    assert client.post('/api/register', json={'username': ''}).status_code == 422
