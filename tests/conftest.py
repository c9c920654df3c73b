import io
from urllib.parse import urlsplit

import pytest

from plantcare import create_app
from plantcare.config import TestingConfig
from plantcare.models import db

PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f"
    b"\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


@pytest.fixture
def app(tmp_path):
    app = create_app(
        TestingConfig,
        UPLOAD_FOLDER=str(tmp_path / "uploads"),
        TEMP_UPLOAD_FOLDER=str(tmp_path / "temp"),
    )
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def png_file(name="leaf.png"):
    return (io.BytesIO(PNG_BYTES), name, "image/png")


def register(client, name="Ana", email="ana@x.com", password="secret1"):
    resp = client.post("/api/users/register", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user(client):
    return register(client)


@pytest.fixture
def headers(user):
    return auth_headers(user["token"])


@pytest.fixture
def other_headers(client):
    return auth_headers(register(client, "Bo", "bo@x.com", "secret2")["token"])


class FlaskResponse:
    def __init__(self, resp):
        self._resp = resp
        self.status_code = resp.status_code
        self.ok = resp.status_code < 400
        self.reason = resp.status
        self.text = resp.get_data(as_text=True)

    def json(self):
        data = self._resp.get_json(silent=True)
        if data is None:
            raise ValueError("No JSON body")
        return data


class FlaskSession:
    """Stands in for ``requests.Session`` by routing calls to the Flask test client."""

    def __init__(self, test_client):
        self.test_client = test_client
        self.calls = []

    def request(self, method, url, headers=None, timeout=None, json=None, data=None, files=None, params=None):
        path = urlsplit(url).path
        self.calls.append((method, path))
        kwargs = {"headers": headers or {}, "query_string": params}
        if json is not None:
            kwargs["json"] = json
        elif files:
            form = dict(data or {})
            for field, (filename, fileobj, mimetype) in files.items():
                form[field] = (fileobj, filename, mimetype)
            kwargs["data"] = form
            kwargs["content_type"] = "multipart/form-data"
        elif data:
            kwargs["data"] = data
        return FlaskResponse(self.test_client.open(path, method=method, **kwargs))
