import base64

import mongomock
import pytest

from storefront import create_app

TEST_ENVIRONMENT = {
    "MONGODB_URI": "mongodb://localhost:27017/storefront-test",
    "AWS_ACCESS_KEY": "test-access-key",
    "AWS_SECRET_KEY": "test-secret-key",
    "AWS_BUCKET": "storefront-test",
    "BCRYPT_ROUNDS": "4",
    "MAX_UPLOAD_SIZE_MB": "10",
}


class InMemoryBlobStore:
    """Stands in for S3BlobStore: keeps uploaded objects in a dict."""

    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.fail_deletes = False
        self.closed = False
        self._counter = 0

    def upload(self, data, subtype):
        self._counter += 1
        key = f"{1700000000000 + self._counter}.{subtype}"
        self.objects[key] = data
        return f"https://storefront-test.s3.eu-north-1.amazonaws.com/{key}"

    def delete(self, key):
        if self.fail_deletes:
            return False
        self.deleted.append(key)
        self.objects.pop(key, None)
        return True

    def close(self):
        self.closed = True


def data_uri(size, subtype="png"):
    encoded = base64.b64encode(b"\x89" * size).decode("ascii")
    return f"data:image/{subtype};base64,{encoded}"


@pytest.fixture
def database():
    return mongomock.MongoClient().db


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def app(database, blob_store):
    application = create_app(dict(TEST_ENVIRONMENT), database=database, blob_store=blob_store)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def registered_user(client):
    response = client.post(
        "/create-users",
        json={"firstName": "Ada", "secondName": "Lovelace", "email": "ada@example.com", "password": "engine"},
    )
    assert response.status_code == 201
    login = client.post("/user-login", json={"email": "ada@example.com", "password": "engine"})
    return login.get_json()["user"]


@pytest.fixture
def catalog(client, database):
    first = client.post("/upload", json={"image": data_uri(16), "name": "Lime", "price": 3.5})
    second = client.post(
        "/upload",
        json={"image": data_uri(16, "jpeg"), "name": "Basil", "price": "2", "description": "Fresh"},
    )
    assert first.status_code == 200 and second.status_code == 200
    return {image["name"]: str(image["_id"]) for image in database.images.find()}
