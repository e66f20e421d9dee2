import pytest

from docsign.utils.logger import mask_signing_path


@pytest.mark.parametrize("path, masked", [
    ("/sign/abcdef123456", "/sign/***3456"),
    ("/sign/abcdef123456/fields/7", "/sign/***3456/fields/7"),
    ("/audit-trail/sign/abcdef123456", "/audit-trail/sign/***3456"),
    ("/", "/"),
    ("/docs", "/docs"),
])
def test_mask_signing_path(path, masked):
    assert mask_signing_path(path) == masked


def test_request_id_is_echoed(client):
    response = client.get("/", headers={"X-Request-ID": "req-42"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-42"


def test_request_id_is_generated(client):
    response = client.get("/")

    assert response.headers["X-Request-ID"]
