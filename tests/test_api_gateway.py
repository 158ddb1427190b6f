import httpx
import pytest
from fastapi.testclient import TestClient
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from supabase import StorageException

from conftest import FakeAuthError, make_record, make_user
from core.supabase_client import SupabaseClientFactory
from services.api_gateway.app.container import AppContainer
from services.api_gateway.app.main import create_app


@pytest.fixture
def container(clients, config):
    return AppContainer(clients, config=config)

@pytest.fixture
def client(container):
    with TestClient(create_app(container, mount_ui=False)) as test_client:
        yield test_client

@pytest.fixture
def signed_in(client, fake_supabase):
    fake_supabase.client.auth.sign_in_with_password.return_value = SimpleNamespace(user=make_user(), session=object())
    response = client.post("/auth/signin", json={"email": "ada@example.com", "password": "secret1"})
    assert response.status_code == 200
    return response.json()["data"]


# --- Meta ---
def test_health_check(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    json_response = response.json()
    assert json_response["status"] == "success"
    assert json_response["data"]["configured"] is True
    assert "API Gateway is running" in json_response["message"]

def test_read_root(client: TestClient):
    response = client.get("/")
    assert response.status_code == 200
    assert "Welcome to the Supa Files Hub API" in response.json()["message"]

def test_lifespan_holds_auth_subscription(container, fake_supabase):
    with TestClient(create_app(container, mount_ui=False)):
        assert container.tracker.is_subscribed
    assert not container.tracker.is_subscribed
    fake_supabase.subscription.unsubscribe.assert_called_once()

def test_navigation_falls_back_to_profile(client: TestClient):
    assert client.post("/navigation/storage").json()["data"]["page"] == "storage"
    assert client.post("/navigation/nowhere").json()["data"]["page"] == "profile"


# --- Auth ---
def test_sign_in_and_session(client: TestClient, signed_in):
    assert signed_in["email"] == "ada@example.com"
    session = client.get("/session").json()["data"]
    assert session["identity"]["id"] == "user-1"

def test_sign_in_failure(client: TestClient, fake_supabase):
    fake_supabase.client.auth.sign_in_with_password.side_effect = FakeAuthError("Invalid login credentials")
    response = client.post("/auth/signin", json={"email": "ada@example.com", "password": "wrong-pass"})
    assert response.status_code == 401
    assert response.json() == {"detail": "Error: Invalid login credentials"}

def test_short_password_rejected(client: TestClient):
    response = client.post("/auth/signup", json={"email": "ada@example.com", "password": "123"})
    assert response.status_code == 422

def test_sign_up_awaits_verification(client: TestClient, fake_supabase):
    fake_supabase.client.auth.sign_up.return_value = SimpleNamespace(user=make_user(), session=None)
    response = client.post("/auth/signup", json={"email": "ada@example.com", "password": "secret1"})
    assert response.status_code == 200
    assert response.json()["message"] == "Sign up successful! Please check your email to verify."

def test_sign_out_returns_to_profile(client: TestClient, signed_in):
    client.post("/navigation/gallery")
    response = client.post("/auth/signout")
    assert response.json()["data"]["page"] == "profile"
    assert client.get("/session").json()["data"]["identity"] is None


# --- Files ---
def test_list_files_with_filters(client: TestClient, fake_supabase):
    fake_supabase.bucket("user-files").list.return_value = [make_record("a.png", 1536), make_record("B.txt")]
    response = client.get("/files/user-files", params={"category": "images", "sort": "name"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 2
    assert [f["name"] for f in data["files"]] == ["a.png"]
    assert data["files"][0]["size_label"] == "1.5 KB"
    assert data["files"][0]["public_url"] == "https://cdn.test/user-files/a.png"

def test_list_failure_renders_empty(client: TestClient, fake_supabase):
    fake_supabase.bucket("user-files").list.side_effect = StorageException({"message": "bucket not found"})
    response = client.get("/files/user-files")
    assert response.status_code == 200
    assert response.json()["data"]["files"] == []
    assert response.json()["message"] == "Error fetching files: bucket not found"

def test_upload_file(client: TestClient, fake_supabase):
    response = client.post("/files/user-files", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["key"].endswith(".txt")
    kwargs = fake_supabase.bucket("user-files").upload.call_args.kwargs
    assert kwargs["file"] == b"hello"

def test_upload_without_file(client: TestClient, fake_supabase):
    response = client.post("/files/user-files")
    assert response.status_code == 400
    assert response.json()["detail"] == "You must select a file to upload."
    fake_supabase.bucket("user-files").upload.assert_not_called()

def test_download_file(client: TestClient, fake_supabase):
    fake_supabase.bucket("user-files").download.return_value = b"%PDF-1.4"
    response = client.get("/files/user-files/objects/docs/report.pdf")
    assert response.status_code == 200
    assert response.content == b"%PDF-1.4"
    assert response.headers["content-disposition"] == 'attachment; filename="report.pdf"'
    fake_supabase.bucket("user-files").download.assert_called_once_with("docs/report.pdf")

def test_delete_requires_confirmation(client: TestClient, fake_supabase):
    response = client.delete("/files/user-files/objects/a.png")
    assert response.status_code == 400
    fake_supabase.bucket("user-files").remove.assert_not_called()

    response = client.delete("/files/user-files/objects/a.png", params={"confirm": "true"})
    assert response.status_code == 200
    fake_supabase.bucket("user-files").remove.assert_called_once_with(["a.png"])


# --- Profile ---
def test_avatar_upload_requires_sign_in(client: TestClient):
    response = client.post("/profile/avatar", files={"file": ("me.png", b"png", "image/png")})
    assert response.status_code == 401

def test_avatar_rejects_non_images(client: TestClient, signed_in):
    response = client.post("/profile/avatar", files={"file": ("me.pdf", b"pdf", "application/pdf")})
    assert response.status_code == 400
    assert response.json()["detail"] == "Only image files are allowed."

def test_avatar_upload(client: TestClient, signed_in, fake_supabase):
    fake_supabase.client.auth.update_user.return_value = SimpleNamespace(user=make_user())
    response = client.post("/profile/avatar", files={"file": ("me.png", b"png", "image/png")})
    assert response.status_code == 200
    url = response.json()["data"]["public_url"]
    assert client.get("/profile").json()["data"]["profile_url"] == url


# --- Gallery ---
def test_gallery_select_unknown_image(client: TestClient, fake_supabase):
    fake_supabase.bucket("gallery").list.return_value = [make_record("cat.png")]
    assert client.post("/gallery/select/dog.png").status_code == 404
    response = client.post("/gallery/select/cat.png")
    assert response.json()["data"]["selected"]["name"] == "cat.png"
    assert client.delete("/gallery/select").json()["data"]["selected"] is None


# --- Images ---
def test_process_image(client: TestClient, fake_supabase):
    fake_supabase.client.functions.invoke.return_value = {
        "success": True, "processedFileName": "cat_thumb.png", "publicUrl": "https://cdn.test/cat_thumb.png"}
    response = client.post("/images/process", json={"bucket": "user-files", "file_name": "cat.png",
                                                    "operation": "thumbnail"})
    assert response.status_code == 200
    assert response.json()["data"]["processedFileName"] == "cat_thumb.png"

def test_process_image_invalid_options(client: TestClient):
    response = client.post("/images/process", json={"bucket": "user-files", "file_name": "cat.png",
                                                    "operation": "resize", "width": 3000, "height": 100})
    assert response.status_code == 422


# --- Not configured ---
def test_unconfigured_app_reports_configuration_error(config):
    container = AppContainer(SupabaseClientFactory(None, None, create=MagicMock()), config=config)
    with TestClient(create_app(container, mount_ui=False)) as client:
        assert client.get("/health").json()["data"]["configured"] is False
        response = client.post("/files/user-files", files={"file": ("notes.txt", b"hi", "text/plain")})
        assert response.status_code == 503
        assert "not configured" in response.json()["detail"]


# --- Failures outside the SDK's own exceptions ---
def test_list_transport_failure_renders_empty(client: TestClient, fake_supabase):
    fake_supabase.bucket("user-files").list.side_effect = httpx.ConnectError("connection refused")
    response = client.get("/files/user-files")
    assert response.status_code == 200
    assert response.json()["data"]["files"] == []
    assert response.json()["message"] == "Error fetching files: An unexpected error occurred. Check service logs."

def test_download_transport_failure_is_json(client: TestClient, fake_supabase):
    fake_supabase.bucket("user-files").download.side_effect = httpx.ReadTimeout("timed out")
    response = client.get("/files/user-files/objects/a.png")
    assert response.status_code == 500
    assert response.json() == {"detail": "Error downloading file: An unexpected error occurred. Check service logs."}

def test_unhandled_exception_returns_json_detail(container):
    container.tracker.sign_in = AsyncMock(side_effect=RuntimeError("boom"))
    with TestClient(create_app(container, mount_ui=False), raise_server_exceptions=False) as client:
        response = client.post("/auth/signin", json={"email": "ada@example.com", "password": "secret1"})
    assert response.status_code == 500
    assert response.json() == {"detail": "An unexpected error occurred. Check service logs."}


# --- Bucket restriction ---
def test_unknown_bucket_is_rejected_without_caching(client: TestClient, container, fake_supabase):
    for _ in range(3):
        response = client.get("/files/someone-elses-bucket")
        assert response.status_code == 400
        assert "Unknown bucket" in response.json()["detail"]
    assert client.post("/files/other", files={"file": ("notes.txt", b"hi", "text/plain")}).status_code == 400
    assert client.get("/files/other/objects/a.png").status_code == 400
    assert "someone-elses-bucket" not in container._views
    assert "someone-elses-bucket" not in container.engine.last_truncated
    assert "someone-elses-bucket" not in fake_supabase.buckets
    assert "other" not in fake_supabase.buckets
