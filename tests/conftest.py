import os

# Must run before core.config is imported anywhere.
os.environ["UI_ENABLED"] = "false"
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_KEY"] = ""
os.environ["SUPABASE_SERVICE_KEY"] = ""

import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from supabase import AuthError as SupabaseAuthError, FunctionsError

from core.config import settings
from core.supabase_client import SupabaseClientFactory


class FakeAuthError(SupabaseAuthError):
    """SDK auth error with a fixed constructor across SDK versions."""
    def __init__(self, message: str):
        Exception.__init__(self, message)
        self.message = message
        self.code = None


class FakeFunctionsError(FunctionsError):
    def __init__(self, message: str):
        Exception.__init__(self, message)
        self.message = message
        self.name = "FunctionsHttpError"
        self.status = 500


def make_user(user_id="user-1", email="ada@example.com", metadata=None):
    return SimpleNamespace(
        id=user_id,
        email=email,
        last_sign_in_at=datetime.datetime(2024, 5, 1, 12, 30, tzinfo=datetime.timezone.utc),
        user_metadata=metadata or {},
    )


def make_record(name, size=100, created_at="2024-01-01T00:00:00+00:00"):
    return {"name": name, "id": f"id-{name}", "created_at": created_at, "metadata": {"size": size}}


class FakeSupabase:
    """MagicMock-backed client with one bucket mock per bucket name."""

    def __init__(self):
        self.client = MagicMock(name="supabase")
        self.buckets = {}
        self.client.storage.from_.side_effect = self.bucket
        self.client.auth.get_user.return_value = None
        self.subscription = MagicMock(name="subscription")
        self.client.auth.on_auth_state_change.return_value = self.subscription

    def bucket(self, name):
        if name not in self.buckets:
            bucket = MagicMock(name=f"bucket:{name}")
            bucket.list.return_value = []
            bucket.get_public_url.side_effect = lambda key, _b=name: f"https://cdn.test/{_b}/{key}"
            self.buckets[name] = bucket
        return self.buckets[name]

    def sign_in_as(self, user):
        self.client.auth.get_user.return_value = SimpleNamespace(user=user)


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def clients(fake_supabase):
    create = MagicMock(return_value=fake_supabase.client)
    return SupabaseClientFactory("https://project.supabase.co", "anon-key", create=create)


@pytest.fixture
def unconfigured_clients():
    create = MagicMock(name="create_client")
    return SupabaseClientFactory(None, None, create=create)


@pytest.fixture
def config():
    return settings.model_copy()
