from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from bunqsys.context import (
    DEFAULT_STORAGE_PATH,
    ApiContext,
    ContextBuilder,
    Environment,
    ManagedApiContext,
    SetupContext,
)
from bunqsys.errors import IncompleteCredentialBundleError, InvalidEnvironmentError

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class TestEnvironment:
    @pytest.mark.parametrize("raw", ["SANDBOX", "sandbox", "sb", ""])
    def test_sandbox_aliases(self, raw):
        assert Environment.parse(raw) is Environment.SANDBOX

    @pytest.mark.parametrize("raw", ["PRODUCTION", "production", "prod", "PROD"])
    def test_production_aliases(self, raw):
        assert Environment.parse(raw) is Environment.PRODUCTION

    def test_passes_through_members(self):
        assert Environment.parse(Environment.PRODUCTION) is Environment.PRODUCTION

    def test_invalid_environment(self):
        with pytest.raises(InvalidEnvironmentError) as exc_info:
            Environment.parse("staging")
        assert exc_info.value.raw == "staging"


class TestNeedsToBeRefreshed:
    def test_false_with_eleven_seconds_left(self, make_session):
        session = make_session(valid_until=NOW + timedelta(seconds=11))
        assert session.needs_to_be_refreshed(now=NOW) is False

    def test_true_with_nine_seconds_left(self, make_session):
        session = make_session(valid_until=NOW + timedelta(seconds=9))
        assert session.needs_to_be_refreshed(now=NOW) is True

    def test_true_exactly_at_threshold(self, make_session):
        session = make_session(valid_until=NOW + timedelta(seconds=10))
        assert session.needs_to_be_refreshed(now=NOW) is True

    def test_true_when_expired(self, make_session):
        session = make_session(valid_until=NOW - timedelta(hours=1))
        assert session.needs_to_be_refreshed(now=NOW) is True

    def test_custom_buffer(self, make_session):
        session = make_session(valid_until=NOW + timedelta(seconds=30))
        assert session.needs_to_be_refreshed(now=NOW, buffer=timedelta(seconds=60)) is True

    def test_defaults_to_current_time(self, make_session):
        assert make_session().needs_to_be_refreshed() is False


class TestApiContext:
    def test_with_session_context_replaces_only_the_session(self, api_context, make_session):
        new_session = make_session(token="S2")

        updated = api_context.with_session_context(new_session)

        assert updated.session_context == new_session
        assert updated.installation_context is api_context.installation_context
        assert updated.api_key == api_context.api_key
        assert api_context.session_context.token == "S1"

    def test_json_round_trip(self, api_context):
        data = api_context.as_json()

        assert data["environment"] == "SANDBOX"
        assert isinstance(data["session_context"]["valid_until"], str)
        assert ApiContext.from_mapping(data) == api_context

    def test_naive_timestamp_is_read_as_utc(self, api_context):
        data = api_context.as_json()
        data["session_context"]["valid_until"] = "2026-10-19T12:00:00"

        restored = ApiContext.from_mapping(data)

        assert restored.session_context.valid_until == NOW

    def test_from_mapping_missing_field(self, api_context):
        data = api_context.as_json()
        del data["installation_context"]["token"]
        with pytest.raises(KeyError):
            ApiContext.from_mapping(data)


class TestContextBuilder:
    def test_build_complete(self, api_context):
        builder = (
            ContextBuilder(Environment.SANDBOX)
            .set_access_token("access-token")
            .set_installation_context(api_context.installation_context)
            .set_device_id(99)
            .set_session_context(api_context.session_context)
        )

        assert builder.build() == api_context

    def test_device_id_is_optional(self, api_context):
        builder = ContextBuilder(Environment.SANDBOX)
        builder.set_access_token("access-token")
        builder.set_installation_context(api_context.installation_context)
        builder.set_session_context(api_context.session_context)

        assert builder.build().api_key == "access-token"

    def test_missing_parts_raise(self, api_context):
        builder = ContextBuilder(Environment.SANDBOX).set_access_token("access-token")

        with pytest.raises(IncompleteCredentialBundleError) as exc_info:
            builder.build()

        assert exc_info.value.missing == ["installation_context", "session_context"]


class TestManagedApiContext:
    def test_snapshot_returns_current_context(self, api_context):
        managed = ManagedApiContext(api_context)
        assert managed.snapshot() is api_context

    def test_replace_session_swaps_whole_session(self, api_context, make_session):
        managed = ManagedApiContext(api_context)
        before = managed.snapshot()

        managed.replace_session(make_session(token="S2"))

        assert managed.snapshot().session_context.token == "S2"
        assert before.session_context.token == "S1"

    def test_replace_session_keeps_the_rest_of_the_bundle(self, api_context, make_session):
        managed = ManagedApiContext(api_context)

        updated = managed.replace_session(make_session(token="S2"))

        assert updated.api_key == api_context.api_key
        assert updated.environment is api_context.environment
        assert updated.installation_context is api_context.installation_context

    def test_needs_refresh_uses_current_session(self, api_context, make_session):
        managed = ManagedApiContext(api_context)
        assert managed.needs_refresh() is False

        managed.replace_session(make_session(valid_until=datetime.now(timezone.utc)))
        assert managed.needs_refresh() is True

    def test_concurrent_replacements_leave_a_consistent_context(self, api_context, make_session):
        managed = ManagedApiContext(api_context)
        sessions = [make_session(token=f"S{i}") for i in range(20)]

        threads = [threading.Thread(target=managed.replace_session, args=(s,)) for s in sessions]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert managed.snapshot().session_context in sessions
        assert managed.snapshot().installation_context == api_context.installation_context


class TestSetupContext:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("BUNQ_ENVIRONMENT", "prod")
        monkeypatch.setenv("BUNQ_CLIENT_ID", "cid")
        monkeypatch.setenv("BUNQ_CLIENT_SECRET", "csecret")
        monkeypatch.setenv("BUNQ_CONTEXT_PATH", "/tmp/ctx.json")

        setup = SetupContext.from_env(dotenv=False)

        assert setup == SetupContext(Environment.PRODUCTION, "cid", "csecret", "/tmp/ctx.json")

    def test_defaults(self):
        setup = SetupContext.from_env(dotenv=False)

        assert setup.environment is Environment.SANDBOX
        assert setup.storage_path == DEFAULT_STORAGE_PATH
