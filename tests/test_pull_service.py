"""
Tests for the pull service.
"""

import threading

import pytest

from formpull.core.constants import START_FROM_LAST_KEY, STORE_PASSWORDS_CONSENT_KEY
from formpull.core.exceptions import FormPullError, OrchestratorMisuseError, SourceValidationError
from formpull.core.interfaces import SourceAdapter
from formpull.domain.forms import FormDescriptor, TransferRegistry
from formpull.domain.jobs import UnitOfWork
from formpull.domain.pull import CANCELLED_BY_USER, PullService
from formpull.domain.sources import Source
from formpull.infrastructure.preferences import InMemoryPreferences

WAIT = 5.0


class FakeAdapter(SourceAdapter):
    """Adapter double whose units succeed, fail or block on demand"""

    def __init__(self, forms, fail=(), gate=None):
        self.forms = forms
        self.fail = set(fail)
        self.gate = gate
        self.start_from_last_calls = []
        self.closed = False

    def validate(self, location):
        return True

    def enumerate(self):
        return list(self.forms)

    def build_pull_operation(self, record, start_from_last=False):
        self.start_from_last_calls.append(start_from_last)

        def action(context):
            if self.gate is not None:
                self.gate.wait(WAIT)
                context.checkpoint()
            if context.form_id in self.fail:
                raise RuntimeError("device unplugged")
            context.success()

        return UnitOfWork(record.form_id, f"Pull of {record.name}", action)

    def describe(self):
        return "fake source"

    def can_be_reloaded(self):
        return True

    def close(self):
        self.closed = True


@pytest.fixture
def forms():
    return [FormDescriptor("household", "Household"), FormDescriptor("visit", "Visit")]


@pytest.fixture
def app_prefs():
    return InMemoryPreferences()


@pytest.fixture
def session_prefs():
    return InMemoryPreferences()


def make_service(workspace, channel, app_prefs, session_prefs, default_configuration, adapter=None, **kwargs):
    registry = TransferRegistry.load(default_configuration, [], app_prefs)
    factory = None
    if adapter is not None:
        def factory(source, workspace, connection_factory, configuration):
            return adapter
    return PullService(
        workspace,
        channel,
        app_prefs,
        session_prefs,
        registry=registry,
        **({"adapter_factory": factory} if factory else {}),
        **kwargs,
    )


class TestSourceSelection:
    """Test selecting, reloading and resetting sources."""

    def test_injected_empty_registry_is_kept(self, workspace, channel, app_prefs, session_prefs, default_configuration, forms):
        app_prefs.put("exportConf.visit.overwrite", "true")
        registry = TransferRegistry.load(default_configuration, [], app_prefs)
        service = PullService(workspace, channel, app_prefs, session_prefs, registry=registry,
                              adapter_factory=lambda *args: FakeAdapter(forms))

        assert service.registry is registry
        service.select_source(Source.remote_directory("tablet.local", "/odk"))

        assert service.registry.get_configuration("household") == default_configuration
        assert service.registry.get_custom_configuration("visit").overwrite

    def test_select_collect_directory(self, collect_dir, workspace, channel, app_prefs, session_prefs, default_configuration):
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration)

        records = service.select_source(Source.collect_directory(collect_dir))

        assert [record.form_id for record in records] == ["household", "visit"]
        assert service.adapter.describe() == str(collect_dir)
        assert Source.read_from_prefs(session_prefs) == Source.collect_directory(collect_dir)

    def test_invalid_source_changes_nothing(self, collect_dir, workspace, channel, app_prefs, session_prefs, default_configuration, tmp_path):
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration)
        valid = Source.collect_directory(collect_dir)
        service.select_source(valid)
        adapter = service.adapter

        with pytest.raises(SourceValidationError):
            service.select_source(Source.collect_directory(tmp_path / "missing"))

        assert service.source == valid
        assert service.adapter is adapter
        assert service.registry.size() == 2
        assert Source.read_from_prefs(session_prefs) == valid

    def test_switching_source_forgets_previous_forms(self, collect_dir, workspace, channel, app_prefs, session_prefs, default_configuration):
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration)
        service.select_source(Source.collect_directory(collect_dir))
        service.registry.select_all()

        records = service.select_source(Source.collect_directory(collect_dir))
        assert all(record.selected for record in records)

        other = FakeAdapter([FormDescriptor("census", "Census")])
        service.adapter_factory = lambda *args: other
        records = service.select_source(Source.remote_directory("tablet.local", "/odk"))

        assert [record.form_id for record in records] == ["census"]

    def test_reload_of_local_directory_is_refused(self, collect_dir, workspace, channel, app_prefs, session_prefs, default_configuration):
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration)
        service.select_source(Source.collect_directory(collect_dir))
        with pytest.raises(FormPullError):
            service.reload()

    def test_reload_merges_new_forms(self, workspace, channel, app_prefs, session_prefs, default_configuration, forms):
        adapter = FakeAdapter(forms[:1])
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration, adapter)
        service.select_source(Source.remote_directory("tablet.local", "/odk"))
        service.registry.select_all()

        adapter.forms = forms
        records = service.reload()

        assert [record.form_id for record in records] == ["household", "visit"]
        assert records[0].selected
        assert not records[1].selected

    def test_restore_saved_source(self, collect_dir, workspace, channel, app_prefs, session_prefs, default_configuration):
        Source.collect_directory(collect_dir).store_in_prefs(session_prefs, store_passwords=False)
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration)

        assert service.restore() == Source.collect_directory(collect_dir)
        assert service.registry.size() == 2

    def test_restore_forgets_unusable_source(self, workspace, channel, app_prefs, session_prefs, default_configuration, tmp_path):
        Source.collect_directory(tmp_path / "gone").store_in_prefs(session_prefs, store_passwords=False)
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration)

        assert service.restore() is None
        assert session_prefs.keys() == []

    def test_reset(self, workspace, channel, app_prefs, session_prefs, default_configuration, forms):
        adapter = FakeAdapter(forms)
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration, adapter)
        service.select_source(Source.remote_directory("tablet.local", "/odk"))

        service.reset()

        assert service.registry.is_empty()
        assert service.adapter is None
        assert adapter.closed
        assert Source.read_from_prefs(session_prefs) is None


class TestPulling:
    """Test launching, cancelling and observing pulls."""

    def test_pull_selected_forms(self, workspace, channel, app_prefs, session_prefs, default_configuration, forms):
        adapter = FakeAdapter(forms)
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration, adapter)
        service.select_source(Source.remote_directory("tablet.local", "/odk", user="odk"))
        assert not service.can_pull()

        service.registry.set_selected(service.registry.find("visit"), True)
        assert service.can_pull()
        service.pull()

        assert service.wait(WAIT)
        assert not service.is_pulling()
        assert service.registry.find("visit").last_transfer is not None
        assert service.registry.find("household").last_transfer is None
        assert app_prefs.get("exportDateTime.visit") is not None
        assert service.source_of("visit") == Source.remote_directory("tablet.local", "/odk", user="odk")
        assert service.source_of("household") is None

    def test_local_source_is_not_remembered_per_form(self, collect_dir, workspace, channel, app_prefs, session_prefs, default_configuration):
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration)
        service.select_source(Source.collect_directory(collect_dir))
        service.registry.select_all()

        service.pull()

        assert service.wait(WAIT)
        assert service.source_of("household") is None
        assert service.registry.find("household").last_transfer is not None

    def test_start_from_last_flag_reaches_operations(self, workspace, channel, app_prefs, session_prefs, default_configuration, forms):
        app_prefs.put(START_FROM_LAST_KEY, "true")
        adapter = FakeAdapter(forms)
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration, adapter)
        service.select_source(Source.remote_directory("tablet.local", "/odk"))
        service.registry.select_all()

        service.pull()

        assert service.wait(WAIT)
        assert adapter.start_from_last_calls == [True, True]

    def test_failures_reach_error_handler(self, workspace, channel, app_prefs, session_prefs, default_configuration, forms):
        errors = []
        adapter = FakeAdapter(forms, fail=["household"])
        service = make_service(
            workspace, channel, app_prefs, session_prefs, default_configuration, adapter,
            on_error=errors.append,
        )
        service.select_source(Source.remote_directory("tablet.local", "/odk"))
        service.registry.select_all()

        service.pull()

        assert service.wait(WAIT)
        assert [failure.form_id for failure in errors] == ["household"]
        assert service.registry.find("household").last_status.message == "Error: device unplugged"
        assert service.registry.find("visit").last_status.message == "Success"

    def test_cancel_marks_selected_forms(self, workspace, channel, app_prefs, session_prefs, default_configuration, forms):
        gate = threading.Event()
        adapter = FakeAdapter(forms, gate=gate)
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration, adapter)
        service.select_source(Source.remote_directory("tablet.local", "/odk"))
        service.registry.select_all()

        service.pull()
        assert service.is_pulling()
        with pytest.raises(OrchestratorMisuseError):
            service.pull()
        with pytest.raises(FormPullError):
            service.reset()

        service.cancel()
        gate.set()

        assert service.wait(WAIT)
        for record in service.registry:
            messages = [entry.message for entry in record.status_history]
            assert CANCELLED_BY_USER in messages
            assert record.last_transfer is None

    def test_wait_without_pull(self, workspace, channel, app_prefs, session_prefs, default_configuration):
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration)
        assert service.wait(0)
        service.cancel()

    def test_pull_without_source(self, workspace, channel, app_prefs, session_prefs, default_configuration):
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration)
        with pytest.raises(FormPullError):
            service.pull()


class TestPasswords:
    """Test password consent handling."""

    def test_passwords_only_stored_with_consent(self, workspace, channel, app_prefs, session_prefs, default_configuration, forms):
        source = Source.remote_directory("tablet.local", "/odk", password="secret")
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration, FakeAdapter(forms))

        service.select_source(source)
        assert session_prefs.get("pull_source.password") is None

        app_prefs.put(STORE_PASSWORDS_CONSENT_KEY, "true")
        service.select_source(source)
        assert session_prefs.get("pull_source.password") == "secret"

    def test_revoke_consent_forgets_stored_sources(self, workspace, channel, app_prefs, session_prefs, default_configuration, forms):
        app_prefs.put(STORE_PASSWORDS_CONSENT_KEY, "true")
        source = Source.remote_directory("tablet.local", "/odk", password="secret")
        service = make_service(workspace, channel, app_prefs, session_prefs, default_configuration, FakeAdapter(forms))
        service.select_source(source)
        service.registry.select_all()
        service.pull()
        assert service.wait(WAIT)
        assert app_prefs.get("pull_source.form.household.password") == "secret"

        service.revoke_password_consent()

        assert not service.store_passwords
        assert session_prefs.keys() == []
        assert [key for key in app_prefs.keys() if key.startswith("pull_source.")] == []
        assert app_prefs.get("exportDateTime.household") is not None
