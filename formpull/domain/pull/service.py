"""
Pull service - main business logic
"""
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from ...core.constants import START_FROM_LAST_KEY, STORE_PASSWORDS_CONSENT_KEY
from ...core.events import EventChannel, TransferEvent
from ...core.exceptions import ConnectionError, FormPullError, SourceValidationError, UnitFailure
from ...core.interfaces import ConnectionFactory, PreferenceStore, SourceAdapter
from ...core.logging import get_logger
from ..forms import FormRecord, TransferConfiguration, TransferRegistry
from ..jobs import BatchHandle, JobOrchestrator
from ..sources import Source, clear_stored_prefs, create_adapter, is_pref_key

logger = get_logger(__name__)

AdapterFactory = Callable[..., SourceAdapter]

CANCELLED_BY_USER = "Cancelled by user"


def _flag(preferences: PreferenceStore, key: str) -> bool:
    return (preferences.get(key) or "").strip().lower() in ("true", "yes", "1")


class PullService:
    """
    Pull service - pure business logic.

    Keeps one pull session: the selected source, the registry of its forms
    and the batch pulling them. No dependency on the CLI or on rendering.

    Two preference stores are involved: ``session_prefs`` remembers the
    selected source, ``app_prefs`` holds application-wide settings (consent
    to store passwords, start from last) plus the remote source each form
    was last pulled from.
    """

    def __init__(
        self,
        workspace: Path,
        channel: EventChannel,
        app_prefs: PreferenceStore,
        session_prefs: PreferenceStore,
        registry: Optional[TransferRegistry] = None,
        orchestrator: Optional[JobOrchestrator] = None,
        connection_factory: Optional[ConnectionFactory] = None,
        adapter_factory: AdapterFactory = create_adapter,
        on_error: Optional[Callable[[UnitFailure], None]] = None,
    ):
        """
        Initialize pull service.

        Args:
            workspace: Directory pulled forms are installed into
            channel: Event channel shared with observers
            app_prefs: Application-wide preferences
            session_prefs: Preferences of this pull session
            registry: Forms registry (optional, creates an empty one if None)
            orchestrator: Job orchestrator (optional, creates one if None)
            connection_factory: SSH connection factory for remote sources
            adapter_factory: Builds a validated adapter from a Source
            on_error: Called with each unit failure of a batch
        """
        self.workspace = Path(workspace).expanduser()
        self.channel = channel
        self.app_prefs = app_prefs
        self.session_prefs = session_prefs
        self.registry = registry if registry is not None else TransferRegistry(TransferConfiguration())
        self.orchestrator = orchestrator if orchestrator is not None else JobOrchestrator(channel)
        self.connection_factory = connection_factory
        self.adapter_factory = adapter_factory
        self.on_error = on_error

        self.source: Optional[Source] = None
        self.adapter: Optional[SourceAdapter] = None
        self._batch: Optional[BatchHandle] = None

        self.registry.attach(channel)
        self.registry.on_successful_transfer(self._remember_source_of)

    # ------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------

    @property
    def store_passwords(self) -> bool:
        return _flag(self.app_prefs, STORE_PASSWORDS_CONSENT_KEY)

    @property
    def start_from_last(self) -> bool:
        return _flag(self.app_prefs, START_FROM_LAST_KEY)

    # ------------------------------------------------------------
    # Source lifecycle
    # ------------------------------------------------------------

    def restore(self) -> Optional[Source]:
        """
        Select the source saved in the session preferences, if any.

        A saved source that no longer validates is forgotten; one whose host
        can't be reached right now is kept for the next attempt.
        """
        source = Source.read_from_prefs(self.session_prefs)
        if source is None:
            return None
        try:
            self.select_source(source)
        except SourceValidationError as e:
            logger.warning("Saved source %s is not usable anymore: %s", source.describe(), e)
            clear_stored_prefs(self.session_prefs)
            return None
        except ConnectionError as e:
            logger.warning("Saved source %s is unreachable: %s", source.describe(), e)
            return None
        return source

    def select_source(self, source: Source) -> List[FormRecord]:
        """
        Switch to a source and load its forms.

        Forms of a previously selected, different source are forgotten;
        selecting the same source again keeps selection and history.

        Raises:
            SourceValidationError: If the source is invalid; nothing changes
            ConnectionError: If a remote source can't be reached; nothing changes
            FormPullError: If a pull is running
        """
        if self.is_pulling():
            raise FormPullError("Can't change source while a pull is running")

        adapter = self.adapter_factory(
            source,
            self.workspace,
            self.connection_factory,
            self.registry.default_configuration,
        )

        if self.source is not None and self.source != source:
            self.registry.clear()
        if self.adapter is not adapter:
            self._close_adapter()
        self.source = source
        self.adapter = adapter
        source.store_in_prefs(self.session_prefs, self.store_passwords)
        logger.info("Selected source %s", adapter.describe())
        return self.load_forms()

    def load_forms(self) -> List[FormRecord]:
        """Enumerate the source's forms into the registry"""
        adapter = self._require_adapter()
        try:
            forms = adapter.enumerate()
        except Exception:
            logger.warning("Unable to load form list from %s", adapter.describe(), exc_info=True)
            raise
        self.registry.merge(forms)
        return list(self.registry)

    def reload(self) -> List[FormRecord]:
        """
        Enumerate again, when the source supports it.

        Raises:
            FormPullError: If the source can't be reloaded
        """
        adapter = self._require_adapter()
        if not adapter.can_be_reloaded():
            raise FormPullError(f"{adapter.describe()} can't be reloaded")
        return self.load_forms()

    def reset(self) -> None:
        """Forget the source and its forms"""
        if self.is_pulling():
            raise FormPullError("Can't reset while a pull is running")
        self.registry.clear()
        self._close_adapter()
        self.source = None
        self.adapter = None
        clear_stored_prefs(self.session_prefs)
        logger.info("Pull session reset")

    # ------------------------------------------------------------
    # Pulling
    # ------------------------------------------------------------

    def can_pull(self) -> bool:
        return self.adapter is not None and self.registry.some_selected() and not self.is_pulling()

    def is_pulling(self) -> bool:
        return self._batch is not None and not self._batch.is_done()

    def pull(self) -> BatchHandle:
        """
        Pull every selected form.

        Returns:
            Handle of the running batch

        Raises:
            OrchestratorMisuseError: If a pull is already running
        """
        adapter = self._require_adapter()
        start_from_last = self.start_from_last
        units = [
            adapter.build_pull_operation(record, start_from_last=start_from_last)
            for record in self.registry.get_selected_forms()
        ]
        self._batch = self.orchestrator.launch_async(units, self._on_unit_error)
        return self._batch

    def cancel(self) -> None:
        """Cancel the running pull and mark every selected form as cancelled"""
        if self._batch is None:
            return
        self._batch.cancel()
        for record in self.registry.get_selected_forms():
            self.channel.publish(TransferEvent.progress(record.form_id, CANCELLED_BY_USER))

    def wait(self, timeout: Optional[float] = None) -> bool:
        if self._batch is None:
            return True
        return self._batch.wait_for_completion(timeout)

    def close(self) -> None:
        """Release the source's connections, keeping the session preferences"""
        self._close_adapter()

    # ------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------

    def revoke_password_consent(self) -> None:
        """Forget the consent and every stored source, passwords included"""
        self.app_prefs.put(STORE_PASSWORDS_CONSENT_KEY, "false")
        for preferences in (self.session_prefs, self.app_prefs):
            preferences.remove_all([key for key in preferences.keys() if is_pref_key(key)])

    def source_of(self, form_id: str) -> Optional[Source]:
        """Remote source a form was last pulled from"""
        return Source.read_from_prefs(self.app_prefs, form_id)

    # ------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------

    def _require_adapter(self) -> SourceAdapter:
        if self.adapter is None:
            raise FormPullError("No source selected")
        return self.adapter

    def _remember_source_of(self, form_id: str, timestamp: datetime) -> None:
        if self.source is not None and self.source.is_remote:
            self.source.store_in_prefs(self.app_prefs, self.store_passwords, form_id)

    def _on_unit_error(self, failure: UnitFailure) -> None:
        if self.on_error is not None:
            self.on_error(failure)

    def _close_adapter(self) -> None:
        close = getattr(self.adapter, "close", None)
        if close is not None:
            close()
