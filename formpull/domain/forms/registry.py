"""
Transfer registry - the ordered ledger of transferable forms
"""
import threading
from datetime import datetime
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from ...core.constants import CUSTOM_CONF_PREFIX, LAST_TRANSFER_PREFIX
from ...core.events import EventChannel, FORM_EVENT_KINDS, Subscription, TransferEvent
from ...core.exceptions import IndexOutOfRange, NotFoundError
from ...core.interfaces import PreferenceStore
from ...core.logging import get_logger
from ...core.utils import format_timestamp, parse_timestamp
from .models import FormDescriptor, FormRecord, StatusEntry, TransferConfiguration

logger = get_logger(__name__)

SuccessListener = Callable[[str, datetime], None]
ConfigurationPolicy = Callable[[TransferConfiguration], bool]


def build_custom_conf_prefix(form_id: str) -> str:
    """Preference key prefix of a form's configuration options"""
    return f"{CUSTOM_CONF_PREFIX}{form_id}."


def build_custom_conf_keys(form_id: str) -> List[str]:
    """Exact preference keys of a form's configuration options"""
    prefix = build_custom_conf_prefix(form_id)
    return [f"{prefix}{name}" for name in TransferConfiguration.option_names()]


def build_last_transfer_key(form_id: str) -> str:
    """Preference key of a form's last successful transfer"""
    return f"{LAST_TRANSFER_PREFIX}{form_id}"


class TransferRegistry:
    """
    Registry of transferable forms.

    Owns its FormRecords exclusively. Mutations (merge, selection,
    configuration, status) are serialized by one re-entrant lock, so a
    status entry and the timestamp update of the same success event are
    never observed separately. Success listeners run under that lock, on
    the thread that appended the status.
    """

    def __init__(
        self,
        default_configuration: Optional[TransferConfiguration] = None,
        forms: Iterable[FormDescriptor] = (),
        configuration_policy: Optional[ConfigurationPolicy] = None,
    ):
        """
        Initialize registry.

        Args:
            default_configuration: Configuration used by forms without override
            forms: Initial forms, merged in order
            configuration_policy: Validity predicate for the default configuration
        """
        self.default_configuration = default_configuration or TransferConfiguration()
        self.configuration_policy = configuration_policy or TransferConfiguration.is_valid
        self._lock = threading.RLock()
        self._records: List[FormRecord] = []
        self._index: Dict[str, FormRecord] = {}
        self._success_listeners: List[SuccessListener] = []
        self._preferences: Optional[PreferenceStore] = None
        self.merge(forms)

    # ------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------

    @classmethod
    def load(
        cls,
        default_configuration: TransferConfiguration,
        forms: Iterable[FormDescriptor],
        preferences: PreferenceStore,
        configuration_policy: Optional[ConfigurationPolicy] = None,
    ) -> "TransferRegistry":
        """
        Build a registry and restore each form's configuration and last
        transfer timestamp from preferences.

        The returned registry keeps writing configuration changes and
        successful transfer timestamps back to the same store, and restores
        forms merged later on the same way.

        Args:
            default_configuration: Configuration used by forms without override
            forms: Discovered forms
            preferences: Store holding exportConf.* and exportDateTime.* keys

        Returns:
            Loaded registry
        """
        registry = cls(default_configuration, (), configuration_policy)
        registry._preferences = preferences
        registry.merge(forms)
        registry.on_successful_transfer(registry._store_last_transfer)
        return registry

    def _restore(self, record: FormRecord) -> None:
        preferences = self._preferences
        prefix = build_custom_conf_prefix(record.form_id)
        values = {}
        for key in build_custom_conf_keys(record.form_id):
            value = preferences.get(key)
            if value is not None:
                values[key] = value
        if values:
            record.configuration = TransferConfiguration.from_prefs(prefix, values)

        raw_timestamp = preferences.get(build_last_transfer_key(record.form_id))
        timestamp = parse_timestamp(raw_timestamp)
        if raw_timestamp and timestamp is None:
            logger.warning(
                "Ignoring malformed last transfer timestamp %r for %s",
                raw_timestamp,
                record.form_id,
            )
        record.last_transfer = timestamp

    # ------------------------------------------------------------
    # Ordered access
    # ------------------------------------------------------------

    def merge(self, forms: Iterable[FormDescriptor]) -> None:
        """
        Merge discovered forms.

        Known ids only get their descriptive attributes refreshed; their
        selection, configuration, history and last transfer survive. New
        ids are appended in incoming order (restored from preferences when
        the registry was loaded from a store).
        """
        with self._lock:
            added = 0
            for descriptor in forms:
                existing = self._index.get(descriptor.form_id)
                if existing is not None:
                    existing.descriptor = descriptor
                    continue
                record = FormRecord(descriptor=descriptor)
                if self._preferences is not None:
                    self._restore(record)
                self._records.append(record)
                self._index[descriptor.form_id] = record
                added += 1
            if added:
                logger.debug("Merged %d new forms, registry now holds %d", added, len(self._records))

    def get(self, index: int) -> FormRecord:
        with self._lock:
            if not 0 <= index < len(self._records):
                raise IndexOutOfRange(
                    f"Form index {index} out of range [0, {len(self._records)})"
                )
            return self._records[index]

    def find(self, form_id: str) -> FormRecord:
        with self._lock:
            record = self._index.get(form_id)
        if record is None:
            raise NotFoundError(f"Unknown form: {form_id}")
        return record

    def size(self) -> int:
        with self._lock:
            return len(self._records)

    def __len__(self) -> int:
        return self.size()

    def __iter__(self) -> Iterator[FormRecord]:
        with self._lock:
            return iter(list(self._records))

    def is_empty(self) -> bool:
        return self.size() == 0

    def clear(self) -> None:
        """Forget every form"""
        with self._lock:
            self._records.clear()
            self._index.clear()

    # ------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------

    def get_selected_forms(self) -> List[FormRecord]:
        with self._lock:
            return [record for record in self._records if record.selected]

    def set_selected(self, record: FormRecord, selected: bool = True) -> None:
        with self._lock:
            self._own(record).selected = selected

    def select_all(self) -> None:
        with self._lock:
            for record in self._records:
                record.selected = True

    def clear_all(self) -> None:
        with self._lock:
            for record in self._records:
                record.selected = False

    def some_selected(self) -> bool:
        with self._lock:
            return any(record.selected for record in self._records)

    def none_selected(self) -> bool:
        return not self.some_selected()

    def all_selected(self) -> bool:
        with self._lock:
            return bool(self._records) and all(record.selected for record in self._records)

    # ------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------

    def put_configuration(self, record: FormRecord, configuration: TransferConfiguration) -> None:
        with self._lock:
            record = self._own(record)
            record.configuration = configuration
            if self._preferences is not None:
                self._preferences.remove_all(build_custom_conf_keys(record.form_id))
                self._preferences.put_all(configuration.as_prefs(build_custom_conf_prefix(record.form_id)))

    def remove_configuration(self, record: FormRecord) -> None:
        with self._lock:
            record = self._own(record)
            record.configuration = None
            if self._preferences is not None:
                self._preferences.remove_all(build_custom_conf_keys(record.form_id))

    def has_configuration(self, record: FormRecord) -> bool:
        with self._lock:
            return self._own(record).configuration is not None

    def get_configuration(self, form_id: str) -> TransferConfiguration:
        """
        Configuration that applies to a form: its override, or the default.

        Raises:
            NotFoundError: If the form is unknown
        """
        custom = self.get_custom_configuration(form_id)
        return custom if custom is not None else self.default_configuration

    def get_custom_configuration(self, form_id: str) -> Optional[TransferConfiguration]:
        return self.find(form_id).configuration

    def get_custom_configurations(self) -> Dict[str, TransferConfiguration]:
        with self._lock:
            return {
                record.form_id: record.configuration
                for record in self._records
                if record.configuration is not None
            }

    def all_selected_forms_have_configuration(self) -> bool:
        """Every selected form has an override, or the default one is valid"""
        default_is_valid = self.configuration_policy(self.default_configuration)
        return all(
            record.configuration is not None or default_is_valid
            for record in self.get_selected_forms()
        )

    # ------------------------------------------------------------
    # Status
    # ------------------------------------------------------------

    def append_status(self, event: TransferEvent) -> None:
        """
        Append an event to its form's status history.

        Success events also set the form's last transfer timestamp and
        notify every success listener once, in registration order.

        Raises:
            NotFoundError: If the event's form is unknown
        """
        with self._lock:
            record = self.find(event.form_id)
            record._history.append(StatusEntry(event.timestamp, event.format()))
            if not event.is_success:
                return

            if record.last_transfer is not None and event.timestamp < record.last_transfer:
                logger.warning(
                    "Success event for %s is older than its last transfer (%s < %s), keeping the latter",
                    record.form_id,
                    format_timestamp(event.timestamp),
                    format_timestamp(record.last_transfer),
                )
            else:
                record.last_transfer = event.timestamp

            for listener in list(self._success_listeners):
                try:
                    listener(record.form_id, event.timestamp)
                except Exception:
                    logger.exception("Success listener failed for %s", record.form_id)

    def get_last_transfer(self, record: FormRecord) -> Optional[datetime]:
        with self._lock:
            return self._own(record).last_transfer

    def on_successful_transfer(self, listener: SuccessListener) -> None:
        """Register a listener called with (form_id, event timestamp) on every success"""
        with self._lock:
            self._success_listeners.append(listener)

    def attach(self, channel: EventChannel) -> Subscription:
        """Consume form events published on a channel"""
        return channel.subscribe(FORM_EVENT_KINDS, self._on_event)

    def _on_event(self, event: TransferEvent) -> None:
        try:
            self.append_status(event)
        except NotFoundError:
            logger.debug("Dropping %s event for unknown form %s", event.kind.value, event.form_id)

    # ------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------

    def _own(self, record: FormRecord) -> FormRecord:
        owned = self._index.get(record.form_id)
        if owned is None:
            raise NotFoundError(f"Unknown form: {record.form_id}")
        return owned

    def _store_last_transfer(self, form_id: str, timestamp: datetime) -> None:
        if self._preferences is None:
            return
        # An older success never rolls the stored value back
        stored = self._index[form_id].last_transfer or timestamp
        self._preferences.put(build_last_transfer_key(form_id), format_timestamp(stored))
