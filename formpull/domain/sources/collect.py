"""
Collect storage layout - shared discovery and pull logic

A Collect storage directory holds form definitions under ``forms/``
(``<name>.xml`` plus an optional ``<name>-media/`` folder) and one folder
per submission under ``instances/``.
"""
import threading
from abc import abstractmethod
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from ...core.constants import (
    COLLECT_FORMS_DIR,
    COLLECT_INSTANCES_DIR,
    MEDIA_DIR_SUFFIX,
    WORKSPACE_FORMS_DIR,
)
from ...core.exceptions import SourceValidationError, TransferError
from ...core.interfaces import SourceAdapter
from ...core.logging import get_logger
from ...core.utils import safe_dir_name
from ..forms.models import FormDescriptor, FormRecord, TransferConfiguration
from ..jobs.models import JobContext, UnitOfWork
from .storage import LocalStorage, SftpStorage
from .xform import parse_form_definition, parse_submission_form_id

logger = get_logger(__name__)

Storage = Union[LocalStorage, SftpStorage]


class CollectLayoutAdapter(SourceAdapter):
    """
    Base adapter for sources laid out like Collect's storage directory.

    Subclasses decide where the directory lives by providing storage
    sessions; discovery and pulling are shared.
    """

    def __init__(
        self,
        workspace: Path,
        default_configuration: Optional[TransferConfiguration] = None,
    ):
        """
        Initialize adapter.

        Args:
            workspace: Directory pulled forms are installed into
            default_configuration: Used for forms without configuration
        """
        self.workspace = Path(workspace).expanduser()
        self.default_configuration = default_configuration or TransferConfiguration()
        self.root: Optional[str] = None
        self._lock = threading.Lock()
        self._submissions: Optional[Dict[str, List[str]]] = None

    # ------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------

    @abstractmethod
    def open_storage(self) -> Storage:
        """Open a storage session; the caller closes it"""
        pass

    def _require_root(self) -> str:
        if self.root is None:
            raise SourceValidationError(f"{type(self).__name__} has no location set")
        return self.root

    # ------------------------------------------------------------
    # SourceAdapter
    # ------------------------------------------------------------

    def has_collect_layout(self, storage: Storage, location: str) -> bool:
        return storage.is_dir(location) and storage.is_dir(storage.join(location, COLLECT_FORMS_DIR))

    def open(self, location) -> "CollectLayoutAdapter":
        """
        Validate and adopt a location.

        Raises:
            SourceValidationError: If the location is not usable; the
                adapter is left untouched
        """
        if not self.validate(location):
            raise SourceValidationError(
                f"{location} doesn't look like a Collect storage directory"
            )
        with self._lock:
            self.root = str(location)
            self._submissions = None
        return self

    def enumerate(self) -> List[FormDescriptor]:
        root = self._require_root()
        storage = self.open_storage()
        try:
            forms_dir = storage.join(root, COLLECT_FORMS_DIR)
            forms = []
            seen = set()
            for entry in storage.listdir(forms_dir):
                if not entry.lower().endswith(".xml"):
                    continue
                path = storage.join(forms_dir, entry)
                if not storage.is_file(path):
                    continue
                try:
                    descriptor = parse_form_definition(storage.read_bytes(path), Path(path))
                except TransferError as e:
                    logger.warning("Skipping %s: %s", path, e)
                    continue
                if descriptor.form_id in seen:
                    logger.warning("Skipping %s: duplicate form id %s", path, descriptor.form_id)
                    continue
                seen.add(descriptor.form_id)
                forms.append(descriptor)
        finally:
            storage.close()

        with self._lock:
            self._submissions = None
        logger.info("Found %d forms at %s", len(forms), self.describe())
        return forms

    def build_pull_operation(self, record: FormRecord, start_from_last: bool = False) -> UnitOfWork:
        configuration = record.configuration or self.default_configuration
        if start_from_last and not configuration.start_from_last:
            configuration = replace(configuration, start_from_last=True)
        descriptor = record.descriptor
        last_transfer = record.last_transfer

        def pull(context: JobContext) -> None:
            self._pull(context, descriptor, configuration, last_transfer)

        return UnitOfWork(
            form_id=record.form_id,
            description=f"Pull of {record.name} from {self.describe()}",
            action=pull,
        )

    # ------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------

    def target_dir_for(self, descriptor: FormDescriptor, configuration: TransferConfiguration) -> Path:
        base = configuration.target_dir or (self.workspace / WORKSPACE_FORMS_DIR)
        return Path(base).expanduser() / safe_dir_name(descriptor.name)

    def _pull(
        self,
        context: JobContext,
        descriptor: FormDescriptor,
        configuration: TransferConfiguration,
        last_transfer: Optional[datetime],
    ) -> None:
        if descriptor.file_path is None:
            raise TransferError(f"Form {descriptor.form_id} has no definition file")

        target = self.target_dir_for(descriptor, configuration)
        storage = self.open_storage()
        try:
            context.progress("Start pulling form and submissions")
            context.checkpoint()

            form_file = str(descriptor.file_path)
            storage.download(form_file, target / f"{safe_dir_name(descriptor.name)}.xml")
            if configuration.include_media:
                self._pull_media(storage, form_file, target / "media")
            context.progress("Form installed")

            submissions = self._submissions_of(storage, descriptor.form_id)
            if configuration.start_from_last and last_transfer is not None:
                cutoff = last_transfer.timestamp()
                submissions = [s for s in submissions if storage.mtime(s) > cutoff]

            total = len(submissions)
            installed = 0
            for index, submission_dir in enumerate(submissions, start=1):
                context.checkpoint()
                if self._pull_submission(storage, submission_dir, target, configuration.overwrite):
                    installed += 1
                context.progress(fraction=index / total)

            context.success(f"Success, installed {installed} of {total} submissions")
        finally:
            storage.close()

    def _pull_media(self, storage: Storage, form_file: str, destination: Path) -> None:
        media_dir = form_file[: -len(".xml")] + MEDIA_DIR_SUFFIX
        if not storage.is_dir(media_dir):
            return
        for entry in storage.listdir(media_dir):
            path = storage.join(media_dir, entry)
            if storage.is_file(path):
                storage.download(path, destination / entry)

    def _pull_submission(self, storage: Storage, submission_dir: str, target: Path, overwrite: bool) -> bool:
        destination = target / "instances" / storage.basename(submission_dir)
        if destination.exists() and not overwrite:
            logger.debug("Submission %s already installed", destination.name)
            return False
        for entry in storage.listdir(submission_dir):
            path = storage.join(submission_dir, entry)
            if storage.is_file(path):
                storage.download(path, destination / entry)
        return True

    def _submissions_of(self, storage: Storage, form_id: str) -> List[str]:
        """Submission folders belonging to a form, indexed once per discovery"""
        with self._lock:
            if self._submissions is None:
                self._submissions = self._index_submissions(storage)
            return list(self._submissions.get(form_id, []))

    def _index_submissions(self, storage: Storage) -> Dict[str, List[str]]:
        instances_dir = storage.join(self._require_root(), COLLECT_INSTANCES_DIR)
        index: Dict[str, List[str]] = {}
        if not storage.is_dir(instances_dir):
            return index

        for entry in storage.listdir(instances_dir):
            submission_dir = storage.join(instances_dir, entry)
            submission_file = storage.join(submission_dir, f"{entry}.xml")
            if not storage.is_file(submission_file):
                continue
            form_id = parse_submission_form_id(storage.read_bytes(submission_file))
            if form_id is None:
                logger.warning("Skipping unreadable submission %s", submission_file)
                continue
            index.setdefault(form_id, []).append(submission_dir)
        return index
