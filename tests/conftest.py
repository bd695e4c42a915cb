"""
Pytest configuration and fixtures for the formpull tests.

Provides form descriptors, preference stores, event channels and a Collect
storage directory laid out on disk.
"""

import pytest
from pathlib import Path
from typing import Callable, List

from formpull.core.events import EventChannel
from formpull.domain.forms import FormDescriptor, TransferConfiguration
from formpull.infrastructure.preferences import InMemoryPreferences


FORM_TEMPLATE = """<?xml version="1.0"?>
<h:html xmlns="http://www.w3.org/2002/xforms" xmlns:h="http://www.w3.org/1999/xhtml">
  <h:head>
    <h:title>{title}</h:title>
    <model>
      <instance>
        <data id="{form_id}" version="1"><name/><age/></data>
      </instance>
      {submission}
    </model>
  </h:head>
  <h:body/>
</h:html>
"""

SUBMISSION_TEMPLATE = """<?xml version="1.0"?>
<data id="{form_id}" version="1"><name>{name}</name><age>42</age></data>
"""


def write_form(forms_dir: Path, file_name: str, form_id: str, title: str, encrypted: bool = False) -> Path:
    """Write an XForm definition into a Collect forms folder"""
    submission = '<submission base64RsaPublicKey="MIIBIjANBgkq" />' if encrypted else ""
    path = forms_dir / file_name
    path.write_text(
        FORM_TEMPLATE.format(title=title, form_id=form_id, submission=submission),
        encoding="utf-8",
    )
    return path


def write_submission(instances_dir: Path, instance_name: str, form_id: str) -> Path:
    """Write a submission folder into a Collect instances folder"""
    submission_dir = instances_dir / instance_name
    submission_dir.mkdir(parents=True)
    (submission_dir / f"{instance_name}.xml").write_text(
        SUBMISSION_TEMPLATE.format(form_id=form_id, name=instance_name),
        encoding="utf-8",
    )
    (submission_dir / "photo.jpg").write_bytes(b"\xff\xd8\xff")
    return submission_dir


@pytest.fixture
def make_descriptors() -> Callable[[int], List[FormDescriptor]]:
    """Build n form descriptors with ids form-0 .. form-(n-1)"""
    def build(count: int) -> List[FormDescriptor]:
        return [FormDescriptor(form_id=f"form-{i}", name=f"Form {i}") for i in range(count)]
    return build


@pytest.fixture
def prefs() -> InMemoryPreferences:
    """Empty in-memory preference store"""
    return InMemoryPreferences()


@pytest.fixture
def channel() -> EventChannel:
    """Fresh event channel"""
    return EventChannel()


@pytest.fixture
def workspace(tmp_path) -> Path:
    """Workspace directory forms are pulled into"""
    path = tmp_path / "workspace"
    path.mkdir()
    return path


@pytest.fixture
def default_configuration(workspace) -> TransferConfiguration:
    """Valid default configuration installing into the workspace"""
    return TransferConfiguration(target_dir=workspace / "forms")


@pytest.fixture
def collect_dir(tmp_path) -> Path:
    """
    Collect storage directory with two forms.

    household has a media folder and two submissions, visit is encrypted
    and has one submission. A broken definition sits next to them.
    """
    root = tmp_path / "collect"
    forms_dir = root / "forms"
    instances_dir = root / "instances"
    forms_dir.mkdir(parents=True)
    instances_dir.mkdir()

    write_form(forms_dir, "Household.xml", "household", "Household survey")
    media_dir = forms_dir / "Household-media"
    media_dir.mkdir()
    (media_dir / "logo.png").write_bytes(b"\x89PNG")

    write_form(forms_dir, "Visit.xml", "visit", "Site visit", encrypted=True)
    (forms_dir / "broken.xml").write_text("<h:html", encoding="utf-8")
    (forms_dir / "notes.txt").write_text("not a form", encoding="utf-8")

    write_submission(instances_dir, "Household_2024-01-01_10-00-00", "household")
    write_submission(instances_dir, "Household_2024-01-02_10-00-00", "household")
    write_submission(instances_dir, "Visit_2024-01-03_09-30-00", "visit")
    return root
