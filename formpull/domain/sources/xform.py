"""
XForm definition and submission parsing
"""
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional

from ...core.exceptions import TransferError
from ..forms.models import FormDescriptor

XFORMS_NS = "http://www.w3.org/2002/xforms"
XHTML_NS = "http://www.w3.org/1999/xhtml"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_form_definition(content: bytes, file_path: Optional[Path] = None) -> FormDescriptor:
    """
    Read the identity of a form from its XForm definition.

    The form id is the ``id`` attribute of the primary instance's root
    element (its tag name when the attribute is missing), the name is the
    ``h:title`` text, and the form is encrypted when its submission element
    carries a ``base64RsaPublicKey``.

    Args:
        content: Raw XForm document
        file_path: Where the definition was read from

    Returns:
        FormDescriptor of the form

    Raises:
        TransferError: If the document is not a usable XForm
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise TransferError(f"Invalid form definition {file_path}: {e}") from e

    instance = root.find(f".//{{{XFORMS_NS}}}instance")
    if instance is None or len(instance) == 0:
        raise TransferError(f"Form definition {file_path} has no primary instance")
    data = instance[0]
    form_id = data.get("id") or _local_name(data.tag)

    title = root.find(f".//{{{XHTML_NS}}}title")
    if title is not None and title.text and title.text.strip():
        name = title.text.strip()
    else:
        name = form_id

    is_encrypted = any(
        _local_name(element.tag) == "submission" and element.get("base64RsaPublicKey")
        for element in root.iter()
    )

    return FormDescriptor(
        form_id=form_id,
        name=name,
        file_path=file_path,
        is_encrypted=is_encrypted,
    )


def parse_submission_form_id(content: bytes) -> Optional[str]:
    """Form id a submission belongs to, None if the document can't be read"""
    try:
        root = ET.fromstring(content)
    except ET.ParseError:
        return None
    return root.get("id") or _local_name(root.tag)
