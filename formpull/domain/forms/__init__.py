"""
Forms domain module
"""
from .models import (
    FormDescriptor,
    FormRecord,
    StatusEntry,
    TransferConfiguration,
)
from .registry import (
    TransferRegistry,
    build_custom_conf_keys,
    build_custom_conf_prefix,
    build_last_transfer_key,
)

__all__ = [
    "FormDescriptor",
    "FormRecord",
    "StatusEntry",
    "TransferConfiguration",
    "TransferRegistry",
    "build_custom_conf_keys",
    "build_custom_conf_prefix",
    "build_last_transfer_key",
]
