"""YAML hook declarations: loading and schema validation."""

from aftercall.metadata.loader import HookDeclarationLoader
from aftercall.metadata.validator import (
    ValidationIssue,
    validate_declarations_dir,
    validate_path,
    validate_yaml_file,
)

__all__ = [
    "HookDeclarationLoader",
    "ValidationIssue",
    "validate_declarations_dir",
    "validate_path",
    "validate_yaml_file",
]
