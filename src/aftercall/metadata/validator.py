"""
metadata/validator.py: JSON Schema validation for aftercall hook declaration files.

Checks declaration YAML against the bundled schemas, then adds warnings for
documents that are legal but almost certainly mistakes.

Usage:
    from aftercall.metadata.validator import validate_path

    for issue in validate_path(Path("hooks"), strict=True):
        print(issue)
"""
from __future__ import annotations

import functools
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError
from referencing import Registry
from referencing.jsonschema import DRAFT202012

from aftercall.hooks.binder import CONTEXT_PARAMETER, RETURN_VALUE_PARAMETER
from aftercall.metadata.loader import YAML_SUFFIXES

logger = logging.getLogger(__name__)

_SCHEMAS_DIR = Path(__file__).parent / "schemas"
_DEFS_SCHEMA = "_defs.schema.json"
_HOOKS_SCHEMA = "hooks.schema.json"

_RESERVED_PARAMETERS = (RETURN_VALUE_PARAMETER, CONTEXT_PARAMETER)


@dataclass
class ValidationIssue:
    """A single validation finding for a hook declaration file.

    Attributes:
        file: The offending file (or directory)
        message: What is wrong
        path: Location inside the document, e.g. ``operations[0]/callAfter``
        severity: ``"error"`` or ``"warning"``
    """

    file: Path
    message: str
    path: str = ""
    severity: str = "error"

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"[{self.severity.upper()}] {self.file}{loc}: {self.message}"


@functools.lru_cache(maxsize=1)
def _declaration_validator() -> Draft202012Validator:
    """The hooks schema validator, with the shared definitions resolvable by $id."""
    schemas = {}
    for name in (_DEFS_SCHEMA, _HOOKS_SCHEMA):
        with (_SCHEMAS_DIR / name).open() as fh:
            schemas[name] = json.load(fh)

    registry = Registry().with_resources(
        (schema["$id"], DRAFT202012.create_resource(schema)) for schema in schemas.values()
    )
    return Draft202012Validator(schemas[_HOOKS_SCHEMA], registry=registry)


def _issue_path(error: ValidationError) -> str:
    """Render ``deque(['operations', 0, 'callAfter'])`` as ``operations[0]/callAfter``."""
    path = ""
    for part in error.absolute_path:
        path += f"[{part}]" if isinstance(part, int) else f"/{part}"
    return path.lstrip("/")


def _semantic_warnings(yaml_path: Path, doc: dict[str, Any]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for index, operation in enumerate(doc.get("operations") or []):
        location = f"operations[{index}]"

        if not operation.get("callAfter"):
            issues.append(
                ValidationIssue(
                    file=yaml_path,
                    message=(
                        f"Operation '{operation.get('operation', '?')}' "
                        "declares no callAfter handlers"
                    ),
                    path=location,
                    severity="warning",
                )
            )

        for inject_index, injection in enumerate(operation.get("injectParameters") or []):
            if injection.get("target") not in _RESERVED_PARAMETERS:
                continue
            issues.append(
                ValidationIssue(
                    file=yaml_path,
                    message=(
                        f"Injected parameter '{injection['target']}' is shadowed by "
                        "the reserved handler parameter of the same name"
                    ),
                    path=f"{location}/injectParameters[{inject_index}]",
                    severity="warning",
                )
            )
    return issues


def validate_yaml_file(yaml_path: Path) -> list[ValidationIssue]:
    """Validate one declaration file.

    Schema errors come first, sorted by location. Semantic warnings are
    only reported for a structurally valid document.
    """
    try:
        with yaml_path.open() as fh:
            doc = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        return [ValidationIssue(file=yaml_path, message=f"YAML parse error: {exc}")]

    if doc is None:
        return [
            ValidationIssue(file=yaml_path, message="File is empty or contains only whitespace")
        ]

    issues = [
        ValidationIssue(file=yaml_path, message=error.message, path=_issue_path(error))
        for error in _declaration_validator().iter_errors(doc)
    ]
    if issues:
        return sorted(issues, key=lambda issue: issue.path)
    return _semantic_warnings(yaml_path, doc)


def validate_declarations_dir(
    declarations_dir: Path,
    *,
    strict: bool = False,
) -> list[ValidationIssue]:
    """
    Validate all YAML files directly under *declarations_dir*.

    Args:
        declarations_dir: Directory holding ``*.yaml`` / ``*.yml`` declaration files.
        strict:           If ``True``, warnings are escalated to errors.

    Returns:
        A flat list of :class:`ValidationIssue` objects across all files.
    """
    if not declarations_dir.is_dir():
        return [
            ValidationIssue(
                file=declarations_dir,
                message=f"Hook declarations directory does not exist: {declarations_dir}",
            )
        ]

    yaml_files = sorted(p for p in declarations_dir.iterdir() if p.suffix in YAML_SUFFIXES)
    issues = [issue for yaml_file in yaml_files for issue in validate_yaml_file(yaml_file)]
    logger.debug(
        "Validated %d hook declaration file(s) in %s", len(yaml_files), declarations_dir
    )
    return escalate(issues) if strict else issues


def validate_path(path: Path, *, strict: bool = False) -> list[ValidationIssue]:
    """Validate a declaration file or a directory of them."""
    if path.is_dir():
        return validate_declarations_dir(path, strict=strict)
    issues = validate_yaml_file(path)
    return escalate(issues) if strict else issues


def escalate(issues: list[ValidationIssue]) -> list[ValidationIssue]:
    """Turn warnings into errors in place (strict mode)."""
    for issue in issues:
        if issue.severity == "warning":
            issue.severity = "error"
    return issues
