"""Load hook declarations from YAML files."""

import logging
from pathlib import Path
from typing import Any

import yaml

from aftercall.config import HookOptions
from aftercall.hooks.registry import HookMetadataRegistry
from aftercall.hooks.types import (
    HookBinding,
    HookMetadata,
    InjectedParameter,
    ParameterMapping,
    ReturnValueMapping,
)

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


class HookDeclarationLoader:
    """Loads operation hook declarations from a YAML file or directory.

    Example:
        loader = HookDeclarationLoader(Path("hooks"))
        loader.load_all()
        loader.register_all()
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.operations: dict[str, HookMetadata] = {}
        self.options: HookOptions | None = None
        self._sources: dict[str, Path] = {}

    def load_all(self) -> None:
        """Load every declaration file.

        Raises:
            FileNotFoundError: If the path does not exist
            ValueError: If a declaration is malformed or an operation is
                declared twice
        """
        for yaml_file in self.declaration_files():
            self._load_file(yaml_file)

    def declaration_files(self) -> list[Path]:
        """The YAML files this loader reads, in load order."""
        if not self.path.exists():
            raise FileNotFoundError(f"Hook declarations not found at {self.path}")
        if self.path.is_file():
            return [self.path]
        return sorted(p for p in self.path.iterdir() if p.suffix in YAML_SUFFIXES)

    def register_all(
        self, registry: type[HookMetadataRegistry] = HookMetadataRegistry
    ) -> list[str]:
        """Register every loaded operation and return their keys."""
        for metadata in self.operations.values():
            registry.register(metadata)
        return sorted(self.operations)

    def get_operation(self, key: str) -> HookMetadata | None:
        return self.operations.get(key)

    def list_operations(self) -> list[str]:
        return sorted(self.operations)

    def _load_file(self, yaml_file: Path) -> None:
        with open(yaml_file) as f:
            data = yaml.safe_load(f)
        if not data:
            logger.debug("Skipping empty hook declaration file %s", yaml_file)
            return
        if not isinstance(data, dict):
            raise ValueError(f"{yaml_file}: expected a mapping at the top level")

        if "options" in data:
            if self.options is not None:
                logger.warning("Hook options in %s replace options loaded earlier", yaml_file)
            self.options = HookOptions.from_dict(data["options"] or {})

        for index, entry in enumerate(data.get("operations") or []):
            try:
                metadata = self._resolve_operation(entry)
            except (KeyError, TypeError) as e:
                raise ValueError(f"{yaml_file}: invalid operation #{index}: {e}") from e

            key = metadata.operation_key
            if key in self.operations:
                raise ValueError(
                    f"Operation '{key}' is declared in both "
                    f"{self._sources[key]} and {yaml_file}"
                )
            self.operations[key] = metadata
            self._sources[key] = yaml_file

        logger.debug("Loaded hook declarations from %s", yaml_file)

    def _resolve_operation(self, data: dict[str, Any]) -> HookMetadata:
        """Resolve one ``operations`` entry into HookMetadata."""
        key = data["operation"]
        if "." not in key:
            raise ValueError(f"Operation '{key}' must be a dotted path (module.Class.method)")

        mappings = [
            ParameterMapping(source=m["source"], target=m["target"])
            for m in data.get("mapParameters", [])
        ]
        injections = [
            InjectedParameter(target=i["target"], value=i.get("value"))
            for i in data.get("injectParameters", [])
        ]
        return_values = [ReturnValueMapping(target=t) for t in data.get("mapReturnValue", [])]

        targets = [m.target for m in mappings] + [i.target for i in injections]
        duplicates = sorted({t for t in targets if targets.count(t) > 1})
        if duplicates:
            raise ValueError(
                f"Operation '{key}' binds handler parameter(s) more than once: "
                f"{', '.join(duplicates)}"
            )

        bindings = [HookBinding.from_dict(b) for b in data.get("callAfter", [])]

        return HookMetadata.build(
            operation_key=key,
            bindings=bindings,
            mappings=mappings,
            injections=injections,
            return_values=return_values,
            guard=data.get("when"),
            skip_in_production=data.get("skipInProduction", False),
        )
