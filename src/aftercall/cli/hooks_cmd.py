"""Hook declaration CLI commands: validate and list."""

from pathlib import Path

import click
import yaml

from aftercall.config import HookErrorPolicy
from aftercall.hooks.types import HookBinding
from aftercall.metadata.loader import HookDeclarationLoader
from aftercall.metadata.validator import ValidationIssue, validate_path


def _load(path: Path) -> HookDeclarationLoader:
    loader = HookDeclarationLoader(path)
    try:
        loader.load_all()
    except (ValueError, yaml.YAMLError) as e:
        click.echo(click.style(f"\nSemantic validation failed: {e}", fg="red"), err=True)
        raise SystemExit(1)
    return loader


def _report(issues: list[ValidationIssue]) -> None:
    """Print every issue; exit non-zero when any of them is an error."""
    for issue in issues:
        click.echo(click.style(str(issue), fg="red" if issue.is_error else "yellow"))

    error_count = sum(1 for issue in issues if issue.is_error)
    warning_count = len(issues) - error_count
    if error_count:
        summary = f"\n{error_count} schema error(s) found"
        if warning_count:
            summary += f", {warning_count} warning(s)"
        click.echo(click.style(summary, fg="red", bold=True))
        raise SystemExit(1)
    if warning_count:
        click.echo(click.style(f"{warning_count} warning(s) found.", fg="yellow"))


def _policy_label(binding: HookBinding) -> str:
    if binding.continue_on_error is None:
        return "global policy"
    if binding.continue_on_error:
        return HookErrorPolicy.CONTINUE_WITH_NEXT_HOOK.value
    return HookErrorPolicy.STOP_EXECUTING_HOOKS.value


@click.group()
def hooks():
    """Hook declaration commands."""
    pass


@hooks.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Treat warnings as errors.",
)
def validate(path: Path, strict: bool):
    """Validate hook declaration YAML files against the JSON Schema."""
    _report(validate_path(path, strict=strict))

    # Schema-valid files can still conflict with each other or fail to parse
    loader = _load(path)

    operations = loader.list_operations()
    click.echo(f"\nLoaded {len(operations)} operations:")
    for key in operations:
        metadata = loader.get_operation(key)
        click.echo(f"  ✓ {key} ({len(metadata.bindings)} hooks)")

    click.echo(click.style("\nAll hook declarations are valid.", fg="green", bold=True))


@hooks.command("list")
@click.argument("path", type=click.Path(exists=True, path_type=Path))
def list_cmd(path: Path):
    """List declared operations and their hooks in execution order."""
    loader = _load(path)

    operations = loader.list_operations()
    if not operations:
        click.echo("No hook declarations found.")
        return

    for key in operations:
        metadata = loader.get_operation(key)
        flags = []
        if metadata.guard:
            flags.append(f"when {metadata.guard}")
        if metadata.skip_in_production:
            flags.append("skipped in production")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        click.echo(click.style(f"{key}{suffix}", bold=True))

        for binding in sorted(metadata.bindings, key=lambda b: b.order):
            click.echo(
                f"  {binding.order:>3}  {binding.display_name}"
                f"  ({_policy_label(binding)})"
            )

    click.echo(f"\n{len(operations)} operation(s)")
