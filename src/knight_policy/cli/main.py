"""CLI entry point for knight-policy-core.

Invoked as::

    knight-policy [OPTIONS] COMMAND [ARGS]...

or during development::

    python -m knight_policy.cli.main

Commands
--------
- version         Show version information
- roles           List the predefined roles and their action patterns
- match-action    Test a concrete action against an action pattern
- match-resource  Test a concrete resource against a resource pattern
- subject         Parse a subject URN and show its canonical form
- check           List the loaded policies that cover a request

Exit codes: 0 on match, 1 on no match, 2 on invalid input.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn

import click
import yaml
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from knight_policy.config import ConfigLoader, KnightPolicyConfig
from knight_policy.errors import ValidationError
from knight_policy.policy.policy_loader import PolicyConfigError, PolicyLoader
from knight_policy.types.action import ActionPattern
from knight_policy.types.resource import ResourcePattern
from knight_policy.types.roles import PredefinedRole
from knight_policy.types.subject import SubjectRef

console = Console()
err_console = Console(stderr=True)

EXIT_MATCH = 0
EXIT_NO_MATCH = 1
EXIT_INVALID = 2


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {message}")
    sys.exit(EXIT_INVALID)


def _print_verdict(matched: bool) -> None:
    verdict = "[green]MATCH[/green]" if matched else "[red]NO MATCH[/red]"
    console.print(verdict)
    sys.exit(EXIT_MATCH if matched else EXIT_NO_MATCH)


# ---------------------------------------------------------------------------
# Root command group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="knight-policy-core")
def cli() -> None:
    """Knight policy CLI: test action, resource and subject matching."""


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from knight_policy import __version__

    console.print(
        Panel(
            f"[bold]knight-policy-core[/bold]  v[cyan]{__version__}[/cyan]\n"
            "Permission-matching core for banking administration policies.",
            title="Version",
            border_style="blue",
        )
    )


# ---------------------------------------------------------------------------
# roles
# ---------------------------------------------------------------------------


@cli.command(name="roles")
def roles_command() -> None:
    """List the predefined roles and the action patterns they grant."""
    table = Table(title="Predefined Roles", box=box.SIMPLE)
    table.add_column("Role", style="cyan")
    table.add_column("Actions", style="magenta")
    table.add_column("Description")
    for role in PredefinedRole:
        table.add_row(
            role.role_name,
            ", ".join(p.value for p in role.action_patterns),
            role.description,
        )
    console.print(table)


# ---------------------------------------------------------------------------
# match-action / match-resource / subject
# ---------------------------------------------------------------------------


@cli.command(name="match-action")
@click.argument("pattern")
@click.argument("action")
def match_action_command(pattern: str, action: str) -> None:
    """Test whether ACTION is covered by the action PATTERN."""
    try:
        action_pattern = ActionPattern.parse(pattern)
        concrete = ActionPattern.parse(action)
    except ValidationError as exc:
        _fail(str(exc))
    _print_verdict(action_pattern.matches(concrete))


@cli.command(name="match-resource")
@click.argument("pattern")
@click.argument("resource")
def match_resource_command(pattern: str, resource: str) -> None:
    """Test whether RESOURCE is covered by the resource PATTERN."""
    try:
        resource_pattern = ResourcePattern.parse(pattern)
    except ValidationError as exc:
        _fail(str(exc))
    if len(resource_pattern.sub_patterns) > 1:
        console.print(f"  Patterns: {', '.join(resource_pattern.patterns())}")
    _print_verdict(resource_pattern.matches(resource))


@cli.command(name="subject")
@click.argument("urn")
def subject_command(urn: str) -> None:
    """Parse a subject URN and print its canonical form."""
    try:
        subject = SubjectRef.from_urn(urn)
    except ValidationError as exc:
        _fail(str(exc))
    console.print(f"  Kind:       [cyan]{subject.kind.value}[/cyan]")
    console.print(f"  Identifier: [cyan]{subject.identifier}[/cyan]")
    console.print(f"  URN:        [bold]{subject.to_urn()}[/bold]")


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@cli.command(name="check")
@click.option(
    "--policies",
    "-p",
    "policy_paths",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Policy document(s) to load. Adds to those named in --config.",
)
@click.option(
    "--subject",
    "-s",
    "subject_urns",
    multiple=True,
    required=True,
    help="Acting subject URN, e.g. role:APPROVER. Repeat for each role held.",
)
@click.option("--action", "-a", "action_text", required=True, help="Concrete action.")
@click.option("--resource", "-r", "resource_id", default=None, help="Concrete resource identifier.")
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="Path to knight-policy.yaml.",
)
def check_command(
    policy_paths: tuple[str, ...],
    subject_urns: tuple[str, ...],
    action_text: str,
    resource_id: str | None,
    config_path: str | None,
) -> None:
    """List the policies that cover a request."""
    loader = ConfigLoader()
    try:
        config: KnightPolicyConfig = (
            loader.load(Path(config_path)) if config_path else loader.defaults()
        )
    except (ValueError, yaml.YAMLError) as exc:
        _fail(f"Invalid configuration: {exc}")
    config.logging.apply()

    try:
        subjects = [SubjectRef.from_urn(urn) for urn in subject_urns]
        action = ActionPattern.parse(action_text)
        policy_loader = PolicyLoader(strict=config.strict)
        policy_set = policy_loader.load_many([*config.policy_files, *policy_paths])
        if config.include_system_policies:
            policy_set = policy_set.with_system_policies()
    except (ValidationError, PolicyConfigError, FileNotFoundError) as exc:
        _fail(str(exc))

    covering = policy_set.covering(subjects, action, resource_id)
    target = f"{action.value} on {resource_id}" if resource_id else action.value
    if not covering:
        console.print(Panel(f"[red]NOT COVERED[/red]  {target}", title="Policy Check", border_style="blue"))
        sys.exit(EXIT_NO_MATCH)

    console.print(Panel(f"[green]COVERED[/green]  {target}", title="Policy Check", border_style="blue"))
    table = Table(title="Covering Policies", box=box.SIMPLE)
    table.add_column("Policy", style="cyan")
    table.add_column("Subject", style="magenta")
    table.add_column("Action")
    table.add_column("Resource")
    table.add_column("Effect")
    for policy in covering:
        effect_style = "green" if policy.effect.value == "ALLOW" else "red"
        table.add_row(
            policy.id,
            policy.subject.to_urn(),
            policy.action.value,
            policy.resource.value,
            f"[{effect_style}]{policy.effect.value}[/{effect_style}]",
        )
    console.print(table)
    sys.exit(EXIT_MATCH)


if __name__ == "__main__":
    cli()
