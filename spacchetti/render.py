"""
Rendering functions for spacchetti output.

Error rendering is pure: each function returns the full explanation as a
string and leaves printing to the caller. The table functions print
decoded configs with rich.
"""

from typing import List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .domain import Config
from .errors import (
    ConfigIsNotRecord, ConfigReadError, KeyIsMissing, PackagesIsNotRecord, WrongPackageType,
)
from .evaluator import EvaluationError
from .expr import TypeCheckError, pretty

console = Console()

ERROR = "\x1b[1;31mError\x1b[0m"
MARKER = "↳ "
MANIFEST_NAME = "spacchetti.dhall"


def _explain(explanation: str, subject: str, payload: str, manifest: str) -> str:
    lines = [
        f"{ERROR}: Error while reading {manifest}:",
        "",
        f"Explanation: {explanation}",
        "",
        f"{subject}:",
        "",
        MARKER + payload,
    ]
    return "\n".join(lines)


def render_error(err: ConfigReadError, manifest: str = MANIFEST_NAME) -> str:
    """
    Explain a manifest decoding failure.

    Args:
        err: The failure to explain
        manifest: Manifest name shown in the banner

    Returns:
        Multi-line explanation, ending with the offending expression or key
    """
    if isinstance(err, WrongPackageType):
        return _explain(
            "The outermost record must only contain packages.",
            "The following field was not a package",
            pretty(err.expr, indent=len(MARKER)),
            manifest,
        )
    if isinstance(err, PackagesIsNotRecord):
        return _explain(
            "The outermost value must be a record of packages.",
            "The record was",
            pretty(err.expr, indent=len(MARKER)),
            manifest,
        )
    if isinstance(err, ConfigIsNotRecord):
        return _explain(
            "The config should be a record.",
            "Its type is instead",
            pretty(err.type_expr, indent=len(MARKER)),
            manifest,
        )
    if isinstance(err, KeyIsMissing):
        return _explain(
            "the configuration is missing a required key",
            "The key missing is",
            err.key,
            manifest,
        )
    raise TypeError(f"Unknown config error: {type(err).__name__}")


def render_type_error(err: TypeCheckError, manifest: str = MANIFEST_NAME) -> str:
    """Explain a type error raised while inspecting the manifest."""
    payload = pretty(err.expr, indent=len(MARKER))
    subject = "The expression was"
    if err.expected is not None:
        payload = f"{payload}\n\n{MARKER}{pretty(err.expected, indent=len(MARKER))}"
        subject = "The expression and its expected type were"
    return _explain(err.message, subject, payload, manifest)


def render_evaluation_error(err: EvaluationError) -> str:
    """Explain a failure reported by the Dhall evaluator."""
    return "\n".join([
        f"{ERROR}: Error while evaluating {err.source}:",
        "",
        err.message,
    ])


def render_config(config: Config) -> None:
    """Print a summary of the project followed by its package table."""
    console.print(config.name, style="bold cyan", markup=False)
    deps = ", ".join(str(dep) for dep in config.dependencies) or "(none)"
    console.print(f"Dependencies: {escape(deps)}")
    console.print(f"Packages: {len(config.packages)}")
    render_packages_table(config)


def render_packages_table(config: Config, title: Optional[str] = None) -> None:
    """
    Render the package registry of a config as a table.

    Args:
        config: Decoded config
        title: Optional table title
    """
    if not config.packages:
        console.print("[yellow]No packages defined.[/yellow]")
        return

    table = Table(
        title=title,
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )
    table.add_column("Package", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Repository", style="blue")
    table.add_column("Dependencies", style="dim")

    direct = set(config.dependencies)
    for name, package in sorted(config.packages.items()):
        label = f"{name} *" if name in direct else str(name)
        deps: List[str] = [str(dep) for dep in package.dependencies]
        table.add_row(escape(label), escape(package.version), escape(package.repo), escape(", ".join(deps)))

    console.print(table)
