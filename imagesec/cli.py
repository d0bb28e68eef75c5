"""CLI interface for imagesec."""

import asyncio
import logging
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from imagesec.errors import ConfigurationError, PolicyViolationError, SecurityError
from imagesec.models.model_config import SecurityConfig
from imagesec.models.model_outcome import Outcome, OutcomeStatus
from imagesec.models.model_scan import ScanResult, ScanTool
from imagesec.pipeline import SecurityExecutor, resolve_output_path
from imagesec.sbom.attacher import verify_sbom
from imagesec.signing.failure_policy import verify_image
from imagesec.tools.installer import ToolInstaller
from imagesec.tools.registry import default_registry

T = TypeVar("T")

app = typer.Typer(
    name="imagesec",
    help="imagesec - Scan, sign and attest container images",
)

console = Console()

_SEVERITY_STYLES = {
    "critical": "red",
    "high": "orange1",
    "medium": "yellow",
    "low": "dim",
    "unknown": "dim",
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _load_config(config_path: Path | None) -> SecurityConfig:
    """Load a JSON security config, or defaults when no path is given."""
    if config_path is None:
        return SecurityConfig()
    if not config_path.is_file():
        console.print(f"[red]Error:[/red] Config file not found: {config_path}")
        raise typer.Exit(1)
    try:
        return SecurityConfig.model_validate_json(config_path.read_text())
    except ValueError as e:
        console.print(f"[red]Error:[/red] Invalid config file {config_path}: {e}")
        raise typer.Exit(1)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning pipeline errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except PolicyViolationError as e:
        console.print(f"[bold red]Blocked:[/bold red] {e}")
        raise typer.Exit(1)
    except SecurityError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _print_outcome(label: str, outcome: Outcome[Any]) -> None:
    if outcome.status == OutcomeStatus.SUCCEEDED:
        console.print(f"[green]{label}: succeeded[/green]")
    elif outcome.error is not None:
        console.print(f"[yellow]{label}: skipped ({outcome.error})[/yellow]")
    else:
        console.print(f"[dim]{label}: skipped[/dim]")


def _print_scan_result(result: ScanResult) -> None:
    summary = result.summary
    table = Table(title=f"Vulnerability Summary ({result.tool.value})", min_width=40)
    table.add_column("Severity", style="cyan")
    table.add_column("Count", justify="right")
    for severity, style in _SEVERITY_STYLES.items():
        table.add_row(severity.capitalize(), f"[{style}]{getattr(summary, severity)}[/{style}]")
    table.add_row("Total", str(summary.total))
    console.print(table)

    worst = [v for v in result.vulnerabilities if v.severity.value in ("critical", "high")][:10]
    if worst:
        detail = Table(title="Critical / High Findings")
        detail.add_column("ID", style="cyan")
        detail.add_column("Severity")
        detail.add_column("Package", style="blue")
        detail.add_column("Installed")
        detail.add_column("Fixed In", style="green")
        for vuln in worst:
            style = _SEVERITY_STYLES[vuln.severity.value]
            detail.add_row(
                vuln.id,
                f"[{style}]{vuln.severity.value}[/{style}]",
                vuln.package,
                vuln.version,
                vuln.fixed_in or "-",
            )
        console.print(detail)


@app.command()
def scan(
    image: str = typer.Argument(..., help="Image reference to scan"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Security config JSON file"),
    tools: list[ScanTool] = typer.Option(None, "--tool", "-t", help="Scanner to run (repeatable)"),
    fail_on: str = typer.Option(None, "--fail-on", help="Block at this severity or above"),
    warn_on: str = typer.Option(None, "--warn-on", help="Warn at this severity or above"),
    output: str = typer.Option(None, "--output", "-o", help="Write scan result JSON to this path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Scan an image for vulnerabilities and enforce the failOn policy."""
    _configure_logging(verbose)
    config = _load_config(config_path)

    updates: dict[str, Any] = {"enabled": True}
    if tools:
        updates["tools"] = tools
    if fail_on is not None:
        updates["fail_on"] = fail_on.strip().lower()
    if warn_on is not None:
        updates["warn_on"] = warn_on.strip().lower()
    if output:
        updates["output"] = config.scan.output.model_copy(update={"local": output})
    config.scan = config.scan.model_copy(update=updates)

    try:
        executor = SecurityExecutor(config)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"\n[bold]Scanning {image}...[/bold]\n")
    result = _run(executor.execute_scanning(image))
    if result is None:
        console.print("[yellow]No scanner ran, scan skipped[/yellow]")
        return
    _print_scan_result(result)
    console.print(f"\n[bold green]{result.summary}[/bold green]")


@app.command()
def sign(
    image: str = typer.Argument(..., help="Image reference to sign"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Security config JSON file"),
    key: str = typer.Option(None, "--key", help="Private key path; selects key-based signing"),
    required: bool = typer.Option(None, "--required/--optional", help="Fail when signing fails"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Sign an image with cosign."""
    _configure_logging(verbose)
    config = _load_config(config_path)

    updates: dict[str, Any] = {"enabled": True}
    if key:
        updates.update(keyless=False, private_key=key)
    if required is not None:
        updates["required"] = required
    config.signing = config.signing.model_copy(update=updates)
    config.scan = config.scan.model_copy(update={"enabled": False})
    config.sbom = config.sbom.model_copy(update={"enabled": False})

    try:
        executor = SecurityExecutor(config)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    outcome = _run(executor.execute_signing(image))
    _print_outcome("Signing", outcome)
    if outcome.ok and outcome.value.rekor_entry:
        console.print(f"Transparency log entry: {outcome.value.rekor_entry}")


@app.command()
def verify(
    image: str = typer.Argument(..., help="Image reference to verify"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Security config JSON file"),
    key: str = typer.Option(None, "--key", help="Public key path; selects key-based verification"),
    oidc_issuer: str = typer.Option(None, "--certificate-oidc-issuer", help="Expected OIDC issuer"),
    identity_regexp: str = typer.Option(
        None, "--certificate-identity-regexp", help="Expected signer identity pattern"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Verify an image signature."""
    _configure_logging(verbose)
    config = _load_config(config_path)

    updates: dict[str, Any] = {"enabled": True, "required": True}
    if key:
        updates.update(keyless=False, public_key=key)
    if oidc_issuer:
        updates["oidc_issuer"] = oidc_issuer
    if identity_regexp:
        updates["identity_regexp"] = identity_regexp
    signing = config.signing.model_copy(update=updates)

    outcome = _run(verify_image(signing, image))
    result = outcome.unwrap()
    console.print(f"[green]Verified[/green] {image} ({result.image_digest})")
    if result.certificate:
        console.print(f"  Issuer:   {result.certificate.issuer}")
        console.print(f"  Identity: {result.certificate.identity}")


@app.command()
def sbom(
    image: str = typer.Argument(..., help="Image reference"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Security config JSON file"),
    fmt: str = typer.Option(None, "--format", "-f", help="SBOM format (default: cyclonedx-json)"),
    output: str = typer.Option(None, "--output", "-o", help="Write SBOM to this path"),
    attach: bool = typer.Option(None, "--attach/--no-attach", help="Attach as signed attestation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Generate an SBOM and optionally attach it as a signed attestation."""
    _configure_logging(verbose)
    config = _load_config(config_path)

    updates: dict[str, Any] = {"enabled": True, "required": True}
    if fmt:
        updates["format"] = fmt
    if output:
        updates["output"] = config.sbom.output.model_copy(update={"local": output})
    if attach is not None:
        updates["attach"] = attach
        if attach:
            config.signing = config.signing.model_copy(update={"enabled": True})
    config.sbom = config.sbom.model_copy(update=updates)
    config.scan = config.scan.model_copy(update={"enabled": False})

    try:
        executor = SecurityExecutor(config)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    generated, attached = _run(executor.execute_sbom(image))
    document = generated.unwrap()
    console.print(
        f"[green]Generated[/green] {document.format.value} SBOM: "
        f"{document.metadata.package_count} packages, {document.size} bytes ({document.digest})"
    )
    if config.sbom.should_attach():
        _print_outcome("Attestation", attached)


@app.command("verify-sbom")
def verify_sbom_command(
    image: str = typer.Argument(..., help="Image reference"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Security config JSON file"),
    fmt: str = typer.Option("cyclonedx-json", "--format", "-f", help="Expected SBOM format"),
    key: str = typer.Option(None, "--key", help="Public key path; selects key-based verification"),
    output: str = typer.Option(None, "--output", "-o", help="Write verified SBOM to this path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Verify an SBOM attestation and print or save its content."""
    _configure_logging(verbose)
    config = _load_config(config_path)

    updates: dict[str, Any] = {"enabled": True, "required": True}
    if key:
        updates.update(keyless=False, public_key=key)
    signing = config.signing.model_copy(update=updates)

    outcome = _run(verify_sbom(signing, image, fmt))
    document = outcome.unwrap()
    console.print(f"[green]Verified[/green] {document.format.value} SBOM attestation ({document.digest})")
    if output:
        path = resolve_output_path(output, f"sbom.{document.format.extension}")
        path.write_bytes(document.content)
        console.print(f"Saved SBOM to {path}")


@app.command("check-tools")
def check_tools(
    config_path: Path = typer.Option(None, "--config", "-c", help="Security config JSON file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Check that every tool the configuration needs is installed and recent enough."""
    _configure_logging(verbose)
    config = _load_config(config_path)
    installer = ToolInstaller(default_registry())

    table = Table(title="Tool Registry")
    table.add_column("Tool", style="cyan")
    table.add_column("Category")
    table.add_column("Minimum", style="dim")
    for tool in installer.registry.list_tools():
        table.add_row(tool.name, tool.category.value, tool.min_version)
    console.print(table)

    warnings = _run(installer.check_all_tools(config))
    for warning in warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    console.print("[bold green]All required tools available[/bold green]")


@app.command()
def run(
    image: str = typer.Argument(..., help="Image reference"),
    config_path: Path = typer.Option(..., "--config", "-c", help="Security config JSON file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Run the full pipeline: scan, sign, SBOM."""
    _configure_logging(verbose)
    config = _load_config(config_path)
    try:
        executor = SecurityExecutor(config)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    report = _run(executor.run(image))
    if report.scan is not None:
        _print_scan_result(report.scan)
    _print_outcome("Signing", report.signing)
    _print_outcome("SBOM", report.sbom)
    _print_outcome("Attestation", report.attestation)
    console.print(f"\n[bold green]Pipeline complete for {image}[/bold green]")


if __name__ == "__main__":
    app()
