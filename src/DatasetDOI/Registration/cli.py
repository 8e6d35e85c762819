# === NAVMAP v1 ===
# {
#   "module": "DatasetDOI.Registration.cli",
#   "purpose": "Typer CLI for running and inspecting the registration service",
#   "sections": [
#     {"id": "serve", "name": "serve", "anchor": "function-serve", "kind": "function"},
#     {"id": "validate", "name": "validate", "anchor": "function-validate", "kind": "function"},
#     {"id": "derive-id", "name": "derive_id", "anchor": "function-derive-id", "kind": "function"},
#     {"id": "show-config", "name": "show_config", "anchor": "function-show-config", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Command line interface for the DOI registration service.

**Usage:**

    # Run the admission API and the dispatcher
    doi-registry serve -c doi.yaml

    # Check a datacite.yml before requesting a DOI
    doi-registry validate path/to/datacite.yml

    # Show the identifier and DOI a repository would get
    doi-registry derive-id owner/dataset

    # Print the merged configuration
    doi-registry show-config -c doi.yaml
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .config import RegistrationConfig, load_config
from .errors import MetadataParseError
from .identity import IdentityDeriver
from .logging_utils import setup_logging
from .validation import check_missing_values, collect_warnings, parse_registration_info

LOGGER = logging.getLogger(__name__)

app = typer.Typer(help="Dataset DOI registration service")

_CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Config file path (YAML/JSON)")


def _load(config_file: Optional[str]) -> RegistrationConfig:
    try:
        return load_config(config_file)
    except ValueError as e:
        typer.echo(f"✗ Invalid configuration: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def serve(
    config_file: Optional[str] = _CONFIG_OPTION,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
    workers: Optional[int] = typer.Option(None, "--workers", help="Number of pipeline workers"),
) -> None:
    """Start the admission API and the dispatcher."""
    import uvicorn

    from .api import create_app
    from .service import build_service

    overrides: dict = {}
    if host is not None or port is not None:
        overrides["server"] = {
            key: value for key, value in (("host", host), ("port", port)) if value is not None
        }
    if workers is not None:
        overrides["dispatcher"] = {"max_workers": workers}

    try:
        config = load_config(config_file, cli_overrides=overrides)
    except ValueError as e:
        typer.echo(f"✗ Invalid configuration: {e}", err=True)
        raise typer.Exit(1)

    setup_logging(level=config.logging.level, json_output=config.logging.json_output)
    service = build_service(config)
    typer.echo(
        f"Starting registration service on {config.server.host}:{config.server.port} "
        f"with {config.dispatcher.max_workers} workers..."
    )
    uvicorn.run(
        create_app(service),
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )


@app.command()
def validate(
    metadata_file: Path = typer.Argument(..., help="Path to a datacite.yml file"),
) -> None:
    """Report missing fields and warnings for a registration metadata file.

    Exit code 0 if the metadata is publishable, 1 otherwise.
    """
    if not metadata_file.exists():
        typer.echo(f"✗ File not found: {metadata_file}", err=True)
        raise typer.Exit(1)

    try:
        info = parse_registration_info(metadata_file.read_bytes())
    except MetadataParseError as e:
        typer.echo(f"✗ {e}", err=True)
        raise typer.Exit(1)

    missing = check_missing_values(info)
    for warning in collect_warnings(info):
        typer.echo(f"⚠ {warning}")
    if missing:
        for message in missing:
            typer.echo(f"✗ {message}")
        raise typer.Exit(1)
    typer.echo(f"✓ {metadata_file} is complete")


@app.command("derive-id")
def derive_id(
    repository: str = typer.Argument(..., help="Repository path, e.g. owner/dataset"),
    config_file: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Print the identifier and DOI a repository is registered under."""
    config = _load(config_file)
    identity = IdentityDeriver(
        legacy=config.doi.legacy_identifiers,
        doi_prefix=config.doi.prefix,
        suffix_length=config.doi.suffix_length,
    )
    identifier = identity.derive(repository)
    typer.echo(f"identifier: {identifier}")
    typer.echo(f"doi: {identity.doi(identifier)}")


@app.command("show-config")
def show_config(
    config_file: Optional[str] = _CONFIG_OPTION,
    schema: bool = typer.Option(False, "--schema", help="Print the JSON Schema instead"),
) -> None:
    """Print the merged configuration (file < environment < CLI) as JSON."""
    if schema:
        from .config import export_config_schema

        typer.echo(json.dumps(export_config_schema(), indent=2))
        return
    config = _load(config_file)
    typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))


if __name__ == "__main__":  # pragma: no cover
    app()
