"""Typer CLI entrypoint."""

from __future__ import annotations

from pathlib import Path

import typer
import yaml

from gadgetry.core.errors import GadgetError
from gadgetry.core.factory import USER_PREF_PARAM_PREFIX
from gadgetry.core.model import SecurityToken
from gadgetry.core.service import GadgetService, gadget_summary

app = typer.Typer(help="Assemble remotely hosted gadgets into render-ready form")


def _build_service(config: Path | None) -> GadgetService:
    service = GadgetService(config_path=config)
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _parse_user_prefs(values: list[str] | None) -> dict[str, str]:
    params: dict[str, str] = {}
    for item in values or []:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Expected NAME=VALUE, got '{item}'", param_hint="--up")
        params[USER_PREF_PARAM_PREFIX + name.strip()] = value
    return params


@app.command("assemble")
def assemble(
    url: str,
    lang: str = typer.Option("all", "--lang", help="Target language, e.g. en"),
    country: str = typer.Option("all", "--country", help="Target country, e.g. US"),
    up: list[str] | None = typer.Option(None, "--up", help="User pref override NAME=VALUE (repeatable)"),
    ignore_cache: bool = typer.Option(False, "--ignore-cache", help="Ask upstream servers to bypass caches"),
    owner: str | None = typer.Option(None, "--owner", help="Owner id for signed preloads"),
    viewer: str | None = typer.Option(None, "--viewer", help="Viewer id for signed preloads"),
    app_id: str | None = typer.Option(None, "--app-id", help="Application id for signed preloads"),
    module_id: int = typer.Option(0, "--module-id", help="Module id exposed as __MODULE_ID__"),
    config: Path | None = typer.Option(None, "--config", help="Path to a gadgetry config.yaml"),
) -> None:
    """Fetch, resolve and print the gadget at URL as YAML."""
    params = _parse_user_prefs(up)
    token = None
    if owner or viewer or app_id:
        token = SecurityToken(
            owner_id=owner,
            viewer_id=viewer,
            app_id=app_id,
            app_url=url,
            module_id=module_id,
        )
    try:
        with _build_service(config) as service:
            gadget = service.assemble(
                url,
                lang=lang,
                country=country,
                params=params,
                token=token,
                ignore_cache=ignore_cache,
            )
        typer.echo(yaml.safe_dump(gadget_summary(gadget), sort_keys=False, allow_unicode=True), nl=False)
    except GadgetError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("features")
def list_features(
    config: Path | None = typer.Option(None, "--config", help="Path to a gadgetry config.yaml"),
) -> None:
    """List registered features and their dependencies."""
    try:
        with _build_service(config) as service:
            features = service.list_features()
        if not features:
            typer.echo("No features registered")
            raise typer.Exit(code=1)

        for feature in features:
            dependencies = ", ".join(feature.dependencies) or "-"
            typer.echo(f"{feature.name}: {dependencies}")
    except GadgetError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
