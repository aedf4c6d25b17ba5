"""Command-line interface for Hosted Auth.

Provides CLI commands for signing in through the hosted UI, inspecting
the stored identity, and running the local web shell.
"""

from __future__ import annotations

import asyncio
import json
import mimetypes
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import typer

from hosted_auth import __version__
from hosted_auth.api import ApiClient, ApiError, UploadError, UploadsClient
from hosted_auth.config import Config, ConfigError, load_config
from hosted_auth.logging_config import get_logger, setup_logging
from hosted_auth.oauth.session import CallbackOutcome
from hosted_auth.security import BearerTokenAuthStrategy
from hosted_auth.server import create_session_manager
from hosted_auth.storage import StorageError

if TYPE_CHECKING:
    from hosted_auth.oauth.session import AuthSessionManager

app = typer.Typer(
    name="hosted-auth",
    help="Hosted Auth - sign in through a hosted identity provider UI",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"hosted-auth version {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Hosted Auth CLI."""


def _alert(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)


def _load(config_path: str | None, log_level: str | None) -> Config:
    cli_args: dict[str, str | int | None] = {}
    if log_level:
        cli_args["log_level"] = log_level

    try:
        config = load_config(path=config_path, cli_args=cli_args)
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1) from None

    setup_logging(config)
    return config


def _manager(config: Config) -> AuthSessionManager:
    try:
        return create_session_manager(config, alert=_alert)
    except StorageError as e:
        typer.echo(f"Storage error: {e}", err=True)
        raise typer.Exit(code=1) from None


ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to configuration file (JSON or YAML)",
)
LogLevelOption = typer.Option(
    None,
    "--log-level",
    "-l",
    help="Log level override (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
)


@app.command()
def login(
    config_path: str | None = ConfigOption,
    log_level: str | None = LogLevelOption,
    open_browser: bool = typer.Option(
        True,
        "--open/--no-open",
        help="Open the sign-in page in a browser",
    ),
) -> None:
    """Sign in through the hosted UI.

    Prints the sign-in URL, then asks for the URL the browser was
    redirected to and completes the code exchange.
    """
    config = _load(config_path, log_level)
    manager = _manager(config)

    try:
        url = manager.login()
    except ConfigError:
        raise typer.Exit(code=1) from None

    typer.echo("Open this URL to sign in:")
    typer.echo(url)
    if open_browser:
        typer.launch(url)

    callback_url = typer.prompt("Paste the URL you were redirected to")
    result = asyncio.run(_complete(manager, callback_url))

    if result is not CallbackOutcome.SIGNED_IN:
        typer.echo(f"Sign-in did not complete ({result.value})", err=True)
        raise typer.Exit(code=1)

    identity = manager.get_signed_in_identity()
    typer.echo(f"Signed in as {identity.label if identity else 'unknown'}")


async def _complete(manager: AuthSessionManager, callback_url: str) -> CallbackOutcome:
    try:
        result = await manager.handle_auth_callback(callback_url.strip())
    finally:
        await manager.close()
    return result.outcome


@app.command()
def logout(
    config_path: str | None = ConfigOption,
    log_level: str | None = LogLevelOption,
    open_browser: bool = typer.Option(
        False,
        "--open/--no-open",
        help="Open the hosted UI logout page in a browser",
    ),
) -> None:
    """Clear stored tokens and print the hosted UI logout URL."""
    config = _load(config_path, log_level)
    manager = _manager(config)

    try:
        url = manager.logout()
    except ConfigError:
        raise typer.Exit(code=1) from None

    typer.echo("Signed out locally. End the hosted UI session at:")
    typer.echo(url)
    if open_browser:
        typer.launch(url)


@app.command()
def whoami(
    config_path: str | None = ConfigOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """Show the signed-in identity."""
    config = _load(config_path, log_level)
    identity = _manager(config).get_signed_in_identity()

    if identity is None:
        typer.echo("Not signed in", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Signed in as {identity.label}")
    if identity.claims.email:
        typer.echo(f"email: {identity.claims.email}")
    if identity.claims.sub:
        typer.echo(f"sub:   {identity.claims.sub}")


@app.command()
def token(
    config_path: str | None = ConfigOption,
    log_level: str | None = LogLevelOption,
    raw: bool = typer.Option(
        False,
        "--raw",
        help="Print the stored ID token even if it is expired",
    ),
) -> None:
    """Print the stored ID token."""
    config = _load(config_path, log_level)
    manager = _manager(config)

    value = manager.get_id_token() if raw else manager.get_id_token_valid()
    if not value:
        typer.echo("No valid ID token", err=True)
        raise typer.Exit(code=1)

    typer.echo(value)


@app.command()
def upload(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to upload"),
    config_path: str | None = ConfigOption,
    log_level: str | None = LogLevelOption,
    content_type: str | None = typer.Option(
        None,
        "--content-type",
        help="MIME type (guessed from the file name by default)",
    ),
) -> None:
    """Upload a file through a presigned URL."""
    config = _load(config_path, log_level)
    if not config.uploads_api_url:
        typer.echo("Uploads API not configured (HOSTED_AUTH_UPLOADS_API_URL)", err=True)
        raise typer.Exit(code=1)

    mime = content_type or mimetypes.guess_type(file.name)[0] or "application/octet-stream"
    client = UploadsClient(config.uploads_api_url, _manager(config))

    async def _run() -> str:
        try:
            return await client.upload(file.name, file.read_bytes(), mime)
        finally:
            await client.close()

    try:
        key = asyncio.run(_run())
    except UploadError as e:
        typer.echo(e.message, err=True)
        raise typer.Exit(code=1) from None

    typer.echo(f"Uploaded OK -> {key}")


@app.command()
def call(
    path: str = typer.Argument(..., help="API path, e.g. /leaderboard"),
    config_path: str | None = ConfigOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """GET an application API path with the signed-in credential."""
    config = _load(config_path, log_level)
    if not config.api_base_url:
        typer.echo("API not configured (HOSTED_AUTH_API_BASE_URL)", err=True)
        raise typer.Exit(code=1)

    client = ApiClient(config.api_base_url, BearerTokenAuthStrategy(_manager(config)))

    async def _run() -> object:
        try:
            return await client.get(path if path.startswith("/") else f"/{path}")
        finally:
            await client.close()

    try:
        result = asyncio.run(_run())
    except ApiError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1) from None

    typer.echo(json.dumps(result, indent=2))


@app.command()
def serve(
    config_path: str | None = ConfigOption,
    log_level: str | None = LogLevelOption,
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind to"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind to"),
) -> None:
    """Run the local web shell."""
    cli_args: dict[str, str | int | None] = {"log_level": log_level, "host": host, "port": port}

    try:
        config = load_config(path=config_path, cli_args=cli_args)
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1) from None

    setup_logging(config)
    logger = get_logger(__name__)

    from hosted_auth.web import create_web_app, run_web

    manager = _manager(config)
    web_app = create_web_app(config, manager)

    try:
        asyncio.run(run_web(web_app, config.host, config.port))
    except KeyboardInterrupt:
        logger.info("Shutting down (keyboard interrupt)")
        raise typer.Exit(code=0) from None


@app.command()
def version() -> None:
    """Print version information."""
    typer.echo(f"hosted-auth version {__version__}")
    typer.echo(f"Python {sys.version}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
