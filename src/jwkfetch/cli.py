"""Command-line interface for jwkfetch.

Example:
    >>> # From terminal:
    >>> # jwkfetch --version
    >>> # jwkfetch discover https://accounts.google.com
    >>> # jwkfetch resolve <token>
    >>> # jwkfetch resolve <token> --jwks-url https://idp.example.com/keys
    >>> # jwkfetch resolve <token> --providers providers.json
"""

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from pydantic import ValidationError

from jwkfetch import __version__
from jwkfetch.config import load_providers
from jwkfetch.discovery import get_discovery_url
from jwkfetch.errors import JWKFetchError
from jwkfetch.keys import VerificationKey
from jwkfetch.models.entities import ProviderEntry
from jwkfetch.observability import configure_logging
from jwkfetch.resolver import KeyResolver, from_discovery_url, from_issuer_claim, from_jwks_url
from jwkfetch.service import KeySetCacheService, get_default_service

app = typer.Typer(help="Resolve token verification keys from JWKS endpoints.")


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show jwkfetch version and exit.",
    callback=_version_callback,
    is_eager=True,
)


@app.callback()
def cli(
    version: bool = VERSION_OPTION,
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level for stderr logs (DEBUG, INFO, WARNING, ERROR)."
    ),
) -> None:
    """jwkfetch CLI entrypoint."""
    if log_level:
        configure_logging(log_level=log_level.upper(), force=True)


def _fail(exc: JWKFetchError) -> typer.Exit:
    typer.echo(f"{exc.code}: {exc.message}", err=True)
    return typer.Exit(1)


@app.command("discover")
def discover(
    issuer: Annotated[str, typer.Argument(help="Issuer URL (scheme defaults to https).")],
) -> None:
    """Print the issuer's discovery URL and the jwks_uri it advertises."""
    service = get_default_service()
    try:
        discovery_url = get_discovery_url(issuer)
        jwks_url = asyncio.run(service.discovery.get_jwks_url(discovery_url))
    except JWKFetchError as exc:
        raise _fail(exc) from exc
    typer.echo(f"discovery_url: {discovery_url}")
    typer.echo(f"jwks_uri: {jwks_url}")


def _build_resolver(
    service: KeySetCacheService, jwks_url: Optional[str], discovery_url: Optional[str]
) -> KeyResolver:
    if jwks_url:
        return from_jwks_url(jwks_url, service)
    if discovery_url:
        return from_discovery_url(discovery_url, service)
    return from_issuer_claim(service)


async def _resolve(
    service: KeySetCacheService,
    resolver: KeyResolver,
    token: str,
    entries: Optional[list[ProviderEntry]],
) -> VerificationKey:
    if entries is None:
        return await resolver.resolve(token)
    await service.init(entries)
    try:
        return await resolver.resolve(token)
    finally:
        await service.aclose()


@app.command("resolve")
def resolve(
    token: Annotated[str, typer.Argument(help="Compact JWS token (signature is not checked).")],
    jwks_url: Annotated[
        Optional[str],
        typer.Option("--jwks-url", help="Resolve from this JWKS URL instead of the iss claim."),
    ] = None,
    discovery_url: Annotated[
        Optional[str],
        typer.Option("--discovery-url", help="Resolve through this discovery document URL."),
    ] = None,
    providers: Annotated[
        Optional[Path],
        typer.Option("--providers", "-p", help="JSON file of static provider entries."),
    ] = None,
) -> None:
    """Print the key matching the token's kid as public JWK JSON."""
    if jwks_url and discovery_url:
        raise typer.BadParameter("Use either --jwks-url or --discovery-url, not both.")
    entries: Optional[list[ProviderEntry]] = None
    if providers is not None:
        if not providers.exists():
            raise typer.BadParameter(f"Providers file not found: {providers}")
        try:
            entries = load_providers(providers)
        except (ValueError, ValidationError) as exc:
            raise typer.BadParameter(f"Invalid providers file: {exc}") from exc

    service = get_default_service()
    resolver = _build_resolver(service, jwks_url, discovery_url)
    try:
        key = asyncio.run(_resolve(service, resolver, token, entries))
    except JWKFetchError as exc:
        raise _fail(exc) from exc

    output: dict[str, Any] = key.as_dict()
    typer.echo(json.dumps(output, indent=2, sort_keys=True))


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
