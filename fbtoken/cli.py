"""Command line entrypoint: `fbtoken sign-in`, `fbtoken export postman env.json`, ..."""

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from fbtoken.core.config import settings
from fbtoken.core.exceptions import AppBaseException, ValidationException
from fbtoken.domain.models.token import AuthSession
from fbtoken.services import admin
from fbtoken.services.claims import decode_claims, seconds_until_expiry, verify_claims
from fbtoken.services.environments import TARGETS, export_session
from fbtoken.services.postman_collection import build_collection
from fbtoken.services.providers import get_identity_client
from fbtoken.services.token_cache import TokenCache, TokenManager

app = typer.Typer(help="Firebase ID tokens for API testing", no_args_is_help=True)


@contextmanager
def handle_errors():
    """Print application errors in red and exit with status 1."""
    try:
        yield
    except AppBaseException as e:
        typer.secho(f"Error: {e.message}", fg=typer.colors.RED, err=True)
        if e.details:
            typer.secho(json.dumps(e.details, default=str), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


def _cache(ctx: typer.Context) -> TokenCache:
    return ctx.obj["cache"]


def _emit(session: AuthSession, as_json: bool) -> None:
    if as_json:
        typer.echo(session.model_dump_json(indent=2))
    else:
        typer.echo(session.id_token)


def _resolve_id_token(ctx: typer.Context, id_token: Optional[str]) -> str:
    if id_token:
        return id_token
    cached = _cache(ctx).load()
    if not cached:
        raise ValidationException("No ID token given and no cached session. Run `fbtoken sign-in` first.")
    return cached.id_token


def _parse_claims(pairs: List[str]) -> Dict[str, Any]:
    """`role=admin`, `level=3`, `beta=true` -> JSON-typed values where they parse."""
    claims: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise ValidationException(f"Claim must look like key=value: {pair!r}")
        try:
            claims[key] = json.loads(raw)
        except ValueError:
            claims[key] = raw
    return claims


@app.callback()
def main(
    ctx: typer.Context,
    cache_path: Optional[Path] = typer.Option(
        None, "--cache-path", help="Where the last session is cached (default: TOKEN_CACHE_PATH)"
    ),
) -> None:
    ctx.obj = {"cache": TokenCache(cache_path)}


@app.command("sign-up")
def sign_up(
    ctx: typer.Context,
    email: Optional[str] = typer.Option(None, help="Email of the user to create"),
    password: Optional[str] = typer.Option(None, help="Password of the user to create", hide_input=True),
    anonymous: bool = typer.Option(False, "--anonymous", help="Create an anonymous user instead"),
    as_json: bool = typer.Option(False, "--json", help="Print the whole session as JSON"),
    cache: bool = typer.Option(True, help="Cache the new session"),
) -> None:
    """Create a test user and print its ID token."""
    with handle_errors():
        client = get_identity_client()
        if anonymous:
            session = client.sign_up_anonymous()
        else:
            email = email or typer.prompt("Email")
            password = password or typer.prompt("Password", hide_input=True, confirmation_prompt=True)
            session = client.sign_up(email, password)
        if cache:
            _cache(ctx).save(session)
        _emit(session, as_json)


@app.command("sign-in")
def sign_in(
    ctx: typer.Context,
    email: str = typer.Option(..., prompt=True, envvar="TEST_USER_EMAIL", help="Firebase account email"),
    password: str = typer.Option(
        ..., prompt=True, hide_input=True, envvar="TEST_USER_PASSWORD", help="Firebase account password"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the whole session as JSON"),
    cache: bool = typer.Option(True, help="Cache the new session"),
) -> None:
    """Sign in with email and password and print the ID token."""
    with handle_errors():
        session = get_identity_client().sign_in_with_password(email, password)
        if cache:
            _cache(ctx).save(session)
        _emit(session, as_json)


@app.command("custom-token")
def custom_token(
    ctx: typer.Context,
    uid: str = typer.Option(..., help="uid to sign in as"),
    claim: List[str] = typer.Option([], "--claim", help="Custom claim key=value (repeatable)"),
    as_json: bool = typer.Option(False, "--json", help="Print the whole session as JSON"),
    cache: bool = typer.Option(True, help="Cache the new session"),
) -> None:
    """Mint a custom token with the service account and exchange it for an ID token."""
    with handle_errors():
        session = admin.mint_session(get_identity_client(), uid, _parse_claims(claim))
        if cache:
            _cache(ctx).save(session)
        _emit(session, as_json)


@app.command()
def refresh(
    ctx: typer.Context,
    refresh_token: Optional[str] = typer.Option(None, help="Refresh token (default: cached session)"),
    as_json: bool = typer.Option(False, "--json", help="Print the whole session as JSON"),
) -> None:
    """Exchange a refresh token for a new ID token."""
    with handle_errors():
        cached = _cache(ctx).load()
        token = refresh_token or (cached.refresh_token if cached else None)
        if not token:
            raise ValidationException("No refresh token given and none cached")
        session = get_identity_client().refresh(token, previous=cached)
        _cache(ctx).save(session)
        _emit(session, as_json)


@app.command()
def lookup(
    ctx: typer.Context,
    id_token: Optional[str] = typer.Option(None, help="ID token (default: cached session)"),
) -> None:
    """Show the account an ID token belongs to."""
    with handle_errors():
        account = get_identity_client().lookup(_resolve_id_token(ctx, id_token))
        typer.echo(account.model_dump_json(indent=2))


@app.command()
def claims(
    ctx: typer.Context,
    id_token: Optional[str] = typer.Option(None, help="ID token (default: cached session)"),
    verify: bool = typer.Option(False, "--verify", help="Verify the signature with the Admin SDK"),
) -> None:
    """Decode an ID token and show its claims."""
    with handle_errors():
        token = _resolve_id_token(ctx, id_token)
        decoded = verify_claims(token) if verify else decode_claims(token)
        typer.echo(decoded.model_dump_json(indent=2))
        remaining = seconds_until_expiry(decoded)
        if remaining is not None:
            color = typer.colors.GREEN if remaining > 0 else typer.colors.YELLOW
            typer.secho(f"Expires in {remaining}s", fg=color, err=True)


@app.command()
def delete(
    ctx: typer.Context,
    id_token: Optional[str] = typer.Option(None, help="ID token (default: cached session)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete the account an ID token belongs to."""
    with handle_errors():
        token = _resolve_id_token(ctx, id_token)
        if not yes:
            typer.confirm("Delete this Firebase account?", abort=True)
        get_identity_client().delete_account(token)
        cached = _cache(ctx).load()
        if cached and cached.id_token == token:
            _cache(ctx).clear()
        typer.secho("Account deleted.", fg=typer.colors.GREEN, err=True)


@app.command()
def token(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Refresh even if the cached token is still valid"),
    as_json: bool = typer.Option(False, "--json", help="Print the whole session as JSON"),
) -> None:
    """Print a valid ID token for the configured test user."""
    with handle_errors():
        manager = TokenManager(get_identity_client(), _cache(ctx))
        _emit(manager.get_session(force=force), as_json)


@app.command()
def export(
    ctx: typer.Context,
    target: str = typer.Argument(..., help=f"One of: {', '.join(TARGETS)}"),
    path: Path = typer.Argument(..., help="Environment file to update"),
    name: Optional[str] = typer.Option(None, help="Environment name (Postman / REST Client)"),
    prefix: str = typer.Option("", help="Prefix for every variable key"),
    token_key: Optional[str] = typer.Option(None, help="Variable holding the ID token"),
    force: bool = typer.Option(False, "--force", help="Refresh before exporting"),
) -> None:
    """Write the current session into a REST-client environment."""
    with handle_errors():
        session = TokenManager(get_identity_client(), _cache(ctx)).get_session(force=force)
        variables = export_session(target, path, session, name=name, key_prefix=prefix, token_key=token_key)
        typer.secho(f"Updated {', '.join(variables)} in {path}", fg=typer.colors.GREEN, err=True)


@app.command()
def collection(
    path: Path = typer.Argument(..., help="Where to write the Postman collection"),
    name: str = typer.Option("Firebase Auth", help="Collection name"),
    token_key: Optional[str] = typer.Option(None, help="Variable holding the ID token"),
) -> None:
    """Write a Postman collection with the Firebase auth requests and token scripts."""
    with handle_errors():
        data = build_collection(name=name, token_key=token_key or settings.ENVIRONMENT_TOKEN_KEY)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent="\t"), encoding="utf-8")
        typer.secho(f"Collection written to {path}", fg=typer.colors.GREEN, err=True)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Port"),
) -> None:
    """Run the HTTP token service."""
    from fbtoken.main import run

    run(host=host, port=port)


if __name__ == "__main__":
    app()
