"""
Starepo Gateway CLI - developer tool for the AI provider gateway

Lists providers, inspects and refreshes model lists, tests connections and
streams one-shot chat replies using accounts from a JSON file and
STAREPO_<PROVIDER>_API_KEY / STAREPO_<PROVIDER>_BASE_URL variables.
"""
import asyncio
import json
from pathlib import Path
from typing import Optional

import typer

from starepo_gateway.config import get_settings
from starepo_gateway.errors import GatewayError
from starepo_gateway.gateway import Gateway
from starepo_gateway.providers.config import AccountStore
from starepo_gateway.providers.namespace import ModelResolver
from starepo_gateway.utils.logging import setup_logging

app = typer.Typer(
    name="starepo-gateway",
    help="Inspect and exercise the Starepo AI provider gateway",
    add_completion=False
)

AccountsOption = typer.Option(
    None, "--accounts", "-a",
    help="JSON file with provider accounts (default: STAREPO_ACCOUNTS_FILE)"
)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level",
        help="Override STAREPO_LOG_LEVEL"
    ),
):
    settings = get_settings()
    setup_logging(log_level or settings.log_level, settings.log_format)


def _store(accounts: Optional[Path]) -> AccountStore:
    try:
        return AccountStore.from_file(accounts or get_settings().accounts_file)
    except GatewayError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _account(store: AccountStore, gateway: Gateway, provider_id: str):
    definition = gateway.registry.require_provider(provider_id)
    return store.get(provider_id) or ModelResolver.create_default_account(definition)


def _run(coro):
    try:
        return asyncio.run(coro)
    except GatewayError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command(name="providers", help="List registered providers")
def providers(
    json_output: bool = typer.Option(False, "--json", help="JSON output for scripting"),
):
    gateway = Gateway()
    definitions = gateway.registry.list_providers()
    if json_output:
        typer.echo(json.dumps([d.model_dump(mode="json") for d in definitions], indent=2))
        return

    for definition in definitions:
        listing = "listing" if definition.validation.supports_model_listing else "static"
        typer.echo(f"{definition.id:<18} {definition.protocol.value:<18} {listing:<8} {definition.display.name}")


@app.command(name="models", help="Show models for a provider")
def models(
    provider_id: str = typer.Argument(..., help="Provider id, e.g. openai"),
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Fetch from the vendor"),
    accounts: Optional[Path] = AccountsOption,
    json_output: bool = typer.Option(False, "--json", help="JSON output for scripting"),
):
    store = _store(accounts)

    async def run():
        async with Gateway(account_provider=store) as gateway:
            account = _account(store, gateway, provider_id)
            return await gateway.discovery.get_models(account, force_refresh=refresh)

    response = _run(run())
    if json_output:
        typer.echo(response.model_dump_json(indent=2))
        return

    typer.echo(f"Provider: {response.provider_id}  source: {response.source}  ttl: {response.ttl}s")
    for model in response.models:
        tags = f"  [{', '.join(model.tags)}]" if model.tags else ""
        typer.echo(f"  {model.id}{tags}")
    if not response.models:
        typer.echo("  (no models; use --refresh to query the vendor)")


@app.command(name="test", help="Test the connection to a provider")
def test(
    provider_id: str = typer.Argument(..., help="Provider id, e.g. openai"),
    accounts: Optional[Path] = AccountsOption,
    json_output: bool = typer.Option(False, "--json", help="JSON output for scripting"),
):
    store = _store(accounts)

    async def run():
        async with Gateway(account_provider=store) as gateway:
            account = _account(store, gateway, provider_id)
            return await gateway.discovery.test_connection(account)

    result = _run(run())
    if json_output:
        typer.echo(result.model_dump_json(indent=2))
    else:
        typer.echo(result.message)
        if result.model_count is not None:
            typer.echo(f"Models: {result.model_count}")
        if result.latency is not None:
            typer.echo(f"Latency: {result.latency}ms")
    if not result.success:
        raise typer.Exit(1)


@app.command(name="clear-cache", help="Clear cached model lists")
def clear_cache(
    provider_id: Optional[str] = typer.Argument(None, help="Only clear this provider"),
):
    async def run():
        async with Gateway() as gateway:
            return await gateway.discovery.clear_cache(provider_id)

    removed = _run(run())
    typer.echo(f"Removed {removed} cache entries")


@app.command(name="chat", help="Stream a one-shot reply")
def chat(
    model: str = typer.Argument(..., help='Model namespace, e.g. "openai|gpt-4o"'),
    prompt: str = typer.Argument(..., help="User message"),
    system: Optional[str] = typer.Option(None, "--system", "-s", help="System prompt"),
    accounts: Optional[Path] = AccountsOption,
):
    """
    Stream a reply from any configured provider.

    Examples:

        starepo-gateway chat "openai|gpt-4o-mini" "Summarise this repository"

        starepo-gateway chat "ollama|llama3:8b" "Hello" --system "Be brief"
    """
    store = _store(accounts)
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    async def run():
        async with Gateway(account_provider=store) as gateway:
            language_model = await gateway.factory.create_language_model(model)
            async for delta in language_model.stream(messages):
                typer.echo(delta, nl=False)
            typer.echo()

    _run(run())


if __name__ == "__main__":
    app()
