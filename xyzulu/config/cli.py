"""CLI commands for configuration management"""

import typer
from rich.console import Console

from .config import ConfigError, ConfigManager

console = Console()
config_app = typer.Typer(help="Manage provider keys and defaults")

# camelCase keys as they appear in the config file
PROVIDER_FIELDS = {
    "apiKey": "api_key",
    "baseUrl": "base_url",
    "timeout": "timeout",
    "maxRetries": "max_retries",
}


def mask_key(key: str) -> str:
    """Show just enough of a key to recognise it"""
    if len(key) <= 12:
        return "*" * len(key)
    return f"{key[:8]}...{key[-4:]}"


def _split_key(key: str) -> tuple[str, str]:
    provider, _, field = key.partition(".")
    if not provider or field not in PROVIDER_FIELDS:
        console.print(f"[red]Unknown config key: {key}[/red]")
        raise typer.Exit(1)
    return provider.lower(), field


@config_app.command("get")
def get_value(key: str = typer.Argument(..., help="defaultProvider, defaultModel or <provider>.<field>")):
    """Show a configuration value"""
    manager = ConfigManager()

    if key == "defaultProvider":
        console.print(manager.get_default_provider() or "(not set)")
        return
    if key == "defaultModel":
        console.print(manager.get_default_model() or "(not set)")
        return

    provider, field = _split_key(key)
    creds = manager.get_provider_config(provider)
    value = getattr(creds, PROVIDER_FIELDS[field]) if creds else None

    if not value:
        console.print("(not set)")
    elif field == "apiKey":
        console.print(mask_key(value))
    else:
        console.print(str(value))


@config_app.command("set")
def set_value(
    key: str = typer.Argument(..., help="defaultProvider, defaultModel or <provider>.<field>"),
    value: str = typer.Argument(..., help="Value to store"),
):
    """Update a configuration value"""
    from xyzulu.provider.resolver import validate_provider_key

    manager = ConfigManager()

    try:
        if key == "defaultProvider":
            manager.set_default_provider(value)
            console.print(f"[green]Set defaultProvider to {value.lower()}[/green]")
            return
        if key == "defaultModel":
            manager.set_default_model(value)
            console.print(f"[green]Set defaultModel to {value}[/green]")
            return

        provider, field = _split_key(key)

        if field == "apiKey":
            if not validate_provider_key(provider, value):
                console.print(f'[red]Invalid API key format for provider "{provider}"[/red]')
                raise typer.Exit(1)
            manager.set_provider_key(provider, value)
            console.print(f"[green]Set {provider}.apiKey[/green]")
            return

        creds = manager.get_provider_config(provider)
        if creds is None:
            console.print(
                f'[red]Provider "{provider}" is not configured. '
                f"Set its key first with: xyzulu config set {provider}.apiKey <key>[/red]"
            )
            raise typer.Exit(1)

        if field in ("timeout", "maxRetries"):
            try:
                parsed = int(value)
            except ValueError:
                console.print(f"[red]{key} must be an integer[/red]")
                raise typer.Exit(1)
            if parsed < 0:
                console.print(f"[red]{key} must not be negative[/red]")
                raise typer.Exit(1)
            setattr(creds, PROVIDER_FIELDS[field], parsed)
        else:
            setattr(creds, PROVIDER_FIELDS[field], value)

        manager.set_provider_config(provider, creds)
        console.print(f"[green]Set {provider}.{field}[/green]")
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@config_app.command("unset")
def unset_provider(provider: str = typer.Argument(..., help="Provider to remove")):
    """Remove a provider and its stored key"""
    manager = ConfigManager()
    try:
        removed = manager.remove_provider(provider)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if removed:
        console.print(f"[green]Removed provider {provider.lower()}[/green]")
    else:
        console.print(f"[yellow]Provider {provider.lower()} was not configured[/yellow]")


@config_app.command("path")
def show_path():
    """Print the configuration file location"""
    console.print(str(ConfigManager().config_path))
