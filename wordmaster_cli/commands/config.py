"""Configuration Commands - CLI settings management"""

import typer
import yaml
from rich.console import Console
from rich.prompt import Confirm

from ..utils.config_manager import config
from ..utils.formatting import print_error, print_success

console = Console()
app = typer.Typer(name="config", help="CLI configuration management")


@app.command("set")
def set_config(
    key: str = typer.Argument(..., help="Configuration key (e.g., 'api.base_url')"),
    value: str = typer.Argument(..., help="Configuration value"),
):
    """⚙️ Set a configuration value"""
    if key == "api.base_url" and not value.startswith(("http://", "https://")):
        print_error("API base URL must start with http:// or https://")
        raise typer.Exit(1)

    if key.endswith(".timeout") and not value.isdigit():
        print_error("Timeout values must be numeric (seconds)")
        raise typer.Exit(1)

    try:
        config.set(key, yaml.safe_load(value))
    except OSError as e:
        print_error(f"Failed to set configuration: {e}")
        raise typer.Exit(1) from None
    print_success(f"Set {key} = {value}")


@app.command("get")
def get_config(key: str = typer.Argument(..., help="Configuration key")):
    """📋 Get a configuration value"""
    value = config.get(key)
    if value is None:
        console.print(f"[yellow]Key '{key}' not found[/yellow]")
        raise typer.Exit(1)
    console.print(f"[cyan]{key}[/cyan] = [yellow]{value}[/yellow]")


@app.command("show")
def show_config():
    """📊 Show all configuration settings"""
    console.print(f"[dim]{config.config_file}[/dim]")
    console.print(yaml.safe_dump(config.load_config(), default_flow_style=False))


@app.command("reset")
def reset_config(yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")):
    """🔄 Reset configuration to defaults"""
    if not yes and not Confirm.ask("⚠️ Reset ALL configuration to defaults?"):
        console.print("Configuration reset cancelled.")
        return
    config.reset()
    print_success("Configuration reset to defaults")
