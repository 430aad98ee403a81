"""CLI entry point for xyzulu"""

import asyncio
import logging
from contextlib import aclosing
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from xyzulu.config.cli import config_app
from xyzulu.config.config import ConfigError
from xyzulu.context import AppContext
from xyzulu.provider.base import CodeContext, GenerationOptions, Provider
from xyzulu.provider.errors import LLMError
from xyzulu.provider.resolver import PROVIDERS, is_known_model, validate_provider_model

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="xyzulu",
    help="Multi-provider AI coding assistant",
    add_completion=False,
)
app.add_typer(config_app, name="config")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Configure logging for every command"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _fail(message: str):
    err_console.print(f"[red]Error: {message}[/red]")
    raise typer.Exit(1)


def _prepare(model: str | None, provider: str | None) -> tuple[AppContext, Provider, str | None]:
    """Resolve the provider and request model for one invocation"""
    conflict = validate_provider_model(model, provider)
    if conflict:
        _fail(conflict)

    ctx = AppContext.default()
    ctx.bootstrap()
    # An explicit provider wins, so models outside the static table still work
    resolved = ctx.resolve(provider or model)

    if model and is_known_model(model):
        request_model = model.lower()
    elif model and provider:
        request_model = model
    else:
        request_model = ctx.config.get_default_model()
        if request_model and request_model not in resolved.supported_models():
            logger.debug(f"Ignoring default model {request_model} for provider {resolved.get_name()}")
            request_model = None

    return ctx, resolved, request_model


@app.command()
def generate(
    prompt: list[str] = typer.Argument(..., help="Prompt to send"),
    model: str = typer.Option(None, "--model", "-m", help="Model or provider to use (e.g. gpt-4o)"),
    provider: str = typer.Option(None, "--provider", "-p", help="Provider to use (e.g. openai)"),
    stream: bool = typer.Option(False, "--stream", "-s", help="Stream the response"),
    temperature: float = typer.Option(None, "--temperature", "-t", min=0.0, max=2.0),
    max_tokens: int = typer.Option(None, "--max-tokens", min=1),
):
    """Send a single prompt and print the reply"""
    text = " ".join(prompt)

    async def run_generate():
        _, llm, request_model = _prepare(model, provider)
        options = GenerationOptions(
            model=request_model,
            temperature=temperature,
            max_tokens=max_tokens,
            stream=stream,
        )

        err_console.print(f"[dim]Using provider: {llm.get_name()}[/dim]")

        if stream:
            async with aclosing(llm.stream_response(text, options)) as chunks:
                async for chunk in chunks:
                    print(chunk.content, end="", flush=True)
            print()
            return

        response = await llm.send_message(text, options)
        console.print(response.content, markup=False, highlight=False)
        if response.usage:
            err_console.print(
                f"[dim]Tokens used: {response.usage.total} "
                f"(prompt: {response.usage.prompt}, completion: {response.usage.completion})[/dim]"
            )

    try:
        asyncio.run(run_generate())
    except (LLMError, ConfigError) as e:
        _fail(str(e))


@app.command()
def code(
    prompt: list[str] = typer.Argument(..., help="What the code should do"),
    file: Path = typer.Option(None, "--file", "-f", help="Target file"),
    language: str = typer.Option(None, "--language", "-l", help="Programming language"),
    requirements: str = typer.Option(None, "--requirements", "-r", help="Extra requirements"),
    model: str = typer.Option(None, "--model", "-m", help="Model or provider to use"),
    provider: str = typer.Option(None, "--provider", "-p", help="Provider to use"),
    write: bool = typer.Option(False, "--write", "-w", help="Apply the proposed file changes"),
):
    """Generate code, optionally for a specific file"""
    text = " ".join(prompt)

    existing = None
    if file is not None and file.is_file():
        try:
            existing = file.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            _fail(f"File is not valid UTF-8 text: {file}")
        except OSError as e:
            _fail(f"Cannot read file: {e}")

    context = CodeContext(
        file_path=str(file) if file is not None else None,
        language=language,
        existing_code=existing,
        requirements=requirements,
    )

    async def run_code():
        _, llm, request_model = _prepare(model, provider)
        err_console.print(f"[dim]Using provider: {llm.get_name()}[/dim]")
        return await llm.generate_code(text, context, GenerationOptions(model=request_model))

    try:
        result = asyncio.run(run_code())
    except (LLMError, ConfigError) as e:
        _fail(str(e))

    console.print(result.code, markup=False, highlight=False)
    if result.explanation:
        console.print()
        console.print(result.explanation, markup=False, highlight=False)

    for change in result.changes:
        console.print(f"\n[bold]{change.operation}[/bold] {change.path}")
        if change.diff:
            console.print(change.diff, markup=False, highlight=False)
        if write:
            path = Path(change.path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(change.content + "\n", encoding="utf-8")
            console.print(f"[green]Wrote {change.path}[/green]")


@app.command()
def providers():
    """List known providers and their configuration state"""
    ctx = AppContext.default()
    config = ctx.config.effective_config()

    table = Table(title="Providers")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Configured", style="green")
    table.add_column("Default", style="magenta")
    table.add_column("Models", style="blue")

    for name, provider_class in PROVIDERS.items():
        creds = config.providers.get(name)
        configured = "yes" if creds and provider_class.validate_config(creds) else "no"
        default = "*" if config.default_provider == name else ""
        table.add_row(name, configured, default, ", ".join(provider_class.SUPPORTED_MODELS))

    console.print(table)


def main():
    app()


if __name__ == "__main__":
    main()
