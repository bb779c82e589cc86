"""CLI interface for lingopipe using Typer."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from lingopipe import __version__
from lingopipe.config import LingopipeConfig, load_config
from lingopipe.errors import LingopipeError
from lingopipe.providers.base import TranslationProvider
from lingopipe.storage.base import Storage


class ProviderChoice(str, Enum):
    deepl = "deepl"
    dummy = "dummy"


class StorageChoice(str, Enum):
    file = "file"
    sqlite = "sqlite"


app = typer.Typer(
    name="lingopipe",
    help="Translate JSON language files through a stage-based pipeline.",
    add_completion=False,
)
console = Console()

_verbose = False
_quiet = False


def _print(msg: str, *, verbose_only: bool = False) -> None:
    """Print respecting --verbose/--quiet flags. Errors bypass --quiet."""
    if _quiet:
        return
    if verbose_only and not _verbose:
        return
    console.print(msg)


def _create_provider(choice: ProviderChoice, api_key: str | None) -> TranslationProvider:
    from lingopipe.providers.dummy import DummyProvider

    if choice == ProviderChoice.dummy:
        return DummyProvider()

    if not api_key:
        console.print(
            "[red]Error:[/red] DeepL API key required. "
            "Use --api-key or set DEEPL_API_KEY env var."
        )
        raise typer.Exit(1)
    from lingopipe.providers.deepl import DeepLProvider
    try:
        return DeepLProvider(api_key)
    except ImportError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


def _create_storage(choice: StorageChoice, state_dir: Path) -> Storage:
    from lingopipe.storage.file import FileStorage
    from lingopipe.storage.sqlite import SQLiteStorage

    if choice == StorageChoice.sqlite:
        return SQLiteStorage(state_dir / "states.db")
    return FileStorage(state_dir)


def _load_config(path: Path | None) -> LingopipeConfig:
    if path is None:
        return LingopipeConfig()
    try:
        return load_config(path)
    except LingopipeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


def version_callback(value: bool) -> None:
    if value:
        console.print(f"lingopipe {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Show pipeline logs and extra info.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only show errors.",
    ),
) -> None:
    """lingopipe: translate key/text collections, re-translating only what changed."""
    global _verbose, _quiet
    _verbose = verbose
    _quiet = quiet
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
            force=True,
        )


@app.command()
def translate(
    file: Path = typer.Argument(
        ..., help="Source JSON language file.",
    ),
    source: str = typer.Option(
        "en", "--from", "-s", help="Source locale.",
    ),
    targets: list[str] = typer.Option(
        ..., "--to", "-t", help="Target locale (repeat for several).",
    ),
    provider_name: ProviderChoice = typer.Option(
        ProviderChoice.deepl, "--provider", "-p", help="Provider: deepl, dummy.",
    ),
    api_key: str | None = typer.Option(
        None, "--api-key", "-k",
        envvar="DEEPL_API_KEY", help="DeepL API key.",
    ),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", "-o",
        help="Directory for <locale>.json outputs. Defaults to the source file's directory.",
    ),
    config_path: Path | None = typer.Option(
        None, "--config", "-c", help="TOML configuration file.",
    ),
    glossary: Path | None = typer.Option(
        None, "--glossary", "-g", help="Path to glossary TOML file.",
    ),
    state_dir: Path | None = typer.Option(
        None, "--state-dir", help="Where diff states are stored.",
    ),
    storage: StorageChoice = typer.Option(
        StorageChoice.file, "--storage", help="State storage: file, sqlite.",
    ),
    track: bool = typer.Option(
        True, "--diff/--no-diff", help="Only translate texts that changed since the last run.",
    ),
    use_cache: bool | None = typer.Option(
        None, "--use-cache/--no-use-cache",
        help="Reuse stored translations for unchanged texts.",
    ),
    max_tokens: int | None = typer.Option(
        None, "--max-tokens", help="Token budget per provider call.",
    ),
    workers: int | None = typer.Option(
        None, "--workers", "-w", help="Chunks translated in parallel.",
    ),
    validate: bool = typer.Option(
        True, "--validate/--no-validate", help="Run structural checks on translations.",
    ),
    strict: bool = typer.Option(
        False, "--strict", help="Fail the run on validation issues.",
    ),
    dot_notation: bool = typer.Option(
        False, "--dot-notation", help="Write flat dot-notation keys.",
    ),
    report: Path | None = typer.Option(
        None, "--report", "-r",
        help="Save report to file (json/md/csv).",
    ),
) -> None:
    """Translate a JSON language file into one JSON file per target locale."""
    from lingopipe.builder import TranslationBuilder
    from lingopipe.formats.json_file import JSONFileTransformer
    from lingopipe.reporting.formatters import save_report
    from lingopipe.translation.glossary import Glossary
    from lingopipe.translation.languages import language_name

    if not file.exists():
        console.print(f"[red]Error:[/red] File not found: {file}")
        raise typer.Exit(1)

    config = _load_config(config_path)
    if state_dir is not None:
        config.diff.storage_path = state_dir
    if use_cache is not None:
        config.diff.use_cache = use_cache
    if workers is not None:
        config.chunking.max_workers = workers

    transformer = JSONFileTransformer(dot_notation=dot_notation, source_locale=source)
    try:
        texts = transformer.flatten(file)
    except ValueError as e:
        console.print(f"[red]Error:[/red] Cannot parse {file}: {e}")
        raise typer.Exit(1) from None
    if not texts:
        console.print("[yellow]No translatable strings found.[/yellow]")
        raise typer.Exit()

    provider = _create_provider(provider_name, api_key)
    builder = (
        TranslationBuilder(config)
        .from_locale(source)
        .to(targets)
        .with_provider(provider)
        .with_token_chunking(max_tokens)
        # Diff state is kept per source file
        .with_metadata({"domain": file.stem})
    )
    if track:
        builder.track_changes(storage=_create_storage(storage, config.diff.storage_path))
    if validate:
        builder.with_validation(strict=strict)
    if glossary is not None:
        try:
            builder.with_glossary(Glossary.from_toml(glossary))
        except LingopipeError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from None

    _print(f"Translating [green]{len(texts)}[/green] strings from {source} to {', '.join(targets)}")
    _print(f"Provider: [cyan]{provider.name}[/cyan]", verbose_only=True)

    try:
        with console.status("Translating..."):
            result = builder.translate(texts, raise_on_error=False)
    except LingopipeError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    out_dir = output_dir or file.parent
    if not result.snapshot.failed:
        for locale in result.target_locales:
            # Keep keys that were not re-sent by carrying them over from the existing file
            target_path = out_dir / f"{locale}.json"
            merged = transformer.flatten(target_path) if target_path.exists() else {}
            merged = {k: v for k, v in merged.items() if k in texts}
            merged.update(result.for_locale(locale))
            transformer.write(target_path, {k: merged[k] for k in texts if k in merged})
            _print(f"Written: [cyan]{target_path}[/cyan]")

    table = Table(title="Translation Summary")
    table.add_column("Locale")
    table.add_column("Language")
    table.add_column("Translated", justify="right")
    table.add_column("Added", justify="right")
    table.add_column("Changed", justify="right")
    table.add_column("Unchanged", justify="right")
    for locale in result.target_locales:
        stats = result.diff.get(locale, {})
        table.add_row(
            locale,
            language_name(locale) or "-",
            str(len(result.for_locale(locale))),
            str(stats.get("added", "-")),
            str(stats.get("changed", "-")),
            str(stats.get("unchanged", "-")),
        )
    if not _quiet:
        console.print(table)
    _print(f"Tokens: {result.total_tokens}  Duration: {result.duration:.1f}s", verbose_only=True)

    for warning in result.warnings:
        _print(f"[yellow]Warning:[/yellow] {warning}")
    for error in result.errors:
        console.print(f"[red]Error:[/red] {error}")

    if report:
        save_report(result.report(total_texts=len(texts)), report)
        _print(f"Report saved: [cyan]{report}[/cyan]")

    if result.snapshot.failed:
        raise typer.Exit(1)


@app.command(name="clear-state")
def clear_state(
    state_dir: Path = typer.Option(
        LingopipeConfig().diff.storage_path, "--state-dir", help="Where diff states are stored.",
    ),
    storage: StorageChoice = typer.Option(
        StorageChoice.file, "--storage", help="State storage: file, sqlite.",
    ),
) -> None:
    """Delete all stored diff states, forcing a full re-translation."""
    backend = _create_storage(storage, state_dir)
    if backend.clear():
        console.print(f"Cleared diff states in [yellow]{state_dir}[/yellow].")
    else:
        console.print(f"[red]Error:[/red] Could not clear {state_dir}")
        raise typer.Exit(1)


@app.command(name="state-info")
def state_info(
    state_dir: Path = typer.Option(
        LingopipeConfig().diff.storage_path, "--state-dir", help="Where diff states are stored.",
    ),
    storage: StorageChoice = typer.Option(
        StorageChoice.file, "--storage", help="State storage: file, sqlite.",
    ),
) -> None:
    """Show stored diff state keys."""
    from lingopipe.storage.file import FileStorage
    from lingopipe.storage.sqlite import SQLiteStorage

    backend = _create_storage(storage, state_dir)
    keys: list[str] = []
    if isinstance(backend, (FileStorage, SQLiteStorage)):
        keys = backend.keys()
    states = [k for k in keys if k.count(":v:") == 0 and not k.endswith(":versions")]
    console.print(f"Stored states: [green]{len(states)}[/green]")
    console.print(f"Location: [dim]{state_dir}[/dim]")
    for key in states:
        _print(f"  {key}", verbose_only=True)
    if isinstance(backend, SQLiteStorage):
        backend.close()


@app.command()
def stages() -> None:
    """List pipeline stages and the built-in handlers registered on each."""
    from lingopipe.builder import TranslationBuilder
    from lingopipe.providers.dummy import DummyProvider
    from lingopipe.storage.memory import MemoryStorage

    pipeline = (
        TranslationBuilder()
        .from_locale("en")
        .to("ko")
        .with_provider(DummyProvider())
        .track_changes(storage=MemoryStorage())
        .with_token_chunking()
        .with_glossary({"lingopipe": "lingopipe"})
        .with_validation()
        .build_pipeline()
    )

    table = Table(title="Pipeline Stages")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Stage")
    table.add_column("Handlers (by priority)")
    for i, stage in enumerate(pipeline.stages, 1):
        handlers = ", ".join(f"{h.name} ({h.priority})" for h in pipeline.handlers_for(stage))
        table.add_row(str(i), stage, handlers or "-")
    console.print(table)
    _print(f"Services: {', '.join(pipeline.services)}", verbose_only=True)


if __name__ == "__main__":
    app()
