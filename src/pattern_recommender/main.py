import asyncio
import json
from typing import Annotated, Any, Awaitable, Callable

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from .config import Settings, load_settings
from .container import Recommender, build_recommender
from .errors import PatternRecommenderError
from .logging_utils import configure_logging
from .models import PatternRequest

app = Typer(help="Recommend catalog patterns with hybrid keyword and semantic search.")

DbOption = Annotated[
    str | None,
    Option("--db", help="Path to the DuckDB catalog (default: PATTERN_RECOMMENDER_DB_PATH)."),
]
StrategyOption = Annotated[
    str | None,
    Option(
        "--strategy",
        "-s",
        help="Preferred embedding strategy: transformers, ollama, gemini or simple-hash.",
    ),
]
LogLevelOption = Annotated[
    str | None,
    Option("--log-level", help="Logging level (default: WARNING)."),
]


def _settings(db: str | None, strategy: str | None, log_level: str | None) -> Settings:
    settings = load_settings(
        db_path=db,
        preferred_strategy=strategy,
        log_level=log_level.upper() if log_level else None,
    )
    configure_logging(settings.log_level)
    return settings


def _run(
    settings: Settings,
    action: Callable[[Recommender, Console], Awaitable[None]],
) -> None:
    console = Console()

    async def _main() -> None:
        recommender = await build_recommender(settings)
        try:
            await action(recommender, console)
        finally:
            recommender.close()

    try:
        asyncio.run(_main())
    except PatternRecommenderError as exc:
        console.print(f"[bold red]Error:[/] {exc}")
        raise Exit(code=1) from exc


def _print_json(console: Console, payload: Any) -> None:
    console.print_json(json.dumps(payload))


@app.command()
def recommend(
    query: Annotated[str, Argument(help="Problem description to find patterns for.")],
    category: Annotated[
        list[str] | None,
        Option("--category", "-c", help="Restrict to a category (repeatable)."),
    ] = None,
    max_results: Annotated[
        int | None, Option("--max-results", "-n", min=1, help="Maximum recommendations.")
    ] = None,
    language: Annotated[
        str | None, Option("--language", "-l", help="Target programming language.")
    ] = None,
    as_json: Annotated[bool, Option("--json", help="Print results as JSON.")] = False,
    db: DbOption = None,
    strategy: StrategyOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Recommend patterns for a natural-language query."""
    request = PatternRequest(
        query=query,
        categories=category or None,
        max_results=max_results,
        language=language,
    )

    async def action(recommender: Recommender, console: Console) -> None:
        results = await recommender.matcher.find_matching_patterns(request)
        if as_json:
            _print_json(console, [item.model_dump(mode="json") for item in results])
            return
        if not results:
            console.print("[yellow]No matching patterns found.[/]")
            return
        table = Table(title=f"Recommendations for: {query}")
        table.add_column("#", justify="right")
        table.add_column("Pattern", style="bold")
        table.add_column("Category")
        table.add_column("Confidence", justify="right")
        table.add_column("Match")
        table.add_column("Reason")
        table.add_column("Alternatives")
        for item in results:
            table.add_row(
                str(item.rank),
                item.name,
                item.category,
                f"{item.confidence:.3f}",
                item.match_type,
                item.primary_reason,
                ", ".join(item.alternatives) or "-",
            )
        console.print(table)

    _run(_settings(db, strategy, log_level), action)


@app.command()
def similar(
    pattern_id: Annotated[str, Argument(help="Identifier of a stored pattern.")],
    limit: Annotated[int | None, Option("--limit", "-n", min=1)] = None,
    as_json: Annotated[bool, Option("--json", help="Print results as JSON.")] = False,
    db: DbOption = None,
    strategy: StrategyOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """List patterns whose embeddings are closest to PATTERN_ID."""

    async def action(recommender: Recommender, console: Console) -> None:
        try:
            results = recommender.semantic.find_similar_patterns(pattern_id, limit=limit)
        except KeyError:
            console.print(f"[bold red]No embedding stored for pattern {pattern_id!r}.[/]")
            raise Exit(code=1)
        if as_json:
            _print_json(
                console,
                [
                    {"pattern_id": r.pattern_id, "name": r.name, "score": r.score, "rank": r.rank}
                    for r in results
                ],
            )
            return
        table = Table(title=f"Patterns similar to {pattern_id}")
        table.add_column("#", justify="right")
        table.add_column("Pattern", style="bold")
        table.add_column("Category")
        table.add_column("Score", justify="right")
        for result in results:
            table.add_row(str(result.rank), result.name, result.category, f"{result.score:.3f}")
        console.print(table)

    _run(_settings(db, strategy, log_level), action)


@app.command()
def index(
    force: Annotated[
        bool, Option("--force", help="Re-embed patterns even if their text is unchanged.")
    ] = False,
    rebuild: Annotated[
        bool, Option("--rebuild", help="Delete every stored vector before indexing.")
    ] = False,
    db: DbOption = None,
    strategy: StrategyOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Embed the catalog and store the vectors."""

    async def action(recommender: Recommender, console: Console) -> None:
        if rebuild:
            result = await recommender.indexer.rebuild()
        else:
            result = await recommender.indexer.index_catalog(force=force)
        info = recommender.embeddings.get_strategy_info()
        strategy_line = f"{info.name} ({info.model_id})" if info else "none"
        console.print(
            Panel(
                f"Strategy: {strategy_line}\n"
                f"Patterns: {result.total}\n"
                f"Embedded: {result.embedded}\n"
                f"Skipped: {result.skipped}\n"
                f"Failed: {result.failed}",
                title="Indexing complete",
                title_align="left",
                border_style="bold green" if result.failed == 0 else "bold yellow",
            )
        )

    _run(_settings(db, strategy, log_level), action)


@app.command()
def strategies(
    db: DbOption = None,
    strategy: StrategyOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Show which embedding strategies are available."""

    async def action(recommender: Recommender, console: Console) -> None:
        statuses = await recommender.embeddings.get_available_strategies()
        info = recommender.embeddings.get_strategy_info()
        table = Table(title="Embedding strategies")
        table.add_column("Strategy", style="bold")
        table.add_column("Model")
        table.add_column("Available")
        table.add_column("Active")
        for status in statuses:
            table.add_row(
                status.name,
                status.model,
                "[green]yes[/]" if status.available else "[red]no[/]",
                "*" if info is not None and info.name == status.name else "",
            )
        console.print(table)

    _run(_settings(db, strategy, log_level), action)


@app.command()
def clusters(
    k: Annotated[int, Argument(help="Number of clusters.")],
    db: DbOption = None,
    strategy: StrategyOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Group stored pattern embeddings with k-means."""

    async def action(recommender: Recommender, console: Console) -> None:
        groups = recommender.vectors.calculate_clusters(k)
        patterns = recommender.storage.find_by_ids(
            [member for group in groups for member in group.member_ids]
        )
        for number, group in enumerate(groups, start=1):
            names = [
                patterns[member].name if member in patterns else member
                for member in group.member_ids
            ]
            console.print(
                Panel(
                    "\n".join(names) or "(empty)",
                    title=f"Cluster {number} ({len(names)} patterns)",
                    title_align="left",
                    border_style="bold magenta",
                )
            )

    _run(_settings(db, strategy, log_level), action)
