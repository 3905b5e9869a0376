"""Command line tools: import the question feed into the local store."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import typer

from contextneeded.config import settings
from contextneeded.db.database import Database
from contextneeded.errors import TransportError, ValidationError
from contextneeded.gatekeeping.sanitizer import sanitize_question, validate_question
from contextneeded.sources.remote import RemoteDatasetClient

logger = logging.getLogger(__name__)

app = typer.Typer(no_args_is_help=True)


@dataclass
class MigrationReport:
    migrated: int = 0
    failed: list[tuple[int, str]] = field(default_factory=list)


async def migrate_feed(client: RemoteDatasetClient, csv_url: str, db: Database) -> MigrationReport:
    """Copy every valid feed row into the question store."""
    questions = await client.fetch_all(csv_url)
    report = MigrationReport()
    for index, question in enumerate(questions, 1):
        try:
            clean = validate_question(sanitize_question(question.to_dict()))
        except ValidationError as exc:
            logger.warning("Skipping row %d (%r): %s", index, question.title[:50], exc)
            report.failed.append((index, str(exc)))
            continue
        await db.add_question(clean)
        report.migrated += 1
    return report


async def _run_migration(csv_url: str, database: str) -> MigrationReport:
    db = Database(database)
    await db.connect()
    try:
        client = RemoteDatasetClient(timeout=settings.http_timeout)
        return await migrate_feed(client, csv_url, db)
    finally:
        await db.close()


async def _count(database: str) -> int:
    db = Database(database)
    await db.connect()
    try:
        return await db.count_questions()
    finally:
        await db.close()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output.")) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")


@app.command("migrate")
def migrate_cmd(
    csv_url: Optional[str] = typer.Option(None, "--csv-url", help="Feed to import (defaults to settings)."),
    database: Optional[str] = typer.Option(None, "--database", help="SQLite database path."),
) -> None:
    """Import the delimited question feed into the question store."""
    try:
        report = asyncio.run(
            _run_migration(csv_url or settings.csv_url, database or settings.database_path)
        )
    except TransportError as exc:
        typer.echo(f"Could not fetch feed: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Migrated: {report.migrated}")
    typer.echo(f"Failed: {len(report.failed)}")
    for index, error in report.failed:
        typer.echo(f"  row {index}: {error}")


@app.command("count")
def count_cmd(
    database: Optional[str] = typer.Option(None, "--database", help="SQLite database path."),
) -> None:
    """Print the number of stored questions."""
    typer.echo(str(asyncio.run(_count(database or settings.database_path))))


@app.command("serve")
def serve_cmd() -> None:
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("contextneeded.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    app()
