"""Prompt Log CLI tool (promptlogctl)."""

from typing import Optional

import httpx
import typer

from promptlog.core.security import SESSION_COOKIE

app = typer.Typer(name="promptlogctl", help="Prompt Log CLI")
db_app = typer.Typer(help="Database management commands")
logs_app = typer.Typer(help="Query and manage logs through the HTTP API")
app.add_typer(db_app, name="db")
app.add_typer(logs_app, name="logs")

API_URL_OPTION = typer.Option("http://localhost:8000", "--api-url", envvar="PROMPTLOG_API_URL", help="API base URL")
SESSION_OPTION = typer.Option(None, "--session", envvar="PROMPTLOG_SESSION", help="Session cookie value")


def _database():
    from promptlog.core.config import settings
    from promptlog.db.session import Database

    if not settings.DATABASE_URL:
        typer.echo("DATABASE_URL is not set; nothing to manage for the in-memory store.", err=True)
        raise typer.Exit(code=1)
    return Database(settings.DATABASE_URL, echo=settings.DB_ECHO)


def _client(api_url: str, session: Optional[str]) -> httpx.Client:
    cookies = {SESSION_COOKIE: session} if session else None
    return httpx.Client(base_url=api_url.rstrip("/"), cookies=cookies, timeout=30)


def _check(resp: httpx.Response) -> None:
    if resp.is_success:
        return
    try:
        detail = resp.json().get("detail", resp.text)
    except ValueError:
        detail = resp.text
    typer.echo(f"Error {resp.status_code}: {detail}", err=True)
    raise typer.Exit(code=1)


def _print_logs(logs: list) -> None:
    if not logs:
        typer.echo("No logs found.")
        return
    for log in logs:
        tags = ", ".join(log.get("tags") or [])
        typer.echo(f"  [{log['id']}] {log['prUrl']}  {log['orchestrator']} / {log['llm']}"
                   + (f"  ({tags})" if tags else ""))


@db_app.command("init")
def db_init():
    """Create the tables if they don't exist."""
    database = _database()
    try:
        database.create_all()
    finally:
        database.dispose()
    typer.echo("Tables created (or already present)")


@db_app.command("reset")
def db_reset():
    """Drop and recreate all tables (DANGER)."""
    confirm = typer.confirm("This will DROP every prompt log, user and session. Continue?")
    if not confirm:
        raise typer.Abort()
    database = _database()
    try:
        database.drop_all()
        database.create_all()
    finally:
        database.dispose()
    typer.echo("Database reset")


@db_app.command("seed")
def db_seed():
    """Insert sample prompt logs."""
    from promptlog.core.config import settings
    from promptlog.db.seeds.seed_sample_logs import seed_sample_logs
    from promptlog.storage.sql import SqlLogStore

    database = _database()
    store = SqlLogStore(database)
    try:
        store.create_schema()
        created = seed_sample_logs(store)
    finally:
        store.close()
    typer.echo(f"Seeded {created} sample logs into {settings.DATABASE_URL}")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the API server."""
    import uvicorn
    uvicorn.run("promptlog.main:app", host=host, port=port, reload=reload)


@logs_app.command("list")
def list_logs(api_url: str = API_URL_OPTION, session: Optional[str] = SESSION_OPTION):
    """List all logs."""
    with _client(api_url, session) as client:
        resp = client.get("/api/logs")
    _check(resp)
    _print_logs(resp.json())


@logs_app.command("recent")
def recent_logs(
    limit: int = typer.Option(10, help="How many logs to show"),
    api_url: str = API_URL_OPTION,
    session: Optional[str] = SESSION_OPTION,
):
    """List the most recent logs."""
    with _client(api_url, session) as client:
        resp = client.get("/api/logs/recent", params={"limit": limit})
    _check(resp)
    _print_logs(resp.json())


@logs_app.command("search")
def search_logs(
    query: str = typer.Argument(..., help="Text to look for"),
    api_url: str = API_URL_OPTION,
    session: Optional[str] = SESSION_OPTION,
):
    """Search logs by id, PR URL, author, tool, model, branch, content or tag."""
    with _client(api_url, session) as client:
        resp = client.get("/api/logs/search", params={"q": query})
    _check(resp)
    _print_logs(resp.json())


@logs_app.command("show")
def show_log(
    log_id: str = typer.Argument(..., help="Log ID"),
    api_url: str = API_URL_OPTION,
    session: Optional[str] = SESSION_OPTION,
):
    """Print one log with its content."""
    with _client(api_url, session) as client:
        resp = client.get(f"/api/logs/{log_id}")
    _check(resp)
    log = resp.json()
    typer.echo(f"{log['id']}  {log['prUrl']}")
    typer.echo(f"Author: {log['authorEmail']}  Branch: {log.get('branch') or '-'}")
    typer.echo(f"Orchestrator: {log['orchestrator']}  LLM: {log['llm']}")
    typer.echo(f"Tags: {', '.join(log.get('tags') or []) or '-'}")
    typer.echo("")
    typer.echo(log["content"])


@logs_app.command("delete")
def delete_log(
    log_id: str = typer.Argument(..., help="Log ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    api_url: str = API_URL_OPTION,
    session: Optional[str] = SESSION_OPTION,
):
    """Delete a log."""
    if not yes and not typer.confirm(f"Delete {log_id}?"):
        raise typer.Abort()
    with _client(api_url, session) as client:
        resp = client.delete(f"/api/logs/{log_id}")
    _check(resp)
    typer.echo(f"Deleted {log_id}")


if __name__ == "__main__":
    app()
