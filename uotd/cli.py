"""
UOTD weather recommendations — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute action (DB init, catalog import, weather check, approval, etc.).
  5. Report result to stdout.

Install and run::

    pip install -e .
    uotd --help
    uotd init-db
    uotd validate-config
    uotd import-catalog --file config/catalog/sample_catalog.json
    uotd check-weather --slot lunch
    uotd list-recommendations --status pending
    uotd approve 12 --by sgt.jones
    uotd reject 13 --by sgt.jones --reason "Formation moved indoors"
    uotd expire-recommendations
    uotd run-tick
    uotd start-scheduler
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="uotd",
    help="Weather-driven Uniform of the Day — recommendation and scheduling CLI.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from uotd.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from uotd.utils.logging import configure_logging
    configure_logging(config.logging, config.schedule.timezone)


def _connect(config):
    from uotd.db.connection import get_connection

    return get_connection(
        config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    )


def _parse_now(value: Optional[str]) -> Optional[datetime]:
    """Parse an ``--at`` ISO timestamp (naive values are taken as UTC)."""
    if value is None:
        return None
    from datetime import timezone

    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        typer.echo(f"[ERROR] Invalid timestamp '{value}'. Use ISO format.", err=True)
        raise typer.Exit(code=1)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


_CONFIG_OPTION = typer.Option(None, "--config", help="Path to TOML config file.")


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Initialize the SQLite database and apply the full schema.

    Safe to run multiple times — all DDL uses IF NOT EXISTS.
    Also runs pending schema migrations.
    """
    from uotd.db.connection import get_connection
    from uotd.db.migrations import initialize_database
    from uotd.db.schema import ALL_TABLE_NAMES

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with get_connection(
        target_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
    ) as conn:
        migrations_applied = initialize_database(conn)

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo(f"  Migrations applied: {migrations_applied}")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields (API key masked).",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)
    weather = config.weather
    recs = config.recommendations

    location = (
        f"{weather.latitude}, {weather.longitude}"
        if weather.latitude is not None and weather.longitude is not None
        else "(not set)"
    )

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Timezone:         {config.schedule.timezone}")
    typer.echo(f"  Weather source:   {'WeatherAPI' if weather.api_key else 'fixture (no API key)'}")
    typer.echo(f"  Location:         {location}")
    typer.echo(f"  Forecast window:  +{recs.forecast_window_start_min}..+{recs.forecast_window_end_min} min")
    typer.echo(f"  Twilight band:    {recs.twilight_minutes} min")
    typer.echo(f"  Expiry:           {recs.expiry_hours} h")
    typer.echo(f"  Auto-publish:     {recs.auto_publish_delay_minutes or 'off'}")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        dumped = config.model_dump()
        if dumped["weather"].get("api_key"):
            dumped["weather"]["api_key"] = "***"
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(dumped, indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("import-catalog")
def import_catalog(
    catalog_file: str = typer.Option(
        "config/catalog/sample_catalog.json",
        "--file",
        "-f",
        help="Catalog JSON with uniforms, slots, accessoryRules and weatherRules.",
    ),
    with_default_rules: bool = typer.Option(
        False,
        "--with-default-rules",
        help="Also store the built-in accessory rules when the file has none.",
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Import uniforms, schedule slots and rule sets from a JSON file.

    Uses UPSERT semantics — existing uniforms and slots with the same id are
    updated; rule sets present in the file replace the stored ones.
    """
    from uotd.catalog.seed_loader import import_catalog as _import
    from uotd.db.migrations import initialize_database
    from uotd.db.repositories.settings_repo import RuleStoreRepository
    from uotd.engine.defaults import DEFAULT_ACCESSORY_RULES

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    path = Path(catalog_file)
    if not path.exists():
        typer.echo(f"[ERROR] Catalog file not found: {path}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Loading catalog from: {path}")
    try:
        with _connect(config) as conn:
            initialize_database(conn)
            result = _import(conn, path)
            if with_default_rules and not result.accessory_rules:
                store = RuleStoreRepository(conn)
                if store.get_accessory_rules() is None:
                    store.save_accessory_rules(DEFAULT_ACCESSORY_RULES)
                    result.accessory_rules = len(DEFAULT_ACCESSORY_RULES)
    except (ValueError, json.JSONDecodeError) as exc:
        typer.echo(f"[ERROR] Catalog import failed:\n{exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"  Uniforms:        {result.uniforms}")
    typer.echo(f"  Slots:           {result.slots}")
    typer.echo(f"  Accessory rules: {result.accessory_rules}")
    typer.echo(f"  Weather rules:   {result.weather_rules}")
    typer.echo("[OK] Catalog imported.")


@app.command("check-weather")
def check_weather(
    slot: Optional[str] = typer.Option(
        None, "--slot", help="Target slot (default: inferred from local time)."
    ),
    force: bool = typer.Option(
        False, "--force", help="Supersede any pending recommendation for the slot."
    ),
    user: str = typer.Option("cli", "--user", help="Actor recorded as creator."),
    at: Optional[str] = typer.Option(
        None, "--at", help="Evaluate as of this ISO timestamp (default: now)."
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Run a manual weather check and create a pending recommendation."""
    from uotd.db.migrations import initialize_database
    from uotd.engine.rule_evaluator import format_accessories
    from uotd.ingestion.weather_client import WeatherFetchError
    from uotd.pipeline.weather_check import WeatherCheckPipeline
    from uotd.taxonomy.weather_taxonomy import TriggerSource

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    now = _parse_now(at)

    try:
        with _connect(config) as conn:
            initialize_database(conn)
            result = WeatherCheckPipeline(config, conn).run(
                triggered_by=TriggerSource.MANUAL,
                user_id=user,
                target_slot=slot,
                force=force,
                now=now,
            )
    except WeatherFetchError as exc:
        typer.echo(f"[ERROR] Weather fetch failed: {exc}", err=True)
        raise typer.Exit(code=1)

    if result.used_fixture:
        typer.echo("  (fixture weather — set UOTD_WEATHER_API_KEY for live data)")
    if result.window is not None:
        w = result.window
        typer.echo(
            f"  Forecast window: {w.temperature}° / {w.precipitation_chance}% precip / "
            f"{w.wind_speed} wind ({w.hours_used} h)"
        )
    if result.twilight is not None:
        t = result.twilight
        typer.echo(f"  Twilight: {t.is_twilight}  Nighttime: {t.is_nighttime}")
    if result.accessories is not None:
        typer.echo("  " + format_accessories(result.accessories).replace("\n", "\n  "))

    typer.echo(f"  Target: {result.target_date} {result.target_slot}")
    if result.status == "no_recommendation":
        typer.echo(f"[WARN] {result.message}")
    elif result.status == "skipped":
        typer.echo(f"[SKIP] {result.message}")
    else:
        typer.echo(f"[OK] {result.message}")


@app.command("list-recommendations")
def list_recommendations(
    status: Optional[str] = typer.Option(
        None, "--status", help="Filter: pending, approved, rejected, superseded, expired."
    ),
    limit: int = typer.Option(20, "--limit", help="Maximum rows to show."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Show recent recommendations, newest first."""
    from uotd.db.migrations import initialize_database
    from uotd.db.repositories.recommendation_repo import RecommendationRepository
    from uotd.taxonomy.weather_taxonomy import RecommendationStatus
    from uotd.workflow.recommendation_workflow import RecommendationWorkflow

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    status_filter: Optional[RecommendationStatus] = None
    if status is not None:
        try:
            status_filter = RecommendationStatus(status.lower())
        except ValueError:
            valid = ", ".join(s.value for s in RecommendationStatus)
            typer.echo(f"[ERROR] Unknown status '{status}'. Valid: {valid}", err=True)
            raise typer.Exit(code=1)

    with _connect(config) as conn:
        initialize_database(conn)
        recs = RecommendationRepository(conn).get_recent(status_filter, limit)
        pending = RecommendationWorkflow(conn).count_pending()

    if not recs:
        typer.echo("No recommendations found.")
        return

    typer.echo(f"{'ID':>5}  {'Date':<10}  {'Slot':<9}  {'Status':<10}  {'Temp':>5}  Uniform")
    typer.echo("-" * 72)
    for rec in recs:
        temp = f"{rec.weather.temperature:.0f}°" if rec.weather.temperature is not None else "--"
        extras = f"  (+{len(rec.accessories)} acc.)" if rec.accessories else ""
        typer.echo(
            f"{rec.recommendation_id:>5}  {rec.target_date.isoformat():<10}  "
            f"{rec.target_slot:<9}  {rec.status.value:<10}  {temp:>5}  "
            f"{rec.uniform_name}{extras}"
        )
    typer.echo(f"\n{pending} pending approval.")


@app.command("approve")
def approve(
    recommendation_id: int = typer.Argument(..., help="Recommendation id."),
    by: str = typer.Option(..., "--by", help="Approver id."),
    name: Optional[str] = typer.Option(None, "--name", help="Approver display name."),
    title: Optional[str] = typer.Option(None, "--title", help="Custom announcement title."),
    content: Optional[str] = typer.Option(None, "--content", help="Extra announcement content."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Approve a pending recommendation and publish its announcement."""
    from uotd.db.migrations import initialize_database
    from uotd.workflow.recommendation_workflow import (
        RecommendationNotFound,
        RecommendationWorkflow,
        StateConflict,
    )

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        with _connect(config) as conn:
            initialize_database(conn)
            workflow = RecommendationWorkflow(conn, speed_unit=config.recommendations.speed_unit)
            rec = workflow.approve(
                recommendation_id,
                approved_by=by,
                custom_title=title,
                custom_content=content,
                approver_name=name,
            )
    except RecommendationNotFound as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except StateConflict as exc:
        typer.echo(f"[CONFLICT] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"[OK] Recommendation {rec.recommendation_id} approved; announcement {rec.announcement_id} published.")


@app.command("reject")
def reject(
    recommendation_id: int = typer.Argument(..., help="Recommendation id."),
    by: str = typer.Option(..., "--by", help="Rejecter id."),
    reason: Optional[str] = typer.Option(None, "--reason", help="Rejection reason."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Reject a pending recommendation."""
    from uotd.db.migrations import initialize_database
    from uotd.workflow.recommendation_workflow import (
        RecommendationNotFound,
        RecommendationWorkflow,
        StateConflict,
    )

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        with _connect(config) as conn:
            initialize_database(conn)
            RecommendationWorkflow(conn).reject(recommendation_id, rejected_by=by, reason=reason)
    except RecommendationNotFound as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except StateConflict as exc:
        typer.echo(f"[CONFLICT] {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"[OK] Recommendation {recommendation_id} rejected.")


@app.command("expire-recommendations")
def expire_recommendations(
    at: Optional[str] = typer.Option(
        None, "--at", help="Expire as of this ISO timestamp (default: now)."
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Mark pending recommendations past their expiry as expired."""
    from uotd.db.migrations import initialize_database
    from uotd.workflow.recommendation_workflow import RecommendationWorkflow

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    now = _parse_now(at)

    with _connect(config) as conn:
        initialize_database(conn)
        expired = RecommendationWorkflow(conn).expire_stale(now)

    typer.echo(f"[OK] Expired {len(expired)} recommendation(s).")


@app.command("run-tick")
def run_tick(
    at: Optional[str] = typer.Option(
        None, "--at", help="Run the tick as of this ISO timestamp (default: now)."
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Run one scheduler tick (guard, weather checks, auto-publish) and exit."""
    from uotd.db.migrations import initialize_database
    from uotd.scheduler import SchedulerDaemon

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    now = _parse_now(at)

    with _connect(config) as conn:
        initialize_database(conn)

    outcome = SchedulerDaemon(config).tick(now)
    for job, ok in outcome.items():
        typer.echo(f"  {job:<15} {'ok' if ok else 'FAILED'}")

    if not all(outcome.values()):
        typer.echo("[ERROR] One or more jobs failed; see log.", err=True)
        raise typer.Exit(code=1)
    typer.echo("[OK] Tick complete.")


@app.command("start-scheduler")
def start_scheduler(
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Start the once-a-minute scheduler daemon. Blocks until Ctrl-C."""
    from uotd.db.migrations import initialize_database
    from uotd.scheduler import SchedulerDaemon

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _connect(config) as conn:
        initialize_database(conn)

    typer.echo(f"Starting scheduler (timezone={config.schedule.timezone}). Press Ctrl-C to stop.")
    SchedulerDaemon(config).start()
    typer.echo("[OK] Scheduler stopped.")


if __name__ == "__main__":
    app()
