from __future__ import annotations

import json
import shutil
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer

from leaddesk import __version__
from leaddesk.adapters.supabase.client import IdentityError, SupabaseClient
from leaddesk.config import (
    WorkspaceError,
    ensure_workspaces_dir,
    load_workspace,
    set_current_workspace,
    workspace_config_path,
    write_workspace_config,
)
from leaddesk.domain import rules
from leaddesk.domain.models import Actor
from leaddesk.domain.rules import ConflictError, ForbiddenError, NotFoundError, ValidationError
from leaddesk.domain.stages import (
    OPPORTUNITY_STAGE_LABELS,
    STAGE_LABELS,
    CallOutcome,
    LeadStage,
    OpportunityStage,
    Priority,
)
from leaddesk.services import (
    analytics,
    audit,
    calls,
    conversion,
    exports,
    followups,
    identity,
    leads,
    notes,
    opportunities,
    todos,
    users,
)
from leaddesk.services.access import require_admin
from leaddesk.services.events import EventLogger
from leaddesk.services.utils import today_iso
from leaddesk.store.migrations import SchemaError
from leaddesk.store.sqlite import SqliteStore

app = typer.Typer(help="Leaddesk CLI")
workspace_app = typer.Typer(help="Workspace management")
schema_app = typer.Typer(help="Schema operations")
user_app = typer.Typer(help="Users and roles")
lead_app = typer.Typer(help="Lead operations")
call_app = typer.Typer(help="Call logging")
opp_app = typer.Typer(help="Opportunity operations")
note_app = typer.Typer(help="Lead notes")
todo_app = typer.Typer(help="Personal todos")
audit_app = typer.Typer(help="Deletion audit trail")
stats_app = typer.Typer(help="Pipeline statistics")
export_app = typer.Typer(help="Exports")

app.add_typer(workspace_app, name="workspace")
app.add_typer(schema_app, name="schema")
app.add_typer(user_app, name="user")
app.add_typer(lead_app, name="lead")
app.add_typer(call_app, name="call")
app.add_typer(opp_app, name="opp")
app.add_typer(note_app, name="note")
app.add_typer(todo_app, name="todo")
app.add_typer(audit_app, name="audit")
app.add_typer(stats_app, name="stats")
app.add_typer(export_app, name="export")

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "resources" / "schema" / "canonical.yaml"
DOMAIN_ERRORS = (ValidationError, NotFoundError, ForbiddenError, ConflictError)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    user: str | None = typer.Option(
        None, "--user", envvar="LEADDESK_USER", help="Act as this local user id."
    ),
    token: str | None = typer.Option(
        None, "--token", envvar="LEADDESK_TOKEN", help="Bearer token for the identity provider."
    ),
    events: bool = typer.Option(
        True, "--events/--no-events", help="Write events to the workspace log."
    ),
):
    if version:
        typer.echo(__version__)
        raise typer.Exit()
    ctx.obj = {"user": user, "token": token, "events": events}


@app.command("init")
def init() -> None:
    """Initialize directories for workspaces and outputs."""
    ensure_workspaces_dir()
    Path("data").mkdir(exist_ok=True)
    Path("exports").mkdir(exist_ok=True)
    typer.echo("Initialized leaddesk directories.")


@workspace_app.command("add")
def workspace_add(
    name: str = typer.Argument(...),
    identity_url: str | None = typer.Option(None, "--identity-url", help="Supabase project URL."),
    owner_auth_id: str | None = typer.Option(
        None, "--owner-auth-id", help="Identity subject promoted to admin."
    ),
    use: bool = typer.Option(True, "--use/--no-use", help="Set as current workspace."),
    force: bool = typer.Option(
        False, "--force", help="Overwrite existing workspace config if it exists."
    ),
) -> None:
    config_path = workspace_config_path(name)
    if config_path.exists() and not force:
        raise typer.BadParameter(
            f"Workspace already exists: {config_path}. Use --force to overwrite."
        )
    config_path = write_workspace_config(name, identity_url, owner_auth_id)
    if use:
        set_current_workspace(name)
    typer.echo(f"Workspace created: {config_path}")


@workspace_app.command("use")
def workspace_use(name: str = typer.Argument(...)) -> None:
    if not workspace_config_path(name).exists():
        raise typer.BadParameter(f"Workspace config not found: {workspace_config_path(name)}")
    set_current_workspace(name)
    typer.echo(f"Active workspace: {name}")


@schema_app.command("apply")
def schema_apply() -> None:
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    try:
        store.apply_schema(SCHEMA_PATH)
    except SchemaError as exc:
        _exit_with_error(str(exc))
    typer.echo("Applied schema to local SQLite.")


@user_app.command("add")
def user_add(
    ctx: typer.Context,
    auth_id: str = typer.Argument(..., help="Identity-provider subject id."),
    name: str | None = typer.Option(None, "--name"),
    email: str | None = typer.Option(None, "--email"),
    role: str | None = typer.Option(None, "--role"),
) -> None:
    """Register a user. The first user needs no acting user; later ones need an admin."""
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    owner = ws.identity.owner_auth_id if ws.identity else None
    try:
        if store.fetch_one("SELECT user_id FROM users LIMIT 1") is not None:
            require_admin(_actor(ctx, ws, store), "add users")
        elif role is None:
            role = "admin"
        user = users.upsert_user(store, auth_id, name=name, email=email, role=role, owner_auth_id=owner)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"User: {user.user_id} ({user.role})")


@user_app.command("list")
def user_list(ctx: typer.Context) -> None:
    ws, store, actor = _open(ctx)
    try:
        rows = users.list_users(store, actor)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    for user in rows:
        typer.echo(f"{user.user_id} | {user.name or ''} | {user.email or ''} | {user.role}")


@user_app.command("role")
def user_role(
    ctx: typer.Context,
    user_id: str = typer.Argument(...),
    role: str = typer.Argument(..., help="user or admin"),
) -> None:
    ws, store, actor = _open(ctx)
    try:
        users.update_role(store, actor, user_id, role, logger=_event_logger(ctx, ws))
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Role updated: {user_id} -> {role}")


@lead_app.command("add")
def lead_add(
    ctx: typer.Context,
    company: str = typer.Option(..., "--company"),
    contact: str = typer.Option(..., "--contact"),
    phone: str | None = typer.Option(None, "--phone"),
    email: str | None = typer.Option(None, "--email"),
    provider: str | None = typer.Option(None, "--provider"),
    source: str | None = typer.Option(None, "--source"),
    cohort: str | None = typer.Option(None, "--cohort"),
    follow_up: str | None = typer.Option(None, "--follow-up", help="ISO date or datetime."),
    owner: str | None = typer.Option(None, "--owner", help="Owner user id (admins only)."),
) -> None:
    ws, store, actor = _open(ctx)
    try:
        lead_id = leads.create_lead(
            store,
            actor,
            company,
            contact,
            owner_id=owner,
            logger=_event_logger(ctx, ws),
            phone=phone,
            email=email,
            provider=provider,
            data_source=source,
            data_cohort=cohort,
            next_follow_up_date=rules.parse_datetime(follow_up, "follow-up"),
        )
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created lead: {lead_id}")


@lead_app.command("list")
def lead_list(
    ctx: typer.Context,
    stage: str | None = typer.Option(None, "--stage"),
    include_converted: bool = typer.Option(False, "--all", help="Include converted leads."),
) -> None:
    ws, store, actor = _open(ctx)
    try:
        if stage:
            rows = leads.list_leads_by_stage(store, actor, stage)
        else:
            rows = leads.list_leads(store, actor, hide_converted=not include_converted)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    for lead in rows:
        typer.echo(
            f"{lead.lead_id} | {lead.company_name} | {lead.contact_name} | {lead.stage} | "
            f"{lead.dial_attempts} | {lead.next_follow_up_date or ''}"
        )


@lead_app.command("show")
def lead_show(
    ctx: typer.Context,
    lead_id: str = typer.Argument(...),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    ws, store, actor = _open(ctx)
    try:
        lead = leads.get_lead(store, actor, lead_id)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    _echo_record(asdict(lead), json_output)


@lead_app.command("update")
def lead_update(
    ctx: typer.Context,
    lead_id: str = typer.Argument(...),
    assignments: Annotated[
        list[str] | None,
        typer.Option("--set", help="field=value; repeat for several fields."),
    ] = None,
) -> None:
    ws, store, actor = _open(ctx)
    changes = _parse_assignments(assignments or [])
    try:
        lead = leads.update_lead(store, actor, lead_id, logger=_event_logger(ctx, ws), **changes)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Updated lead: {lead.lead_id} ({lead.stage})")


@lead_app.command("stage")
def lead_stage(
    ctx: typer.Context,
    lead_id: str = typer.Argument(...),
    stage: str = typer.Argument(..., help=", ".join(s.value for s in LeadStage)),
) -> None:
    """Manually move a lead to any stage."""
    ws, store, actor = _open(ctx)
    try:
        lead = leads.update_lead(store, actor, lead_id, logger=_event_logger(ctx, ws), stage=stage)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Lead {lead.lead_id} is now {lead.stage}")


@lead_app.command("delete")
def lead_delete(ctx: typer.Context, lead_id: str = typer.Argument(...)) -> None:
    ws, store, actor = _open(ctx)
    try:
        leads.delete_lead(store, actor, lead_id, logger=_event_logger(ctx, ws))
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted lead: {lead_id}")


@lead_app.command("followups")
def lead_followups(ctx: typer.Context) -> None:
    """Leads and opportunities due for follow-up today."""
    ws, store, actor = _open(ctx)
    _echo_follow_ups(followups.follow_ups_due_today(store, actor), "No follow-ups due today.")


@lead_app.command("overdue")
def lead_overdue(ctx: typer.Context) -> None:
    ws, store, actor = _open(ctx)
    _echo_follow_ups(followups.overdue_follow_ups(store, actor), "Nothing overdue.")


@call_app.command("log")
def call_log(
    ctx: typer.Context,
    record_id: str = typer.Argument(..., help="Lead id, or opportunity id with --opp."),
    outcome: str = typer.Option(..., "--outcome", help=", ".join(o.value for o in CallOutcome)),
    duration: int | None = typer.Option(None, "--duration", help="Seconds."),
    note: str | None = typer.Option(None, "--notes"),
    callback: str | None = typer.Option(None, "--callback", help="Schedule a callback at this time."),
    on_opportunity: bool = typer.Option(False, "--opp", help="Log against an opportunity."),
) -> None:
    ws, store, actor = _open(ctx)
    logger = _event_logger(ctx, ws)
    try:
        if on_opportunity:
            if callback:
                raise typer.BadParameter("--callback applies to lead calls only.")
            call_id = calls.log_opportunity_call(
                store, actor, record_id, outcome, duration=duration, notes=note, logger=logger
            )
        else:
            call_id = calls.log_call(
                store,
                actor,
                record_id,
                outcome,
                duration=duration,
                notes=note,
                callback_requested=callback is not None,
                callback_date=rules.parse_datetime(callback, "callback"),
                logger=logger,
            )
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Logged call: {call_id}")
    if not on_opportunity:
        lead = leads.get_lead(store, actor, record_id)
        typer.echo(f"Lead stage: {lead.stage} ({lead.dial_attempts} dials)")


@call_app.command("list")
def call_list(ctx: typer.Context, lead_id: str = typer.Argument(...)) -> None:
    ws, store, actor = _open(ctx)
    try:
        rows = calls.list_calls_for_lead(store, actor, lead_id)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    _echo_calls(rows)


@app.command("convert")
def convert(
    ctx: typer.Context,
    lead_id: str = typer.Argument(...),
    name: str | None = typer.Option(None, "--name"),
    value: str | None = typer.Option(None, "--value", help="Deal value."),
    close: str | None = typer.Option(None, "--close", help="Expected close date."),
    note: str | None = typer.Option(None, "--notes"),
    probability: int = typer.Option(conversion.DEFAULT_PROBABILITY, "--probability"),
) -> None:
    """Convert a lead into a qualified opportunity."""
    ws, store, actor = _open(ctx)
    try:
        opportunity_id = conversion.convert_lead(
            store,
            actor,
            lead_id,
            name=name,
            deal_value=value,
            expected_close_date=rules.parse_datetime(close, "close"),
            notes=note,
            probability=probability,
            logger=_event_logger(ctx, ws),
        )
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created opportunity: {opportunity_id}")


@opp_app.command("list")
def opp_list(ctx: typer.Context, stage: str | None = typer.Option(None, "--stage")) -> None:
    ws, store, actor = _open(ctx)
    try:
        if stage:
            rows = opportunities.list_opportunities_by_stage(store, actor, stage)
        else:
            rows = opportunities.list_opportunities(store, actor)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    for opp in rows:
        typer.echo(
            f"{opp.opportunity_id} | {opp.name} | {opp.stage} | {opp.deal_value or ''} | "
            f"{opp.probability}%"
        )


@opp_app.command("show")
def opp_show(
    ctx: typer.Context,
    opportunity_id: str = typer.Argument(...),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    ws, store, actor = _open(ctx)
    try:
        opp = opportunities.get_opportunity(store, actor, opportunity_id)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    _echo_record(asdict(opp), json_output)


@opp_app.command("update")
def opp_update(
    ctx: typer.Context,
    opportunity_id: str = typer.Argument(...),
    stage: str | None = typer.Option(
        None, "--stage", help=", ".join(s.value for s in OpportunityStage)
    ),
    name: str | None = typer.Option(None, "--name"),
    value: str | None = typer.Option(None, "--value"),
    probability: int | None = typer.Option(None, "--probability"),
    close: str | None = typer.Option(None, "--close", help="Expected close date."),
    loss_reason: str | None = typer.Option(None, "--loss-reason"),
) -> None:
    ws, store, actor = _open(ctx)
    try:
        changes = {
            "stage": stage,
            "name": name,
            "deal_value": value,
            "probability": probability,
            "expected_close_date": rules.parse_datetime(close, "close"),
            "loss_reason": loss_reason,
        }
        opp = opportunities.update_opportunity(
            store,
            actor,
            opportunity_id,
            logger=_event_logger(ctx, ws),
            **{key: val for key, val in changes.items() if val is not None},
        )
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Updated opportunity: {opp.opportunity_id} ({opp.stage})")


@opp_app.command("delete")
def opp_delete(ctx: typer.Context, opportunity_id: str = typer.Argument(...)) -> None:
    ws, store, actor = _open(ctx)
    try:
        opportunities.delete_opportunity(store, actor, opportunity_id, logger=_event_logger(ctx, ws))
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted opportunity: {opportunity_id}")


@opp_app.command("note")
def opp_note(
    ctx: typer.Context,
    opportunity_id: str = typer.Argument(...),
    content: str | None = typer.Argument(None, help="Omit to list notes."),
) -> None:
    ws, store, actor = _open(ctx)
    try:
        if content is None:
            _echo_notes(notes.list_opportunity_notes(store, actor, opportunity_id))
            return
        note_id = notes.add_opportunity_note(store, actor, opportunity_id, content)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Added note: {note_id}")


@opp_app.command("calls")
def opp_calls(ctx: typer.Context, opportunity_id: str = typer.Argument(...)) -> None:
    ws, store, actor = _open(ctx)
    try:
        rows = calls.list_calls_for_opportunity(store, actor, opportunity_id)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    _echo_calls(rows)


@note_app.command("add")
def note_add(
    ctx: typer.Context,
    lead_id: str = typer.Argument(...),
    content: str = typer.Argument(...),
) -> None:
    ws, store, actor = _open(ctx)
    try:
        note_id = notes.add_lead_note(store, actor, lead_id, content)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Added note: {note_id}")


@note_app.command("list")
def note_list(ctx: typer.Context, lead_id: str = typer.Argument(...)) -> None:
    ws, store, actor = _open(ctx)
    try:
        rows = notes.list_lead_notes(store, actor, lead_id)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    _echo_notes(rows)


@todo_app.command("add")
def todo_add(
    ctx: typer.Context,
    title: str = typer.Argument(...),
    description: str | None = typer.Option(None, "--description"),
    due: str | None = typer.Option(None, "--due"),
    priority: str = typer.Option(
        Priority.MEDIUM.value, "--priority", help=", ".join(p.value for p in Priority)
    ),
    lead_id: str | None = typer.Option(None, "--lead"),
) -> None:
    ws, store, actor = _open(ctx)
    try:
        todo = todos.create_todo(
            store,
            actor,
            title,
            description=description,
            due_date=rules.parse_datetime(due, "due"),
            priority=priority,
            linked_lead_id=lead_id,
        )
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Created todo: {todo.todo_id}")


@todo_app.command("list")
def todo_list(
    ctx: typer.Context,
    open_only: bool = typer.Option(False, "--open", help="Hide completed todos."),
) -> None:
    ws, store, actor = _open(ctx)
    rows = todos.list_todos(store, actor, include_completed=not open_only)
    if not rows:
        typer.echo("No todos.")
        return
    for todo in rows:
        mark = "x" if todo.completed else " "
        typer.echo(f"[{mark}] {todo.todo_id} | {todo.title} | {todo.priority} | {todo.due_date or ''}")


@todo_app.command("done")
def todo_done(ctx: typer.Context, todo_id: str = typer.Argument(...)) -> None:
    ws, store, actor = _open(ctx)
    try:
        todos.complete_todo(store, actor, todo_id)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Completed todo: {todo_id}")


@todo_app.command("delete")
def todo_delete(ctx: typer.Context, todo_id: str = typer.Argument(...)) -> None:
    ws, store, actor = _open(ctx)
    try:
        todos.delete_todo(store, actor, todo_id)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Deleted todo: {todo_id}")


@audit_app.command("list")
def audit_list(ctx: typer.Context) -> None:
    ws, store, actor = _open(ctx)
    try:
        rows = audit.list_audit_logs(store, actor)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    for entry in rows:
        typer.echo(
            f"{entry.deleted_at} | {entry.entity_type} | {entry.entity_name} | "
            f"{entry.deleted_by_name} | {entry.additional_info or ''}"
        )


@stats_app.command("metrics")
def stats_metrics(
    ctx: typer.Context,
    start: str | None = typer.Option(None, "--start"),
    end: str | None = typer.Option(None, "--end"),
    agent: str | None = typer.Option(None, "--agent", help="Narrow to one agent (admins only)."),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    ws, store, actor = _open(ctx)
    try:
        result = analytics.metrics(
            store,
            actor,
            start=rules.parse_datetime(start, "start"),
            end=rules.parse_datetime(end, "end"),
            agent_id=agent,
        )
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    _echo_record(asdict(result), json_output)


@stats_app.command("stages")
def stats_stages(
    ctx: typer.Context,
    opps: bool = typer.Option(False, "--opps", help="Opportunity stages instead of lead stages."),
) -> None:
    ws, store, actor = _open(ctx)
    if opps:
        distribution = analytics.opportunity_stage_distribution(store, actor)
        labels = {s.value: label for s, label in OPPORTUNITY_STAGE_LABELS.items()}
    else:
        distribution = analytics.stage_distribution(store, actor)
        labels = {s.value: label for s, label in STAGE_LABELS.items()}
    for stage, count in distribution.items():
        typer.echo(f"{labels.get(stage, stage)}: {count}")


@stats_app.command("agents")
def stats_agents(ctx: typer.Context) -> None:
    ws, store, actor = _open(ctx)
    try:
        rows = analytics.agent_metrics(store, actor)
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    for row in rows:
        typer.echo(
            f"{row.agent_name} | leads {row.total_leads} | dials {row.total_dials} | "
            f"connect {row.connect_percent:.1f}% | close {row.close_percent:.1f}% | wins {row.wins}"
        )


@stats_app.command("losses")
def stats_losses(ctx: typer.Context) -> None:
    ws, store, actor = _open(ctx)
    breakdown = analytics.loss_reason_breakdown(store, actor)
    if not breakdown:
        typer.echo("No closed-lost opportunities.")
        return
    for reason, count in breakdown.items():
        typer.echo(f"{reason}: {count}")


@export_app.command("excel")
def export_excel(ctx: typer.Context, out: str = typer.Option(..., "--out")) -> None:
    ws, store, actor = _open(ctx)
    try:
        exports.export_excel(store, actor, Path(out))
    except DOMAIN_ERRORS as exc:
        _exit_with_error(str(exc))
    typer.echo(f"Exported Excel to {out}")


@app.command("snapshot")
def snapshot(ctx: typer.Context) -> None:
    ws, store, actor = _open(ctx)
    snapshot_dir = Path("data") / "snapshots" / today_iso()
    try:
        require_admin(actor, "take snapshots")
    except ForbiddenError as exc:
        _exit_with_error(str(exc))
    snapshot_dir.mkdir(parents=True, exist_ok=True)
    if ws.store.sqlite_path.exists():
        shutil.copy2(ws.store.sqlite_path, snapshot_dir / "local.sqlite")
    exports.export_csv_tables(store, actor, snapshot_dir)
    typer.echo(f"Snapshot created at {snapshot_dir}")


def _load_workspace():
    try:
        return load_workspace()
    except WorkspaceError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc


def _open(ctx: typer.Context):
    ws = _load_workspace()
    store = SqliteStore(ws.store.sqlite_path)
    return ws, store, _actor(ctx, ws, store)


def _actor(ctx: typer.Context, ws, store: SqliteStore) -> Actor:
    options = ctx.obj or {}
    user_id = options.get("user")
    token = options.get("token")
    try:
        if user_id:
            return users.get_user(store, user_id).as_actor()
        if token:
            if ws.identity is None:
                raise IdentityError("Workspace identity config is missing.")
            client = SupabaseClient(ws.identity.url, ws.identity.service_key())
            return identity.resolve_actor(
                store,
                client,
                token,
                owner_auth_id=ws.identity.owner_auth_id,
                logger=_event_logger(ctx, ws),
            )
    except (IdentityError, WorkspaceError, NotFoundError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    typer.echo("Error: No acting user. Pass --user or --token.", err=True)
    raise typer.Exit(code=2)


def _exit_with_error(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


def _event_logger(ctx: typer.Context, ws) -> EventLogger:
    enabled = (ctx.obj or {}).get("events", True)
    return EventLogger(path=ws.path / "events.ndjson", workspace=ws.name, enabled=enabled)


def _parse_assignments(assignments: list[str]) -> dict[str, str | None]:
    changes: dict[str, str | None] = {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected field=value, got: {item}")
        changes[key.strip()] = value if value != "" else None
    return changes


def _echo_record(payload: dict, json_output: bool) -> None:
    if json_output:
        typer.echo(json.dumps(payload, indent=2))
        return
    for key, value in payload.items():
        if isinstance(value, float):
            value = f"{value:.2f}"
        typer.echo(f"{key}: {'' if value is None else value}")


def _echo_follow_ups(items: list[followups.FollowUpItem], empty_message: str) -> None:
    if not items:
        typer.echo(empty_message)
        return
    for item in items:
        typer.echo(f"{item.kind} | {item.record_id} | {item.name} | {item.stage} | {item.due_at}")


def _echo_calls(rows) -> None:
    if not rows:
        typer.echo("No calls logged.")
        return
    for call in rows:
        typer.echo(
            f"{call.call_date} | {call.call_outcome} | {call.call_duration or ''} | {call.notes or ''}"
        )


def _echo_notes(rows) -> None:
    if not rows:
        typer.echo("No notes.")
        return
    for note in rows:
        typer.echo(f"{note.created_at} | {note.created_by_name} | {note.content}")


if __name__ == "__main__":
    app()
