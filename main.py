#!/usr/bin/env python3
"""
Spec-item lifecycle engine — CLI entry point.

Usage examples:
  python main.py summary PROJ-1                      # Per-currency totals for a project
  python main.py summary PROJ-1 --room R1 --search sofa
  python main.py options PROJ-1                      # List option groups
  python main.py set-status ITEM_ID ORDERED          # Fails unless client approved
  python main.py approve ITEM_ID                     # Record client approval
  python main.py approve ITEM_ID --revoke            # Withdraw approval (may revert status)
  python main.py archive ITEM_ID
  python main.py tree PROJ-1 ROOM_ID                 # Requirement tree with linked counts
"""
import logging
import sys
from pathlib import Path

import click

from config import Config
from engine.errors import SpecEngineError
from engine.service import SpecItemService
from models.result import AggregateFilter
from models.status import SpecStatus


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )


def _service(ctx: click.Context, project_id: str | None = None) -> SpecItemService:
    config = Config()
    if ctx.obj.get("db"):
        config.db_path = Path(ctx.obj["db"])
    service = SpecItemService(config)
    if project_id:
        service.load_project(project_id)
    return service


def _load_item_project(service: SpecItemService, item_id: str) -> None:
    item = service.db.get_item(item_id)
    if item is None:
        click.echo(f"Error: spec item '{item_id}' not found.", err=True)
        sys.exit(1)
    service.load_project(item.project_id)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--db", default=None, type=click.Path(), help="Path to the specs database")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, db: str | None) -> None:
    """Spec-item lifecycle engine — statuses, options, pricing and totals."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["db"] = db
    _setup_logging(verbose)


# --------------------------------------------------------------------
# summary command
# --------------------------------------------------------------------

@cli.command()
@click.argument("project_id")
@click.option("--room", default=None, help="Only items in this room")
@click.option("--section", default=None, help="Only items in this section")
@click.option("--status", "statuses", multiple=True,
              type=click.Choice([s.value for s in SpecStatus], case_sensitive=False),
              help="Only items in this status (repeatable)")
@click.option("--currency", default=None, help="Only items priced in this currency")
@click.option("--search", default=None, help="Free-text search on name / SKU / doc code")
@click.option("--include-archived", is_flag=True, help="Include archived items")
@click.pass_context
def summary(
    ctx: click.Context,
    project_id: str,
    room: str | None,
    section: str | None,
    statuses: tuple[str, ...],
    currency: str | None,
    search: str | None,
    include_archived: bool,
) -> None:
    """Show per-currency Trade / RRP totals and workflow counters."""
    service = _service(ctx, project_id)
    flt = AggregateFilter(
        room_id=room,
        section_id=section,
        statuses={SpecStatus(s.upper()) for s in statuses} or None,
        currency=currency,
        search=search,
        include_archived=include_archived,
    )
    agg = service.compute_aggregates(flt)

    click.echo(f"\n=== Project {project_id} — {agg.item_count} item(s) ===\n")
    currencies = sorted(set(agg.trade_totals) | set(agg.rrp_totals))
    if not currencies:
        click.echo("  No priced items.")
    for code in currencies:
        click.echo(
            f"  {code}   Trade {agg.trade_totals.get(code, 0):>12,.2f}"
            f"   RRP {agg.rrp_totals.get(code, 0):>12,.2f}"
        )
    click.echo()
    if agg.average_discount_percent is not None:
        click.echo(f"  Avg discount ({agg.primary_currency}):  {agg.average_discount_percent:.2f}%")
    click.echo(f"  Awaiting client approval:  {agg.not_approved_count}")
    click.echo(f"  Missing RRP:               {agg.missing_rrp_count}")
    click.echo()


# --------------------------------------------------------------------
# options command
# --------------------------------------------------------------------

@cli.command()
@click.argument("project_id")
@click.pass_context
def options(ctx: click.Context, project_id: str) -> None:
    """List requirements that have more than one candidate spec item."""
    service = _service(ctx, project_id)
    groups = service.option_groups()
    if not groups:
        click.echo("No option groups.")
        return
    for req_id, members in groups.items():
        requirement = service.catalog.get(req_id)
        click.echo(f"\n  {requirement.name if requirement else req_id}")
        for number, item in enumerate(members, start=1):
            approved = "✓" if item.client_approved else " "
            click.echo(f"    Option #{number}  [{approved}] {item.name}  ({item.status.value})")
    click.echo()


# --------------------------------------------------------------------
# tree command
# --------------------------------------------------------------------

@cli.command()
@click.argument("project_id")
@click.argument("room_id")
@click.pass_context
def tree(ctx: click.Context, project_id: str, room_id: str) -> None:
    """Show a room's requirements with their linked spec counts."""
    service = _service(ctx, project_id)
    for section in service.requirement_tree(room_id):
        click.echo(f"\n  {section.section_name or section.section_id or '(no section)'}")
        for summary_ in section.requirements:
            req = summary_.requirement
            tick = "✓" if summary_.has_linked_specs else "✗"
            click.echo(f"    {tick} {req.name}  ({summary_.linked_specs_count} linked)")
            for child in req.child_names:
                click.echo(f"        └ {child}")
    click.echo()


# --------------------------------------------------------------------
# item commands
# --------------------------------------------------------------------

@cli.command("set-status")
@click.argument("item_id")
@click.argument("status", type=click.Choice([s.value for s in SpecStatus], case_sensitive=False))
@click.pass_context
def set_status(ctx: click.Context, item_id: str, status: str) -> None:
    """Move ITEM_ID to STATUS (approval-gated statuses need client approval)."""
    service = _service(ctx)
    _load_item_project(service, item_id)
    try:
        service.set_status(item_id, status)
    except SpecEngineError as exc:
        click.echo(f"✗ {exc}", err=True)
        sys.exit(1)
    click.echo(f"✓ {item_id} is now {service.get(item_id).status.value}")


@cli.command()
@click.argument("item_id")
@click.option("--revoke", is_flag=True, help="Withdraw client approval")
@click.pass_context
def approve(ctx: click.Context, item_id: str, revoke: bool) -> None:
    """Record (or withdraw) client approval for ITEM_ID."""
    service = _service(ctx)
    _load_item_project(service, item_id)
    try:
        patch = service.set_approval(item_id, not revoke)
    except SpecEngineError as exc:
        click.echo(f"✗ {exc}", err=True)
        sys.exit(1)
    click.echo(f"✓ {item_id} client approval {'withdrawn' if revoke else 'recorded'}")
    if "status" in patch:
        click.echo(f"  Status reverted to {patch['status'].value}")


@cli.command()
@click.argument("item_id")
@click.pass_context
def archive(ctx: click.Context, item_id: str) -> None:
    """Archive ITEM_ID and clear its requirement links."""
    service = _service(ctx)
    _load_item_project(service, item_id)
    try:
        service.archive(item_id)
    except SpecEngineError as exc:
        click.echo(f"✗ {exc}", err=True)
        sys.exit(1)
    click.echo(f"✓ {item_id} archived")


if __name__ == "__main__":
    cli()
