# budgetbuilder/cli.py

import logging

import click
from flask import current_app
from flask.cli import with_appcontext

from budgetbuilder import db, store
from budgetbuilder.budget.aggregator import INTERNAL_VIEW, VIEWS, aggregate, clamp_discount
from budgetbuilder.budget.cost_model import build_catalog_lookup
from budgetbuilder.budget.reconciler import load_for_project
from budgetbuilder.models import Project
from budgetbuilder.money import CurrencyFormat


@click.group("budget")
def budget_cli() -> None:
    """Budget maintenance commands."""


@budget_cli.command("totals")
@click.argument("project_id", type=int)
@click.option("--discount", type=float, default=None,
              help="Discount percent; defaults to the project's saved discount")
@click.option("--view", type=click.Choice(VIEWS), default=INTERNAL_VIEW, show_default=True)
@with_appcontext
def totals_command(project_id: int, discount, view: str) -> None:
    """Print the formatted totals of a project's saved budget."""
    project = db.session.get(Project, project_id)
    if project is None or project.is_deleted:
        raise click.ClickException(f"project {project_id} not found")

    lookup = build_catalog_lookup(store.products.get_catalog(project.user_id))
    cart = load_for_project(project.id, lookup)
    pct = clamp_discount(project.discount if discount is None else discount)
    totals = aggregate(cart, pct)
    currency = CurrencyFormat.from_mapping(current_app.config['BUDGET_CURRENCY'])

    click.echo(f"{project.name} ({len(cart)} lines)")
    for key, value in totals.formatted(currency, view).items():
        click.echo(f"  {key}: {value}")
    if view == INTERNAL_VIEW:
        click.echo(f"  profit_margin_percent: {totals.profit_margin_percent}%")


@budget_cli.command("empty-trash")
@click.argument("user_id")
@with_appcontext
def empty_trash_command(user_id: str) -> None:
    removed = store.trash.empty_trash(user_id)
    logging.info("empty-trash user=%s removed=%s", user_id, removed)
    click.echo(f"removed {removed['products']} products, {removed['categories']} categories")
