"""Show which rows a principal would see, as SQL.

Why:
    Support staff regularly ask why a teacher or parent cannot see a record.
    This tool prints the exact WHERE clause and bound parameters the API
    would apply for a role, principal and entity kind, without touching the
    database.

Usage:
    python -m schoolboard.tools.visibility_explain --role teacher --principal t-1 --kind announcement
    python -m schoolboard.tools.visibility_explain --role admin --principal a-1 --kind student --search ann
"""
from __future__ import annotations

from typing import Tuple

import click

from schoolboard.access_policy.engine import AccessPolicyEngine, AccessRequest, Operation
from schoolboard.access_policy.errors import ValidationFailed
from schoolboard.access_policy.filters import build_query_filters
from schoolboard.identity_access.domain import Principal
from schoolboard.school.schema import EntityKind, schema_for
from schoolboard.school.sql_predicates import to_sql


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--role", required=True, help="Role claim of the principal (admin, teacher, student, parent).")
@click.option("--principal", "principal_id", required=True, help="Identity-provider subject of the principal.")
@click.option("--kind", type=click.Choice([k.value for k in EntityKind]), required=True, help="Entity kind to list.")
@click.option("--search", default=None, help="Free-text search as sent by the list page.")
@click.option(
    "--filter",
    "filters",
    multiple=True,
    metavar="KEY=VALUE",
    help="Exact filter, e.g. classId=3. May be repeated.",
)
def cli(role: str, principal_id: str, kind: str, search: str | None, filters: Tuple[str, ...]) -> None:
    """Print the list decision and the visibility SQL for one principal."""
    engine = AccessPolicyEngine()
    principal = Principal(id=principal_id, role=role)
    entity_kind = EntityKind(kind)

    params: dict[str, str] = {}
    for item in filters:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="--filter")
        params[key] = value
    if search is not None:
        params["search"] = search

    decision = engine.authorize(principal, AccessRequest(entity_kind, Operation.LIST))
    click.echo(f"list: {'allowed' if decision.allowed else 'denied'} ({decision.reason})")

    try:
        narrowing = build_query_filters(entity_kind, params)
    except ValidationFailed as exc:
        raise click.ClickException(f"invalid filters: {exc.details}")
    predicate = engine.scoped(principal, entity_kind, narrowing)
    sql, bound = to_sql(predicate, entity_kind)
    click.echo(f"SELECT t0.* FROM {schema_for(entity_kind).table} t0 WHERE {sql}")
    click.echo(f"params: {bound!r}")


if __name__ == "__main__":  # pragma: no cover
    cli()
