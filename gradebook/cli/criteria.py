"""CLI commands for inspecting and maintaining evaluation criteria."""

from __future__ import annotations

import pathlib

import pydantic as p
import yaml
from sqlalchemy.orm import Session

import gradebook.lib.cli as click
from gradebook.core import di
from gradebook.errors import GradebookError
from gradebook.model import CriteriaID, EvaluationCriteria, GroupID
from gradebook.scoring import resolve_for_group
from gradebook.service.criteria import archive_criteria, create_criteria, CriteriaCreateParams, get_criteria


@click.group("criteria")
def criteria():
    """Manage evaluation criteria."""
    ...


def _echo_criteria(ec: EvaluationCriteria) -> None:
    click.echo(f"Criteria: {ec.name}")
    click.echo(f"  ID: {ec.criteria_id}")
    click.echo(f"  Course: {ec.course_id}")
    click.echo(f"  Scope: {ec.scope.value}")
    if ec.group_ids:
        click.echo(f"  Groups: {', '.join(ec.group_ids)}")
    click.echo(f"  Status: {ec.status.value}")
    click.echo(f"  Updated: {ec.update_time}")
    if ec.parameters:
        click.echo("\nParameters:")
        for ps in ec.parameters:
            req = "required" if ps.required else "optional"
            click.echo(f"  - {ps.name} [{ps.type.value}, weight {ps.weight:g}, {req}]")
        click.echo(f"  Total weight: {ec.total_weight:g}")


@criteria.command("show")
@click.argument("criteria_id", type=click.KeyParamType(CriteriaID))
@di.inject
def criteria_show(criteria_id: CriteriaID, session: Session = di.Provide["storage.persistent.session"]) -> None:
    """Show a criteria definition."""
    with session.begin():
        try:
            ec = get_criteria(criteria_id, session=session)
        except GradebookError as e:
            raise click.ClickException(str(e)) from e
    _echo_criteria(ec)


@criteria.command("resolve")
@click.argument("group_id", type=click.KeyParamType(GroupID))
@di.inject
def criteria_resolve(group_id: GroupID, session: Session = di.Provide["storage.persistent.session"]) -> None:
    """Show the definition GROUP_ID is currently graded against."""
    with session.begin():
        try:
            ec = resolve_for_group(group_id, session=session)
        except GradebookError as e:
            raise click.ClickException(str(e)) from e
    _echo_criteria(ec)


@criteria.command("validate-weights")
@click.argument("criteria_id", type=click.KeyParamType(CriteriaID))
@di.inject
def criteria_validate_weights(
    criteria_id: CriteriaID, session: Session = di.Provide["storage.persistent.session"]
) -> None:
    """Check that the parameter weights of CRITERIA_ID total 100."""
    with session.begin():
        try:
            ec = get_criteria(criteria_id, session=session)
            ec.validate_weights()
        except GradebookError as e:
            raise click.ClickException(str(e)) from e
    click.echo(f"OK: total weight {ec.total_weight:g}")


@criteria.command("create")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=pathlib.Path))
@di.inject
def criteria_create(path: pathlib.Path, session: Session = di.Provide["storage.persistent.session"]) -> None:
    """Create a definition from the YAML document at PATH."""
    with path.open() as f:
        doc = yaml.safe_load(f)

    try:
        params = CriteriaCreateParams.model_validate(doc)
    except p.ValidationError as e:
        raise click.ClickException(str(e)) from e

    with session.begin():
        try:
            ec = create_criteria(params, session=session)
        except GradebookError as e:
            raise click.ClickException(str(e)) from e
    _echo_criteria(ec)


@criteria.command("archive")
@click.argument("criteria_id", type=click.KeyParamType(CriteriaID))
@di.inject
def criteria_archive(criteria_id: CriteriaID, session: Session = di.Provide["storage.persistent.session"]) -> None:
    """Archive CRITERIA_ID so that it no longer resolves."""
    with session.begin():
        try:
            ec = archive_criteria(criteria_id, session=session)
        except GradebookError as e:
            raise click.ClickException(str(e)) from e
    click.echo(f"Archived criteria: {ec.name} ({ec.criteria_id})")


command = criteria
