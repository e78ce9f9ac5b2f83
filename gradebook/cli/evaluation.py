"""CLI commands for scoring and summarizing student evaluations."""

from __future__ import annotations

import datetime

from sqlalchemy.orm import Session

import gradebook.lib.cli as click
import gradebook.lib.json as json
import gradebook.storage.evaluation as evaluation_storage
from gradebook.core import di
from gradebook.model import CourseID, EvaluationFilter, EvaluationID, GroupID, UserID
from gradebook.scoring import explain_flags, flagged_students, summarize, summarize_student


@click.group("evaluation")
def evaluation():
    """Inspect student evaluations."""
    ...


@evaluation.command("score")
@click.argument("evaluation_id", type=click.KeyParamType(EvaluationID))
@di.inject
def evaluation_score(evaluation_id: EvaluationID, session: Session = di.Provide["storage.persistent.session"]) -> None:
    """Show the performance score of EVALUATION_ID and the flag rules behind it."""
    with session.begin():
        ev = evaluation_storage.get(evaluation_id, session=session)
    if ev is None:
        raise click.ClickException(f"evaluation {evaluation_id} not found")

    click.echo(f"Evaluation: {ev.evaluation_id}")
    click.echo(f"  Student: {ev.student_id}")
    click.echo(f"  Session: {ev.session_id}")
    click.echo(f"  Overall rating: {ev.overall_rating}")
    click.echo(f"  Performance score: {ev.performance_score}")
    if ev.criteria_metadata is not None:
        click.echo(f"  Criteria: {ev.criteria_metadata.criteria_id}")
    for name, raw in ev.parameters.items():
        click.echo(f"    {name}: {raw!r}")

    flags = [k for k, v in ev.flags.model_dump().items() if v]
    click.echo(f"  Flags: {', '.join(flags) or 'none'}")
    for fired in explain_flags(ev):
        click.echo(f"    {fired.flag}: {fired.rule}")


@evaluation.command("stats")
@click.option("--student", "student_id", type=click.KeyParamType(UserID))
@click.option("--trainer", "trainer_id", type=click.KeyParamType(UserID))
@click.option("--group", "group_id", type=click.KeyParamType(GroupID))
@click.option("--course", "course_id", type=click.KeyParamType(CourseID))
@click.option("--from", "date_from", type=click.DateTime())
@click.option("--to", "date_to", type=click.DateTime())
@click.option("--flagged", is_flag=True, default=False, help="List flagged students instead of the summary")
@click.option("--json", "as_json", is_flag=True, default=False)
@di.inject
def evaluation_stats(
    student_id: UserID | None,
    trainer_id: UserID | None,
    group_id: GroupID | None,
    course_id: CourseID | None,
    date_from: datetime.datetime | None,
    date_to: datetime.datetime | None,
    flagged: bool,
    as_json: bool,
    session: Session = di.Provide["storage.persistent.session"],
) -> None:
    """Summarize the evaluations matching the given filters."""
    evaluation_filter = EvaluationFilter(
        student_id=student_id,
        trainer_id=trainer_id,
        group_id=group_id,
        course_id=course_id,
        date_from=date_from.replace(tzinfo=datetime.UTC) if date_from else None,
        date_to=date_to.replace(tzinfo=datetime.UTC) if date_to else None,
    )
    with session.begin():
        evaluations = list(evaluation_storage.stream(evaluation_filter, session=session))

    if flagged:
        result = flagged_students(evaluations)
        if as_json:
            click.echo(json.dumps([fs.model_dump(mode="json") for fs in result], indent=2))
            return
        for fs in result:
            flags = [k for k, v in fs.flags.model_dump().items() if v]
            click.echo(f"{fs.student_id}: {', '.join(flags)} ({len(fs.evaluation_ids)} evaluations)")
        return

    summary = summarize_student(evaluations) if student_id is not None else summarize(evaluations)
    if as_json:
        click.echo(json.dumps(summary, indent=2))
        return
    for k, v in summary.model_dump(mode="json").items():
        click.echo(f"{k}: {v}")


command = evaluation
