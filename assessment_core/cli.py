"""
Typer CLI for the adaptive assessment core.

Commands:
    assessment rules            - Show effective selection rules
    assessment controls         - Show effective quiz controls
    assessment select POOL      - Sample questions from a JSON pool
    assessment grade POOL ANS   - Score an attempt and update learner mastery
    assessment review L ITEM R  - Record a flashcard review (rating 0-3)
    assessment due LEARNER      - List flashcards due for review
    assessment drill            - Replay scripted signals through a proctored attempt

Usage:
    assessment --help
    assessment rules --assessment exam-42
    assessment select pool.json --count 10 --learner u1 --seed u1-attempt-3
    assessment review u1 q-17 good
    assessment drill --script hide_tab,blur,paste,devtools,tick
"""

from __future__ import annotations

import asyncio
import json
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from assessment_core.config import Settings, get_settings
from assessment_core.core.mastery import (
    GradedItem,
    MasteryLevel,
    compute_weak_topics,
    update_topic_mastery,
)
from assessment_core.core.models import Question
from assessment_core.integrity.attempt import AttemptOutcome, ProctoredAttempt
from assessment_core.integrity.monitor import MonitorTiming
from assessment_core.integrity.signals import ScriptedSignalSource
from assessment_core.integrity.sinks import MemoryViolationSink, StoreViolationSink
from assessment_core.integrity.timers import ManualTimerFactory
from assessment_core.review.scheduler import InvalidRatingError, ReviewRating
from assessment_core.review.service import ReviewService
from assessment_core.rules.resolver import RuleResolver
from assessment_core.rules.types import PolicyModel, QuizControls, SelectionRules
from assessment_core.scoring import score_attempt
from assessment_core.selection.engine import select_questions
from assessment_core.state_store import StateStore

app = typer.Typer(
    help="Adaptive assessment core: policy resolution, selection, proctoring and review",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
):
    """Configure logging for every command."""
    settings = get_settings()
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else settings.log_level)


# ========================================
# Helpers
# ========================================


def _now_ms() -> int:
    return int(time.time() * 1000)


def _open_store(settings: Settings) -> StateStore:
    return StateStore(settings.state_db_path)


async def _resolve(
    settings: Settings, assessment_id: str | None
) -> tuple[SelectionRules, QuizControls]:
    resolver = RuleResolver.from_settings(settings)
    try:
        rules = await resolver.resolve_selection_rules(assessment_id)
        controls = await resolver.resolve_quiz_controls(assessment_id)
    finally:
        await resolver.close()
    return rules, controls


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(code=1)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON in {path}: {e}[/red]")
        raise typer.Exit(code=1)


def _load_pool(path: Path) -> list[Question]:
    data = _load_json(path)
    if isinstance(data, dict):
        data = data.get("questions", [])
    try:
        return [Question.from_dict(item) for item in data]
    except (KeyError, TypeError) as e:
        console.print(f"[red]Malformed question in {path}: {e}[/red]")
        raise typer.Exit(code=1)


def _policy_table(title: str, policy: PolicyModel) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Field")
    table.add_column("Value")
    for key, value in policy.to_document().items():
        if isinstance(value, dict):
            for sub_key, sub_value in value.items():
                table.add_row(f"{key}.{sub_key}", str(sub_value))
        else:
            table.add_row(key, str(value))
    return table


# ========================================
# Policy Commands
# ========================================


@app.command("rules")
def show_rules(
    assessment: str | None = typer.Option(None, "--assessment", "-a", help="Assessment override to apply"),
    as_json: bool = typer.Option(False, "--json", help="Print the policy document as JSON"),
):
    """Show the effective selection rules."""
    rules, _ = asyncio.run(_resolve(get_settings(), assessment))
    if as_json:
        console.print_json(data=rules.to_document())
    else:
        console.print(_policy_table(f"Selection rules ({assessment or 'global'})", rules))


@app.command("controls")
def show_controls(
    assessment: str | None = typer.Option(None, "--assessment", "-a", help="Assessment override to apply"),
    as_json: bool = typer.Option(False, "--json", help="Print the policy document as JSON"),
):
    """Show the effective quiz controls."""
    _, controls = asyncio.run(_resolve(get_settings(), assessment))
    if as_json:
        console.print_json(data=controls.to_document())
    else:
        console.print(_policy_table(f"Quiz controls ({assessment or 'global'})", controls))


# ========================================
# Selection & Grading Commands
# ========================================


@app.command("select")
def select(
    pool_file: Path = typer.Argument(..., help="JSON list of questions"),
    count: int = typer.Option(10, "--count", "-n", min=0, help="Questions to select"),
    assessment: str | None = typer.Option(None, "--assessment", "-a"),
    learner: str | None = typer.Option(None, "--learner", "-l", help="Use this learner's mastery"),
    avoid: str = typer.Option("", "--avoid", help="Comma-separated question IDs seen recently"),
    seed: str | None = typer.Option(None, "--seed", help="Seed for a reproducible draw"),
):
    """Sample a question set from a pool under the effective selection rules."""
    settings = get_settings()
    pool = _load_pool(pool_file)
    rules, _ = asyncio.run(_resolve(settings, assessment))

    mastery = None
    if learner:
        with _open_store(settings) as store:
            mastery = store.get_learner_profile(learner)

    avoid_ids = [a.strip() for a in avoid.split(",") if a.strip()]
    selected = select_questions(
        pool,
        rules,
        count,
        avoid_ids=avoid_ids,
        mastery=mastery,
        seed=seed,
        default_mastery=settings.default_topic_mastery,
    )

    table = Table(title=f"Selected {len(selected)} of {count}", header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("ID")
    table.add_column("Difficulty")
    table.add_column("Topic")
    for i, q in enumerate(selected, 1):
        table.add_row(str(i), q.id, q.difficulty.value if q.difficulty else "-", q.topic_id or "-")
    console.print(table)

    if len(selected) < count:
        console.print(f"[yellow]Pool exhausted: only {len(selected)} questions available[/yellow]")


@app.command("grade")
def grade(
    pool_file: Path = typer.Argument(..., help="JSON list of questions"),
    answers_file: Path = typer.Argument(..., help="JSON list of {questionId, selectedOption, ...}"),
    learner: str = typer.Option(..., "--learner", "-l"),
    assessment: str | None = typer.Option(None, "--assessment", "-a"),
):
    """Score an attempt, update the learner's topic mastery and list weak topics."""
    settings = get_settings()
    questions = {q.id: q for q in _load_pool(pool_file)}
    rules, _ = asyncio.run(_resolve(settings, assessment))

    raw_answers = _load_json(answers_file)
    answers: dict[str, str | None] = {}
    items: list[GradedItem] = []
    for entry in raw_answers:
        question = questions.get(entry.get("questionId"))
        if question is None:
            continue
        selected = entry.get("selectedOption")
        answers[question.id] = selected
        items.append(
            GradedItem(
                question_id=question.id,
                is_correct=selected is not None and selected == question.correct_answer,
                topic_id=question.topic_id,
                selected_option=selected,
                confidence_level=entry.get("confidenceLevel"),
                time_spent_seconds=float(entry.get("timeSpentSeconds") or 0),
            )
        )

    delivered = [questions[qid] for qid in answers]
    score = score_attempt(delivered, answers, rules.negative_marking)

    with _open_store(settings) as store:
        profile = update_topic_mastery(store.get_learner_profile(learner), items, _now_ms())
        store.save_learner_profile(learner, profile)

    console.print(
        f"[bold]Score:[/bold] {score.final_score:g}/{score.total} "
        f"({score.correct} correct, {score.wrong} wrong, {score.skipped} skipped, "
        f"penalty {score.penalty:g})"
    )

    weak = compute_weak_topics(items, questions)
    if weak:
        table = Table(title="Weak topics", header_style="bold cyan")
        table.add_column("Topic")
        table.add_column("Accuracy", justify="right")
        table.add_column("Avg time", justify="right")
        table.add_column("Mastery")
        for topic in weak:
            level = MasteryLevel.from_score(profile.topic_mastery.get(topic.topic_id, 0.0))
            table.add_row(
                topic.topic_id,
                f"{topic.accuracy}%",
                f"{topic.avg_time_seconds}s",
                f"[{level.color}]{level.value}[/{level.color}]",
            )
        console.print(table)


# ========================================
# Review Commands
# ========================================


@app.command("review")
def review(
    learner: str = typer.Argument(...),
    item: str = typer.Argument(...),
    rating: str = typer.Argument(..., help="0-3 or again/hard/good/easy"),
    time_spent_ms: int | None = typer.Option(None, "--time-ms", help="Time spent on the card"),
):
    """Record a review and schedule the card's next due date."""
    settings = get_settings()
    try:
        parsed = ReviewRating.parse(rating)
    except InvalidRatingError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)

    with _open_store(settings) as store:
        record = ReviewService(store).review(learner, item, parsed, time_spent_ms=time_spent_ms)

    console.print(
        f"[green]{item}[/green] rated {parsed.name.lower()}: "
        f"next in {record.interval_days}d (ease {record.ease_factor:.2f}, "
        f"{record.total_reviews} reviews)"
    )


@app.command("due")
def due(
    learner: str = typer.Argument(...),
    limit: int = typer.Option(20, "--limit", "-n", min=1),
):
    """List flashcards due for review."""
    with _open_store(get_settings()) as store:
        items = ReviewService(store).due_items(learner, limit=limit)

    if not items:
        console.print("[green]Nothing due.[/green]")
        return

    table = Table(title=f"Due for {learner}", header_style="bold cyan")
    table.add_column("Item")
    table.add_column("Interval", justify="right")
    table.add_column("Ease", justify="right")
    table.add_column("Overdue", justify="right")
    for entry in items:
        table.add_row(
            entry.item_id,
            f"{entry.record.interval_days}d",
            f"{entry.record.ease_factor:.2f}",
            f"{entry.days_overdue}d",
        )
    console.print(table)


# ========================================
# Proctoring Drill
# ========================================


class _DrillClock:
    """Wall clock that a drill step can push forward."""

    def __init__(self) -> None:
        self.offset_ms = 0

    def __call__(self) -> int:
        return _now_ms() + self.offset_ms


def _drill_steps(
    source: ScriptedSignalSource, timers: ManualTimerFactory, clock: _DrillClock
) -> dict[str, Callable[[], Any]]:
    def skew() -> None:
        clock.offset_ms += 5 * 60 * 1000
        timers.tick("clock-skew")

    def devtools() -> None:
        source.resize((1600, 900), (1280, 720))
        timers.tick("devtools")

    return {
        "exit_fullscreen": source.exit_fullscreen,
        "hide_tab": source.hide_tab,
        "show_tab": source.show_tab,
        "blur": source.blur,
        "focus": source.focus,
        "copy": lambda: source.clipboard("copy"),
        "cut": lambda: source.clipboard("cut"),
        "paste": lambda: source.clipboard("paste"),
        "ctrl+c": lambda: source.key("c", ctrl=True),
        "ctrl+v": lambda: source.key("v", ctrl=True),
        "right_click": source.context_menu,
        "select": source.select_text,
        "back": lambda: source.navigate("back"),
        "unload": lambda: source.navigate("unload"),
        "offline": lambda: source.network(False),
        "online": lambda: source.network(True),
        "skew": skew,
        "devtools": devtools,
        "tick": timers.tick,
    }


@app.command("drill")
def drill(
    script: str = typer.Option(
        "hide_tab,blur,paste", "--script", "-s", help="Comma-separated signal steps"
    ),
    assessment: str | None = typer.Option(None, "--assessment", "-a"),
    learner: str | None = typer.Option(None, "--learner", "-l", help="Persist violations for this learner"),
    attempt_id: str = typer.Option("drill", "--attempt"),
):
    """Replay a scripted sequence of environment signals through a proctored attempt."""
    settings = get_settings()
    _, controls = asyncio.run(_resolve(settings, assessment))
    if not controls.proctoring.enabled:
        controls = controls.model_copy(
            update={"proctoring": controls.proctoring.model_copy(update={"enabled": True})}
        )

    source = ScriptedSignalSource()
    timers = ManualTimerFactory()
    clock = _DrillClock()
    steps = _drill_steps(source, timers, clock)

    unknown = [s for s in script.split(",") if s.strip() and s.strip() not in steps]
    if unknown:
        console.print(f"[red]Unknown drill steps: {', '.join(unknown)}[/red]")
        console.print(f"Available: {', '.join(steps)}")
        raise typer.Exit(code=2)

    memory_sink = MemoryViolationSink()
    store = None
    store_sink = None
    if learner:
        store = _open_store(settings)
        store_sink = StoreViolationSink(
            store, learner, assessment or "-", attempt_id, controls.violation_severity_map
        )

    def sink(event):
        memory_sink(event)
        if store_sink is not None:
            store_sink(event)

    outcomes: list[AttemptOutcome] = []
    attempt = ProctoredAttempt(
        attempt_id,
        controls,
        source,
        on_submit=outcomes.append,
        sink=sink,
        clock=clock,
        timer_factory=timers,
        timing=MonitorTiming.from_settings(settings),
    )

    try:
        attempt.start()
        for step in script.split(","):
            step = step.strip()
            if not step:
                continue
            if attempt.closed:
                console.print(f"[dim]Attempt closed; skipping {step}[/dim]")
                continue
            steps[step]()
        attempt.submit()
    finally:
        if store is not None:
            store.close()

    table = Table(title=f"Events for {attempt_id}", header_style="bold cyan")
    table.add_column("Type")
    table.add_column("Violation")
    table.add_column("Metadata")
    for event in memory_sink.events:
        table.add_row(
            event.type.value,
            "yes" if event.is_violation else "",
            json.dumps(dict(event.metadata), default=str) if event.metadata else "",
        )
    console.print(table)

    outcome = outcomes[0]
    summary = outcome.summary
    console.print(
        f"[bold]Closed:[/bold] {outcome.reason.value}  "
        f"[bold]Violations:[/bold] {summary.total_violations}  "
        f"[bold]Threshold reached:[/bold] {summary.threshold_reached}  "
        f"[bold]Flagged:[/bold] {outcome.flagged_for_review}"
    )
    for notice in outcome.notices:
        console.print(f"[yellow]! {notice}[/yellow]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
