# src/skill_arena/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import cast

from ..core.ports import CorpusScope
from ..core.skills import SkillArea
from ..core.state import AppState
from ..errors import ArenaError
from ..integrity.models import Submission
from ..llm.client import friendly_llm_error_message
from ..tasks.task_forge import create_task
from ..tasks.task_models import TaskType, record_completion, utcnow
from ..tasks.task_scheduler import SweepResult, run_rotation_sweep

CommandEmitter = Callable[[str], None]
CommandHandler3 = Callable[[AppState, list[str], str | None], str]
CommandHandler4 = Callable[[AppState, list[str], str | None, CommandEmitter | None], str]
CommandHandler = CommandHandler3 | CommandHandler4

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /sweep, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        user_id: str | None = None,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Domain errors (bad skill, bad score, integrity undetermined...) become the reply.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        nparams = len(inspect.signature(handler).parameters)
        try:
            if nparams >= 4:
                return cast(CommandHandler4, handler)(state, args, user_id, emit)
            return cast(CommandHandler3, handler)(state, args, user_id)
        except ArenaError as e:
            logger.info("/%s failed: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _skill_list() -> str:
    return ", ".join(a.value for a in SkillArea)


def cmd_help(state: AppState, args: list[str], user_id: str | None) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], user_id: str | None) -> str:
    s = state.settings
    cfg = state.rotation.config
    return (
        "Status:\n"
        f"  Tasks: {state.task_store.count_tasks(active_only=True)} active / {state.task_store.count_tasks()} total\n"
        f"  Rotation: max_age={cfg.max_age_days}d max_completions={cfg.max_completions}\n"
        f"  Scheduler: {'running' if state.scheduler else 'off'} (every {s.sweep_interval_seconds:.0f}s)\n"
        f"  Task forge: {s.task_forge_mode}\n"
        f"  Integrity: threshold={state.integrity.match_threshold:.2f} on_error={state.pipeline.policy.value}\n"
        f"  Corpus: {state.corpus.count()} submission(s)"
    )


def _run_sweep(state: AppState) -> SweepResult:
    timeout = float(state.settings.sweep_timeout_seconds)
    if state.scheduler is not None:
        return state.scheduler.run_sweep_now(state.task_store, state.rotation, timeout_seconds=timeout)
    return asyncio.run(run_rotation_sweep(state.task_store, state.rotation, timeout_seconds=timeout))


def cmd_sweep(
    state: AppState,
    args: list[str],
    user_id: str | None,
    emit: CommandEmitter | None = None,
) -> str:
    if emit:
        emit("[SWEEP] Evaluating active tasks...")
    result = _run_sweep(state)
    lines = [
        f"Sweep: checked={result.checked} rotated={len(result.rotated)} "
        f"replacements={len(result.replacements)} remaining={result.remaining}"
    ]
    for task in result.rotated:
        reason = task.rotation_reason.value if task.rotation_reason else "?"
        lines.append(f"  - retired {task.id[:8]} ({reason}): {task.title}")
    for task in result.replacements:
        lines.append(f"  + new     {task.id[:8]}: {task.title}")
    return "\n".join(lines)


def cmd_stats(state: AppState, args: list[str], user_id: str | None) -> str:
    stats = state.rotation.get_rotation_stats(state.task_store.load())
    return (
        "Rotation stats:\n"
        f"  total={stats.total_tasks} active={stats.active_tasks} rotated={stats.rotated_tasks}\n"
        f"  approaching rotation={stats.approaching_rotation}\n"
        f"  average age={stats.average_age:.2f}d average completions={stats.average_completions:.2f}"
    )


def cmd_tasks(state: AppState, args: list[str], user_id: str | None) -> str:
    """
    /tasks          -> active tasks
    /tasks <skill>  -> active tasks of one skill area
    """
    skill = SkillArea.parse(args[0]) if args else None
    tasks = [t for t in state.task_store.load(active_only=True) if skill is None or t.skill_category == skill]
    if not tasks:
        return "No active tasks. Use /seed to create some."

    lines = ["Active tasks:"]
    for t in tasks:
        approach = state.rotation.is_approaching_rotation(t)
        flag = " [rotating soon]" if approach.approaching else ""
        lines.append(
            f"  {t.id[:8]} {t.skill_category.value:<15} {t.task_type.value:<12} "
            f"{t.completion_count}/{state.rotation.config.max_completions} "
            f"{state.rotation.task_age_days(t)}d {t.title}{flag}"
        )
    return "\n".join(lines)


def cmd_seed(state: AppState, args: list[str], user_id: str | None) -> str:
    """
    /seed                 -> one task per skill area and task type
    /seed <skill>         -> one task per task type
    /seed <skill> <type>  -> a single task
    """
    skills = [SkillArea.parse(args[0])] if args else list(SkillArea)
    types = [TaskType.parse(args[1])] if len(args) > 1 else list(TaskType)

    try:
        tasks = [
            create_task(state.forge, skill, task_type, max_completions=state.rotation.config.max_completions)
            for skill in skills
            for task_type in types
        ]
    except RuntimeError as e:
        logger.warning("Task forge failed: %s", e)
        return f"Task forge failed: {friendly_llm_error_message(e)}"
    state.task_store.save_batch(tasks)
    lines = [f"Created {len(tasks)} task(s):"]
    lines.extend(f"  {t.id[:8]} {t.skill_category.value} {t.task_type.value}: {t.title}" for t in tasks)
    return "\n".join(lines)


def cmd_score(state: AppState, args: list[str], user_id: str | None) -> str:
    """/score <skill> <raw> [weight]"""
    if len(args) < 2:
        return f"Usage: /score <skill> <raw 0-100> [weight]. Skills: {_skill_list()}"
    try:
        raw = float(args[1])
    except ValueError:
        return f"Raw score must be a number, got {args[1]!r}."
    weight = args[2] if len(args) > 2 else "skill"

    b = state.scoring.compute_breakdown(raw, args[0], weight)
    cap = state.scoring.get_skill_configuration(b.skill).cap
    tail = f" (capped at {cap:.0f}, +{b.over_cap:.2f} over cap at reduced rate)" if b.capped else ""
    return f"{b.skill.label}: raw={b.raw_score:g} weighted={b.weighted:.2f} points={b.points:.2f}{tail}"


def cmd_fairness(state: AppState, args: list[str], user_id: str | None) -> str:
    """/fairness [raw]"""
    try:
        raw = float(args[0]) if args else float(state.settings.fairness_reference_score)
    except ValueError:
        return f"Raw score must be a number, got {args[0]!r}."

    report = state.scoring.analyze_fairness(raw)
    lines = [
        f"Fairness at raw={report.reference_raw_score:g}: "
        f"{'FAIR' if report.is_fair else 'UNFAIR'} "
        f"(variance {report.variance_percentage:.2f}% / threshold {report.threshold:.2f}%)"
    ]
    for item in report.skill_breakdown:
        lines.append(f"  {item.skill.value:<15} {item.points:>8.2f} ({item.delta_percentage:+.1f}%)")
    lines.extend(f"  * {r}" for r in report.recommendations)
    return "\n".join(lines)


def _read_source(path: str) -> str:
    return Path(path).expanduser().read_text("utf-8")


def cmd_check(state: AppState, args: list[str], user_id: str | None) -> str:
    """/check <path> <language> <skill|task_id>"""
    if len(args) < 3:
        return "Usage: /check <path> <language> <skill|task_id>"
    path, language, target = args[0], args[1], args[2]
    try:
        content = _read_source(path)
    except OSError as e:
        return f"Cannot read {path}: {e.strerror or e}"

    if SkillArea.is_known(target):
        scope = CorpusScope(skill_category=SkillArea.parse(target).value)
    else:
        scope = CorpusScope(task_id=target)

    report = state.integrity.detect_plagiarism(content, language, user_id or "console", scope)
    lines = [
        f"Similarity {report.similarity:.3f} ({report.risk.value} risk), "
        f"confidence {report.confidence:.2f}, {report.candidates_checked} candidate(s) checked"
    ]
    for src in report.matched_sources:
        lines.append(f"  {src.source_submission_id[:8]} sim={src.similarity:.3f} lines={src.matched_lines}")
    if report.highlighted_lines:
        lines.append(f"  highlighted lines: {', '.join(str(i + 1) for i in report.highlighted_lines)}")
    return "\n".join(lines)


def cmd_submit(state: AppState, args: list[str], user_id: str | None) -> str:
    """/submit <task_id> <path> <language> <raw>"""
    if len(args) < 4:
        return "Usage: /submit <task_id> <path> <language> <raw 0-100>"
    task_id, path, language = args[0], args[1], args[2]
    try:
        raw = float(args[3])
    except ValueError:
        return f"Raw score must be a number, got {args[3]!r}."

    task = state.task_store.get_task(task_id)
    if task is None:
        return f"Unknown task: {task_id}"
    if not task.is_active:
        return f"Task {task_id} has been rotated out ({task.rotation_reason.value if task.rotation_reason else 'inactive'})."
    try:
        content = _read_source(path)
    except OSError as e:
        return f"Cannot read {path}: {e.strerror or e}"

    submission = Submission(
        id=str(uuid.uuid4()),
        task_id=task.id,
        user_id=user_id or "console",
        content=content,
        language=language,
        submitted_at=utcnow(),
        skill_category=task.skill_category.value,
    )
    outcome = state.pipeline.submit(submission, raw)
    if outcome.recorded:
        state.task_store.save(record_completion(task))

    lines = [f"Submission {submission.id[:8]}: {outcome.status.value}, points={outcome.points_awarded:.2f}"]
    if outcome.report is not None:
        lines.append(f"  similarity {outcome.report.similarity:.3f} ({outcome.report.risk.value} risk)")
    if outcome.error:
        lines.append(f"  integrity: {outcome.error}")
    return "\n".join(lines)


def cmd_integrity(state: AppState, args: list[str], user_id: str | None) -> str:
    """/integrity [user]"""
    target = args[0] if args else (user_id or "console")
    stats = state.integrity.plagiarism_stats(target)
    return (
        f"Integrity stats for {stats.user_id}: checks={stats.total_checks} "
        f"average_similarity={stats.average_similarity:.3f} flagged={stats.flagged_count}"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show current settings and counts.")
registry.register("sweep", cmd_sweep, help_text="Run one rotation sweep now.")
registry.register("stats", cmd_stats, help_text="Rotation statistics for the task pool.")
registry.register("tasks", cmd_tasks, help_text="List active tasks: /tasks [skill].")
registry.register("seed", cmd_seed, help_text="Create tasks: /seed [skill] [practice|mini_project].")
registry.register("score", cmd_score, help_text="Compute points: /score <skill> <raw> [weight].")
registry.register("fairness", cmd_fairness, help_text="Cross-skill fairness: /fairness [raw].")
registry.register("check", cmd_check, help_text="Plagiarism check: /check <path> <language> <skill|task_id>.")
registry.register("submit", cmd_submit, help_text="Submit work: /submit <task_id> <path> <language> <raw>.")
registry.register("integrity", cmd_integrity, help_text="Plagiarism history: /integrity [user].")
