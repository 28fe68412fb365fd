from dataclasses import dataclass
from enum import Enum
import logging
from pathlib import Path
from typing import Any, Callable


LOGGER = logging.getLogger("egamon.tasks")


class TaskKind(Enum):
    RECO = "reco"
    CHECK_ESD = "check_esd"
    INFO_GEN = "info_gen"


@dataclass(frozen=True)
class QATask:
    key: str
    class_name: str
    kind: TaskKind
    needs_mc: bool = False


QA_TASKS = (
    QATask("ESD", "AliTRDcheckESD", TaskKind.CHECK_ESD),
    QATask("GEN", "AliTRDinfoGen", TaskKind.INFO_GEN),
    QATask("DET", "AliTRDcheckDET", TaskKind.RECO),
    QATask("EFF", "AliTRDefficiency", TaskKind.RECO),
    QATask("EFFC", "AliTRDefficiencyMC", TaskKind.RECO, needs_mc=True),
    QATask("RES", "AliTRDresolution", TaskKind.RECO),
    QATask("PID", "AliTRDcheckPID", TaskKind.RECO),
    QATask("V0", "AliTRDv0Monitor", TaskKind.RECO),
)
FLAG_NO_MC = "NOMC"
FLAG_NO_FRIENDS = "NOFR"
FLAG_ALL = "ALL"


@dataclass(frozen=True)
class SteerOptions:
    tasks: tuple[QATask, ...]
    mc: bool
    friends: bool


@dataclass
class ProcessContext:
    filename: str
    mc: bool
    friends: bool
    summary: bool = True
    task_id: str = ""
    debug_level: int = 0
    figure_format: str = "gif"
    canvas: Any = None


Handler = Callable[[Any, ProcessContext], bool]


def parse_options(opt: str) -> SteerOptions:
    """Task keys such as "EFF RES PID", or ALL, plus the NOMC and NOFR data-set flags."""
    # Case-insensitive, and unknown tokens are an error instead of a logged skip.
    tokens = [t.upper() for t in str(opt).split()]
    by_key = {t.key: t for t in QA_TASKS}
    mc = FLAG_NO_MC not in tokens
    friends = FLAG_NO_FRIENDS not in tokens

    selected: set[str] = set()
    for token in tokens:
        if token in (FLAG_NO_MC, FLAG_NO_FRIENDS):
            continue
        if token == FLAG_ALL:
            selected.update(by_key)
        elif token in by_key:
            selected.add(token)
        else:
            raise ValueError(f"Unknown TRD QA option '{token}'. Allowed: {', '.join([FLAG_ALL, *by_key, FLAG_NO_MC, FLAG_NO_FRIENDS])}.")

    tasks = tuple(t for t in QA_TASKS if t.key in selected and (mc or not t.needs_mc))
    return SteerOptions(tasks=tasks, mc=mc, friends=friends)


def read_file_list(path: str) -> list[str]:
    out = []
    for line in Path(path).expanduser().read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            out.append(line)
    return out


def run_tasks(
    steer: SteerOptions,
    ctx: ProcessContext,
    handlers: dict[TaskKind, Handler],
    factory: Callable[[str], Any],
) -> dict[str, bool]:
    """Instantiate and process every selected task, last table entry first.

    A failing task is logged by its handler and does not stop the others.
    """
    missing = [kind.value for kind in TaskKind if kind not in handlers]
    if missing:
        raise ValueError(f"No handler registered for task kind(s): {', '.join(missing)}")

    results: dict[str, bool] = {}
    for entry in reversed(steer.tasks):
        task = factory(entry.class_name)
        task.SetName(f"{task.GetName()}{ctx.task_id}")
        LOGGER.info('*** task %s, input QA file "%s"', task.GetName(), ctx.filename)
        results[entry.key] = bool(handlers[entry.kind](task, ctx))
    return results
