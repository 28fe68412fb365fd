from array import array
import logging
import os
from typing import Any

import ROOT

from .root_io import expand, load_libraries
from .settings import TrdConfig
from .tasks_common import MissingInputError
from .trd_qa import ProcessContext, TaskKind, parse_options, read_file_list, run_tasks


LOGGER = logging.getLogger("egamon.tasks")

QA_DIR = "TRD_Performance"
MERGED_NAME = "QAResults.root"
# AliTRDcheckESD fills at most this many trending values
N_TREND_VALUES = 100


def process_reco(task: Any, ctx: ProcessContext) -> bool:
    LOGGER.info("process[%s] : %s", task.GetName(), task.GetTitle())
    task.SetDebugLevel(ctx.debug_level)
    ROOT.AliLog.SetClassDebugLevel(task.IsA().GetName(), ctx.debug_level)
    task.SetMCdata(ctx.mc)
    task.SetFriends(ctx.friends)

    if not task.Load(ctx.filename):
        LOGGER.error("Load data container for task %s failed.", task.GetName())
        return False
    task.LoadDetectorMap(ctx.filename)
    if not task.PostProcess():
        LOGGER.error("Processing data container for task %s failed.", task.GetName())
        return False
    if ctx.summary:
        task.MakeSummary()
        return True
    for ipic in range(task.GetNRefFigures()):
        ctx.canvas.Clear()
        if not task.GetRefFigure(ipic):
            continue
        ctx.canvas.SaveAs(f"{task.GetName()}_Fig{ipic:02d}.{ctx.figure_format}", ctx.figure_format)
    return True


def process_esd(task: Any, ctx: ProcessContext) -> bool:
    LOGGER.info("process[%s] : %s", task.GetName(), task.GetTitle())
    if not task.Load(ctx.filename, QA_DIR):
        LOGGER.error("Load data container for task %s failed.", task.GetName())
        return False
    task.Terminate(ROOT.nullptr)
    if ctx.summary:
        task.MakeSummaryFromCF(ROOT.nullptr, "", False, False)
    return True


def process_gen(task: Any, ctx: ProcessContext) -> bool:
    LOGGER.info("process[%s] : %s", task.GetName(), task.GetTitle())
    if not task.Load(ctx.filename, QA_DIR):
        LOGGER.error("Load data container for task %s failed.", task.GetName())
        return False
    task.MakeSummary()
    return True


HANDLERS = {
    TaskKind.RECO: process_reco,
    TaskKind.CHECK_ESD: process_esd,
    TaskKind.INFO_GEN: process_gen,
}


def _new_task(class_name: str) -> Any:
    cls = getattr(ROOT, class_name, None)
    if cls is None:
        raise MissingInputError(f"Class {class_name} not available; check the loaded libraries.")
    return cls()


def merge_file_list(list_file: str, output_file: str) -> str:
    files = read_file_list(expand(list_file))
    if not files:
        raise MissingInputError(f"No input files listed in {list_file}")
    merger = ROOT.TFileMerger(False)
    merger.OutputFile(output_file)
    for name in files:
        if not merger.AddFile(name):
            raise MissingInputError(f"Cannot add {name} to merge.")
    if not merger.Merge():
        raise RuntimeError(f"Merging {len(files)} file(s) into {output_file} failed.")
    LOGGER.info("merged %d QA file(s) into %s", len(files), output_file)
    return output_file


def _prepare(cfg: TrdConfig) -> None:
    if cfg.grid:
        ROOT.TGrid.Connect("alien://")
    load_libraries(cfg.libraries)


def make_results(*, trd_config: TrdConfig) -> dict[str, bool]:
    cfg = trd_config
    LOGGER.info("make_results start options=%s files=%s task_id=%s", cfg.options, cfg.files, cfg.task_id)
    steer = parse_options(cfg.options)
    _prepare(cfg)

    ROOT.gStyle.SetOptStat(0)
    ROOT.gStyle.SetOptFit(0)
    if cfg.files.endswith(".root"):
        qa_file = cfg.files
    else:
        qa_file = merge_file_list(cfg.files, f"{os.getcwd()}/{MERGED_NAME}")

    ctx = ProcessContext(
        filename=qa_file,
        mc=steer.mc,
        friends=steer.friends,
        summary=cfg.summary,
        task_id=cfg.task_id,
        debug_level=cfg.debug_level,
        figure_format=cfg.figure_format,
    )
    if not cfg.summary:
        ctx.canvas = ROOT.TCanvas("c", "Performance", 10, 10, 800, 500)

    results = run_tasks(steer, ctx, HANDLERS, _new_task)
    if ctx.canvas is not None:
        ctx.canvas.Close()
    ROOT.AliTRDtrendingManager.Instance().Terminate()

    failed = sorted(key for key, ok in results.items() if not ok)
    LOGGER.info("make_results done processed=%d failed=%s", len(results), ",".join(failed) or "none")
    return results


def make_summary_esd(*, trd_config: TrdConfig) -> list[float] | None:
    esd_cfg = trd_config.summary_esd
    LOGGER.info("make_summary_esd start file=%s dir=%s", esd_cfg.file, esd_cfg.dir)
    _prepare(trd_config)

    esd = ROOT.AliTRDcheckESD()
    if not esd.Load(expand(esd_cfg.file), esd_cfg.dir):
        LOGGER.error("Load data container for %s in %s failed.", esd_cfg.dir, esd_cfg.file)
        return None
    if not esd_cfg.use_cf:
        LOGGER.warning("make_summary_esd: only the CF based summary is available, nothing done.")
        return None
    trend = array("d", [0.0] * N_TREND_VALUES)
    esd.MakeSummaryFromCF(trend, "", esd_cfg.use_isolated_bc, esd_cfg.cut_tof_bc)
    LOGGER.info("make_summary_esd done")
    return list(trend)
