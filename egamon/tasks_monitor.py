import logging

import ROOT

from .monitor import TriggerPatchClassifier
from .root_io import RootHistSink, expand
from .settings import MonitorRunConfig
from .tasks_common import MissingInputError
from .treereader import iter_events


LOGGER = logging.getLogger("egamon.tasks")


def monitor(input_file: str, output_file: str, *, monitor_config: MonitorRunConfig) -> dict[str, int]:
    cfg = monitor_config
    mode = "recalc" if cfg.classifier.use_recalc_patches else "raw"
    LOGGER.info("monitor start input=%s output=%s mode=%s", input_file, output_file, mode)

    f_in = ROOT.TFile.Open(expand(input_file))
    if not f_in or f_in.IsZombie():
        raise MissingInputError(f"Cannot open input file: {input_file}")

    classifier = TriggerPatchClassifier(cfg.classifier)
    sink = RootHistSink(cfg.list_name)
    stats = {"events": 0, "selected": 0}
    try:
        tree = f_in.Get(cfg.tree_name)
        if not tree:
            raise MissingInputError(f"Missing trigger tree '{cfg.tree_name}' in {input_file}")
        for event in iter_events(tree, cfg.branches, cfg.max_events):
            stats["events"] += 1
            if classifier.process_event(event, sink):
                stats["selected"] += 1
    finally:
        f_in.Close()

    sink.write(output_file)
    if cfg.draw:
        from .plotting import draw_maps

        written = draw_maps(sink.hists, cfg.draw_dir)
        LOGGER.info("monitor wrote %d map(s) to %s", len(written), cfg.draw_dir)
    LOGGER.info(
        "monitor done events=%d selected=%d rejected=%d output=%s",
        stats["events"],
        stats["selected"],
        stats["events"] - stats["selected"],
        output_file,
    )
    return stats
