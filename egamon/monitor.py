from collections import Counter
from dataclasses import dataclass, field
from typing import Protocol

from .settings import MonitorConfig, VertexCuts
from .tasks_common import MissingInputError


# AliVEvent offline trigger bits
K_INT7 = 1 << 1
K_EMCEGA = 1 << 14

GAMMA_CLASSES = ("EG1", "EG2", "DG1", "DG2")
MB_CLASS = "MB"
ALL_CLASSES = GAMMA_CLASSES + (MB_CLASS,)

N_COLS = 48
N_ROWS = 104


def hist_name(tier: int, trigger_class: str) -> str:
    return f"hColRowG{tier}{trigger_class}"


def hist_title(tier: int, trigger_class: str) -> str:
    return f"Col-Row distribution of online G{tier} patches for trigger {trigger_class}"


@dataclass(frozen=True)
class TriggerPatch:
    column: int
    row: int
    amplitude: float
    gamma_low_recalc: bool = False


@dataclass(frozen=True)
class RawTriggerEntry:
    column: int
    row: int
    trigger_bits: int


@dataclass(frozen=True)
class VertexInfo:
    trk_ncontrib: int = 0
    trk_z: float = 0.0
    trk_title: str = ""
    spd_ncontrib: int = 0
    spd_z: float = 0.0
    spd_z_res: float = 0.0
    spd_title: str = ""


@dataclass(frozen=True)
class EventRecord:
    vertex: VertexInfo
    pileup: bool
    fired_classes: str
    selection_mask: int
    patches: tuple[TriggerPatch, ...] | None = ()
    raw_triggers: tuple[RawTriggerEntry, ...] | None = None


class HistogramSink(Protocol):
    def fill(self, name: str, column: int, row: int) -> None:
        ...


@dataclass
class CountingSink:
    """In-memory sink: counts per (histogram name, column, row)."""

    counts: Counter = field(default_factory=Counter)

    def fill(self, name: str, column: int, row: int) -> None:
        self.counts[(name, column, row)] += 1

    def total(self, name: str) -> int:
        return sum(n for (hname, _, _), n in self.counts.items() if hname == name)

    def get(self, name: str, column: int, row: int) -> int:
        return self.counts[(name, column, row)]


def vertex_selected_2013pA(vertex: VertexInfo, cuts: VertexCuts) -> bool:
    if vertex.trk_ncontrib <= 0 or "VertexerTracks" not in vertex.trk_title:
        return False
    if vertex.spd_ncontrib <= 0:
        return False
    if "vertexer:Z" in vertex.spd_title and vertex.spd_z_res > cuts.max_vtx_z_res:
        return False
    if abs(vertex.spd_z - vertex.trk_z) > cuts.max_z_diff:
        return False
    if abs(vertex.trk_z) > cuts.z_vertex_cut:
        return False
    return True


class TriggerPatchClassifier:
    def __init__(self, config: MonitorConfig) -> None:
        self.config = config
        self._gamma_high_mask = 1 << config.l1_gamma_high_bit
        self._gamma_low_mask = 1 << config.l1_gamma_low_bit

    def select_event(self, event: EventRecord) -> bool:
        if not vertex_selected_2013pA(event.vertex, self.config.vertex):
            return False
        if event.pileup:
            return False
        return bool(event.selection_mask & (K_EMCEGA | K_INT7))

    def classify_triggers(self, event: EventRecord) -> tuple[str, ...]:
        if not event.selection_mask & K_EMCEGA:
            return (MB_CLASS,)
        return tuple(name for name in GAMMA_CLASSES if name in event.fired_classes)

    def process_patches(self, event: EventRecord, classes: tuple[str, ...], sink: HistogramSink) -> None:
        if self.config.use_recalc_patches:
            if event.patches is None:
                raise MissingInputError("Recalculated trigger patches not available for event.")
            self._fill_recalc(event.patches, classes, sink)
        else:
            if event.raw_triggers is None:
                raise MissingInputError("Raw EMCAL trigger stream not available for event.")
            self._fill_raw(event.raw_triggers, classes, sink)

    def process_event(self, event: EventRecord, sink: HistogramSink) -> bool:
        if not self.select_event(event):
            return False
        self.process_patches(event, self.classify_triggers(event), sink)
        return True

    def _fill_recalc(self, patches, classes, sink) -> None:
        low, high = self.config.recalc_low, self.config.recalc_high
        for patch in patches:
            if not patch.gamma_low_recalc:
                continue
            if patch.amplitude > low:
                for t in classes:
                    sink.fill(hist_name(2, t), patch.column, patch.row)
            if patch.amplitude > high:
                for t in classes:
                    sink.fill(hist_name(1, t), patch.column, patch.row)

    def _fill_raw(self, entries, classes, sink) -> None:
        for entry in entries:
            bits = entry.trigger_bits
            if not bits & (self._gamma_high_mask | self._gamma_low_mask):
                continue
            if bits & self._gamma_high_mask:
                for t in classes:
                    sink.fill(hist_name(1, t), entry.column, entry.row)
            if bits & self._gamma_low_mask:
                for t in classes:
                    sink.fill(hist_name(2, t), entry.column, entry.row)
