import os
from pathlib import Path
from typing import Any

import ROOT

from .monitor import ALL_CLASSES, N_COLS, N_ROWS, hist_name, hist_title
from .tasks_common import MissingInputError

_LOADED_MACROS: set[str] = set()


def expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(str(path)))


def ensure_parent(path: str) -> None:
    Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)


def load_macro(macro: str, class_name: str) -> None:
    """Compile/load a ROOT macro unless ``class_name`` is already known to the interpreter."""
    if macro in _LOADED_MACROS or ROOT.gROOT.GetClass(class_name):
        return
    ROOT.gROOT.LoadMacro(expand(macro))
    if not ROOT.gROOT.GetClass(class_name):
        raise MissingInputError(f"Loading {macro} did not provide class {class_name}.")
    _LOADED_MACROS.add(macro)


def load_libraries(libraries: list[str]) -> None:
    for lib in libraries:
        if ROOT.gSystem.Load(lib) < 0:
            raise MissingInputError(f"Failed to load {lib}.")


class RootHistSink:
    """Column/row TH2D maps, one per gamma tier and trigger class."""

    def __init__(self, list_name: str = "EGAhistos", classes: tuple[str, ...] = ALL_CLASSES) -> None:
        self.list_name = list_name
        self.hists: dict[str, Any] = {}
        for t in classes:
            for tier in (1, 2):
                name = hist_name(tier, t)
                h = ROOT.TH2D(name, hist_title(tier, t), N_COLS, -0.5, N_COLS - 0.5, N_ROWS, -0.5, N_ROWS - 0.5)
                h.SetDirectory(0)
                self.hists[name] = h

    def fill(self, name: str, column: int, row: int) -> None:
        self.hists[name].Fill(column, row)

    def write(self, output_file: str) -> None:
        out_name = expand(output_file)
        ensure_parent(out_name)
        out = ROOT.TFile(out_name, "recreate")
        hlist = ROOT.TList()
        hlist.SetName(self.list_name)
        for h in self.hists.values():
            hlist.Add(h)
        hlist.Write(self.list_name, ROOT.TObject.kSingleKey)
        out.Close()
