from pathlib import Path
from typing import Any

import ROOT

from .root_io import expand


def _mkdir(path: str) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def draw_map_to_png(hist: Any, png_path: str) -> None:
    _mkdir(str(Path(png_path).parent))
    c = ROOT.TCanvas("c_egamon", "c_egamon", 950, 700)
    c.SetRightMargin(0.14)
    hist.Draw("colz")
    c.SaveAs(png_path)
    c.Close()


def draw_maps(hists: dict[str, Any], out_dir: str) -> list[str]:
    """Save every column/row map that received entries as ``<out_dir>/<name>.png``."""
    ROOT.gStyle.SetOptStat(0)
    written: list[str] = []
    for name, h in hists.items():
        if h.GetEntries() == 0:
            continue
        png = f"{expand(out_dir)}/{name}.png"
        draw_map_to_png(h, png)
        written.append(png)
    return written
