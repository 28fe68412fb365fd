import logging
from typing import Any

import ROOT

from .root_io import ensure_parent, expand, load_macro
from .settings import GseConfig
from .systematics import BinnedResult, SystGraphModel, dimension_from_path, make_data_model, make_truth_model, result_path
from .tasks_common import MissingInputError, get_hist


LOGGER = logging.getLogger("egamon.tasks")


def binned_result_from_hist(h: Any) -> BinnedResult:
    axis = h.GetXaxis()
    bins = range(1, h.GetNbinsX() + 1)
    return BinnedResult(
        centers=[axis.GetBinCenter(i) for i in bins],
        half_widths=[axis.GetBinWidth(i) / 2 for i in bins],
        contents=[h.GetBinContent(i) for i in bins],
        errors=[h.GetBinError(i) for i in bins],
        underflow=h.GetBinContent(0),
        marker_style=int(h.GetMarkerStyle()),
        marker_size=float(h.GetMarkerSize()),
    )


def to_graph_sys_err(model: SystGraphModel) -> Any:
    gse = ROOT.GraphSysErr(len(model.points))
    gse.SetName(model.name)
    gse.SetTitle(model.title)
    for key, value in model.keys.items():
        gse.SetKey(key, value)
    for qualifier, value in model.qualifiers:
        gse.AddQualifier(qualifier, value)
    gse.SetXTitle("ETARAP")
    gse.SetYTitle("DN/DETARAP")
    gse.SetMarkerStyle(model.marker_style)
    gse.SetMarkerSize(model.marker_size)
    gse.SetDataOption(ROOT.GraphSysErr.kNoTick)

    col = model.color
    gse.SetMarkerColor(col)
    gse.SetLineColor(col)
    gse.SetFillColor(col)
    gse.SetSumFillColor(col)
    gse.SetSumLineColor(col)
    gse.SetSumOption(ROOT.GraphSysErr.kBox)
    gse.SetCommonSumFillColor(col)
    gse.SetCommonSumLineColor(col)
    gse.SetCommonSumOption(ROOT.GraphSysErr.kBox)

    for name, value in model.common:
        uid = gse.DefineCommon(name, True, value, ROOT.GraphSysErr.kBox)
        gse.SetSysFillColor(uid, col)
        gse.SetSysLineColor(uid, col)
    p2p_ids = []
    for name in model.p2p:
        uid = gse.DeclarePoint2Point(name, True, ROOT.GraphSysErr.kBox)
        gse.SetSysFillColor(uid, col)
        gse.SetSysLineColor(uid, col)
        p2p_ids.append(uid)

    for j, p in enumerate(model.points):
        gse.SetPoint(j, p.x, p.y)
        gse.SetPointError(j, p.ex, p.ex)
        gse.SetStatError(j, p.stat, p.stat)
        for uid in p2p_ids:
            gse.SetSysError(uid, j, p.ex, p.ex, p.acceptance, p.acceptance)
    return gse


def _draw(graphs: list[Any], truths: list[Any], png_path: str) -> None:
    c = ROOT.TCanvas("c_gse", "c_gse", 950, 700)
    frame = None
    for i, g in enumerate(graphs):
        g.Draw("quad stat combine axis" if i == 0 else "quad stat combine")
        if frame is None and g.GetMulti():
            frame = g.GetMulti().GetHistogram()
    for t in truths:
        t.Draw("quad")
    if frame:
        frame.SetMinimum(1)
    c.SaveAs(png_path)
    c.Close()


def extract_gse(input_dir: str, *, gse_config: GseConfig) -> dict[str, Any]:
    cfg = gse_config
    base = expand(input_dir).rstrip("/")
    LOGGER.info("extract_gse start input=%s sNN=%d", base, cfg.sqrt_s_nn)
    dimen = dimension_from_path(base)

    load_macro(cfg.graph_sys_err_macro, "GraphSysErr")

    f_in = ROOT.TFile.Open(f"{base}/result.root", "READ")
    if not f_in or f_in.IsZombie():
        raise MissingInputError(f"Failed to open {base}/result.root")
    cent = get_hist(f_in, "realCent")
    if cent is None:
        raise MissingInputError(f"Missing centrality histogram 'realCent' in {base}/result.root")

    graphs: list[Any] = []
    truths: list[Any] = []
    axis = cent.GetXaxis()
    for i in range(1, cent.GetNbinsX() + 1):
        c1 = axis.GetBinLowEdge(i)
        c2 = axis.GetBinUpEdge(i)
        h_data = get_hist(f_in, result_path(c1, c2, dimen, "result"))
        if h_data is None:
            continue
        data_model = make_data_model(binned_result_from_hist(h_data), cfg.sqrt_s_nn, c1, c2)
        LOGGER.info("extract_gse %s trigger efficiency=%6.4f points=%d", data_model.name, data_model.trigger_efficiency, len(data_model.points))
        graphs.append(to_graph_sys_err(data_model))

        h_truth = get_hist(f_in, result_path(c1, c2, dimen, "simG"))
        if h_truth is not None:
            truths.append(to_graph_sys_err(make_truth_model(binned_result_from_hist(h_truth), cfg.sqrt_s_nn, c1, c2)))

    if cfg.draw and graphs:
        _draw(graphs, truths, f"{base}/gse.png")

    stack = ROOT.TList()
    for g in graphs:
        stack.Add(g)

    export_path = f"{base}/gse.input"
    ensure_parent(export_path)
    out = ROOT.std.ofstream(export_path)
    ROOT.GraphSysErr.Export(stack, out, cfg.export_format, cfg.export_precision)
    out.write("*E\n", 3)
    out.close()

    root_path = f"{base}/gse.root"
    rout = ROOT.TFile.Open(root_path, "RECREATE")
    for t in truths:
        stack.Add(t)
    stack.Write("container", ROOT.TObject.kSingleKey)
    rout.Write()
    rout.Close()
    f_in.Close()

    LOGGER.info("extract_gse done graphs=%d truths=%d output=%s", len(graphs), len(truths), root_path)
    return {"graphs": len(graphs), "truths": len(truths), "export": export_path, "container": root_path}
