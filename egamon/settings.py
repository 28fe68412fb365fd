import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - runtime compatibility path
    import tomli as tomllib


DEFAULTS_PATH = Path(__file__).parent / "defaults.toml"
TASKS = ("monitor", "extract_gse", "trd_results", "trd_summary_esd")


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        cfg = tomllib.load(f)
    if not isinstance(cfg, dict):
        raise ValueError(f"Invalid TOML at {path}: top-level table is missing.")
    return cfg


_DEFAULT_CONFIG_CACHE: dict[str, Any] = {}


def default_config_template() -> dict[str, Any]:
    if not _DEFAULT_CONFIG_CACHE:
        _DEFAULT_CONFIG_CACHE.update(_load_toml(DEFAULTS_PATH))
    return copy.deepcopy(_DEFAULT_CONFIG_CACHE)


def load_user_config(path: str) -> dict[str, Any]:
    return _load_toml(Path(path).expanduser())


def _required_table(table: dict[str, Any], key: str, context: str = "defaults") -> dict[str, Any]:
    value = table.get(key)
    if not isinstance(value, dict):
        raise ValueError(f"Missing or invalid [{key}] table in {context} config")
    return value


def _required_value(table: dict[str, Any], key: str, context: str) -> Any:
    if key not in table:
        raise ValueError(f"Missing required key '{context}.{key}'")
    return table[key]


def _deep_merge_dict(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _deep_merge_dict(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out


def merge_config(cfg: dict[str, Any] | None) -> dict[str, Any]:
    merged = default_config_template()
    if not isinstance(cfg, dict):
        return merged
    return _deep_merge_dict(merged, cfg)


@dataclass(frozen=True)
class VertexCuts:
    max_vtx_z_res: float = 0.25
    max_z_diff: float = 0.5
    z_vertex_cut: float = 10.0


@dataclass(frozen=True)
class MonitorConfig:
    """Settings fixed for the lifetime of one trigger-patch classifier."""

    use_recalc_patches: bool = False
    recalc_low: float = 0.0
    recalc_high: float = 0.0
    vertex: VertexCuts = field(default_factory=VertexCuts)
    l1_gamma_high_bit: int = 1
    l1_gamma_low_bit: int = 2


@dataclass(frozen=True)
class MonitorRunConfig:
    classifier: MonitorConfig
    tree_name: str
    list_name: str
    max_events: int
    draw: bool
    draw_dir: str
    branches: dict[str, str]


@dataclass(frozen=True)
class GseConfig:
    input: str
    sqrt_s_nn: int
    graph_sys_err_macro: str
    export_format: str
    export_precision: int
    draw: bool


@dataclass(frozen=True)
class SummaryEsdConfig:
    file: str
    dir: str
    use_cf: bool
    use_isolated_bc: bool
    cut_tof_bc: bool


@dataclass(frozen=True)
class TrdConfig:
    options: str
    files: str
    task_id: str
    grid: bool
    summary: bool
    libraries: list[str]
    figure_format: str
    debug_level: int
    summary_esd: SummaryEsdConfig


@dataclass(frozen=True)
class RuntimeConfig:
    task: str
    log_level: str
    paths: dict[str, str]
    monitor: MonitorRunConfig
    gse: GseConfig
    trd: TrdConfig


BRANCH_KEYS = (
    "trk_vtx_ncontrib",
    "trk_vtx_z",
    "trk_vtx_title",
    "spd_vtx_ncontrib",
    "spd_vtx_z",
    "spd_vtx_zres",
    "spd_vtx_title",
    "pileup",
    "fired_classes",
    "selection_mask",
    "patch_col",
    "patch_row",
    "patch_adc",
    "patch_gamma_low_recalc",
    "raw_col",
    "raw_row",
    "raw_bits",
)


def _build_monitor_config(monitor: dict[str, Any]) -> MonitorRunConfig:
    vertex = _required_table(monitor, "vertex", "monitor")
    bits = _required_table(monitor, "trigger_bits", "monitor")
    branches = _required_table(monitor, "branches", "monitor")

    for name in ("l1_gamma_high", "l1_gamma_low"):
        bit = int(_required_value(bits, name, "monitor.trigger_bits"))
        if not 0 <= bit < 32:
            raise ValueError(f"monitor.trigger_bits.{name} must be in [0, 32), got {bit}.")

    classifier = MonitorConfig(
        use_recalc_patches=bool(_required_value(monitor, "use_recalc_patches", "monitor")),
        recalc_low=float(_required_value(monitor, "recalc_low", "monitor")),
        recalc_high=float(_required_value(monitor, "recalc_high", "monitor")),
        vertex=VertexCuts(
            max_vtx_z_res=float(_required_value(vertex, "max_vtx_z_res", "monitor.vertex")),
            max_z_diff=float(_required_value(vertex, "max_z_diff", "monitor.vertex")),
            z_vertex_cut=float(_required_value(vertex, "z_vertex_cut", "monitor.vertex")),
        ),
        l1_gamma_high_bit=int(bits["l1_gamma_high"]),
        l1_gamma_low_bit=int(bits["l1_gamma_low"]),
    )

    return MonitorRunConfig(
        classifier=classifier,
        tree_name=str(_required_value(monitor, "tree_name", "monitor")),
        list_name=str(_required_value(monitor, "list_name", "monitor")),
        max_events=int(monitor.get("max_events", -1)),
        draw=bool(monitor.get("draw", False)),
        draw_dir=str(monitor.get("draw_dir", "plots")),
        branches={key: str(_required_value(branches, key, "monitor.branches")) for key in BRANCH_KEYS},
    )


def _build_gse_config(gse: dict[str, Any]) -> GseConfig:
    precision = int(_required_value(gse, "export_precision", "gse"))
    if precision < 0:
        raise ValueError(f"gse.export_precision must be non-negative, got {precision}.")
    return GseConfig(
        input=str(gse.get("input", "")),
        sqrt_s_nn=int(_required_value(gse, "sqrt_s_nn", "gse")),
        graph_sys_err_macro=str(_required_value(gse, "graph_sys_err_macro", "gse")),
        export_format=str(_required_value(gse, "export_format", "gse")),
        export_precision=precision,
        draw=bool(gse.get("draw", False)),
    )


def _build_trd_config(trd: dict[str, Any]) -> TrdConfig:
    esd = _required_table(trd, "summary_esd", "trd")
    return TrdConfig(
        options=str(_required_value(trd, "options", "trd")),
        files=str(_required_value(trd, "files", "trd")),
        task_id=str(trd.get("task_id", "")),
        grid=bool(trd.get("grid", False)),
        summary=bool(trd.get("summary", True)),
        libraries=[str(v) for v in list(_required_value(trd, "libraries", "trd"))],
        figure_format=str(trd.get("figure_format", "gif")),
        debug_level=int(trd.get("debug_level", 0)),
        summary_esd=SummaryEsdConfig(
            file=str(_required_value(esd, "file", "trd.summary_esd")),
            dir=str(_required_value(esd, "dir", "trd.summary_esd")),
            use_cf=bool(esd.get("use_cf", True)),
            use_isolated_bc=bool(esd.get("use_isolated_bc", False)),
            cut_tof_bc=bool(esd.get("cut_tof_bc", False)),
        ),
    )


def current_runtime_config(cfg: dict[str, Any] | None = None) -> RuntimeConfig:
    merged = merge_config(cfg)

    run_cfg = _required_table(merged, "run", "config")
    task = str(_required_value(run_cfg, "task", "run")).strip().lower()
    if task not in TASKS:
        raise ValueError(f"Unsupported run.task '{task}'. Allowed: {', '.join(TASKS)}.")

    paths = _required_table(merged, "paths", "config")

    return RuntimeConfig(
        task=task,
        log_level=str(run_cfg.get("log_level", "INFO")),
        paths={str(k): str(v) for k, v in paths.items()},
        monitor=_build_monitor_config(_required_table(merged, "monitor", "config")),
        gse=_build_gse_config(_required_table(merged, "gse", "config")),
        trd=_build_trd_config(_required_table(merged, "trd", "config")),
    )
