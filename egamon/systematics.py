from dataclasses import dataclass, field


# ROOT EColor base values
K_BLACK = 1
K_YELLOW = 400
K_GREEN = 416
K_CYAN = 432
K_BLUE = 600
K_MAGENTA = 616
K_RED = 632
K_ORANGE = 800
K_SPRING = 820
K_AZURE = 860
K_PINK = 900

CENTRALITY_COLORS = (
    K_MAGENTA + 2,
    K_BLUE + 2,
    K_AZURE - 1,
    K_CYAN + 2,
    K_GREEN + 1,
    K_SPRING + 5,
    K_YELLOW + 1,
    K_ORANGE + 5,
    K_RED + 1,
    K_PINK + 5,
    K_BLACK,
)
CENTRALITY_EDGES = (5, 10, 20, 30, 40, 50, 60, 70, 80, 90)

DIMENSION_SUFFIXES = (("unit", 0), ("const", 1), ("eta", 2), ("etaipz", 3))

ETA_MAX = 2.0
MIN_TRIGGER_EFFICIENCY = 1e-6


def centrality_bin(c1: float, c2: float) -> int:
    c = (c1 + c2) / 2
    for i, edge in enumerate(CENTRALITY_EDGES):
        if c < edge:
            return i
    return len(CENTRALITY_EDGES)


def centrality_color(c1: float, c2: float) -> int:
    return CENTRALITY_COLORS[centrality_bin(c1, c2)]


def sys_eval(x: float, s_min: float, s_max: float, x_max: float) -> float:
    return s_min + (x / x_max) ** 2 * (s_max - s_min)


def centrality_sys_eval(x: float, s_min: float, s_max: float) -> float:
    return sys_eval(x, s_min, s_max, 80)


def eta_sys_eval(x: float, s_min: float, s_max: float) -> float:
    return sys_eval(x, s_min, s_max, ETA_MAX)


def is_all(c1: float, c2: float) -> bool:
    return c1 + 1e-9 >= c2


def bin_name(c1: float, c2: float) -> str:
    if is_all(c1, c2):
        return "all"
    return "%03dd%02d_%03dd%02d" % (int(c1), int(c1 * 100) % 100, int(c2), int(c2 * 100) % 100)


def result_path(c1: float, c2: float, dimen: int, leaf: str = "result") -> str:
    name = bin_name(c1, c2)
    sub = name if is_all(c1, c2) else f"cent{name}"
    return f"{sub}/results{dimen}d/{leaf}"


def dimension_from_path(path: str) -> int:
    base = str(path).rstrip("/")
    for suffix, dimen in DIMENSION_SUFFIXES:
        if base.endswith(suffix):
            return dimen
    raise ValueError(f"Don't know how to extract dimension from {path}")


def reference_key(sqrt_s_nn: int) -> str:
    return "ALICE-AN-2830" if sqrt_s_nn == 5023 else "ALICE-AN-2180"


def author_key(sqrt_s_nn: int) -> str:
    return "PREGHENELLA : 2015" if sqrt_s_nn == 5023 else "SHAHOYAN : 2013"


def centrality_sys_range(sqrt_s_nn: int) -> tuple[float, float]:
    return (0.005, 0.075) if sqrt_s_nn == 5023 else (0.004, 0.062)


@dataclass(frozen=True)
class BinnedResult:
    """Bin centers, half-widths, contents and errors of a 1D result histogram."""

    centers: list[float]
    half_widths: list[float]
    contents: list[float]
    errors: list[float]
    underflow: float = 0.0
    marker_style: int = 20
    marker_size: float = 1.0


@dataclass
class SystPoint:
    x: float
    ex: float
    y: float
    stat: float
    acceptance: float = 0.0


@dataclass
class SystGraphModel:
    name: str
    title: str
    color: int
    keys: dict[str, str] = field(default_factory=dict)
    qualifiers: list[tuple[str, str]] = field(default_factory=list)
    common: list[tuple[str, float]] = field(default_factory=list)
    p2p: list[str] = field(default_factory=list)
    points: list[SystPoint] = field(default_factory=list)
    marker_style: int = 20
    marker_size: float = 1.0
    trigger_efficiency: float = 1.0


def _base_model(prefix: str, result: BinnedResult, sqrt_s_nn: int, c1: float, c2: float) -> SystGraphModel:
    model = SystGraphModel(
        name=f"{prefix}{bin_name(c1, c2)}",
        title="%5.1f - %5.1f%%" % (c1, c2),
        color=centrality_color(c1, c2),
        marker_style=result.marker_style,
        marker_size=result.marker_size,
    )
    model.keys.update(
        {
            "title": f"dNch/deta in PbPb at {sqrt_s_nn} GeV",
            "obskey": "DN/DETARAP",
            "reackey": "PB PB --> CHARGED X",
            "laboratory": "CERN",
            "accelerator": "LHC",
            "detector": "TRACKLETS",
            "reference": reference_key(sqrt_s_nn),
        }
    )
    if not is_all(c1, c2):
        model.qualifiers.append(("CENTRALITY IN PCT", "%.1f TO %.1f" % (c1, c2)))
    model.qualifiers.append(("SQRT(S)/NUCLEON IN GEV", str(sqrt_s_nn)))
    return model


def _accepted_points(result: BinnedResult, scale: float = 1.0):
    for eta, e_eta, y, ey in zip(result.centers, result.half_widths, result.contents, result.errors):
        xo = abs(eta) + e_eta
        if xo > ETA_MAX:
            continue
        yield eta, e_eta, y * scale, ey * scale, xo


def make_data_model(result: BinnedResult, sqrt_s_nn: int, c1: float, c2: float) -> SystGraphModel:
    """Measured dN/deta with common and acceptance uncertainties.

    The underflow bin of the result carries the trigger efficiency; the
    content is scaled by it (values below 1e-6 count as 1).
    """
    eff = result.underflow
    if eff < MIN_TRIGGER_EFFICIENCY:
        eff = 1.0

    model = _base_model("CENT_", result, sqrt_s_nn, c1, c2)
    model.trigger_efficiency = eff

    c_min, c_max = centrality_sys_range(sqrt_s_nn)
    model.common = [
        ("Particle composition", 0.01),
        ("Weak decay", 0.01),
        ("pT extrapolation", 0.02),
        ("EG dependence", 0.02),
        ("Background subtraction", centrality_sys_eval(c2, 0.02, 0.001)),
        ("Centrality", centrality_sys_eval(c2, c_min, c_max)),
        ("TRIGGER", 0.02),
    ]
    model.p2p = ["Acceptance"]

    for eta, e_eta, y, ey, xo in _accepted_points(result, eff):
        acceptance = 0.02 * (xo / 2) ** 2
        model.points.append(SystPoint(x=eta, ex=e_eta, y=y, stat=ey, acceptance=acceptance / 100))
    return model


def make_truth_model(result: BinnedResult, sqrt_s_nn: int, c1: float, c2: float) -> SystGraphModel:
    model = _base_model("CENTT_", result, sqrt_s_nn, c1, c2)
    model.keys["author"] = author_key(sqrt_s_nn)
    for eta, e_eta, y, ey, _ in _accepted_points(result):
        model.points.append(SystPoint(x=eta, ex=e_eta, y=y, stat=ey))
    return model
