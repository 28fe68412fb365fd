from typing import Any, Iterator

from .monitor import EventRecord, RawTriggerEntry, TriggerPatch, VertexInfo


def _as_str(value: Any) -> str:
    return str(value).rstrip("\x00")


def _has_branch(tree: Any, name: str) -> bool:
    return bool(tree.GetBranch(name))


def _read_patches(tree: Any, b: dict[str, str]) -> tuple[TriggerPatch, ...]:
    return tuple(
        TriggerPatch(column=int(c), row=int(r), amplitude=float(a), gamma_low_recalc=bool(g))
        for c, r, a, g in zip(
            getattr(tree, b["patch_col"]),
            getattr(tree, b["patch_row"]),
            getattr(tree, b["patch_adc"]),
            getattr(tree, b["patch_gamma_low_recalc"]),
        )
    )


def _read_raw(tree: Any, b: dict[str, str]) -> tuple[RawTriggerEntry, ...]:
    return tuple(
        RawTriggerEntry(column=int(c), row=int(r), trigger_bits=int(bits))
        for c, r, bits in zip(getattr(tree, b["raw_col"]), getattr(tree, b["raw_row"]), getattr(tree, b["raw_bits"]))
    )


def read_event(tree: Any, branches: dict[str, str], with_patches: bool, with_raw: bool) -> EventRecord:
    b = branches
    vertex = VertexInfo(
        trk_ncontrib=int(getattr(tree, b["trk_vtx_ncontrib"])),
        trk_z=float(getattr(tree, b["trk_vtx_z"])),
        trk_title=_as_str(getattr(tree, b["trk_vtx_title"])),
        spd_ncontrib=int(getattr(tree, b["spd_vtx_ncontrib"])),
        spd_z=float(getattr(tree, b["spd_vtx_z"])),
        spd_z_res=float(getattr(tree, b["spd_vtx_zres"])),
        spd_title=_as_str(getattr(tree, b["spd_vtx_title"])),
    )
    return EventRecord(
        vertex=vertex,
        pileup=bool(getattr(tree, b["pileup"])),
        fired_classes=_as_str(getattr(tree, b["fired_classes"])),
        selection_mask=int(getattr(tree, b["selection_mask"])),
        patches=_read_patches(tree, b) if with_patches else None,
        raw_triggers=_read_raw(tree, b) if with_raw else None,
    )


def iter_events(tree: Any, branches: dict[str, str], max_events: int = -1) -> Iterator[EventRecord]:
    """Yield one EventRecord per tree entry.

    Patch and raw trigger arrays are optional; an absent set is passed on as
    None and only becomes an error in the mode that needs it.
    """
    with_patches = _has_branch(tree, branches["patch_col"])
    with_raw = _has_branch(tree, branches["raw_bits"])
    n_entries = int(tree.GetEntries())
    if max_events >= 0:
        n_entries = min(n_entries, max_events)
    for i in range(n_entries):
        tree.GetEntry(i)
        yield read_event(tree, branches, with_patches, with_raw)
