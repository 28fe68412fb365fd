import unittest

from egamon.monitor import (
    K_EMCEGA,
    K_INT7,
    CountingSink,
    EventRecord,
    RawTriggerEntry,
    TriggerPatch,
    TriggerPatchClassifier,
    VertexInfo,
)
from egamon.settings import MonitorConfig
from egamon.tasks_common import MissingInputError


GOOD_VERTEX = VertexInfo(
    trk_ncontrib=12,
    trk_z=0.5,
    trk_title="VertexerTracksNoConstraint",
    spd_ncontrib=6,
    spd_z=0.4,
    spd_z_res=0.05,
    spd_title="vertexer:3D",
)
HIGH = 1 << 1
LOW = 1 << 2


def _event(patches=(), raw=None, mask=K_EMCEGA, fired="CEMC7EG1 CEMC7EG2") -> EventRecord:
    return EventRecord(
        vertex=GOOD_VERTEX,
        pileup=False,
        fired_classes=fired,
        selection_mask=mask,
        patches=tuple(patches),
        raw_triggers=None if raw is None else tuple(raw),
    )


class TestRecalcPatches(unittest.TestCase):
    def setUp(self) -> None:
        self.classifier = TriggerPatchClassifier(MonitorConfig(use_recalc_patches=True, recalc_low=100.0, recalc_high=200.0))

    def test_between_thresholds_fills_g2_only(self) -> None:
        sink = CountingSink()
        self.assertTrue(self.classifier.process_event(_event([TriggerPatch(3, 40, 150.0, True)]), sink))
        for t in ("EG1", "EG2"):
            self.assertEqual(sink.get(f"hColRowG2{t}", 3, 40), 1)
            self.assertEqual(sink.total(f"hColRowG1{t}"), 0)

    def test_above_both_fills_g1_and_g2(self) -> None:
        sink = CountingSink()
        self.classifier.process_event(_event([TriggerPatch(10, 5, 250.0, True)]), sink)
        for t in ("EG1", "EG2"):
            self.assertEqual(sink.get(f"hColRowG1{t}", 10, 5), 1)
            self.assertEqual(sink.get(f"hColRowG2{t}", 10, 5), 1)
        self.assertEqual(sum(sink.counts.values()), 4)

    def test_thresholds_are_strict(self) -> None:
        sink = CountingSink()
        self.classifier.process_event(_event([TriggerPatch(1, 1, 100.0, True)]), sink)
        self.assertEqual(sum(sink.counts.values()), 0)

        self.classifier.process_event(_event([TriggerPatch(1, 1, 200.0, True)]), sink)
        self.assertEqual(sink.total("hColRowG2EG1"), 1)
        self.assertEqual(sink.total("hColRowG1EG1"), 0)

    def test_only_gamma_low_recalc_patches(self) -> None:
        sink = CountingSink()
        self.classifier.process_event(_event([TriggerPatch(2, 2, 500.0, False)]), sink)
        self.assertEqual(sum(sink.counts.values()), 0)

    def test_high_only_patch_keeps_independent_thresholds(self) -> None:
        classifier = TriggerPatchClassifier(MonitorConfig(use_recalc_patches=True, recalc_low=300.0, recalc_high=200.0))
        sink = CountingSink()
        classifier.process_event(_event([TriggerPatch(4, 4, 250.0, True)], mask=K_INT7, fired=""), sink)
        self.assertEqual(sink.get("hColRowG1MB", 4, 4), 1)
        self.assertEqual(sink.total("hColRowG2MB"), 0)

    def test_missing_patch_arrays_are_fatal(self) -> None:
        event = EventRecord(vertex=GOOD_VERTEX, pileup=False, fired_classes="CEMC7EG1", selection_mask=K_EMCEGA, patches=None)
        with self.assertRaises(MissingInputError):
            self.classifier.process_event(event, CountingSink())

    def test_rejected_event_fills_nothing(self) -> None:
        sink = CountingSink()
        event = _event([TriggerPatch(3, 3, 500.0, True)], mask=1 << 0)
        self.assertFalse(self.classifier.process_event(event, sink))
        self.assertEqual(sum(sink.counts.values()), 0)

    def test_idempotent_across_sinks(self) -> None:
        patches = [TriggerPatch(c, r, a, True) for c, r, a in [(0, 0, 120.0), (47, 103, 300.0), (20, 60, 90.0), (0, 0, 210.0)]]
        event = _event(patches)
        first, second = CountingSink(), CountingSink()
        self.classifier.process_event(event, first)
        self.classifier.process_event(event, second)
        self.assertEqual(first.counts, second.counts)
        self.assertEqual(first.get("hColRowG2EG1", 0, 0), 2)


class TestRawTriggers(unittest.TestCase):
    def setUp(self) -> None:
        self.classifier = TriggerPatchClassifier(MonitorConfig(use_recalc_patches=False))

    def test_both_bits_fill_g1_and_g2(self) -> None:
        sink = CountingSink()
        self.classifier.process_event(_event(raw=[RawTriggerEntry(12, 30, HIGH | LOW)], fired="CEMC7EG1 CDMC7DG2"), sink)
        for t in ("EG1", "DG2"):
            self.assertEqual(sink.get(f"hColRowG1{t}", 12, 30), 1)
            self.assertEqual(sink.get(f"hColRowG2{t}", 12, 30), 1)
        self.assertEqual(sum(sink.counts.values()), 4)

    def test_single_bits(self) -> None:
        sink = CountingSink()
        raw = [RawTriggerEntry(1, 2, HIGH), RawTriggerEntry(3, 4, LOW), RawTriggerEntry(5, 6, 1 << 3)]
        self.classifier.process_event(_event(raw=raw, mask=K_INT7, fired=""), sink)
        self.assertEqual(sink.get("hColRowG1MB", 1, 2), 1)
        self.assertEqual(sink.get("hColRowG2MB", 3, 4), 1)
        self.assertEqual(sum(sink.counts.values()), 2)

    def test_missing_raw_stream_is_fatal(self) -> None:
        with self.assertRaises(MissingInputError):
            self.classifier.process_event(_event(raw=None), CountingSink())

    def test_configurable_bit_positions(self) -> None:
        classifier = TriggerPatchClassifier(MonitorConfig(l1_gamma_high_bit=6, l1_gamma_low_bit=7))
        sink = CountingSink()
        classifier.process_event(_event(raw=[RawTriggerEntry(7, 7, 1 << 7), RawTriggerEntry(8, 8, HIGH)], mask=K_INT7, fired=""), sink)
        self.assertEqual(sink.get("hColRowG2MB", 7, 7), 1)
        self.assertEqual(sum(sink.counts.values()), 1)


if __name__ == "__main__":
    unittest.main()
