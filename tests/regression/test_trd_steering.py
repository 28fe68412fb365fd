import tempfile
import unittest
from pathlib import Path

from egamon.trd_qa import ProcessContext, TaskKind, parse_options, read_file_list, run_tasks


class _FakeTask:
    def __init__(self, class_name: str) -> None:
        self.class_name = class_name
        self.name = class_name.replace("AliTRD", "")

    def GetName(self) -> str:
        return self.name

    def SetName(self, name: str) -> None:
        self.name = name


class TestParseOptions(unittest.TestCase):
    def test_all_selects_every_task(self) -> None:
        steer = parse_options("ALL")
        self.assertEqual([t.key for t in steer.tasks], ["ESD", "GEN", "DET", "EFF", "EFFC", "RES", "PID", "V0"])
        self.assertTrue(steer.mc)
        self.assertTrue(steer.friends)

    def test_nomc_drops_mc_only_tasks(self) -> None:
        steer = parse_options("ALL NOMC")
        self.assertNotIn("EFFC", [t.key for t in steer.tasks])
        self.assertFalse(steer.mc)
        self.assertTrue(steer.friends)

    def test_explicit_tasks_and_flags(self) -> None:
        steer = parse_options("res eff NOFR")
        self.assertEqual([t.key for t in steer.tasks], ["EFF", "RES"])
        self.assertFalse(steer.friends)

    def test_unknown_option(self) -> None:
        with self.assertRaisesRegex(ValueError, "Unknown TRD QA option 'XYZ'"):
            parse_options("EFF XYZ")


class TestRunTasks(unittest.TestCase):
    def test_dispatch_by_kind_in_reverse_order(self) -> None:
        seen: list[tuple[str, str]] = []

        def handler(kind: TaskKind):
            def _handle(task, ctx):
                seen.append((kind.value, task.GetName()))
                return task.class_name != "AliTRDresolution"

            return _handle

        handlers = {kind: handler(kind) for kind in TaskKind}
        ctx = ProcessContext(filename="QAresults.root", mc=True, friends=True, task_id="SA")
        results = run_tasks(parse_options("ESD GEN RES PID"), ctx, handlers, _FakeTask)

        self.assertEqual(
            seen,
            [("reco", "checkPIDSA"), ("reco", "resolutionSA"), ("info_gen", "infoGenSA"), ("check_esd", "checkESDSA")],
        )
        self.assertEqual(results, {"PID": True, "RES": False, "GEN": True, "ESD": True})

    def test_each_task_is_logged(self) -> None:
        handlers = {kind: (lambda task, ctx: True) for kind in TaskKind}
        ctx = ProcessContext(filename="QAresults.root", mc=True, friends=True)
        with self.assertLogs("egamon.tasks", level="INFO") as logs:
            run_tasks(parse_options("EFF RES"), ctx, handlers, _FakeTask)
        self.assertEqual(len(logs.output), 2)
        self.assertIn('task resolution, input QA file "QAresults.root"', logs.output[0])

    def test_missing_handler(self) -> None:
        ctx = ProcessContext(filename="QAresults.root", mc=True, friends=True)
        with self.assertRaisesRegex(ValueError, "check_esd"):
            run_tasks(parse_options("EFF"), ctx, {TaskKind.RECO: lambda t, c: True, TaskKind.INFO_GEN: lambda t, c: True}, _FakeTask)


class TestFileList(unittest.TestCase):
    def test_read_file_list_skips_blanks_and_comments(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "files.lst"
            path.write_text("# run list\n/data/RUN1/TRD.Performance.root\n\n  /data/RUN2/TRD.Performance.root  \n", encoding="utf-8")
            self.assertEqual(read_file_list(str(path)), ["/data/RUN1/TRD.Performance.root", "/data/RUN2/TRD.Performance.root"])


if __name__ == "__main__":
    unittest.main()
