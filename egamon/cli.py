import argparse
import copy
from datetime import datetime, timezone
import json
import logging
import subprocess
import sys
import time

from . import settings as s


LOGGER = logging.getLogger("egamon")


def _setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)] + ([logging.FileHandler(log_file)] if log_file else []),
        force=True,
    )


def _git_revision() -> str:
    try:
        out = subprocess.run(["git", "rev-parse", "HEAD"], check=True, capture_output=True, text=True)
        return out.stdout.strip()
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


def _write_metadata(path: str, payload: dict) -> None:
    from .root_io import ensure_parent, expand

    out = expand(path)
    ensure_parent(out)
    with open(out, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)


def run(cfg: dict) -> dict:
    runtime_cfg = s.current_runtime_config(cfg)
    paths = runtime_cfg.paths
    _setup_logging(runtime_cfg.log_level, paths.get("log_file") or None)
    task = runtime_cfg.task
    LOGGER.info("Starting run task=%s", task)

    t0 = time.time()
    result: dict = {}
    if task == "monitor":
        from .tasks_monitor import monitor

        result = monitor(paths["input"], paths["output"], monitor_config=runtime_cfg.monitor)
    elif task == "extract_gse":
        from .tasks_gse import extract_gse

        result = extract_gse(runtime_cfg.gse.input or paths["input"], gse_config=runtime_cfg.gse)
    elif task == "trd_results":
        from .tasks_trd import make_results

        result = make_results(trd_config=runtime_cfg.trd)
    elif task == "trd_summary_esd":
        from .tasks_trd import make_summary_esd

        trend = make_summary_esd(trd_config=runtime_cfg.trd)
        result = {"trend_values": trend}
    LOGGER.info("Finished run task=%s elapsed_sec=%.2f", task, time.time() - t0)
    return result


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="EMCAL gamma-trigger monitoring and TRD QA post-processing")
    parser.add_argument("--config", help="Path to TOML config")
    parser.add_argument("--task", choices=s.TASKS, help="Override run.task from the config")
    parser.add_argument("--dump-default-config", action="store_true", help="Print default config and exit")
    args = parser.parse_args(argv)

    if args.dump_default_config:
        print(json.dumps(s.default_config_template(), indent=2))
        return 0
    if not args.config:
        parser.error("--config is required")

    cfg = s.load_user_config(args.config)
    if args.task:
        cfg.setdefault("run", {})["task"] = args.task
    merged = s.merge_config(cfg)

    started = datetime.now(timezone.utc)
    status = "success"
    error = ""
    result: dict = {}
    try:
        result = run(merged)
    except Exception as exc:
        status = "failed"
        error = str(exc)
        LOGGER.error("Run failed: %s", exc)
        raise
    finally:
        ended = datetime.now(timezone.utc)
        metadata = {
            "status": status,
            "error": error,
            "started_utc": started.isoformat(),
            "ended_utc": ended.isoformat(),
            "duration_sec": (ended - started).total_seconds(),
            "git_revision": _git_revision(),
            "config": copy.deepcopy(merged),
            "result": result,
        }
        try:
            _write_metadata(merged.get("paths", {}).get("metadata_output", "run_metadata.json"), metadata)
        except OSError as meta_exc:
            LOGGER.error("Failed to write metadata: %s", meta_exc)
    return 0


if __name__ == "__main__":
    sys.exit(main())
