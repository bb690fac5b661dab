"""CLI entry point for the mock IoT generator.

Usage::

    mock-iot timeseries --days 1 --interval 60 --demo
    mock-iot prediction --days 7 --config mock-iot.yaml --async
    mock-iot scenario loading --duration 10 --interval 5 --time-scale 0
    mock-iot replay --csv readings.csv --count 20 --interval 0.5 --demo
    mock-iot replay --csv readings.csv --stream 60 --per-interval 5 --demo
    mock-iot list-device-types
    mock-iot list-sinks
    mock-iot init-config --output mock-iot.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import textwrap
from collections.abc import Callable
from typing import Any

from mock_iot.errors import ConfigurationError
from mock_iot.models import TaskSnapshot, TaskStatus

logger = logging.getLogger("mock_iot.cli")

# ---------------------------------------------------------------------------
# Extras mapping for list-sinks display
# ---------------------------------------------------------------------------
_SINK_EXTRAS: dict[str, str | None] = {
    "console": None,
    "callback": None,
    "memory": None,
    "file": None,
    "webhook": "webhook",
    "database": "database",
}

# Which run uses which device types (for list-device-types).
_DEVICE_USES: dict[str, str] = {
    "carbon_sensor": "timeseries, prediction, carbon_peak, carbon_reduction",
    "energy_meter": "timeseries, prediction, carbon_peak, carbon_reduction",
    "air_quality_monitor": "timeseries, carbon_peak",
    "emissions_analyzer": "timeseries",
    "loader": "loading",
    "conveyor": "loading",
    "forklift": "loading, carbon_peak, workday_peak",
    "truck": "carbon_peak",
    "gate": "vehicle_entry",
    "weight_scale": "vehicle_entry",
    "camera": "vehicle_entry (optional)",
    "hvac": "carbon_peak, carbon_reduction, workday_peak, night",
    "lighting": "carbon_reduction, night",
    "security": "night",
    "charging_station": "workday_peak, night",
    "solar_panel": "carbon_reduction",
    "smart_grid": "carbon_reduction",
}

# ---------------------------------------------------------------------------
# Sample YAML config template for init-config
# ---------------------------------------------------------------------------
_SAMPLE_CONFIG = """\
# Mock IoT generator configuration

service:
  log_level: INFO                     # DEBUG, INFO, WARNING, ERROR
  time_scale: 1.0                     # scenario pacing; 0 = no waiting, 0.01 = 100x faster
  # seed: 42                          # fix the random source for reproducible runs

tasks:
  max_tasks: 1000                     # oldest finished tasks are evicted beyond this
  # ttl_s: 3600                       # drop finished tasks older than this

# CSV replay (mock-iot replay).  Intervals are wall-clock seconds.
replay:
  # csv_path: ./mock_data/mock_iot_storage.csv
  interval_s: 5.0                     # seconds between batches
  devices_per_interval: 3
  randomize: true                     # false walks the file in order

# Devices seeded into the in-memory catalog.  'type' may be omitted when the
# device code follows the DEV-<PREFIX>-<SERIES><NNN> convention.
devices:
  - device_id: DEV-CO2-A001
    name: Main hall CO2 sensor
  - device_id: DEV-CO2-A002
    name: Warehouse CO2 sensor
  - id: em-main-1
    device_id: DEV-EM-A001
    name: Main energy meter
  - device_id: DEV-FLT-A001
    name: Forklift 1
  - device_id: DEV-LDR-A001
    name: Dock loader 1
  - device_id: DEV-GATE-A001
    name: North gate
  - device_id: DEV-WS-A001
    name: Gate weighbridge

# Where telemetry goes.  Several entries fan out to all of them.
sinks:
  - type: console
    fmt: text                         # text or json

  # - type: file
  #   path: ./output
  #   format: csv                     # csv or json (JSON lines)

  # - type: webhook
  #   url: http://localhost:3000/api/data-collection
  #   retry_count: 5
  #   headers:
  #     Authorization: Bearer my-token

  # - type: database
  #   connection_string: sqlite+aiosqlite:///telemetry.db
  #   table: device_data
"""


# ======================================================================
# Main entry point
# ======================================================================


def main(argv: list[str] | None = None) -> None:
    from mock_iot.simulator import SCENARIOS

    epilog = textwrap.dedent("""\
        examples:
          mock-iot timeseries --days 1 --interval 60 --demo
          mock-iot timeseries --config mock-iot.yaml --trend 0.3 --async
          mock-iot prediction --days 7 --demo --sink file -o ./data
          mock-iot scenario loading --duration 10 --interval 5 --demo --time-scale 0
          mock-iot scenario vehicle_entry --count 3 --demo
          mock-iot replay --csv readings.csv --stream 30 --demo
          mock-iot init-config --output mock-iot.yaml
    """)

    parser = argparse.ArgumentParser(
        prog="mock-iot",
        description="Generate synthetic IoT telemetry: time series, prediction datasets and scenarios.",
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", title="commands")

    # Options shared by every generation command
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to YAML config file (devices, sinks, pacing, retention).",
    )
    common.add_argument(
        "--demo",
        action="store_true",
        help="Seed the catalog with two devices of every type (ignored with --config).",
    )
    common.add_argument(
        "--async",
        dest="use_async",
        action="store_true",
        help="Run through the task runner and log progress until the task finishes.",
    )
    common.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO, or service.log_level from --config).",
    )
    common.add_argument("--seed", type=int, default=None, help="Seed for the random source.")
    common.add_argument(
        "--time-scale",
        type=float,
        default=None,
        help="Scenario pacing multiplier; 0 disables waiting (default: 1.0).",
    )
    common.add_argument(
        "--sink",
        "-s",
        type=str,
        default="console",
        choices=["console", "file", "memory"],
        help="Telemetry destination when no --config is given (default: console).",
    )
    common.add_argument(
        "--format",
        type=str,
        default="text",
        choices=["text", "json"],
        help="Console sink output format (default: text).",
    )
    common.add_argument(
        "--output-dir",
        "-o",
        type=str,
        default="./output",
        help="Output directory for the file sink (default: ./output).",
    )
    common.add_argument(
        "--output-format",
        type=str,
        default="csv",
        choices=["csv", "json"],
        help="File sink format (default: csv).",
    )

    # -- timeseries --------------------------------------------------------
    ts_parser = subparsers.add_parser(
        "timeseries",
        parents=[common],
        help="Generate a carbon time series for every carbon-related device.",
    )
    ts_parser.add_argument("--days", "-d", type=int, default=1, help="Days of history (1-365, default: 1).")
    ts_parser.add_argument("--interval", "-i", type=int, default=60, help="Minutes between points (default: 60).")
    ts_parser.add_argument("--trend", type=float, default=None, help="Linear trend, -0.5..0.5 (default: 0.1).")
    ts_parser.add_argument("--seasonality", type=float, default=None, help="Seasonal strength, 0..1 (default: 0.5).")
    ts_parser.add_argument("--noise", type=float, default=None, help="Noise strength, 0..1 (default: 0.2).")
    ts_parser.add_argument("--outliers", type=float, default=None, help="Outlier rate, 0..0.1 (default: 0.02).")
    ts_parser.add_argument(
        "--device-id",
        action="append",
        dest="device_ids",
        default=None,
        help="Only generate for this device id or code (repeatable).",
    )

    # -- prediction --------------------------------------------------------
    pred_parser = subparsers.add_parser(
        "prediction",
        parents=[common],
        help="Generate a carbon-emission prediction dataset.",
    )
    pred_parser.add_argument("--days", "-d", type=int, default=90, help="Days of history (1-365, default: 90).")
    pred_parser.add_argument("--interval", "-i", type=int, default=60, help="Minutes between points (default: 60).")

    # -- scenario ----------------------------------------------------------
    sc_parser = subparsers.add_parser(
        "scenario",
        parents=[common],
        help="Run a multi-device scenario or time pattern.",
    )
    sc_parser.add_argument("name", choices=sorted(SCENARIOS), help="Scenario to run.")
    sc_parser.add_argument("--duration", type=int, default=None, help="loading: minutes to simulate (default: 60).")
    sc_parser.add_argument("--interval", type=int, default=None, help="loading: minutes per step (default: 5).")
    sc_parser.add_argument("--count", type=int, default=None, help="vehicle_entry: trucks (default: 1).")

    # -- replay ------------------------------------------------------------
    rp_parser = subparsers.add_parser(
        "replay",
        parents=[common],
        help="Replay recorded telemetry rows from a CSV file.",
    )
    rp_parser.add_argument(
        "--csv",
        dest="csv_path",
        type=str,
        default=None,
        help="CSV with device_id, data_type and value columns (default: replay.csv_path from --config).",
    )
    rp_parser.add_argument("--count", "-n", type=int, default=10, help="Rows in a one-off publish (default: 10).")
    rp_parser.add_argument(
        "--interval",
        "-i",
        type=float,
        default=None,
        help="Seconds between rows (publish, default: 1.0) or between batches (--stream, default: 5.0).",
    )
    rp_parser.add_argument(
        "--stream",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Run the continuous replay for SECONDS, then stop and print its status.",
    )
    rp_parser.add_argument("--per-interval", type=int, default=None, help="--stream: rows per batch (default: 3).")
    rp_parser.add_argument(
        "--sequential",
        action="store_true",
        help="--stream: walk the file in order instead of picking rows at random.",
    )

    # -- list-device-types -------------------------------------------------
    subparsers.add_parser(
        "list-device-types",
        help="List device types, their code prefixes and which runs use them.",
    )

    # -- list-sinks --------------------------------------------------------
    subparsers.add_parser(
        "list-sinks",
        help="List all available sink types and install instructions.",
    )

    # -- init-config -------------------------------------------------------
    init_parser = subparsers.add_parser(
        "init-config",
        help="Generate a sample YAML configuration file.",
    )
    init_parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Write config to this file instead of stdout.",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return

    # -- Dispatch ----------------------------------------------------------
    if args.command in ("timeseries", "prediction", "scenario"):
        code = _cmd_generate(args)
        if code:
            sys.exit(code)
    elif args.command == "replay":
        code = _cmd_replay(args)
        if code:
            sys.exit(code)
    elif args.command == "list-device-types":
        _cmd_list_device_types()
    elif args.command == "list-sinks":
        _cmd_list_sinks()
    elif args.command == "init-config":
        _cmd_init_config(args.output)
    else:
        parser.print_help()


# ======================================================================
# Command implementations
# ======================================================================


def _setup_logging(args: argparse.Namespace) -> None:
    logging.basicConfig(
        level=getattr(logging, args.log_level or "INFO"),
        format="%(asctime)s %(name)-30s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )


def _cmd_generate(args: argparse.Namespace) -> int:
    """Run one generation command; return the process exit code."""
    _setup_logging(args)

    try:
        sim = _build_simulator(args)
    except (ConfigurationError, FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    try:
        if args.use_async:
            sim.registry.add_listener(_log_progress)
            snapshot = sim.run(_submit_and_wait(sim, lambda: _start(sim, args)))
            print(snapshot.model_dump_json(indent=2))
            return 0 if snapshot.status is TaskStatus.COMPLETED else 1

        result = sim.run(_generate(sim, args))
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    print(result.model_dump_json(indent=2))
    return 0 if result.success else 1


def _cmd_replay(args: argparse.Namespace) -> int:
    """Publish CSV rows once, or stream them for ``--stream`` seconds."""
    _setup_logging(args)

    try:
        sim = _build_simulator(args)
        rows = sim.load_replay_data(args.csv_path)
    except (ConfigurationError, FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    logger.info("Replaying from %d rows", rows)

    try:
        if args.stream is not None:
            status = sim.run(_stream_replay(sim, args))
            print(status.model_dump_json(indent=2))
            return 0

        interval = args.interval if args.interval is not None else 1.0
        if args.use_async:
            sim.registry.add_listener(_log_progress)
            snapshot = sim.run(_submit_and_wait(sim, lambda: sim.start_publish_replay_async(args.count, interval)))
            print(snapshot.model_dump_json(indent=2))
            return 0 if snapshot.status is TaskStatus.COMPLETED else 1

        result = sim.run(sim.publish_replay(args.count, interval))
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    print(result.model_dump_json(indent=2))
    return 0 if result.success else 1


async def _stream_replay(sim, args: argparse.Namespace):
    sim.start_replay(
        interval_s=args.interval,
        devices_per_interval=args.per_interval,
        randomize=False if args.sequential else None,
    )
    await asyncio.sleep(args.stream)
    await sim.stop_replay()
    return sim.replay_status()


def _build_simulator(args: argparse.Namespace):
    from mock_iot.catalog import InMemoryDeviceCatalog
    from mock_iot.config import load_yaml_config
    from mock_iot.simulator import Simulator

    if args.config:
        cfg = load_yaml_config(args.config)
        if args.log_level is None:
            logging.getLogger().setLevel(getattr(logging, cfg.service.log_level, logging.INFO))
        service = cfg.service.model_copy(
            update={
                k: v
                for k, v in (("seed", args.seed), ("time_scale", args.time_scale))
                if v is not None
            }
        )
        return Simulator.from_config(cfg.model_copy(update={"service": service}))

    return Simulator(
        catalog=InMemoryDeviceCatalog.demo() if args.demo else None,
        sink=_quick_sink(args),
        time_scale=args.time_scale if args.time_scale is not None else 1.0,
        seed=args.seed,
    )


def _quick_sink(args: argparse.Namespace):
    """Sink selected with --sink when running without a config file."""
    if args.sink == "file":
        from mock_iot.sinks.file import FileSink

        return FileSink(path=args.output_dir, format=args.output_format)
    if args.sink == "memory":
        from mock_iot.sinks.memory import MemorySink

        return MemorySink()

    from mock_iot.sinks.console import ConsoleSink

    return ConsoleSink(fmt=args.format)


def _scenario_params(args: argparse.Namespace) -> dict[str, Any]:
    from mock_iot.simulator import SCENARIOS

    return {
        name: getattr(args, name)
        for name in SCENARIOS[args.name]
        if getattr(args, name, None) is not None
    }


def _series_options(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "trend": args.trend,
        "seasonality": args.seasonality,
        "noise": args.noise,
        "outliers": args.outliers,
        "device_ids": args.device_ids or (),
    }


async def _generate(sim, args: argparse.Namespace):
    if args.command == "timeseries":
        return await sim.generate_carbon_time_series(args.days, args.interval, **_series_options(args))
    if args.command == "prediction":
        return await sim.generate_prediction_dataset(args.days, args.interval)
    return await sim.run_scenario(args.name, **_scenario_params(args))


def _start(sim, args: argparse.Namespace) -> str:
    if args.command == "timeseries":
        return sim.start_carbon_time_series_async(args.days, args.interval, **_series_options(args))
    if args.command == "prediction":
        return sim.start_prediction_dataset_async(args.days, args.interval)
    return sim.start_scenario_async(args.name, **_scenario_params(args))


async def _submit_and_wait(sim, start: Callable[[], str]) -> TaskSnapshot:
    task_id = start()
    logger.info("Task %s submitted", task_id)
    return await sim.wait(task_id)


def _log_progress(snapshot: TaskSnapshot) -> None:
    if snapshot.status is TaskStatus.FAILED:
        logger.error("Task %s failed: %s", snapshot.task_id, snapshot.error)
    else:
        logger.info("Task %s [%s] %3d%% %s", snapshot.task_id[:8], snapshot.status, snapshot.progress, snapshot.message)


# -- list-device-types ------------------------------------------------------


def _cmd_list_device_types() -> None:
    from mock_iot.catalog import make_device_code
    from mock_iot.models import DeviceType

    print(f"\n{'Device Type':<22} {'Example Code':<16} {'Used By'}")
    print("-" * 78)
    for device_type in DeviceType:
        code = make_device_code(device_type, "A", 1)
        print(f"{device_type.value:<22} {code:<16} {_DEVICE_USES.get(device_type.value, '-')}")
    print()


# -- list-sinks ------------------------------------------------------------


def _cmd_list_sinks() -> None:
    from mock_iot.sinks.factory import available_sinks

    print(f"\n{'Sink Type':<14} {'Class':<20} {'Install Extra'}")
    print("-" * 62)
    for name, (_module_path, class_name) in available_sinks().items():
        extra = _SINK_EXTRAS.get(name)
        extra_str = "(built-in)" if extra is None else f"pip install mock-iot-generator[{extra}]"
        print(f"{name:<14} {class_name:<20} {extra_str}")
    print()


# -- init-config ------------------------------------------------------------


def _cmd_init_config(output_path: str | None) -> None:
    if output_path:
        from pathlib import Path

        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        Path(output_path).write_text(_SAMPLE_CONFIG)
        print(f"Sample config written to {output_path}")
    else:
        print(_SAMPLE_CONFIG)


# ======================================================================
if __name__ == "__main__":
    main()
