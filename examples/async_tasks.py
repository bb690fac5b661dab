#!/usr/bin/env python3
"""Background tasks -- start several generation runs at once and poll their
status until every one of them has finished.

Directly runnable (no external services required).

Usage::

    python examples/async_tasks.py

Equivalent CLI (one run at a time)::

    mock-iot prediction --demo --days 30 --async --sink memory
"""

from __future__ import annotations

import asyncio
import logging


async def run() -> None:
    from mock_iot import InMemoryDeviceCatalog, Simulator, TaskStatus
    from mock_iot.sinks import MemorySink

    sink = MemorySink()
    async with Simulator(catalog=InMemoryDeviceCatalog.demo(), sink=sink, time_scale=0.001) as sim:
        task_ids = [
            sim.start_carbon_time_series_async(days=7, interval=15),
            sim.start_prediction_dataset_async(days=30, interval=60),
            sim.start_scenario_async("loading", duration=120, interval=10),
        ]

        while True:
            snapshots = [sim.get_status(tid) for tid in task_ids]
            for snap in snapshots:
                print(f"  {snap.kind:<20} {snap.status:<10} {snap.progress:3d}%  {snap.message}")
            print()
            if all(snap.status.is_terminal for snap in snapshots):
                break
            await asyncio.sleep(0.2)

    failed = [s for s in sim.list_tasks() if s.status is TaskStatus.FAILED]
    print(f"  {len(sink.records)} records written, {len(failed)} failed tasks")


def main() -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(name)-30s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )
    print("=== Background tasks ===\n")
    asyncio.run(run())


if __name__ == "__main__":
    main()
