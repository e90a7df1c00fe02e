#!/usr/bin/env python3
"""
Scenario runner

Runs YAML scenarios (genesis accounts plus a list of sessions) through a fresh
TestContext each, and reports which ones held up.
"""

from __future__ import annotations

import logging
import sys
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

import click

ROOT = Path(__file__).resolve().parent.parent
for _path in (ROOT, ROOT / "src"):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

from engine_test_support.errors import EngineError, VerificationError  # noqa: E402
from tools.harness_config import HarnessConfig  # noqa: E402
from tools.scenario_io import ScenarioError, build_context, build_session, load_scenario  # noqa: E402
from tools.yaml_dump import write_yaml  # noqa: E402

logger = logging.getLogger(__name__)


@dataclass
class SessionOutcome:
    name: str
    ok: bool
    gas: int


@dataclass
class ScenarioResult:
    """Result of a single scenario file."""
    scenario: str
    path: str
    passed: bool
    execution_time_ms: float
    sessions: List[SessionOutcome] = field(default_factory=list)
    error: Optional[str] = None


def find_scenario_files(paths: Iterable[str]) -> List[Path]:
    files: List[Path] = []
    for p in paths:
        path = Path(p)
        if path.is_dir():
            files.extend(sorted(path.rglob("*.yaml")) + sorted(path.rglob("*.yml")))
        elif path.exists():
            files.append(path)
    return files


def run_scenario_file(path: Path) -> ScenarioResult:
    start = time.monotonic()
    try:
        scenario = load_scenario(path)
    except (ScenarioError, OSError) as e:
        return ScenarioResult(path.stem, str(path), False, 0.0, error=f"load failed: {e}")

    result = ScenarioResult(scenario.name, str(path), True, 0.0)
    try:
        ctx = build_context(scenario)
        for step in scenario.sessions:
            ctx.run(build_session(ctx, step))
            last = ctx.engine.last_exec_result()
            result.sessions.append(SessionOutcome(step.name, last.ok, last.gas.value))
            logger.debug(f"[{scenario.name}] {step.name}: ok={last.ok} gas={last.gas}")
    except (VerificationError, EngineError, ScenarioError) as e:
        result.passed = False
        result.error = f"{type(e).__name__}: {e}"
        logger.error(f"[{scenario.name}] {result.error}")
    except Exception as e:
        result.passed = False
        result.error = f"unexpected {type(e).__name__}: {e}"
        logger.exception(f"[{scenario.name}] {result.error}")

    result.execution_time_ms = (time.monotonic() - start) * 1000
    return result


@click.command()
@click.argument("scenarios", nargs=-1)
@click.option(
    "--report",
    default=None,
    help="Write a YAML report to this path",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--stop-on-failure",
    is_flag=True,
    help="Stop on first scenario failure",
)
def main(scenarios: tuple, report: Optional[str], verbose: bool, stop_on_failure: bool) -> None:
    """Run engine test-support scenarios."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    # Load config from environment, then override with CLI args
    config = HarnessConfig.from_env()
    if report:
        config.report_path = report
    if verbose:
        config.verbose = True
    if stop_on_failure:
        config.stop_on_first_failure = True
    if config.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    files = find_scenario_files(scenarios or [config.scenario_dir])
    if not files:
        logger.error(f"No scenario files found in {', '.join(scenarios) or config.scenario_dir}")
        sys.exit(1)

    logger.info(f"Found {len(files)} scenario files")

    results: List[ScenarioResult] = []
    for path in files:
        result = run_scenario_file(path)
        results.append(result)
        status = "PASS" if result.passed else "FAIL"
        click.echo(f"{status} {result.scenario} ({result.execution_time_ms:.1f} ms)")
        if not result.passed and config.stop_on_first_failure:
            break

    failed = sum(1 for r in results if not r.passed)
    click.echo(f"{len(results) - failed} passed, {failed} failed")

    if config.report_path:
        write_yaml(
            Path(config.report_path),
            {
                "total": len(results),
                "failed": failed,
                "results": [asdict(r) for r in results],
            },
        )
        logger.info(f"Report written to {config.report_path}")

    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
