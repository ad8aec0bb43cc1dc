#!/usr/bin/env python3
"""
plan2metrics.py - Resolve requisites and compute curricular metrics for a degree plan.

Input: DegreePlan.json (terms of courses, optional edges)
Output: DegreePlan_metrics.json with per-course metrics, per-edge flags and
term summaries, ready for a renderer.
"""

import argparse
import asyncio
import json
import logging
import math
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables (CURRICULUM_DATA_URL) from .env
load_dotenv()

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from curriculum.data_source import (  # noqa: E402
    DataSourceError,
    DirectoryDataSource,
    PrereqDataSource,
)
from curriculum.metrics import PlanMetrics, longest_path, term_summaries  # noqa: E402
from curriculum.model import DegreePlan, EdgeTypes, RequisiteEdge, RequisiteType  # noqa: E402
from curriculum.requisites import ResolveResult  # noqa: E402
from curriculum.session import PlanSession  # noqa: E402
from curriculum.stats import (  # noqa: E402
    ComplexityMode,
    StatsLookup,
    StatsProvider,
    course_stats_row,
    is_high_dfq,
)
from curriculum.terms import TermBounds, term_for, term_name  # noqa: E402
from curriculum.utils.config import ConfigValidationError, load_config  # noqa: E402
from curriculum.utils.console_encoding import setup_console_encoding  # noqa: E402
from curriculum.utils.exit_codes import (  # noqa: E402
    EXIT_CONFIG_ERROR,
    EXIT_INPUT_ERROR,
    EXIT_IO_ERROR,
    EXIT_NETWORK_ERROR,
    EXIT_RUNTIME_ERROR,
    EXIT_SUCCESS,
    log_exit,
)
from curriculum.utils.validation import (  # noqa: E402
    GraphInvariantError,
    ValidationError,
    validate_plan_invariants,
)


def setup_logging(log_file: Path, level: str = "info") -> logging.Logger:
    """Set up logging configuration.

    Args:
        log_file: Path to log file
        level: Log level name from config

    Returns:
        Configured logger instance
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler(log_file, encoding="utf-8"), logging.StreamHandler()],
    )

    logger = logging.getLogger(__name__)
    logger.info("Logging initialized")
    return logger


def load_plan(
    plan_file: Path, logger: logging.Logger, check_cycles: bool = False
) -> Dict[str, Any]:
    """Load and validate the degree plan JSON.

    Args:
        plan_file: Path to the plan document
        logger: Logger instance
        check_cycles: Reject requisite cycles among the input edges

    Returns:
        Plan data

    Raises:
        FileNotFoundError: If the plan file does not exist
        ValidationError: If validation fails
    """
    if not plan_file.exists():
        raise FileNotFoundError(f"Plan file not found: {plan_file}")

    logger.info(f"Loading plan: {plan_file}")
    with open(plan_file, encoding="utf-8") as f:
        plan_data = json.load(f)

    logger.info("Validating plan data")
    validate_plan_invariants(plan_data, check_cycles=check_cycles)

    return plan_data


def safe_metric_value(value: Any) -> float:
    """Convert None/NaN/inf to 0.0."""
    if value is None or math.isnan(value) or math.isinf(value):
        return 0.0
    return float(value)


def build_session(
    plan: DegreePlan,
    edge_types: EdgeTypes,
    config: Dict[str, Any],
    reference_year: int,
    prereqs_dir: Optional[Path],
    stats_for: StatsLookup,
    logger: logging.Logger,
) -> PlanSession:
    """Create the plan session with the configured (or local) data source."""
    if prereqs_dir is not None:
        source = DirectoryDataSource(prereqs_dir, logger=logger)
    else:
        source = PrereqDataSource.from_config(config, logger=logger)

    terms_config = config.get("terms", {})
    bounds = TermBounds(terms_config["default_min_term"], terms_config["default_max_term"])

    return PlanSession(
        plan,
        reference_year,
        source,
        edge_types=edge_types,
        bounds=bounds,
        stats_for=stats_for,
        system=config.get("metrics", {}).get("system", "semester"),
        logger=logger,
    )


async def resolve_session(session: PlanSession, fetch_metadata: bool = True) -> ResolveResult:
    """Load term bounds, then rebuild requisite edges."""
    if fetch_metadata:
        await session.load_metadata()
    return await session.resolve()


def mark_direct_edges(plan: DegreePlan, edge_types: EdgeTypes) -> Dict[Any, RequisiteEdge]:
    """Edge flags for a plan taken as-is: every edge direct, redundancy unknown."""
    return {
        (s, t): RequisiteEdge(s, t, edge_types.get((s, t), RequisiteType.PREREQ), True, False)
        for s, t in plan.edges()
    }


def enrich_plan_data(
    session: PlanSession,
    metrics: PlanMetrics,
    mode: ComplexityMode,
    config: Dict[str, Any],
    missing_terms=None,
) -> Dict[str, Any]:
    """Assemble the renderer document for the session's plan.

    Args:
        session: Resolved plan session
        metrics: Metrics of the session's plan
        mode: Complexity mode used for ``metrics``
        config: Configuration dictionary
        missing_terms: Terms that had no requisite data

    Returns:
        Dictionary with terms, edges and _meta
    """
    plan = session.plan
    stats_config = config.get("stats", {})
    ld_threshold = stats_config.get("dfq_ld_threshold", 0.1)
    ud_threshold = stats_config.get("dfq_ud_threshold", 0.1)

    best_path = longest_path(metrics.paths)
    path_edges = set(zip(best_path, best_path[1:]))
    summaries = term_summaries(plan, metrics.complexities)

    terms = []
    for index, term in enumerate(plan.terms):
        courses = []
        for course in term:
            stats = session.stats_for(course.name)
            courses.append(
                {
                    "id": course.id,
                    "name": course.name,
                    "year": course.year,
                    "quarter": course.quarter,
                    "credits": course.credits,
                    "term_key": term_for(session.reference_year, course, session.bounds),
                    "blocking_factor": safe_metric_value(metrics.blocking_factors.get(course.id)),
                    "delay_factor": metrics.delay_factors.get(course.id, 1),
                    "complexity": safe_metric_value(metrics.complexities.get(course.id)),
                    "centrality": safe_metric_value(metrics.centralities.get(course.id)),
                    "high_dfq": is_high_dfq(course.name, stats, ld_threshold, ud_threshold),
                    "stats": course_stats_row(course, stats),
                }
            )
        terms.append(
            {
                "index": index,
                "name": term_name(session.reference_year, index, session.system),
                "complexity": safe_metric_value(summaries[index]["complexity"]),
                "credits": summaries[index]["credits"],
                "courses": courses,
            }
        )

    edges = []
    for source, target in plan.edges():
        edge = session.edges.get((source, target))
        edges.append(
            {
                "source": source,
                "target": target,
                "type": edge.type.value if edge else "prereq",
                "direct": edge.direct if edge else True,
                "redundant": edge.redundant if edge else False,
                "on_longest_path": (source, target) in path_edges,
            }
        )

    return {
        "terms": terms,
        "edges": edges,
        "_meta": {
            "reference_year": session.reference_year,
            "system": session.system,
            "complexity_mode": ComplexityMode(mode).value,
            "term_bounds": {"earliest": session.bounds.earliest, "latest": session.bounds.latest},
            "longest_path": best_path,
            "path_count": len(metrics.paths),
            "missing_terms": list(missing_terms or []),
            "total_complexity": safe_metric_value(sum(metrics.complexities.values())),
            "total_credits": sum(c.credits for c in plan.courses()),
            "generated_at": datetime.now().isoformat(timespec="seconds"),
        },
    }


def save_output_data(output_file: Path, data: Dict[str, Any], logger: logging.Logger) -> None:
    """Write the enriched plan document."""
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    logger.info(f"Saved metrics to {output_file}")


def main(argv=None) -> int:
    """Main entry point for plan2metrics utility.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    setup_console_encoding()

    viz_dir = Path(__file__).parent

    parser = argparse.ArgumentParser(
        description="Resolve requisites and compute curricular metrics for a degree plan"
    )
    parser.add_argument(
        "--input",
        type=Path,
        default=viz_dir / "data" / "in" / "DegreePlan.json",
        help="Degree plan JSON (default: viz/data/in/DegreePlan.json)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=viz_dir / "data" / "out" / "DegreePlan_metrics.json",
        help="Output JSON path",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    parser.add_argument("--year", type=int, default=None, help="Calendar year of the first fall term")
    parser.add_argument(
        "--prereqs-dir",
        type=Path,
        default=None,
        help="Local mirror with prereqs/<term>.json and metadata.json instead of the network",
    )
    parser.add_argument(
        "--complexity-mode",
        choices=[m.value for m in ComplexityMode],
        default=None,
        help="Override metrics.complexity_mode",
    )
    parser.add_argument(
        "--no-resolve",
        action="store_true",
        help="Use the plan's edges as given instead of resolving requisite data",
    )
    args = parser.parse_args(argv)

    log_file = viz_dir / "logs" / "plan2metrics.log"

    try:
        config = load_config(args.config)
    except (ConfigValidationError, FileNotFoundError) as e:
        logger = setup_logging(log_file)
        error_msg = f"Configuration error: {e}"
        print(f"✗ Error: {error_msg}")
        log_exit(logger, EXIT_CONFIG_ERROR, error_msg)
        return EXIT_CONFIG_ERROR

    logger = setup_logging(log_file, config.get("logging", {}).get("level", "info"))

    try:
        logger.info("=== START plan2metrics ===")

        reference_year = (
            args.year or config["terms"].get("reference_year") or date.today().year
        )
        mode = ComplexityMode(args.complexity_mode or config["metrics"]["complexity_mode"])

        plan_data = load_plan(args.input, logger, check_cycles=args.no_resolve)
        plan, edge_types = DegreePlan.from_dict(plan_data)
        print(f"Plan loaded: {len(plan)} courses in {len(plan.terms)} terms")

        stats_for = StatsProvider.from_config(config)
        session = build_session(
            plan, edge_types, config, reference_year, args.prereqs_dir, stats_for, logger
        )

        missing_terms = []
        if args.no_resolve:
            session.edges = mark_direct_edges(plan, edge_types)
        else:
            result = asyncio.run(resolve_session(session))
            missing_terms = result.missing_terms
            print(f"Requisites resolved: {len(session.plan.edges())} edges")

        metrics = session.metrics(mode)
        output = enrich_plan_data(session, metrics, mode, config, missing_terms)
        save_output_data(args.output, output, logger)

        success_msg = f"Plan metrics computed successfully ({args.output})"
        print(f"✓ {success_msg}")
        logger.info("=== SUCCESS plan2metrics ===")
        log_exit(logger, EXIT_SUCCESS, success_msg)
        return EXIT_SUCCESS

    except FileNotFoundError as e:
        error_msg = f"Input file not found: {e}"
        print(f"✗ Error: {error_msg}")
        log_exit(logger, EXIT_INPUT_ERROR, error_msg)
        return EXIT_INPUT_ERROR

    except DataSourceError as e:
        error_msg = f"Requisite data unavailable: {e}"
        print(f"✗ Error: {error_msg}")
        log_exit(logger, EXIT_NETWORK_ERROR, error_msg)
        return EXIT_NETWORK_ERROR

    except (ValidationError, GraphInvariantError, json.JSONDecodeError) as e:
        error_msg = f"Validation error: {e}"
        print(f"✗ Error: {error_msg}")
        log_exit(logger, EXIT_INPUT_ERROR, error_msg)
        return EXIT_INPUT_ERROR

    except OSError as e:
        error_msg = f"I/O error: {e}"
        print(f"✗ Error: {error_msg}")
        log_exit(logger, EXIT_IO_ERROR, error_msg)
        return EXIT_IO_ERROR

    except Exception as e:
        error_msg = f"Unexpected error: {e}"
        print(f"✗ Error: {error_msg}")
        log_exit(logger, EXIT_RUNTIME_ERROR, error_msg)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":
    sys.exit(main())
