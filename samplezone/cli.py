"""
SampleZone command line.

Example usage:
    samplezone detect loop.wav --algorithm superflux --threshold 1.2
    samplezone group samples/ --recursive --output groups.json
    samplezone --config config/config.yaml group a.wav b.wav c.wav
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from samplezone.core.grouping import create_grouping_pipeline
from samplezone.core.loader import create_audio_loader
from samplezone.core.markers import region_bounds, region_length_stats
from samplezone.core.models import ClusteringMethod, OnsetAlgorithm
from samplezone.core.transients import create_transient_detector
from samplezone.utils.config import load_config
from samplezone.utils.errors import SampleZoneError
from samplezone.utils.logging import setup_logging_from_config

logger = logging.getLogger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="samplezone",
        description="Detect transients and group instrument samples into "
                    "velocity layers and round robins",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    detect = subparsers.add_parser("detect", help="Detect transients in one recording")
    detect.add_argument("audio_file", type=Path, help="Path to audio file")
    detect.add_argument(
        "--algorithm",
        choices=[a.value for a in OnsetAlgorithm],
        default=None,
        help="Onset detection strategy",
    )
    detect.add_argument("--threshold", type=float, default=None, help="Sensitivity")
    detect.add_argument("--offset-ms", type=float, default=None, help="Shift applied to onsets")
    detect.add_argument("--output", type=Path, default=None, help="Path to save JSON output")

    group = subparsers.add_parser("group", help="Group recordings by loudness and timbre")
    group.add_argument("paths", type=Path, nargs="+", help="Audio files or directories")
    group.add_argument("--recursive", "-r", action="store_true", help="Scan directories recursively")
    group.add_argument(
        "--method",
        choices=[m.value for m in ClusteringMethod],
        default=None,
        help="Clustering method",
    )
    group.add_argument("--max-clusters", type=int, default=None)
    group.add_argument("--seed", type=int, default=None, help="Seed for reproducible clustering")
    group.add_argument(
        "--single-stage",
        action="store_true",
        help="Cluster all descriptors at once instead of loudness then timbre",
    )
    group.add_argument("--output", type=Path, default=None, help="Path to save JSON output")

    return parser


def _override(config: Dict[str, Any], section: str, key: str, value: Any) -> None:
    if value is not None:
        config.setdefault(section, {})[key] = value


def run_detect(args: argparse.Namespace, config: Dict[str, Any]) -> Dict[str, Any]:
    _override(config, "onset", "algorithm", args.algorithm)
    _override(config, "onset", "threshold", args.threshold)
    _override(config, "onset", "offset_ms", args.offset_ms)

    signal = create_audio_loader(config.get("audio")).load(args.audio_file)
    markers = create_transient_detector(config).detect(signal)
    stats = region_length_stats(markers, len(signal))

    return {
        "file": str(args.audio_file),
        "sample_rate": signal.sample_rate,
        "duration": signal.duration,
        "algorithm": config["onset"]["algorithm"],
        "transients": [m.position for m in markers],
        "regions": [list(bounds) for bounds in region_bounds(markers, len(signal))],
        "region_length_stats": stats.to_dict() if stats else None,
    }


def run_group(args: argparse.Namespace, config: Dict[str, Any]) -> Dict[str, Any]:
    _override(config, "clustering", "method", args.method)
    _override(config, "clustering", "max_clusters", args.max_clusters)
    _override(config, "clustering", "seed", args.seed)

    pipeline = create_grouping_pipeline(config)
    result = pipeline.group_files(args.paths, recursive=args.recursive)
    if args.single_stage and result.features:
        clusters = pipeline.group_single_stage(result.features)
        result = replace(result, clusters=clusters)
    return result.to_dict()


def _write_output(payload: Dict[str, Any], output: Optional[Path]) -> None:
    text = json.dumps(payload, indent=2)
    if output is None:
        print(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text)
    print(f"Results saved to: {output}", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(str(args.config) if args.config else None)
    except SampleZoneError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging_from_config(config, verbose=args.verbose)

    try:
        if args.command == "detect":
            payload = run_detect(args, config)
        else:
            payload = run_group(args, config)
    except SampleZoneError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    _write_output(payload, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
