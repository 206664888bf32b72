#!/usr/bin/env python3
"""
axisbreak - broken-axis detection for numeric dataset columns.

This module exposes the pipeline as plain functions:
- load_dataset()
- compute_axis_for_column()
- assemble_text_report()
- _orchestrate() / main() for the command line

Each function takes explicit inputs and returns explicit outputs; results are
returned as AxisSpec structures rather than written to shared state. Logging is
kept for internal diagnostics.
"""

import json
import logging
import os
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import pandas as pd

# Support both package and script execution modes
try:
    # When run as a package: python -m axisbreak.main
    from .breaks import (
        AxisBreakResult,
        AxisMode,
        BreakParams,
        compute_axis_breaks,
        format_number,
        printed_subranges,
    )
    from .dataset import (
        CSVDatasetReader,
        DatasetError,
        DatasetNotFoundError,
        prepare_column,
    )
    from .nice_axis import NiceAxis, nice_axis
    from .utils import (
        build_effective_parameters,
        canonical_json_hash,
        ensure_run_dir,
        normalize_abs_posix,
        to_jsonable,
        utc_timestamp_seconds,
        write_json,
        write_report,
    )
    from .validation import check_axis_result
except ImportError:
    # When run directly: python axisbreak/main.py
    from breaks import (
        AxisBreakResult,
        AxisMode,
        BreakParams,
        compute_axis_breaks,
        format_number,
        printed_subranges,
    )
    from dataset import (
        CSVDatasetReader,
        DatasetError,
        DatasetNotFoundError,
        prepare_column,
    )
    from nice_axis import NiceAxis, nice_axis
    from utils import (
        build_effective_parameters,
        canonical_json_hash,
        ensure_run_dir,
        normalize_abs_posix,
        to_jsonable,
        utc_timestamp_seconds,
        write_json,
        write_report,
    )
    from validation import check_axis_result

# Configure logging for debugging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@dataclass
class LoadParams:
    """
    Parameters used when loading the dataset and choosing columns.

    Attributes:
        dataset_path: Path to the CSV dataset.
        columns: Names of the numeric columns to analyze (each independently).
        start_line: 1-based inclusive start line (data rows, header excluded) or None.
        end_line: 1-based inclusive end line (data rows) or None to read to the end.
        include_header: Whether to keep the CSV header row as column names. When
            False the header line is dropped and columns are addressed by their
            zero-based position ("0", "1", ...).
        col_index: Optional zero-based index of an extra column to analyze, for
            datasets whose header names are awkward to type.
        header_map: Optional mapping of input header name -> new name, applied
            case-insensitively after loading. Collisions raise ValueError.
    """

    dataset_path: Optional[Path]
    columns: List[str] = field(default_factory=list)
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    include_header: bool = True
    col_index: Optional[int] = None
    header_map: dict[str, str] = field(default_factory=dict)


@dataclass
class ColumnAxisOutput:
    column: str
    result: AxisBreakResult
    violations: List[str] = field(default_factory=list)


def get_default_params() -> tuple[LoadParams, BreakParams]:
    """
    Build default LoadParams and BreakParams (policy-level defaults).
    """
    load = LoadParams(
        dataset_path=None,
        columns=[],
        start_line=None,
        end_line=None,
        include_header=True,
        col_index=None,
        header_map={},
    )
    brk = BreakParams(chk_pct=0.25, mar_pct=0.10, max_gap=3, decimals=6)
    return load, brk


def _apply_header_map(df: pd.DataFrame, header_map: dict[str, str]) -> pd.DataFrame:
    """
    Rename columns per header_map. Keys match dataset headers case-insensitively
    after trimming.

    Raises ValueError when two keys name the same target, or when a target
    collides with a column that keeps its name.
    """
    targets = Counter(v.strip() for v in header_map.values())
    shared = sorted(t for t, n in targets.items() if n > 1)
    if shared:
        raise ValueError(f"--header-map sends several columns to the same name: {shared}")

    by_key = {k.strip().lower(): v.strip() for k, v in header_map.items()}
    remap = {
        col: by_key[str(col).strip().lower()]
        for col in df.columns
        if str(col).strip().lower() in by_key
    }

    renamed = Counter(remap.get(col, col) for col in df.columns)
    clashes = sorted(str(name) for name, n in renamed.items() if n > 1)
    if clashes:
        raise ValueError(
            f"Header mapping would produce duplicate column names after rename: {clashes}"
        )

    present = {str(c).strip().lower() for c in df.columns}
    unmatched = [k for k in header_map if k.strip().lower() not in present]
    if unmatched:
        logger.warning("Header map keys not found in dataset columns: %s", unmatched)
    if not remap:
        return df
    logger.info("Renaming columns: %s", remap)
    return df.rename(columns=remap)


def load_dataset(params: LoadParams) -> pd.DataFrame:
    """
    Load the dataset slice described by params as a DataFrame.
    No prints; raises exceptions on error.

    Raises:
        DatasetNotFoundError: dataset_path is unset or does not exist
        FileAccessError / InvalidRangeError: unreadable file or bad line range
        ValueError: header_map collisions or an empty slice
    """
    if params.dataset_path is None:
        raise DatasetNotFoundError("Dataset not found: no dataset path given")

    with CSVDatasetReader(params.dataset_path) as reader:
        df = reader.read_range(
            start_line=params.start_line,
            end_line=params.end_line,
            include_header=params.include_header,
        )

    if params.header_map:
        df = _apply_header_map(df, params.header_map)

    if df.empty:
        raise ValueError("No data found in the specified range")
    return df


def resolve_target_columns(df: pd.DataFrame, params: LoadParams) -> List[str]:
    """
    Columns to analyze: params.columns in order, then the column at col_index
    (if given and not already listed).
    """
    targets = [str(c) for c in params.columns]
    if params.col_index is not None:
        ncols = len(df.columns)
        if params.col_index < 0 or params.col_index >= ncols:
            raise ValueError(
                f"--col-index {params.col_index} out of range for dataset with {ncols} columns"
            )
        name = str(df.columns[params.col_index])
        if name not in targets:
            targets.append(name)
    if not targets:
        raise ValueError("No column given; use --column NAME or --col-index N")
    return targets


def compute_axis_for_column(
    df: Optional[pd.DataFrame],
    column: str,
    params: Optional[BreakParams] = None,
    nice_axis_fn: Callable[[Iterable[float]], NiceAxis] = nice_axis,
) -> AxisBreakResult:
    """
    Prepare one column and compute its axis specification.

    Dataset and column are checked before any computation; DatasetNotFoundError /
    ColumnNotFoundError propagate and no AxisSpec is produced.
    """
    params = params if params is not None else BreakParams()
    params.validate()
    prepared = prepare_column(df, column)
    return compute_axis_breaks(prepared, params, nice_axis_fn=nice_axis_fn)


def build_run_identity(
    load: LoadParams, brk: BreakParams
) -> tuple[str, str, str, dict]:
    """
    Returns (abs_input_posix, short_hash, full_hash, effective_params)
    """
    abs_input_posix = normalize_abs_posix(load.dataset_path)
    effective_params = build_effective_parameters(load, brk)
    canonical_payload = {
        "absolute_input_path": abs_input_posix,
        "effective_parameters": effective_params,
    }
    short_hash, full_hash = canonical_json_hash(canonical_payload)
    return abs_input_posix, short_hash, full_hash, effective_params


def column_output_to_dict(output: ColumnAxisOutput) -> dict:
    """JSON-ready view of one column's result (axis, gaps, ranges, notes)."""
    res = output.result
    axis = res.axis
    payload = {
        "column": output.column,
        "mode": axis.mode.name,
        "min": axis.min,
        "max": axis.max,
        "axis_option": axis.axis_option,
    }
    if axis.mode is AxisMode.VALUES:
        payload.update({"start": axis.start, "end": axis.end, "step": axis.step})
    else:
        payload["subranges"] = [list(pair) for pair in axis.subranges]
    payload["largest_gap"] = res.analysis.largest_gap
    payload["threshold"] = res.analysis.threshold
    payload["selected_gaps"] = [
        {"lower": g.lower_value, "upper": g.upper_value, "size": g.size}
        for g in res.selected_gaps
    ]
    payload["candidate_ranges"] = [
        {"lower": r.lower, "upper": r.upper, "margin": r.margin}
        for r in res.candidates
    ]
    payload["notes"] = list(res.diagnostics.notes)
    payload["violations"] = list(output.violations)
    return to_jsonable(payload)


def build_manifest_dict(
    abs_input_posix: str,
    effective_params: dict,
    hashes: tuple[str, str],
    outputs: List[ColumnAxisOutput],
    artifact_paths: list[str],
) -> dict:
    short_hash, full_hash = hashes
    return {
        "version": "1",
        "timestamp_utc": utc_timestamp_seconds(),
        "absolute_input_path": abs_input_posix,
        "effective_parameters": effective_params,
        "canonical_hash": full_hash,
        "canonical_hash_short": short_hash,
        "columns": [column_output_to_dict(o) for o in outputs],
        "artifacts": {"reports": artifact_paths},
    }


def assemble_text_report(
    outputs: List[ColumnAxisOutput], params: BreakParams, verbose: bool = False
) -> str:
    """
    Human-readable report: one block per column with the decision, ranges,
    merge notes and the axis option line.
    """
    d = params.decimals
    parts: list[str] = []
    parts.append("AXIS BREAK REPORT")
    parts.append(
        f"chk_pct={params.chk_pct:g}  mar_pct={params.mar_pct:g}  "
        f"max_gap={params.max_gap} (effective {params.effective_max_gap})"
    )
    for out in outputs:
        res = out.result
        axis = res.axis
        parts.append("")
        parts.append(f"=== {out.column} ===")
        parts.append(
            f"observations: {res.diagnostics.metrics.get('observations', '?')}  "
            f"missing: {res.diagnostics.metrics.get('missing', '?')}"
        )
        parts.append(f"min: {format_number(axis.min, d)}  max: {format_number(axis.max, d)}")
        ratio = res.analysis.largest_gap_ratio
        parts.append(
            f"largest gap: {format_number(res.analysis.largest_gap, d)} "
            f"({ratio:.1%} of range, threshold {format_number(res.analysis.threshold, d)})"
        )
        if res.selected_gaps:
            gaps = ", ".join(
                f"{format_number(g.lower_value, d)}..{format_number(g.upper_value, d)}"
                for g in res.selected_gaps
            )
            parts.append(f"selected gaps: {gaps}")
        if verbose and res.candidates:
            for r in res.candidates:
                parts.append(
                    f"  candidate {r.label}: [{format_number(r.lower, d)}, "
                    f"{format_number(r.upper, d)}] margin={format_number(r.margin, d)}"
                )
        parts.append(f"mode: {axis.mode.name}")
        if axis.mode is AxisMode.RANGES:
            bounds = " ".join(
                f"[{format_number(lo, d)}, {format_number(hi, d)}]"
                for lo, hi in printed_subranges(axis, d)
            )
            parts.append(f"ranges: {axis.range_count} {bounds}")
        for note in res.diagnostics.notes:
            parts.append(f"NOTE: {note}")
        for v in out.violations:
            parts.append(f"CHECK FAILED: {v}")
        parts.append(f"axis option: {axis.axis_option}")
    return "\n".join(parts)


def _orchestrate(
    params_load: LoadParams,
    params_breaks: BreakParams,
    output_dir: Optional[str] = None,
    as_json: bool = False,
    verbose: bool = False,
) -> List[ColumnAxisOutput]:
    """
    Orchestrate the full pipeline given explicit parameter objects.
    Split from main() so the CLI can remain thin and tests can call this directly.
    """
    params_breaks.validate()
    df = load_dataset(params_load)
    columns = resolve_target_columns(df, params_load)

    outputs: List[ColumnAxisOutput] = []
    for column in columns:
        result = compute_axis_for_column(df, column, params_breaks)
        violations = check_axis_result(result, params_breaks)
        if verbose:
            logger.info(result.diagnostics.summarize())
        outputs.append(ColumnAxisOutput(column=column, result=result, violations=violations))

    report = assemble_text_report(outputs, params_breaks, verbose=verbose)

    if output_dir:
        abs_input_posix, short_hash, full_hash, effective_params = build_run_identity(
            params_load, params_breaks
        )
        run_dir = ensure_run_dir(output_dir)
        report_path = write_report(run_dir, short_hash, report)
        manifest = build_manifest_dict(
            abs_input_posix=abs_input_posix,
            effective_params=effective_params,
            hashes=(short_hash, full_hash),
            outputs=outputs,
            artifact_paths=[str(report_path)],
        )
        write_json(run_dir / f"manifest-{short_hash}.json", manifest)
        logger.info("Wrote report and manifest to %s", str(run_dir))

    if as_json:
        print(json.dumps([column_output_to_dict(o) for o in outputs], indent=2))
    else:
        print(report)
    return outputs


def _build_cli_parser():
    import argparse

    parser = argparse.ArgumentParser(
        prog="axisbreak",
        description="Decide between a continuous and a broken plotting axis for numeric columns.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--print-defaults",
        action="store_true",
        help="Print default parameter values and exit.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show full tracebacks for debugging (also AXISBREAK_DEBUG=1).",
    )

    # LoadParams
    g_load = parser.add_argument_group("LoadParams")
    g_load.add_argument(
        "--dataset", type=str, required=True, help="Path to CSV dataset (required)."
    )
    g_load.add_argument(
        "--column",
        action="append",
        metavar="NAME",
        help="Numeric column to analyze. Repeatable.",
    )
    g_load.add_argument(
        "--col-index",
        type=int,
        help="Zero-based index of a column to analyze (in addition to --column).",
    )
    g_load.add_argument("--start-line", type=int, help="1-based inclusive start line.")
    g_load.add_argument("--end-line", type=int, help="1-based inclusive end line.")
    g_load.add_argument(
        "--no-header",
        dest="include_header",
        action="store_false",
        default=None,
        help="Drop the header row; columns are addressed by position.",
    )
    g_load.add_argument(
        "--header-map",
        action="append",
        metavar="OLD:NEW",
        help="Rename input header OLD to NEW. Repeatable; format OLD:NEW.",
    )

    # BreakParams
    g_brk = parser.add_argument_group("BreakParams")
    g_brk.add_argument(
        "--chk-pct",
        type=float,
        help="Fraction of the overall range the largest gap must reach.",
    )
    g_brk.add_argument(
        "--mar-pct",
        type=float,
        help="Fraction of each sub-range's effective range added as margin.",
    )
    g_brk.add_argument(
        "--max-gap",
        type=int,
        help="Maximum number of gaps (capped at 3).",
    )
    g_brk.add_argument(
        "--decimals",
        type=int,
        help="Rounding of numbers in the axis option text.",
    )

    # Output
    g_out = parser.add_argument_group("Output")
    g_out.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print results as JSON instead of the text report.",
    )
    g_out.add_argument(
        "--output-dir",
        type=str,
        help="Write report and manifest under OUTPUT_DIR/runs/<timestamp>/.",
    )
    g_out.add_argument(
        "--verbose",
        action="store_true",
        help="Include candidate ranges and diagnostics summaries.",
    )

    return parser


def _parse_header_map(items: Optional[List[str]]) -> dict[str, str]:
    """Turn repeated --header-map OLD:NEW values into a dict."""
    mapping: dict[str, str] = {}
    for item in items or []:
        old, sep, new = item.partition(":")
        old, new = old.strip(), new.strip()
        if not sep:
            raise ValueError(f"Invalid --header-map value '{item}': expected OLD:NEW")
        if not old or not new:
            raise ValueError(f"Invalid --header-map value '{item}': OLD and NEW must be non-empty")
        mapping[old] = new
    return mapping


def _args_to_params(args) -> tuple[LoadParams, BreakParams]:
    """
    Overlay the flags the user actually passed onto get_default_params().
    argparse leaves omitted flags as None, so None always means "use the default".
    """
    d_load, d_brk = get_default_params()

    def given(name, default):
        value = getattr(args, name, None)
        return default if value is None else value

    col_index = given("col_index", d_load.col_index)
    if col_index is not None and col_index < 0:
        raise ValueError(f"Invalid --col-index {col_index}: must be >= 0")

    dataset = given("dataset", None)
    load = LoadParams(
        dataset_path=Path(dataset).resolve() if dataset else d_load.dataset_path,
        columns=[c.strip() for c in given("column", d_load.columns)],
        start_line=given("start_line", d_load.start_line),
        end_line=given("end_line", d_load.end_line),
        include_header=given("include_header", d_load.include_header),
        col_index=col_index,
        header_map=_parse_header_map(given("header_map", None)),
    )
    brk = BreakParams(
        chk_pct=given("chk_pct", d_brk.chk_pct),
        mar_pct=given("mar_pct", d_brk.mar_pct),
        max_gap=given("max_gap", d_brk.max_gap),
        decimals=given("decimals", d_brk.decimals),
    )
    brk.validate()
    return load, brk


def _build_cli_parser_with_policy_defaults():
    """
    Build a display-only parser whose defaults are injected from get_default_params()
    so that -h/--help shows values synchronized with policy defaults. Normal
    execution uses the undecorated parser combined with _args_to_params().
    """
    parser = _build_cli_parser()
    d_load, d_brk = get_default_params()

    injected_defaults = {
        "dataset": None,
        "column": None,
        "start_line": d_load.start_line,
        "end_line": d_load.end_line,
        "include_header": d_load.include_header,
        "col_index": d_load.col_index,
        "chk_pct": d_brk.chk_pct,
        "mar_pct": d_brk.mar_pct,
        "max_gap": d_brk.max_gap,
        "decimals": d_brk.decimals,
        "print_defaults": False,
    }

    for action in parser._actions:
        if action.dest in injected_defaults:
            action.default = injected_defaults[action.dest]

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """
    CLI entry point. Parses arguments, builds parameter objects, then orchestrates.
    """
    import sys

    argv = sys.argv[1:] if argv is None else list(argv)

    help_aliases = {"-h", "--help"}
    if any(x in help_aliases for x in argv):
        _build_cli_parser_with_policy_defaults().print_help()
        return

    if "--print-defaults" in argv:
        d_load, d_brk = get_default_params()
        payload = {
            "LoadParams": {
                "dataset_path": None
                if d_load.dataset_path is None
                else str(d_load.dataset_path),
                "columns": d_load.columns,
                "start_line": d_load.start_line,
                "end_line": d_load.end_line,
                "include_header": d_load.include_header,
                "col_index": d_load.col_index,
            },
            "BreakParams": {
                "chk_pct": d_brk.chk_pct,
                "mar_pct": d_brk.mar_pct,
                "max_gap": d_brk.max_gap,
                "decimals": d_brk.decimals,
            },
        }
        print(json.dumps(payload, indent=2))
        return

    parser = _build_cli_parser()
    args = parser.parse_args(argv)
    debug_mode = bool(
        getattr(args, "debug", False) or os.getenv("AXISBREAK_DEBUG", "") == "1"
    )
    if debug_mode:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        params_load, params_breaks = _args_to_params(args)
        _orchestrate(
            params_load,
            params_breaks,
            output_dir=args.output_dir,
            as_json=args.as_json,
            verbose=args.verbose,
        )
    except (DatasetError, FileNotFoundError, LookupError, ValueError, TypeError) as e:
        # Concise, user-facing errors for user-correctable problems.
        logger.info("User-facing error: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:
        logger.exception("Unhandled exception during execution")
        if debug_mode:
            import traceback

            traceback.print_exc()
        else:
            print(f"Unexpected error: {e}", file=sys.stderr)
            print(
                "Run with --debug or set AXISBREAK_DEBUG=1 to see the full traceback.",
                file=sys.stderr,
            )
        sys.exit(1)


if __name__ == "__main__":
    main()
