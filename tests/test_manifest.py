import datetime
from pathlib import Path

from axisbreak.breaks import AxisMode, BreakParams, compute_axis_breaks
from axisbreak.main import (
    ColumnAxisOutput,
    LoadParams,
    build_manifest_dict,
    build_run_identity,
    utc_timestamp_seconds,
)
from axisbreak.utils import (
    build_effective_parameters,
    canonical_json_hash,
    ensure_run_dir,
    to_jsonable,
    write_json,
    write_report,
)


def _build_outputs():
    """Two columns: one broken, one continuous."""
    broken = compute_axis_breaks([1, 2, 3, 4, 5, 50, 51, 52, 53, 54])
    continuous = compute_axis_breaks(range(1, 101))
    return [
        ColumnAxisOutput(column="weight", result=broken),
        ColumnAxisOutput(column="height", result=continuous),
    ]


def test_build_manifest_dict_lists_each_column():
    """Test manifest generation with one RANGES and one VALUES column."""
    abs_input_posix = "/test/path/data.csv"
    effective_params = {
        "load": {"dataset_path": abs_input_posix, "columns": ["weight", "height"]},
        "breaks": {"chk_pct": 0.25, "mar_pct": 0.1, "max_gap": 3, "decimals": 6},
    }
    hashes = ("testhash", "fulltesthash")
    artifact_paths = ["report-testhash.txt"]

    manifest = build_manifest_dict(
        abs_input_posix, effective_params, hashes, _build_outputs(), artifact_paths
    )

    assert manifest["version"] == "1"
    assert "timestamp_utc" in manifest
    assert manifest["absolute_input_path"] == abs_input_posix
    assert manifest["effective_parameters"] == effective_params
    assert manifest["canonical_hash"] == "fulltesthash"
    assert manifest["canonical_hash_short"] == "testhash"
    assert manifest["artifacts"]["reports"] == artifact_paths

    weight, height = manifest["columns"]
    assert weight["column"] == "weight"
    assert weight["mode"] == "RANGES"
    assert len(weight["subranges"]) == 2
    assert len(weight["selected_gaps"]) == 3
    assert len(weight["notes"]) == 2
    assert "start" not in weight

    assert height["mode"] == "VALUES"
    assert (height["start"], height["end"], height["step"]) == (0.0, 100.0, 10.0)
    assert height["selected_gaps"] == []
    assert height["axis_option"] == "VALUES=(0 to 100 by 10)"


def test_run_identity_hash_is_stable_and_parameter_sensitive(tmp_path: Path):
    csv_path = tmp_path / "data.csv"
    load = LoadParams(dataset_path=csv_path, columns=["weight"])

    abs1, short1, full1, eff1 = build_run_identity(load, BreakParams())
    abs2, short2, full2, _ = build_run_identity(load, BreakParams())
    _, short3, full3, _ = build_run_identity(load, BreakParams(mar_pct=0.2))

    assert abs1 == abs2 == csv_path.resolve().as_posix()
    assert (short1, full1) == (short2, full2)
    assert full1.startswith(short1) and len(short1) == 8
    assert full3 != full1
    assert eff1["load"]["dataset_path"] == abs1
    assert eff1["breaks"] == {"chk_pct": 0.25, "mar_pct": 0.1, "max_gap": 3, "decimals": 6}


def test_canonical_hash_ignores_key_order():
    a = canonical_json_hash({"x": 1, "y": [1, 2]})
    b = canonical_json_hash({"y": [1, 2], "x": 1})
    assert a == b


def test_effective_parameters_are_json_primitives(tmp_path: Path):
    load = LoadParams(dataset_path=tmp_path / "d.csv", header_map={"Old": "new"})
    eff = build_effective_parameters(load, BreakParams())
    assert eff["load"]["header_map"] == {"Old": "new"}
    assert eff["load"]["include_header"] is True
    assert to_jsonable(AxisMode.RANGES) == "RANGES"
    assert to_jsonable(float("nan")) is None


def test_manifest_timestamp_format():
    """Test that manifest timestamp is in correct format."""
    timestamp = utc_timestamp_seconds()
    # Should be ISO-8601 UTC timestamp with seconds precision and Z suffix
    assert timestamp.endswith("Z")
    assert "T" in timestamp
    # Should be parseable
    datetime.datetime.fromisoformat(timestamp[:-1])  # Remove Z for parsing


def test_run_dirs_never_collide(tmp_path: Path):
    first = ensure_run_dir(tmp_path)
    second = ensure_run_dir(tmp_path)

    assert first.parent == second.parent == tmp_path / "runs"
    assert first != second
    assert first.is_dir() and second.is_dir()


def test_report_and_manifest_are_written_by_hash(tmp_path: Path):
    report = write_report(tmp_path, "abcd1234", "AXIS BREAK REPORT\n")
    manifest = write_json(tmp_path / "manifest-abcd1234.json", {"version": "1"})

    assert report.name == "report-abcd1234.txt"
    assert report.read_text(encoding="utf-8") == "AXIS BREAK REPORT\n"
    assert manifest.read_text(encoding="utf-8") == '{\n  "version": "1"\n}'
