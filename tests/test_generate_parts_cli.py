from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
SCRIPT = REPO_ROOT / "scripts" / "generate_parts.py"


def test_generate_parts_cli_writes_recipes_and_summary(tmp_path: Path):
    cmd = [
        sys.executable,
        str(SCRIPT),
        "--seed",
        "100",
        "--difficulty",
        "intermediate",
        "--count",
        "3",
        "--out",
        str(tmp_path),
    ]
    proc = subprocess.run(cmd, capture_output=True, text=True)
    assert proc.returncode == 0, proc.stderr
    assert "Summary:" in proc.stdout

    files = sorted(tmp_path.glob("part_*_Intermediate.json"))
    assert [f.name for f in files] == [
        "part_100_Intermediate.json",
        "part_101_Intermediate.json",
        "part_102_Intermediate.json",
    ]
    doc = json.loads(files[0].read_text(encoding="utf-8"))
    assert doc["seed"] == 100
    assert doc["difficulty"] == "Intermediate"
    assert doc["primitives"][0]["id"] == "p0"

    summary = (tmp_path / "summary.md").read_text(encoding="utf-8")
    assert "# Parts (Intermediate)" in summary
    assert "| 102 |" in summary


def test_generate_parts_cli_rejects_unknown_difficulty(tmp_path: Path):
    cmd = [
        sys.executable,
        str(SCRIPT),
        "--seed",
        "1",
        "--difficulty",
        "Legendary",
        "--out",
        str(tmp_path),
    ]
    proc = subprocess.run(cmd, capture_output=True, text=True)
    assert proc.returncode == 2
    assert "Unknown difficulty" in proc.stderr
    assert not (tmp_path / "summary.md").exists()
