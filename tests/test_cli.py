"""
End-to-end tests for the command-line entry point.
"""
import json

import pandas as pd

from palette_atlas.cli import main, parse_args
from palette_atlas.io.models import ClusterMethod, HierarchyLevel


class TestParseArgs:
    """Test argument defaults and selector parsing"""

    def test_defaults(self):
        args = parse_args(["--out", "runs"])
        assert args.archive == "samples.tar.gz"
        assert args.taxonomy == "colornamer.json"
        assert args.level is HierarchyLevel.FAMILY
        assert args.method is ClusterMethod.DENSITY
        assert args.palette_size == 6

    def test_selectors_accept_aliases(self):
        args = parse_args(["--out", "runs", "--level", "xkcd_color", "--method", "kmeans"])
        assert args.level is HierarchyLevel.XKCD
        assert args.method is ClusterMethod.PARTITION


class TestMain:
    """Test a full run over local assets"""

    def test_writes_outputs(self, asset_files, tmp_path, capsys):
        taxonomy_path, archive_path = asset_files
        out_dir = tmp_path / "run"
        code = main(
            [
                "--archive", str(archive_path),
                "--taxonomy", str(taxonomy_path),
                "--out", str(out_dir),
                "--eps", "0.01",
                "--min-pts", "1",
                "--workers", "1",
            ]
        )
        assert code == 0

        clusters = json.loads((out_dir / "clusters.json").read_text(encoding="utf-8"))
        assert clusters["type"] == "cluster_result"
        labels = clusters["labels"]
        assert len(labels) == 4
        assert labels[0] == labels[1] != -1

        metrics = json.loads((out_dir / "metrics.json").read_text(encoding="utf-8"))
        assert metrics["images"] == 4
        assert metrics["largest_cluster"] == 2
        assert metrics["parameters"]["method"] == "density"

        frame = pd.read_parquet(out_dir / "distributions.parquet")
        assert len(frame) == 4

        printed = capsys.readouterr().out
        assert "[ready] 4 images" in printed
        assert "Clusters:" in printed

    def test_missing_taxonomy_returns_failure(self, asset_files, tmp_path, capsys):
        _, archive_path = asset_files
        code = main(
            [
                "--archive", str(archive_path),
                "--taxonomy", str(tmp_path / "nope.json"),
                "--out", str(tmp_path / "run"),
            ]
        )
        assert code == 1
        assert "[failed] init failed" in capsys.readouterr().out
