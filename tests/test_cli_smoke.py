import json

import pytest

from depth_debias.cli import main


@pytest.mark.parametrize("method", ["moving-median", "chunked-ratio", "variance-truncation"])
def test_cli_demo(tmp_path, capsys, method):
    report = tmp_path / "report.json"
    main(["demo", "--method", method, "--n_bins", "300", "--n_samples", "3", "--report", str(report)])

    out = capsys.readouterr().out
    assert f"method: {method}" in out

    obj = json.loads(report.read_text())
    assert obj["config"]["method"] == method
    assert len(obj["rho_after"]) == 3
    assert len(obj["gc_bias_after"]) == 10
    assert sum(r["n"] for r in obj["gc_bias_before"]) == 300
    assert {"covariate", "n", "sample_0"} <= set(obj["gc_bias_after"][0])
