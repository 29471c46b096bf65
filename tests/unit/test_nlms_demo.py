import json
import os
import sys

import pytest

# Ensure project root is on sys.path for direct script runs
_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)
import nlms_demo
from system_id import SystemIdConfig, run_system_identification


def test_main_passes_and_writes_sidecar(tmp_path, capsys):
    out = tmp_path / "nlms.json"
    rc = nlms_demo.main([
        "--taps", "8", "--iterations", "1500", "--seed", "5",
        "--no-progress", "--json-out", str(out),
    ])
    assert rc == 0

    text = capsys.readouterr().out
    assert "Final Misalignment =" in text
    assert "PASS: Misalignment < -290" in text
    assert "PASS: Squared Error < -290" in text

    sidecar = json.loads(out.read_text(encoding="utf-8"))
    assert sidecar["passed"] is True
    assert sidecar["config"]["num_taps"] == 8
    assert sidecar["config"]["mode"] == "desired"
    assert len(sidecar["true_weights"]) == 8


def test_main_returns_failure_status(capsys):
    rc = nlms_demo.main(["--iterations", "20", "--no-progress", "--verbose"])
    assert rc == 1
    text = capsys.readouterr().out
    assert "Iteration: 20" in text
    assert "Squared error (dB):" in text
    assert "FAIL: Misalignment !< -290" in text


def test_invalid_config_exits_via_argparse():
    with pytest.raises(SystemExit) as exc:
        nlms_demo.main(["--taps", "0", "--no-progress"])
    assert exc.value.code == 2


def test_plot_and_gif_outputs(tmp_path):
    result = run_system_identification(SystemIdConfig(num_taps=6, iterations=200, seed=9))

    png = nlms_demo.plot_convergence(result, str(tmp_path / "conv.png"))
    gif = nlms_demo.animate_weights(result, str(tmp_path / "w.gif"), frames=5, fps=5)

    assert os.path.getsize(png) > 0
    assert os.path.getsize(gif) > 0
    with pytest.raises(ValueError):
        nlms_demo.animate_weights(result, str(tmp_path / "bad.gif"), frames=0)
