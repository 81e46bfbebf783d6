import subprocess

import pytest

from pisces_mr import regulon_processing
from pisces_mr.regulon_processing import process_aracne, regulon_paths


class FakePopen:
    calls = []

    def __init__(self, cmd, **kwargs):
        FakePopen.calls.append(cmd)
        self.returncode = FakePopen.returncode

    def communicate(self, timeout=None):
        return "ok", "boom"

    def kill(self):
        pass


@pytest.fixture
def inputs(tmp_path):
    network = tmp_path / "network.tsv"
    expression = tmp_path / "expr.tsv"
    network.write_text("TF\tTarget\tMI\n")
    expression.write_text("gene\ts1\n")
    return network, expression


def test_regulon_paths_concatenate_without_separator():
    assert regulon_paths("out/", "tf_") == ("out/tf_unPruned.rds", "out/tf_pruned.rds")
    assert regulon_paths("out", "x") == ("outxunPruned.rds", "outxpruned.rds")


def test_process_aracne_builds_command(monkeypatch, inputs, tmp_path):
    network, expression = inputs
    FakePopen.calls, FakePopen.returncode = [], 0
    monkeypatch.setattr(regulon_processing.subprocess, "Popen", FakePopen)

    out = process_aracne(network, expression, f"{tmp_path}/", "sig_", max_targets=25)

    assert out == (f"{tmp_path}/sig_unPruned.rds", f"{tmp_path}/sig_pruned.rds")
    cmd = FakePopen.calls[0]
    assert cmd[0] == "Rscript"
    assert cmd[cmd.index("--max-targets") + 1] == "25"
    assert cmd[cmd.index("--pruned-file") + 1] == out[1]


def test_process_aracne_nonzero_exit(monkeypatch, inputs, tmp_path):
    network, expression = inputs
    FakePopen.calls, FakePopen.returncode = [], 1
    monkeypatch.setattr(regulon_processing.subprocess, "Popen", FakePopen)
    with pytest.raises(RuntimeError):
        process_aracne(network, expression, f"{tmp_path}/", "x")


def test_process_aracne_timeout(monkeypatch, inputs, tmp_path):
    network, expression = inputs

    class SlowPopen(FakePopen):
        def communicate(self, timeout=None):
            raise subprocess.TimeoutExpired(cmd="Rscript", timeout=timeout)

    FakePopen.returncode = 0
    monkeypatch.setattr(regulon_processing.subprocess, "Popen", SlowPopen)
    with pytest.raises(RuntimeError):
        process_aracne(network, expression, f"{tmp_path}/", "x", timeout=1)


def test_process_aracne_missing_input(tmp_path):
    with pytest.raises(FileNotFoundError):
        process_aracne(tmp_path / "nope.tsv", tmp_path / "nope2.tsv", "", "")
