from __future__ import annotations

import pytest

from jobwatch.core.naming import harvest_local_name, remote_file_path, target_subdir_name


@pytest.mark.parametrize(
    "remote, expected",
    [
        ("report.json", "report_init.json"),
        ("data", "data_init"),
        ("bom.cdx.json", "bom.cdx_init.json"),
        ("sub/trace.log", "trace_init.log"),
        (" padded.txt \n", "padded_init.txt"),
    ],
)
def test_harvest_local_name(remote, expected):
    assert harvest_local_name(remote) == expected


def test_custom_suffix():
    assert harvest_local_name("vex.json", "-prep") == "vex-prep.json"


def test_target_subdir_name_is_last_segment():
    assert target_subdir_name("/tmp/trivy-vex") == "trivy-vex"
    assert target_subdir_name("/tmp/trivy-1/") == "trivy-1"


def test_remote_file_path_joins_directory():
    assert remote_file_path("/tmp/trivy-vex", "bom.json") == "/tmp/trivy-vex/bom.json"
    assert remote_file_path("/tmp/trivy-vex/", "bom.json") == "/tmp/trivy-vex/bom.json"
