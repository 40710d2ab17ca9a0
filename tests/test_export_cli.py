"""
Tests for the report exports and the command line entry point.
"""

import json

import pandas as pd
import pytest
from openpyxl import load_workbook

from netbuild.cli import main
from netbuild.core.build.config import ModelSettings
from netbuild.core.io.inp_reader import extract_geometry_data
from netbuild.core.pipeline.runner import build_inp
from netbuild.core.postprocess.export import (
    ISSUE_COLUMNS,
    export_network_csv,
    export_network_excel,
    network_tables,
)


@pytest.fixture
def small_result(small_network_config):
    return build_inp(small_network_config)


class TestTables:

    def test_table_shapes(self, small_result):
        tables = network_tables(small_result.network)
        assert len(tables["nodes"]) == 3
        assert list(tables["links"]["uid"]) == ["P-1", "P-2"]
        assert list(tables["issues"].columns) == ISSUE_COLUMNS
        assert tables["issues"].empty

    def test_issue_rows(self, crossing_config):
        crossing_config["assignedData"]["pipes"]["features"][1]["geometry"]["coordinates"] = [[50, 50], [60, 60]]
        network = build_inp(crossing_config).network
        codes = list(network_tables(network)["issues"]["code"])
        assert "DisconnectedNetwork" in codes


class TestExports:

    def test_csv(self, small_result, tmp_path):
        paths = export_network_csv(small_result.network, tmp_path / "report")
        assert set(paths) == {"nodes", "links", "issues"}
        nodes = pd.read_csv(paths["nodes"])
        assert list(nodes["uid"]) == ["J-A", "J-B", "R1"]

    def test_excel_two_header_rows(self, small_result, tmp_path):
        path = tmp_path / "report.xlsx"
        export_network_excel(small_result.network, path, ModelSettings(flow_unit="LPS"))
        wb = load_workbook(path)
        assert wb.sheetnames == ["nodes", "links", "issues"]
        ws = wb["nodes"]
        assert ws["A1"].value == "uid"
        assert ws["E1"].value == "Elevation"
        assert ws["E2"].value == "m"
        assert ws["A3"].value == "J-A"
        assert ws.freeze_panes == "A3"
        assert wb["links"]["F2"].value == "mm"


class TestCli:

    def test_build(self, small_network_config, tmp_path):
        cfg = tmp_path / "config.json"
        cfg.write_text(json.dumps(small_network_config), encoding="utf-8")
        out = tmp_path / "model.inp"
        report = tmp_path / "report.xlsx"
        code = main(["build", str(cfg), "-o", str(out), "--report", str(report), "--precision", "2"])
        assert code == 0
        text = out.read_text(encoding="utf-8")
        assert "[END]" in text
        assert " J-A " in text and "100.00" in text
        assert report.exists()

    def test_build_error_exit_code(self, small_network_config, tmp_path):
        small_network_config["settings"]["flowUnit"] = "XYZ"
        cfg = tmp_path / "config.json"
        cfg.write_text(json.dumps(small_network_config), encoding="utf-8")
        out = tmp_path / "model.inp"
        assert main(["build", str(cfg), "-o", str(out)]) == 1
        assert not out.exists()

    def test_bad_json(self, tmp_path):
        cfg = tmp_path / "config.json"
        cfg.write_text("{not json", encoding="utf-8")
        assert main(["build", str(cfg), "-o", str(tmp_path / "m.inp")]) == 1

    def test_reproject(self, tmp_path):
        src = tmp_path / "in.inp"
        src.write_text("[JUNCTIONS]\n J1 0\n\n[COORDINATES]\n J1 1 0\n\n[END]\n", encoding="utf-8")
        dst = tmp_path / "out.inp"
        assert main(["reproject", str(src), "--from", "EPSG:4326", "--to", "EPSG:3857", "-o", str(dst)]) == 0
        text = dst.read_text(encoding="utf-8")
        assert text.startswith("[JUNCTIONS]\n J1 0\n")
        x, y = extract_geometry_data(text)[0]["J1"]
        assert x == pytest.approx(111319.4908, abs=1e-4)

    def test_reproject_bad_crs(self, tmp_path):
        src = tmp_path / "in.inp"
        src.write_text("[COORDINATES]\n J1 1 0\n[END]\n", encoding="utf-8")
        code = main(["reproject", str(src), "--from", "EPSG:4326", "--to", "nowhere", "-o", str(tmp_path / "o.inp")])
        assert code == 1

    def test_reproject_bad_coordinate(self, tmp_path):
        src = tmp_path / "in.inp"
        src.write_text("[COORDINATES]\n J1 1 north\n[END]\n", encoding="utf-8")
        code = main(["reproject", str(src), "--from", "EPSG:4326", "--to", "EPSG:3857", "-o", str(tmp_path / "o.inp")])
        assert code == 1
        assert not (tmp_path / "o.inp").exists()
