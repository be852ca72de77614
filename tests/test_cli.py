from __future__ import annotations

import json

import pytest
from prompt_toolkit.formatted_text import to_formatted_text

from mapmote import cli
from mapmote.mercator import SphericalMercator


@pytest.fixture
def printed(monkeypatch, tmp_path):
    """Capture formatted output as plain text lines."""
    lines = []

    def fake_print(*values, **kwargs):
        lines.append("".join(frag[1] for v in values for frag in to_formatted_text(v)))

    monkeypatch.setattr(cli, "print_formatted_text", fake_print)
    monkeypatch.setenv("MAPMOTE_CONFIG", str(tmp_path / "mapmote.json"))
    return lines


def _numbers(line: str):
    return [float(v) for v in line.split()[1:]]


def test_bbox_command(printed) -> None:
    assert cli.main(["bbox", "0", "0", "0"]) == 0

    w, s, e, n = _numbers(printed[0])
    assert (w, e) == (pytest.approx(-180.0), pytest.approx(180.0))
    assert n == pytest.approx(85.0511, abs=1e-4)
    assert s == pytest.approx(-85.0511, abs=1e-4)


def test_bbox_command_tms_900913(printed) -> None:
    assert cli.main(["bbox", "--tms", "--srs", "900913", "12", "2200", "2752"]) == 0

    expected = SphericalMercator().bbox(2200, 1343, 12, srs="900913")
    assert _numbers(printed[0]) == pytest.approx(expected, rel=1e-9)


def test_tiles_command(printed) -> None:
    assert cli.main(["tiles", "-180", "-85", "180", "85", "1"]) == 0

    assert printed == ["minX 0", "minY 0", "maxX 1", "maxY 1"]


def test_px_and_ll_commands(printed) -> None:
    assert cli.main(["px", "0", "0", "1"]) == 0
    assert cli.main(["ll", "256", "256", "1"]) == 0

    assert _numbers(printed[0]) == [256, 256]
    assert _numbers(printed[1]) == pytest.approx([0.0, 0.0], abs=1e-9)


def test_forward_and_inverse_commands(printed) -> None:
    assert cli.main(["forward", "180", "90"]) == 0
    assert cli.main(["inverse", "0", "0"]) == 0

    assert _numbers(printed[0]) == pytest.approx([20037508.34, 20037508.34])
    assert _numbers(printed[1]) == pytest.approx([0.0, 0.0], abs=1e-9)


def test_size_option(printed) -> None:
    assert cli.main(["px", "--size", "512", "0", "0", "0"]) == 0

    assert _numbers(printed[0]) == [256, 256]


def test_zoom_error_exit_code(printed) -> None:
    assert cli.main(["px", "0", "0", "40"]) == 1
    assert printed[0].startswith("error:")


def test_scan_urls(printed) -> None:
    rc = cli.main([
        "scan",
        "https://a.tile.openstreetmap.org/1/0/0.png",
        "https://a.tile.openstreetmap.org/1/1/1.png",
        "https://example.org/logo.png",
    ])

    assert rc == 0
    w, s, e, n = _numbers(printed[0])
    assert (w, s, e, n) == pytest.approx([-180.0, -85.0511, 180.0, 85.0511], abs=1e-4)


def test_scan_html_and_send(printed, tmp_path, monkeypatch) -> None:
    page = tmp_path / "page.html"
    page.write_text('<img class="leaflet-tile" src="https://t/15/17602/10745.png">')
    sent = []

    class FakeRemote:
        @classmethod
        def from_config(cls, cfg):
            return cls()

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return None

        def zoom_to(self, bbox):
            sent.append(bbox)
            return "http://127.0.0.1:8111/load_and_zoom?left=0"

    monkeypatch.setattr(cli, "RemoteControl", FakeRemote)

    assert cli.main(["scan", str(page), "--send"]) == 0
    assert sent == [SphericalMercator().bbox(17602, 10745, 15)]
    assert printed[-1].startswith("sent http://127.0.0.1:8111/")


def test_scan_without_tiles(printed) -> None:
    assert cli.main(["scan", "https://example.org/logo.png"]) == 1
    assert "No tiles found" in printed[0]


def test_scan_html_without_images(printed, tmp_path) -> None:
    page = tmp_path / "empty.html"
    page.write_text("<html><body><p>nothing to see</p></body></html>")

    assert cli.main(["scan", str(page)]) == 1
    assert "No images found" in printed[0]


def test_xyz_flag_overrides_tms_config(printed, tmp_path) -> None:
    (tmp_path / "mapmote.json").write_text(json.dumps({"projection": {"tms_style": True}}))
    merc = SphericalMercator()

    assert cli.main(["bbox", "3", "2", "1"]) == 0
    assert cli.main(["bbox", "--xyz", "3", "2", "1"]) == 0

    assert _numbers(printed[0]) == pytest.approx(merc.bbox(2, 1, 3, tms_style=True), rel=1e-9)
    assert _numbers(printed[1]) == pytest.approx(merc.bbox(2, 1, 3), rel=1e-9)


def test_tms_and_xyz_are_exclusive(printed) -> None:
    with pytest.raises(SystemExit):
        cli.main(["bbox", "--tms", "--xyz", "3", "2", "1"])


def test_non_finite_config_does_not_crash(printed, tmp_path) -> None:
    (tmp_path / "mapmote.json").write_text('{"projection": {"tile_size": Infinity}}')

    assert cli.main(["px", "0", "0", "0"]) == 0
    assert _numbers(printed[0]) == [128, 128]
