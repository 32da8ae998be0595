import json

from geocell.cli import main


def test_encode_prints_token(capsys):
    assert main(["encode", "--lat", "0", "--lon", "0", "--level", "1"]) == 0
    assert capsys.readouterr().out.strip() == "14"


def test_decode_json(capsys):
    assert main(["decode", "1", "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["level"] == 0
    assert data["face"] == 0


def test_children_and_neighbors(capsys):
    assert main(["children", "1"]) == 0
    assert capsys.readouterr().out.split() == ["04", "0c", "14", "1c"]
    assert main(["neighbors", "1", "--json"]) == 0
    assert set(json.loads(capsys.readouterr().out)["neighbors"]) == {"3", "5", "9", "b"}


def test_cover_json(capsys):
    assert main(["cover", "--lat", "37.7749", "--lon", "-122.4194", "--radius", "1", "--level", "13", "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["level"] == 13
    assert data["cell_count"] == len(data["tokens"])


def test_search_over_records_file(tmp_path, capsys):
    records = [
        {"name": "near", "lat": 37.7750, "lon": -122.4195},
        {"name": "also-near", "lat": 37.7800, "lon": -122.4194},
        {"name": "far", "lat": 37.9000, "lon": -122.4194},
    ]
    path = tmp_path / "places.json"
    path.write_text(json.dumps(records), encoding="utf-8")

    assert main(
        ["search", "--records", str(path), "--lat", "37.7749", "--lon", "-122.4194", "--radius", "2", "--json"]
    ) == 0
    data = json.loads(capsys.readouterr().out)
    assert [item["name"] for item in data["items"]] == ["near", "also-near"]


def test_library_errors_exit_with_status_2(capsys):
    assert main(["decode", "not-hex"]) == 2
    assert "token" in capsys.readouterr().err


def test_search_picks_the_level_without_planning_twice(tmp_path, capsys, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("the search command must leave covering to the search itself")

    monkeypatch.setattr("geocell.cli.plan_radius_covering", fail)
    path = tmp_path / "places.json"
    path.write_text(json.dumps([{"name": "near", "lat": 37.7750, "lon": -122.4195}]), encoding="utf-8")

    assert main(["search", "--records", str(path), "--lat", "37.7749", "--lon", "-122.4194", "--radius", "2"]) == 0
    assert "near" in capsys.readouterr().out


def test_search_rejects_non_finite_radius(tmp_path, capsys):
    path = tmp_path / "places.json"
    path.write_text("[]", encoding="utf-8")
    assert main(["search", "--records", str(path), "--lat", "0", "--lon", "0", "--radius", "nan"]) == 2
    assert "radius" in capsys.readouterr().err
