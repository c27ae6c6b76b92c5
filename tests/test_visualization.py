import pytest

from conftest import ingest, report_from
from topolop.visualization import CityMapper
from topolop.visualization.mapper import (
    building_height,
    condition_for,
    district_for,
    file_type,
    intensity_bucket,
    risk_indicator,
)


@pytest.fixture
def city_report(run):
    ingest(run, "A", "src/a.c", "A1", line=10, severity="high", cross_tool_patterns={"memory_safety"})
    ingest(run, "B", "src/a.c", "B7", line=12, severity="medium", cross_tool_patterns={"memory_safety"})
    ingest(run, "C", "main.py", "C1", line=3, severity="low", analysis_type="quality")
    return report_from(run)


class TestCityMapper:
    def test_buildings(self, city_report):
        city = CityMapper().map(city_report)

        assert [b.canonical_path for b in city.buildings] == ["main.py", "src/a.c"]
        building = city.building("src/a.c")
        assert building.height == 4.0
        assert building.hotspot_score == 21
        assert building.health == 79
        assert building.condition == "good"
        assert building.risk_indicator == "high"
        assert building.district == "src"
        assert building.file_type == "c"
        assert building.tools_detected == ("A", "B")
        assert building.correlation_count == 1
        assert building.recommended_action == "Security Audit Recommended"
        assert building.flags.hazmat_beacon
        assert building.flags.safety_inspection
        assert not building.flags.emergency_stop

    def test_root_level_file(self, city_report):
        building = CityMapper().map(city_report).building("main.py")
        assert building.district == "(root)"
        assert building.file_type == "entry-point"
        assert building.condition == "excellent"
        assert building.risk_indicator == "low"
        assert not building.flags.safety_inspection

    def test_districts(self, city_report):
        city = CityMapper().map(city_report)

        assert [d.name for d in city.districts] == ["(root)", "src"]
        src = city.districts[1]
        assert src.buildings == ("src/a.c",)
        assert src.issue_count == 2
        assert src.severity_distribution["high"] == 1
        assert src.analysis_type_distribution["security"] == 2
        assert src.health == 79

    def test_overlays(self, city_report):
        city = CityMapper().map(city_report)
        overlays = {overlay.name: overlay for overlay in city.overlays}

        assert list(overlays) == [
            "severity", "analysis_type:quality", "analysis_type:security", "correlation_density",
        ]
        severity = {e.canonical_path: e for e in overlays["severity"].entries}
        assert severity["src/a.c"].intensity == 11
        assert severity["src/a.c"].bucket == "high"
        assert severity["main.py"].bucket == "low"

        [density] = overlays["correlation_density"].entries
        assert density.canonical_path == "src/a.c"
        assert density.intensity == 100
        assert density.bucket == "high"

    def test_references_are_consistent(self, city_report):
        city = CityMapper().map(city_report)
        assert city.validate_references(set(city_report.metrics)) == []

    def test_purpose_districts(self, run):
        for path in ("tests/test_app.py", "web/app.tsx", "services/api.py", "deploy/run.sh", "lib/util.c"):
            ingest(run, "A", path, "R1", line=1)
        city = CityMapper(district_rule="purpose").map(report_from(run))

        assert {b.canonical_path: b.district for b in city.buildings} == {
            "tests/test_app.py": "testing",
            "web/app.tsx": "frontend",
            "services/api.py": "backend",
            "deploy/run.sh": "infrastructure",
            "lib/util.c": "core",
        }

    def test_height_is_capped(self, run):
        for line in range(1, 41):
            ingest(run, "A", "big.c", f"R{line}", line=line, severity="info")
        city = CityMapper(max_building_height=10).map(report_from(run))
        assert city.building("big.c").height == 10.0

    def test_empty_report(self, run):
        city = CityMapper().map(report_from(run))
        assert city.buildings == ()
        assert city.districts == ()
        assert [o.name for o in city.overlays] == ["severity", "correlation_density"]

    def test_unknown_district_rule(self):
        with pytest.raises(ValueError):
            CityMapper(district_rule="alphabetical")


class TestMappingHelpers:
    def test_building_height(self):
        assert building_height(0) == 1.0
        assert building_height(2) == 4.0
        assert building_height(1000) == 50.0

    @pytest.mark.parametrize(
        "health,condition",
        [(100, "excellent"), (80, "excellent"), (79.9, "good"), (40, "fair"), (39, "poor"), (0, "poor")],
    )
    def test_condition(self, health, condition):
        assert condition_for(health) == condition

    def test_risk_indicator(self):
        assert risk_indicator({"critical": 1}) == "high"
        assert risk_indicator({"medium": 3}) == "medium"
        assert risk_indicator({"medium": 2, "low": 9}) == "low"

    def test_file_type(self):
        assert file_type("src/test_utils.py") == "test"
        assert file_type("app/config.ts") == "configuration"
        assert file_type("web/index.js") == "entry-point"
        assert file_type("lib/parser.rs") == "rust"
        assert file_type("Makefile") == "source-file"

    def test_district_for(self):
        assert district_for("src/core/a.c") == "src"
        assert district_for("a.c") == "(root)"
        assert district_for("unknown:clang:3") == "(root)"

    def test_intensity_bucket(self):
        assert intensity_bucket(67) == "high"
        assert intensity_bucket(34) == "medium"
        assert intensity_bucket(33.9) == "low"
