"""City model records."""

from typing import Literal

from pydantic import Field

from ..models.base import FrozenModel

Condition = Literal["excellent", "good", "fair", "poor"]
RiskIndicator = Literal["low", "medium", "high"]


class BuildingFlags(FrozenModel):
    hazmat_beacon: bool = False
    safe_room: bool = False
    abandoned_section: bool = False
    emergency_stop: bool = False
    safety_inspection: bool = False


class Building(FrozenModel):
    """One file with at least one issue."""

    canonical_path: str
    entity_id: str
    name: str
    district: str
    height: float
    condition: Condition
    health: float
    hotspot_score: float
    risk_indicator: RiskIndicator
    issue_count: int
    severity_distribution: dict[str, int]
    tools_detected: tuple[str, ...]
    file_type: str
    recommended_action: str
    correlation_count: int = 0
    flags: BuildingFlags = Field(default_factory=BuildingFlags)


class District(FrozenModel):
    """Group of buildings; aggregate counts are sums over its buildings."""

    name: str
    buildings: tuple[str, ...]
    issue_count: int
    severity_distribution: dict[str, int]
    analysis_type_distribution: dict[str, int]
    hotspot_score: float
    health: float
    condition: Condition


class OverlayEntry(FrozenModel):
    canonical_path: str
    intensity: float = Field(ge=0.0, le=100.0)
    bucket: str


class Overlay(FrozenModel):
    name: str
    kind: Literal["severity", "analysis_type", "correlation_density"]
    entries: tuple[OverlayEntry, ...] = ()


class CityModel(FrozenModel):
    buildings: tuple[Building, ...] = ()
    districts: tuple[District, ...] = ()
    overlays: tuple[Overlay, ...] = ()

    def building(self, canonical_path: str) -> Building | None:
        for building in self.buildings:
            if building.canonical_path == canonical_path:
                return building
        return None

    def validate_references(self, known_paths: set[str] | None = None) -> list[str]:
        """Check cross-references and return a list of problems (empty when valid).

        Args:
            known_paths: Canonical paths present in the report's metrics; when
                given, every building must reference one of them
        """
        problems: list[str] = []
        building_paths = {b.canonical_path for b in self.buildings}

        if known_paths is not None:
            for path in sorted(building_paths - known_paths):
                problems.append(f"building {path} has no metrics entry")

        for district in self.districts:
            if not district.buildings:
                problems.append(f"district {district.name} has no buildings")
            for path in district.buildings:
                if path not in building_paths:
                    problems.append(f"district {district.name} references unknown building {path}")

        for overlay in self.overlays:
            for entry in overlay.entries:
                if entry.canonical_path not in building_paths:
                    problems.append(
                        f"overlay {overlay.name} references unknown building {entry.canonical_path}"
                    )
        return problems

