# netbuild/core/build/config.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from netbuild.core.build.errors import InvalidConfig
from netbuild.core.build.schema import (
    ELEMENT_KINDS,
    FLOW_UNITS,
    HEADLOSS_FORMULAS,
    FlowUnit,
    HeadlossFormula,
    is_metric_unit,
)


def _pick(cfg: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key wins (camelCase from the UI, snake_case from files)."""
    for k in keys:
        if k in cfg and cfg[k] is not None:
            return cfg[k]
    return default


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(value)


# ============================================================
# ModelSettings (flow unit + headloss)
# ============================================================

@dataclass(frozen=True)
class ModelSettings:
    """
    Flow unit and headloss formula. Together they select the unit group
    (US or metric) and the default pipe roughness.
    """
    flow_unit: FlowUnit = "GPM"
    headloss_formula: HeadlossFormula = "Hazen-Williams"

    @staticmethod
    def from_dict(cfg: Dict[str, Any]) -> "ModelSettings":
        cfg = cfg or {}
        flow_unit = str(_pick(cfg, "flowUnit", "flow_unit", "units", default="GPM")).strip().upper()
        formula = str(_pick(cfg, "headlossFormula", "headloss_formula", "headloss", default="Hazen-Williams")).strip()

        # tolerate the INP short codes (H-W, D-W, C-M)
        formula = {"H-W": "Hazen-Williams", "D-W": "Darcy-Weisbach", "C-M": "Chezy-Manning"}.get(formula.upper(), formula)

        out = ModelSettings(flow_unit=flow_unit, headloss_formula=formula)  # type: ignore[arg-type]
        out.validate()
        return out

    def validate(self) -> None:
        if self.flow_unit not in FLOW_UNITS:
            raise InvalidConfig(f"Invalid flow unit: {self.flow_unit!r}. Allowed: {list(FLOW_UNITS)}")
        if self.headloss_formula not in HEADLOSS_FORMULAS:
            raise InvalidConfig(
                f"Invalid headloss formula: {self.headloss_formula!r}. Allowed: {list(HEADLOSS_FORMULAS)}"
            )

    @property
    def metric(self) -> bool:
        return is_metric_unit(self.flow_unit)


# ============================================================
# ProjectionConfig
# ============================================================

def _projection_code(value: Any) -> Optional[str]:
    """
    A projection may arrive as a record {"id", "name", "code"}, an EPSG number or a string.
    """
    if value is None:
        return None
    if isinstance(value, dict):
        code = value.get("code") or value.get("id")
        return str(code).strip() if code not in (None, "") else None
    if isinstance(value, int):
        return f"EPSG:{value}"
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class ProjectionConfig:
    original_projection: Optional[str] = None
    selected_projection: Optional[str] = None
    needs_reprojection: bool = False
    data_is_latlng: bool = False

    @staticmethod
    def from_dict(cfg: Dict[str, Any]) -> "ProjectionConfig":
        cfg = cfg or {}
        return ProjectionConfig(
            original_projection=_projection_code(_pick(cfg, "originalProjection", "original_projection")),
            selected_projection=_projection_code(_pick(cfg, "selectedProjection", "selected_projection")),
            needs_reprojection=_as_bool(_pick(cfg, "needsReprojection", "needs_reprojection", default=False)),
            data_is_latlng=_as_bool(_pick(cfg, "dataIsLatLng", "data_is_latlng", default=False)),
        )


# ============================================================
# BuildOptions
# ============================================================

@dataclass(frozen=True)
class BuildOptions:
    snap_tolerance: float = 1e-6      # working CRS units
    decimal_precision: int = 4
    allow_self_loops: bool = False
    title: Optional[str] = None
    base_inp: Optional[str] = None

    @staticmethod
    def from_dict(cfg: Dict[str, Any]) -> "BuildOptions":
        cfg = cfg or {}
        try:
            tol = float(_pick(cfg, "snapTolerance", "snap_tolerance", "tolerance", "epsilon", default=1e-6))
            prec = int(_pick(cfg, "decimalPrecision", "decimal_precision", "precision", default=4))
        except (TypeError, ValueError) as e:
            raise InvalidConfig(f"Invalid numeric build option: {e}") from e

        title = _pick(cfg, "title")
        base_inp = _pick(cfg, "baseInp", "base_inp")
        out = BuildOptions(
            snap_tolerance=tol,
            decimal_precision=prec,
            allow_self_loops=_as_bool(_pick(cfg, "allowSelfLoops", "allow_self_loops", default=False)),
            title=str(title) if title is not None else None,
            base_inp=str(base_inp) if base_inp is not None else None,
        )
        out.validate()
        return out

    def validate(self) -> None:
        if not (self.snap_tolerance > 0):
            raise InvalidConfig(f"snap_tolerance must be > 0 (got {self.snap_tolerance})")
        if not (0 <= self.decimal_precision <= 12):
            raise InvalidConfig(f"decimal_precision out of range [0, 12]: {self.decimal_precision}")


# ============================================================
# BuildConfig (aggregator)
# ============================================================

@dataclass(frozen=True)
class BuildConfig:
    settings: ModelSettings
    assigned_data: Dict[str, Any] = field(default_factory=dict)          # kind -> FeatureCollection
    attribute_mapping: Dict[str, Dict[str, Optional[str]]] = field(default_factory=dict)
    projection: ProjectionConfig = field(default_factory=ProjectionConfig)
    options: BuildOptions = field(default_factory=BuildOptions)

    @staticmethod
    def from_dict(cfg: Dict[str, Any]) -> "BuildConfig":
        if not isinstance(cfg, dict):
            raise InvalidConfig(f"Build configuration must be an object, got {type(cfg).__name__}")

        settings = ModelSettings.from_dict(_pick(cfg, "settings", default={}))
        assigned = dict(_pick(cfg, "assignedData", "assigned_data", default={}) or {})
        mapping_raw = dict(_pick(cfg, "attributeMapping", "attribute_mapping", default={}) or {})
        mapping = {str(k): dict(v or {}) for k, v in mapping_raw.items()}
        projection = ProjectionConfig.from_dict(_pick(cfg, "projection", default={}))

        # options may be nested or flat
        opts_src = dict(cfg)
        opts_src.update(_pick(cfg, "options", default={}) or {})
        options = BuildOptions.from_dict(opts_src)

        out = BuildConfig(
            settings=settings,
            assigned_data=assigned,
            attribute_mapping=mapping,
            projection=projection,
            options=options,
        )
        out.validate()
        return out

    def validate(self) -> None:
        self.settings.validate()
        self.options.validate()

        unknown = sorted(set(self.assigned_data) - set(ELEMENT_KINDS))
        if unknown:
            raise InvalidConfig(f"Unknown element kinds in assigned data: {unknown}. Allowed: {list(ELEMENT_KINDS)}")
        if not any(self.assigned_data.values()):
            raise InvalidConfig("No GIS layer assigned to any element kind.")

        for kind, layer in self.assigned_data.items():
            if layer is None:
                continue
            if not isinstance(layer, (dict, list)):
                raise InvalidConfig(f"Layer for {kind!r} must be a GeoJSON FeatureCollection", element_kind=kind)

    def mapping_for(self, element_kind: str) -> Dict[str, Optional[str]]:
        return self.attribute_mapping.get(element_kind, {})
