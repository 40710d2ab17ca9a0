# netbuild/core/build/schema.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

FlowUnit = Literal["CFS", "GPM", "MGD", "IMGD", "AFD", "LPS", "LPM", "MLD", "CMH", "CMD"]
HeadlossFormula = Literal["Hazen-Williams", "Darcy-Weisbach", "Chezy-Manning"]

FLOW_UNITS_US: Tuple[str, ...] = ("CFS", "GPM", "MGD", "IMGD", "AFD")
FLOW_UNITS_METRIC: Tuple[str, ...] = ("LPS", "LPM", "MLD", "CMH", "CMD")
FLOW_UNITS: Tuple[str, ...] = FLOW_UNITS_US + FLOW_UNITS_METRIC

HEADLOSS_FORMULAS: Tuple[str, ...] = ("Hazen-Williams", "Darcy-Weisbach", "Chezy-Manning")

# INP [OPTIONS] spelling of each formula
HEADLOSS_INP_CODE = {
    "Hazen-Williams": "H-W",
    "Darcy-Weisbach": "D-W",
    "Chezy-Manning": "C-M",
}

PIPE_ROUGHNESS_DEFAULT = {
    "Hazen-Williams": 100.0,
    "Darcy-Weisbach": 0.01,
    "Chezy-Manning": 0.013,
}

# Display units per attribute class: (US, metric)
ATTRIBUTE_UNIT_MAP = {
    "Diameter": ("in", "mm"),
    "InitLevel": ("ft", "m"),
    "MinLevel": ("ft", "m"),
    "MaxLevel": ("ft", "m"),
    "Head": ("ft", "m"),
    "Elevation": ("ft", "m"),
    "Length": ("ft", "m"),
}

NUMERIC_ATTRIBUTES = frozenset({
    "Diameter", "Roughness", "MinorLoss", "Length",
    "Setting",
    "InitLevel", "MinLevel", "MaxLevel", "MinVolume",
    "Head", "Elevation", "Demand",
})

ElementKind = Literal["pipes", "nodes", "valves", "pumps", "tanks", "reservoirs"]
ELEMENT_KINDS: Tuple[str, ...] = ("pipes", "nodes", "valves", "pumps", "tanks", "reservoirs")

POINT_TYPES = ("Point", "MultiPoint")
LINE_TYPES = ("LineString", "MultiLineString")

# Marker for schema defaults that depend on ModelSettings
ROUGHNESS_BY_FORMULA = "<roughness by headloss formula>"


@dataclass(frozen=True)
class ElementSchema:
    key: ElementKind
    name: str
    geometry_types: Tuple[str, ...]
    required_attributes: Tuple[str, ...]
    optional_attributes: Tuple[str, ...] = ()
    default_values: Dict[str, Any] = field(default_factory=dict)

    @property
    def all_attributes(self) -> Tuple[str, ...]:
        return self.required_attributes + self.optional_attributes

    def accepts(self, geometry_type: str) -> bool:
        return geometry_type in self.geometry_types


EPANET_ELEMENTS: Tuple[ElementSchema, ...] = (
    ElementSchema(
        key="pipes",
        name="Pipes",
        geometry_types=LINE_TYPES,
        required_attributes=("Id", "Diameter", "Roughness"),
        optional_attributes=("Length", "MinorLoss", "Status", "Comment"),
        default_values={
            "Diameter": 150,
            "Roughness": ROUGHNESS_BY_FORMULA,
            "MinorLoss": 0,
            "Status": "Open",
        },
    ),
    ElementSchema(
        key="nodes",
        name="Nodes",
        geometry_types=POINT_TYPES,
        required_attributes=("Id",),
        optional_attributes=("Elevation", "Demand", "Pattern", "Comment"),
        default_values={"Elevation": 0, "Demand": 0},
    ),
    ElementSchema(
        key="valves",
        name="Valves",
        geometry_types=POINT_TYPES + LINE_TYPES,
        required_attributes=("Id", "Diameter", "Type", "Setting"),
        optional_attributes=("MinorLoss", "Comment"),
        default_values={
            "Diameter": 150,
            "Type": "PRV",
            "Setting": 0,
            "MinorLoss": 0,
        },
    ),
    ElementSchema(
        key="pumps",
        name="Pumps",
        geometry_types=POINT_TYPES + LINE_TYPES,
        required_attributes=("Id",),
        optional_attributes=("Parameters", "Comment"),
        default_values={"Parameters": "POWER 5"},
    ),
    ElementSchema(
        key="tanks",
        name="Tanks",
        geometry_types=POINT_TYPES,
        required_attributes=("Id", "InitLevel", "MinLevel", "MaxLevel", "Diameter"),
        optional_attributes=("Elevation", "MinVolume", "Comment"),
        default_values={
            "InitLevel": 5,
            "MinLevel": 0,
            "MaxLevel": 10,
            "Diameter": 50,
            "MinVolume": 0,
            "Elevation": 0,
        },
    ),
    ElementSchema(
        key="reservoirs",
        name="Reservoirs",
        geometry_types=POINT_TYPES,
        required_attributes=("Id", "Head"),
        optional_attributes=("Pattern", "Comment"),
        default_values={"Head": 0},
    ),
)

_SCHEMA_BY_KEY = {e.key: e for e in EPANET_ELEMENTS}


def get_element_schema(element_kind: str) -> ElementSchema:
    try:
        return _SCHEMA_BY_KEY[element_kind]
    except KeyError:
        raise KeyError(f"Unknown element kind {element_kind!r}. Allowed: {list(ELEMENT_KINDS)}") from None


def is_metric_unit(unit: str) -> bool:
    return unit in FLOW_UNITS_METRIC


def get_attribute_unit(attribute: str, unit: str) -> Optional[str]:
    mapping = ATTRIBUTE_UNIT_MAP.get(attribute)
    if mapping is None:
        return None
    return mapping[1] if is_metric_unit(unit) else mapping[0]


def get_default_pipe_roughness(formula: str) -> float:
    return PIPE_ROUGHNESS_DEFAULT.get(formula, 100.0)


def schema_default(element_kind: str, attribute: str, headloss_formula: str) -> Any:
    """
    Default value of an attribute for the active settings (None when the schema has none).
    """
    value = get_element_schema(element_kind).default_values.get(attribute)
    if value == ROUGHNESS_BY_FORMULA:
        return get_default_pipe_roughness(headloss_formula)
    return value


def is_valid_geometry_for_element(geometry_type: str, element_kind: str) -> bool:
    schema = _SCHEMA_BY_KEY.get(element_kind)
    if schema is None:
        return False
    return schema.accepts(geometry_type)


def get_valid_geometry_type(collection: Dict[str, Any]) -> str:
    """
    Single geometry type shared by every feature, "Mixed", or "Unknown" when empty.
    """
    features = (collection or {}).get("features") or []
    types = {(f.get("geometry") or {}).get("type") for f in features}
    types.discard(None)
    if len(types) == 1:
        return next(iter(types))
    if len(types) > 1:
        return "Mixed"
    return "Unknown"


def get_geojson_properties(collection: Dict[str, Any]) -> List[str]:
    props = set()
    for f in (collection or {}).get("features") or []:
        props.update((f.get("properties") or {}).keys())
    return sorted(props)
