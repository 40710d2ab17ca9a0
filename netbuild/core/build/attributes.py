from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from netbuild.core.build.config import ModelSettings
from netbuild.core.build.errors import InvalidAttributeValue, MissingRequiredAttribute
from netbuild.core.build.schema import (
    NUMERIC_ATTRIBUTES,
    get_attribute_unit,
    get_element_schema,
    schema_default,
)
from netbuild.core.models.feature import GeometryFeature

logger = logging.getLogger(__name__)

_ID_UNSAFE = re.compile(r"[\s;]+")


@dataclass(frozen=True)
class ResolvedAttributes:
    """
    Attribute values for one feature plus their display units.

    units never influence values; values are stored in the unit group implied by the flow unit.
    """
    values: Dict[str, Any] = field(default_factory=dict)
    units: Dict[str, str] = field(default_factory=dict)
    defaulted: frozenset = frozenset()

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    def __contains__(self, name: str) -> bool:
        return name in self.values


def _is_blank(x: Any) -> bool:
    if x is None:
        return True
    if isinstance(x, float) and math.isnan(x):
        return True
    return isinstance(x, str) and x.strip() == ""


def clean_id(value: Any) -> str:
    """INP identifiers: no whitespace and no ';'."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return _ID_UNSAFE.sub("_", str(value).strip())


def _coerce(element_kind: str, attribute: str, value: Any, feature_index: Any) -> Any:
    if attribute == "Id":
        return clean_id(value)
    if attribute in NUMERIC_ATTRIBUTES:
        if isinstance(value, bool):
            raise InvalidAttributeValue(
                f"Attribute '{attribute}' expects a number, got {value!r} (feature {feature_index})",
                element_kind=element_kind,
                context={"attribute": attribute, "feature_index": feature_index},
            )
        try:
            val = float(value)
        except (TypeError, ValueError) as e:
            raise InvalidAttributeValue(
                f"Attribute '{attribute}' expects a number, got {value!r} (feature {feature_index})",
                element_kind=element_kind,
                context={"attribute": attribute, "feature_index": feature_index},
            ) from e
        if not math.isfinite(val):
            raise InvalidAttributeValue(
                f"Attribute '{attribute}' is not finite: {value!r} (feature {feature_index})",
                element_kind=element_kind,
                context={"attribute": attribute, "feature_index": feature_index},
            )
        return val
    return str(value).strip() if isinstance(value, str) else value


def resolve(
    feature: GeometryFeature,
    element_kind: str,
    mapping: Optional[Mapping[str, Optional[str]]],
    settings: ModelSettings,
    feature_index: Any = None,
) -> ResolvedAttributes:
    """
    Resolve the schema attributes of one feature.

    Required attributes: mapped value, else the schema default when unmapped.
    A mapped but absent value is an error. Optional attributes are only kept when
    mapped and present. An unmapped Id stays unresolved and is minted later.
    """
    schema = get_element_schema(element_kind)
    mapping = mapping or {}
    where = feature_index if feature_index is not None else feature.label

    values: Dict[str, Any] = {}
    defaulted = set()

    for attr in schema.required_attributes:
        source = mapping.get(attr)
        if source:
            raw = feature.properties.get(source)
            if _is_blank(raw):
                raise MissingRequiredAttribute(element_kind, attr, where)
            values[attr] = _coerce(element_kind, attr, raw, where)
        else:
            default = schema_default(element_kind, attr, settings.headloss_formula)
            if default is not None:
                values[attr] = _coerce(element_kind, attr, default, where)
                defaulted.add(attr)

    for attr in schema.optional_attributes:
        source = mapping.get(attr)
        if not source:
            continue
        raw = feature.properties.get(source)
        if _is_blank(raw):
            continue
        values[attr] = _coerce(element_kind, attr, raw, where)

    units = {}
    for attr in values:
        unit = get_attribute_unit(attr, settings.flow_unit)
        if unit is not None:
            units[attr] = unit

    return ResolvedAttributes(values=values, units=units, defaulted=frozenset(defaulted))


def check_mapping(element_kind: str, mapping: Optional[Mapping[str, Optional[str]]]) -> Dict[str, Optional[str]]:
    """
    Drop mapping entries for attributes the schema does not know (logged).
    """
    schema = get_element_schema(element_kind)
    known = set(schema.all_attributes)
    out: Dict[str, Optional[str]] = {}
    for attr, source in (mapping or {}).items():
        if attr not in known:
            logger.warning("Ignoring mapping for unknown %s attribute %r", element_kind, attr)
            continue
        out[attr] = source
    return out
