from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# ============================================================
# Warnings (accumulated, never abort a build)
# ============================================================

@dataclass(frozen=True)
class ValidationIssue:
    level: str              # "error" | "warning"
    code: str               # IsolatedNode, DisconnectedNetwork, ...
    message: str
    hint: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"level": self.level, "code": self.code, "message": self.message}
        if self.hint:
            out["hint"] = self.hint
        if self.details:
            out["details"] = self.details
        return out


class NetworkValidationError(ValueError):
    """Raised when validation finds one or more errors."""
    def __init__(self, issues: List[ValidationIssue]):
        self.issues = issues
        lines = ["Network validation failed with errors:"]
        for it in issues:
            if it.level == "error":
                lines.append(f"- {it.message}" + (f" | hint: {it.hint}" if it.hint else ""))
        super().__init__("\n".join(lines))


# ============================================================
# Fatal build errors
# ============================================================

class BuildError(ValueError):
    """
    Base of every fatal build error.

    stage is filled by the stage runner when the error crosses a stage boundary.
    """
    code = "BuildError"

    def __init__(
        self,
        message: str,
        *,
        element_kind: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        stage: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.element_kind = element_kind
        self.context = dict(context or {})
        self.stage = stage

    def describe(self) -> str:
        parts = []
        if self.stage:
            parts.append(f"[{self.stage}]")
        parts.append(f"{self.code}:")
        if self.element_kind:
            parts.append(f"({self.element_kind})")
        parts.append(self.message)
        return " ".join(parts)


class InvalidConfig(BuildError):
    code = "InvalidConfig"


class InvalidProjection(BuildError):
    code = "InvalidProjection"


class MissingRequiredAttribute(BuildError):
    code = "MissingRequiredAttribute"

    def __init__(self, element_kind: str, attribute: str, feature_index: Optional[Any] = None):
        where = f" (feature {feature_index})" if feature_index is not None else ""
        super().__init__(
            f"Required attribute '{attribute}' is mapped but missing{where}",
            element_kind=element_kind,
            context={"attribute": attribute, "feature_index": feature_index},
        )
        self.attribute = attribute
        self.feature_index = feature_index


class InvalidAttributeValue(BuildError):
    code = "InvalidAttributeValue"


class InvalidGeometryForElement(BuildError):
    code = "InvalidGeometryForElement"

    def __init__(self, element_kind: str, actual_type: str, feature_index: Optional[Any] = None):
        where = f" (feature {feature_index})" if feature_index is not None else ""
        super().__init__(
            f"Geometry type {actual_type!r} is not allowed{where}",
            element_kind=element_kind,
            context={"geometry_type": actual_type, "feature_index": feature_index},
        )
        self.actual_type = actual_type


class DegenerateGeometry(BuildError):
    code = "DegenerateGeometry"


class DuplicateElementId(BuildError):
    code = "DuplicateElementId"


class SerializationFailure(BuildError):
    code = "SerializationFailure"
