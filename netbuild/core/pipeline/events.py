from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from netbuild.core.build.errors import BuildError, ValidationIssue
from netbuild.core.models.network import NetworkGraph

STAGE_READ_CONFIG = "Reading Build Config"
STAGE_VALIDATE = "Validating Data"
STAGE_MULTIPART = "Converting MultiString Geometry"
STAGE_CROSSINGS = "Simplifying Crossings"
STAGE_GRAPH = "Building Network Graph"
STAGE_CONNECTIVITY = "Calculating Connectivity"
STAGE_ELEVATIONS = "Assigning Elevations"
STAGE_INP = "Generating INP File"
STAGE_FINISHED = "Finished Build"

STAGES = (
    STAGE_READ_CONFIG,
    STAGE_VALIDATE,
    STAGE_MULTIPART,
    STAGE_CROSSINGS,
    STAGE_GRAPH,
    STAGE_CONNECTIVITY,
    STAGE_ELEVATIONS,
    STAGE_INP,
    STAGE_FINISHED,
)


@dataclass(frozen=True)
class ProgressEvent:
    task: str

    def to_message(self) -> Dict[str, Any]:
        return {"type": "progress", "task": self.task}


@dataclass(frozen=True)
class CompleteEvent:
    inp_file: str
    warnings: List[ValidationIssue] = field(default_factory=list)
    network: Optional[NetworkGraph] = None

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": "complete",
            "inpFile": self.inp_file,
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    stage: Optional[str] = None
    error: Optional[BaseException] = None

    def to_message(self) -> Dict[str, Any]:
        return {"type": "error", "message": self.message}


BuildEvent = Union[ProgressEvent, CompleteEvent, ErrorEvent]


@dataclass(frozen=True)
class BuildResult:
    inp_file: str
    network: NetworkGraph
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def warning_codes(self) -> List[str]:
        return [w.code for w in self.warnings]


def raise_for_event(event: ErrorEvent) -> None:
    """Re-raise the typed error carried by an ErrorEvent."""
    err = event.error
    if isinstance(err, BuildError):
        raise err
    raise BuildError(event.message, stage=event.stage) from err
