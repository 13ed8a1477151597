from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class Dependency(BaseModel):
    name: str
    version: str = ""
    category: str = "other"  # framework | ui | database | orm | auth | testing | build | other


class DetectedPattern(BaseModel):
    type: str  # "api-routes" | "components" | "services" | ...
    paths: list[str] = []
    confidence: float = 0.0


class ProjectAnalysis(BaseModel):
    """Result of the project detector, stored in the analysis cache namespace.

    Produced by an external analyzer; only the fields below are validated
    when an entry is read back.
    """

    project_root: str
    project_type: str = "unknown"
    language: str | None = None
    framework: str | None = None
    dependencies: list[Dependency] = []
    dev_dependencies: list[Dependency] = []
    detected_patterns: list[DetectedPattern] = []
    suggested_agents: list[str] = []
    suggested_skills: list[str] = []
    total_files: int = 0
    analyzed_at: datetime
