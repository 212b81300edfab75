"""Feature catalog models."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Priority(str, Enum):
    """Feature priority, P0 highest."""

    P0 = "P0"
    P1 = "P1"
    P2 = "P2"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)


class Size(str, Enum):
    """Feature or task size, smallest first."""

    S = "S"
    M = "M"
    L = "L"
    XL = "XL"

    @property
    def rank(self) -> int:
        return list(Size).index(self)


class FeatureKind(str, Enum):
    """Shared infrastructure vs. product-specific feature."""

    COMMON = "common"
    PROPRIETARY = "proprietary"


class Feature(BaseModel):
    """A unit of product functionality."""

    id: str = Field(description="Unique stable identifier, e.g. AUTH-001")
    name: str = Field(description="Human-readable label")
    priority: Priority = Field(default=Priority.P1)
    size: Size = Field(default=Size.M)
    kind: FeatureKind = Field(default=FeatureKind.PROPRIETARY)
    dependencies: list[str] = Field(
        default_factory=list,
        description="Feature ids that must be scheduled in an earlier wave",
    )
    dependent_count: int = Field(
        default=0,
        description="Number of catalog features listing this one as a dependency",
    )

    @field_validator("dependencies")
    @classmethod
    def _dedupe_dependencies(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for dep in value:
            dep = dep.strip()
            if dep and dep not in seen:
                seen.append(dep)
        return seen
