"""Configuration models for Waveplan."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ProfileType = Literal["app", "lp", "hp", "api", "cli"]


class ProjectConfig(BaseModel):
    """Project being planned."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    root: Path = Field(default_factory=Path.cwd, description="Project root directory")
    profile_type: ProfileType = Field(default="app", description="Project profile type")
    catalog_path: Path = Field(
        default=Path("docs/requirements/FEATURE_CATALOG.md"),
        description="Feature catalog, relative to root (.md table or .yml list)",
    )

    @property
    def catalog_file(self) -> Path:
        if self.catalog_path.is_absolute():
            return self.catalog_path
        return self.root / self.catalog_path


class StateConfig(BaseModel):
    """Where plan and run documents live."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state_dir: Path = Field(default=Path(".waveplan"), description="State directory, relative to root")
    write_status_file: bool = Field(default=True, description="Write STATUS.md on status")


class SchedulingConfig(BaseModel):
    """Wave scheduling policy."""

    foundation_prefixes: list[str] = Field(
        default_factory=lambda: ["AUTH", "ACCT"],
        description="Common feature id prefixes scheduled in the first layer",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    level: str = Field(default="INFO", description="Log level")
    log_dir: Path = Field(default=Path(".waveplan/logs"), description="Log directory")
    rotation_mb: int = Field(default=10, description="Log rotation size (MB)")
    retention_days: int = Field(default=7, description="Log retention days")


class WaveplanConfig(BaseModel):
    """Main configuration model."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def state_dir(self) -> Path:
        if self.state.state_dir.is_absolute():
            return self.state.state_dir
        return self.project.root / self.state.state_dir
