"""
Configuration data models for agileboard.

These models define the structure of .agileboard.json and
~/.config/agileboard/config.json files, with validation and type safety
via Pydantic.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class BackendConfig(BaseModel):
    """
    Remote backend selection and credentials.

    The URL and key are the only two credentials the dashboard needs. When
    either is missing (and no other backend is named) the dashboard runs
    in "not configured" mode.
    """
    name: Optional[str] = Field(
        default=None,
        description="Backend name: 'supabase' or 'local' (auto-detect if unset)"
    )
    url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (https://<ref>.supabase.co)"
    )
    key: Optional[str] = Field(
        default=None,
        description="Supabase API key (anon or service role)"
    )
    schema_name: str = Field(
        default="public",
        description="Postgres schema holding the dashboard tables"
    )
    data_file: Optional[str] = Field(
        default=None,
        description="JSON file for the local backend (in-memory when unset)"
    )

    @property
    def has_credentials(self) -> bool:
        return bool(self.url and self.key)


class StorageConfig(BaseModel):
    """File bucket names."""
    avatars_bucket: str = Field(default="avatars", description="Public bucket for avatars")
    attachments_bucket: str = Field(
        default="attachments",
        description="Public bucket for work item attachments"
    )


class RealtimeConfig(BaseModel):
    """
    Realtime change feed settings.

    Every change event triggers a full refresh of the snapshot.
    """
    enabled: bool = Field(default=True, description="Subscribe to change events")
    channel: str = Field(default="schema-db-changes", description="Realtime channel name")
    heartbeat_seconds: float = Field(
        default=25.0,
        gt=0.0,
        description="Interval between channel heartbeats"
    )


class SprintConfig(BaseModel):
    """Defaults used when creating a sprint."""
    length_days: int = Field(
        default=14,
        ge=1,
        description="Days between a new sprint's start and end date"
    )
    selected: Optional[str] = Field(
        default=None,
        description="Sprint the CLI works on (set by 'agileboard sprints select')"
    )


class DateSyncConfig(BaseModel):
    """
    Policy for assigning tasks to sprints by their dates.

    See agileboard.core.sync.date_sync for the matching rules.
    """
    match: Literal["contained", "end_date"] = Field(
        default="contained",
        description="'contained': item start and end inside the sprint; "
                    "'end_date': item end date inside the sprint"
    )
    inclusive: bool = Field(default=True, description="Sprint boundaries count as inside")
    overlap: Literal["first", "last", "skip"] = Field(
        default="first",
        description="What to do when several sprints match: first/last in load order, or skip"
    )


class AgileboardConfig(BaseModel):
    """
    Top-level agileboard configuration.

    Loaded from defaults, user config, project config, and env vars.

    Example:
        >>> config = AgileboardConfig(
        ...     backend=BackendConfig(url="https://x.supabase.co", key="anon-key"),
        ... )
        >>> config.backend.has_credentials
        True
    """
    backend: BackendConfig = Field(
        default_factory=BackendConfig,
        description="Remote backend"
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="File buckets"
    )
    realtime: RealtimeConfig = Field(
        default_factory=RealtimeConfig,
        description="Realtime change feed"
    )
    sprints: SprintConfig = Field(
        default_factory=SprintConfig,
        description="Sprint defaults"
    )
    date_sync: DateSyncConfig = Field(
        default_factory=DateSyncConfig,
        description="Sync tasks with sprints by date"
    )

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,
    )
