"""Per-tenant settings and team info."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TenantSettings(BaseModel):
    """Key/value settings plus exclusion and played sets for one tenant."""

    tenant_id: str
    source_url: Optional[str] = None
    pending_source_url: Optional[str] = None
    last_sync_at: Optional[datetime] = None

    excluded_types: list[str] = Field(default_factory=list)
    excluded_groups: list[str] = Field(default_factory=list)
    played_groups: list[str] = Field(default_factory=list)


class TeamInfo(BaseModel):
    """Team details submitted on the registration form."""

    team_name: str = ""
    captain_name: str = ""
    email: str = ""
    phone: str = ""

    @property
    def is_complete(self) -> bool:
        return all(
            value.strip()
            for value in (self.team_name, self.captain_name, self.email, self.phone)
        )
