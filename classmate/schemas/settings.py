from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID


class SettingsUpdate(BaseModel):
    center_name: Optional[str] = Field(None, min_length=1)
    logo: Optional[str] = None
    theme_color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    timezone: Optional[str] = None


class SettingsResponse(BaseModel):
    id: UUID
    company_id: UUID
    center_name: str
    logo: Optional[str] = None
    theme_color: Optional[str] = None
    timezone: str

    class Config:
        from_attributes = True
