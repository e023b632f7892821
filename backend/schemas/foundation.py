from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime
from utils.validation import validate_foundation_name


class FoundationCreate(BaseModel):
    name: str

    @field_validator('name')
    @classmethod
    def check_name(cls, v):
        result = validate_foundation_name(v)
        if not result.is_valid:
            raise ValueError(result.error)
        return v.strip()


class Foundation(BaseModel):
    id: str
    name: str
    owner_id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FoundationCreated(Foundation):
    chart_version: str
    accounts_created: int
