from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from models.chart_of_accounts import AccountType
from utils.validation import validate_account_number


class AccountBase(BaseModel):
    account_number: str
    account_name: str
    account_type: AccountType
    currency: str = "SEK"
    is_active: bool = True

    @field_validator('account_number')
    @classmethod
    def check_account_number(cls, v):
        result = validate_account_number(v)
        if not result.is_valid:
            raise ValueError(result.error)
        return v


class AccountCreate(AccountBase):
    pass


class AccountUpdate(BaseModel):
    account_name: Optional[str] = None
    account_type: Optional[AccountType] = None
    is_active: Optional[bool] = None

    # Fields may be omitted, but a field that is sent must carry a value
    @field_validator('account_name', 'account_type', 'is_active', mode='before')
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator('account_name')
    @classmethod
    def check_account_name(cls, v):
        if not v.strip():
            raise ValueError("account_name cannot be blank")
        return v.strip()


class Account(AccountBase):
    id: int
    foundation_id: str
    balance: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BootstrapResult(BaseModel):
    foundation_id: str
    chart_version: str
    accounts_created: int
