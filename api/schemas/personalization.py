# schemas/personalization.py
from typing import Literal, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

Gender = Literal["Male", "Female", "Non-binary", "Prefer not to say", "Other"]


class BioUpdate(BaseModel):
    bio: str = Field(min_length=1, max_length=500)


class PersonalInformation(BaseModel):
    """Every field is optional: a PATCH only carries what changed."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=20)
    addressLine1: Optional[str] = Field(default=None, max_length=100)
    addressLine2: Optional[str] = Field(default=None, max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    zipCode: Optional[str] = Field(default=None, max_length=20)
    country: Optional[str] = Field(default=None, max_length=100)
    gender: Optional[Gender] = None

    @field_validator("email")
    @classmethod
    def email_length(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > 256:
            raise ValueError("Email must be at most 256 characters")
        return v
