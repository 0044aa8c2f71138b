# schemas/user.py
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)


class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str

    # ------------- validators -------------
    @field_validator("name")
    @classmethod
    def name_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 6 or len(v) > 40:
            raise ValueError("Name must be 6-40 characters")
        return v




class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    email: str
    name: str
    profile_url: Optional[str] = Field(default=None, serialization_alias="profileURL")
    type: str
