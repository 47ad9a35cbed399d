from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime

from schemas.base import ORMBase, PageMeta

# Shared properties for user models
class UserBase(ORMBase):
    email: EmailStr

# Schema for user authentication credentials
class UserLogin(UserBase):
    password: str

# Schema for user registration requests
class UserCreate(UserBase):
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)

# Schema for profile and administrative updates, all fields optional
class UserUpdate(ORMBase):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, min_length=1)
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[str] = None

# Output schema for user profile details
class UserResponse(UserBase):
    id: int
    name: str
    role: str
    time: Optional[datetime] = None

class UserPage(PageMeta):
    data: List[UserResponse]

# Schema for JWT authentication token response
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

# Schema for JWT payload contents
class TokenData(BaseModel):
    sub: str
    id: Optional[int] = None
    name: str
    role: str = "staff"
