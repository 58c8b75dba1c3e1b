from datetime import datetime
from typing import Optional, Union
from pydantic import BaseModel, EmailStr

class ProductResponse(BaseModel):
    id: int
    name: str
    price: Union[int, float]

    class Config:
        from_attributes = True

class Credentials(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    callbackUrl: Optional[str] = None

class SignInResponse(BaseModel):
    url: str

class SessionUserResponse(BaseModel):
    id: str
    name: str
    email: EmailStr  # Valide l'email automatiquement

class SessionResponse(BaseModel):
    user: SessionUserResponse
    expires: datetime
