from datetime import datetime
from typing import Tuple, Union
from pydantic import BaseModel, ConfigDict

class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    price: Union[int, float]

class SessionUser(BaseModel):
    id: str
    name: str
    email: str

class Session(BaseModel):
    user: SessionUser
    expires: datetime

# Catalogue fixe, en lecture seule
products_db: Tuple[Product, ...] = (
    Product(id=1, name="Laptop", price=999),
    Product(id=2, name="Phone", price=599),
    Product(id=3, name="Tablet", price=399),
)
