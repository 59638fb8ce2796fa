from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class CategoryRecord(BaseModel):
    id: str
    name: str
    slug: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        frozen = True
