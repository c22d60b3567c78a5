from pydantic import BaseModel
from datetime import datetime


class AISummary(BaseModel):
    id: int
    email: str
    date: str
    title: str
    summary: str
    categories: str = ""
    article_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
