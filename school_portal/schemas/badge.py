from pydantic import BaseModel


class StatusBadgeRead(BaseModel):
    label: str
    icon: str
    style: str

    class Config:
        from_attributes = True
