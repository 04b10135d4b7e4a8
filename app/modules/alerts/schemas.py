from pydantic import BaseModel
from typing import List
from datetime import datetime

from app.modules.alerts.models import AlertType


class AlertOut(BaseModel):
    id: int
    type: AlertType
    message: str
    is_read: bool = False
    created_at: datetime


class AlertList(BaseModel):
    alerts: List[AlertOut]
    total: int
