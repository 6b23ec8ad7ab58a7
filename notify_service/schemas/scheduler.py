from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class JobView(BaseModel):
    id: str
    name: str
    next_run_time: Optional[datetime] = None
    trigger: str


class JobRunResponse(BaseModel):
    id: str
    result: Any = None
