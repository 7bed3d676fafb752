from pydantic import BaseModel
from typing import Dict, Optional


class PipelineOverview(BaseModel):
    active_destinations: int
    observations: int
    active_subscriptions: int
    alerts_total: int
    alerts_last_7_days: int
    queued_by_status: Dict[str, int]
    enqueue_failures: int
    open_rate: Optional[float] = None   # percent of alert events opened
    click_rate: Optional[float] = None  # percent of alert events clicked
