from pydantic import BaseModel, ConfigDict
from typing import Any, Optional


class InboundMessage(BaseModel):
    # Unknown keys are tolerated so newer clients don't get their frames dropped
    model_config = ConfigDict(extra="ignore")

    type: str
    roomId: Optional[str] = None
    to: Optional[str] = None
    data: Any = None


class PeerSummary(BaseModel):
    id: str
    timestamp: int
