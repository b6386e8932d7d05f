"""
Pydantic models for the upstream payload and the exporter's own responses
All models in one place for simplicity
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime
from dataclasses import dataclass
from enum import Enum

# ============================================================
# Enums
# ============================================================

class PollerState(str, Enum):
    """Poller loop states"""
    IDLE = "idle"
    FETCHING = "fetching"
    UPDATING = "updating"
    BACKOFF = "backoff"

# ============================================================
# Domain Models
# ============================================================

class ServerSnapshot(BaseModel):
    """Server state from one successful fetch"""
    model_config = ConfigDict(frozen=True)

    num_connected_players: int = Field(..., ge=0)
    tech_tier: int = Field(..., ge=0)
    total_game_duration: int = Field(..., ge=0, description="Seconds")
    average_tick_rate: float = Field(..., ge=0)

# ============================================================
# Upstream API Models
# ============================================================

class QueryServerStateRequest(BaseModel):
    """Body of the QueryServerState API call"""
    function: str = "QueryServerState"


class ServerGameState(BaseModel):
    """serverGameState object; unknown fields are ignored"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    num_connected_players: int = Field(..., ge=0)
    tech_tier: int = Field(..., ge=0)
    total_game_duration: int = Field(..., ge=0)
    average_tick_rate: float = Field(..., ge=0)

    def to_snapshot(self) -> ServerSnapshot:
        return ServerSnapshot(
            num_connected_players=self.num_connected_players,
            tech_tier=self.tech_tier,
            total_game_duration=self.total_game_duration,
            average_tick_rate=self.average_tick_rate
        )


class ServerStateData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    server_game_state: ServerGameState


class QueryServerStateResponse(BaseModel):
    """Envelope returned by the server API"""
    data: ServerStateData

# ============================================================
# Poller Models
# ============================================================

@dataclass(frozen=True)
class PollOutcome:
    """Result of one poll cycle: a snapshot or a classified failure"""
    started_at: datetime
    duration_seconds: float
    snapshot: Optional[ServerSnapshot] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.snapshot is not None


class LastError(BaseModel):
    type: str
    message: str


class PollerStatus(BaseModel):
    """Poller counters and latest outcome"""
    state: PollerState
    total_polls: int = 0
    successful_polls: int = 0
    failed_polls: int = 0
    consecutive_failures: int = 0
    last_success_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None
    last_error: Optional[LastError] = None

# ============================================================
# Response Models
# ============================================================

class HealthStatus(BaseModel):
    """Health check response"""
    status: str = Field(..., description="healthy, degraded, starting or unhealthy")
    version: str
    timestamp: datetime
    upstream: str
    poller: PollerStatus
    snapshot: Optional[ServerSnapshot] = None
