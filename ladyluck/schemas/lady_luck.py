from pydantic import BaseModel, ConfigDict, Field

class RewardSnapshot(BaseModel):
    """One persisted reward inside a pending batch (camelCase on the wire)."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1)
    displayName: str
    category: str
    weight: float = Field(gt=0)
    quantity: int = Field(default=1, ge=1)
    quality: str | None = None
    socketCount: int | None = None
    equipLevel: int | None = None

class SecondaryDropOut(BaseModel):
    id: str
    displayName: str

class ProjectionOut(BaseModel):
    freeRollEligible: bool
    msUntilEligible: int
    ticketBalance: int
    pointBalance: int

class StatusOut(ProjectionOut):
    ok: bool = True
    hasPendingRoll: bool
    goldBalance: int = 0

class RollOut(ProjectionOut):
    ok: bool = True
    method: str

class ClaimOut(ProjectionOut):
    ok: bool = True
    rewards: list[dict]
    chosenIndex: int
    chosenReward: dict
    secondaryDrop: SecondaryDropOut | None = None

class TicketCreditIn(BaseModel):
    userId: str = Field(min_length=1)
    amount: int

class ClearPendingIn(BaseModel):
    userId: str = Field(min_length=1)
