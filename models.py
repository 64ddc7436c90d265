from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator


class TaskStatus:
    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    VERIFIED = 'verified'

    ALL = (PENDING, IN_PROGRESS, COMPLETED, VERIFIED)


class CollectionTask(BaseModel):
    id: int
    location: str
    wasteType: str
    amount: str  # kilograms, kept as the reporter typed it
    status: str = TaskStatus.PENDING
    date: str
    collectorId: Optional[int] = None

    @field_validator('status')
    @classmethod
    def _known_status(cls, value):
        if value not in TaskStatus.ALL:
            raise ValueError(f"Unknown task status: {value}")
        return value

    @field_validator('amount', mode='before')
    @classmethod
    def _amount_as_string(cls, value):
        # Firestore hands numbers back as int/float
        if isinstance(value, (int, float)):
            return str(value)
        return value


class VerificationJudgment(BaseModel):
    """The Oracle's best-effort reading of one verification photo."""
    wasteType: str
    quantity: str
    confidence: float = Field(ge=0.0, le=1.0)

    @field_validator('quantity', mode='before')
    @classmethod
    def _quantity_as_string(cls, value):
        if isinstance(value, (int, float)):
            return str(value)
        return value


class Reward(BaseModel):
    userId: int
    amount: int


class CollectedWaste(BaseModel):
    taskId: int
    userId: int
    collectionDate: str
    wasteType: str
    quantity: str
    confidence: float
    wasteTypeMatch: bool
    quantityMatch: bool


class User(BaseModel):
    id: int
    email: str
    name: str
    passwordHash: Optional[str] = None
    balance: int = 0


class ImpactData(BaseModel):
    wasteCollected: float = 0.0
    reportsSubmitted: int = 0
    tokensEarned: int = 0
    co2Offset: float = 0.0


class VerificationOutcome(BaseModel):
    """
    Result of one verification attempt. Failures are values, not exceptions:
    `error_code` names the failure kind and `details` carries the data the
    user-facing message was built from.
    """
    success: bool
    message: str
    error_code: Optional[str] = None
    reward: Optional[int] = None
    judgment: Optional[VerificationJudgment] = None
    wasteTypeMatch: Optional[bool] = None
    quantityMatch: Optional[bool] = None
    confidence: Optional[float] = None
    failedChecks: List[str] = []
    details: Dict = {}
