from pydantic import BaseModel, Field, EmailStr
from typing import List, Optional

from models import CollectionTask

# --- AUTH ---
class SignupRequest(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=80)
    password: str = Field(min_length=8)

class AuthRequest(BaseModel):
    email: EmailStr
    password: str

# --- REPORTS ---
class ReportWasteRequest(BaseModel):
    location: str = Field(min_length=1, max_length=200)
    wasteType: str = Field(min_length=1, max_length=80)
    amount: str = Field(min_length=1, max_length=20)

# --- COLLECTION ---
class StatusChangeRequest(BaseModel):
    status: str

class VerifyImageRequest(BaseModel):
    image: str  # base64 or data URL

class TaskView(CollectionTask):
    availableAction: Optional[str] = None

class TaskPageResponse(BaseModel):
    tasks: List[TaskView]
    page: int
    pageCount: int
    totalTasks: int
    hasPrevious: bool
    hasNext: bool

# --- USERS ---
class ProfileResponse(BaseModel):
    userId: int
    email: str
    name: str
    balance: int = 0
