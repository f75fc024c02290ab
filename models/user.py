#models/user.py
from __future__ import annotations
from pydantic import BaseModel, Field
from typing import List, Optional


class CaixinhaSummary(BaseModel):
    id: str
    name: str = ""
    balance: float = 0.0


class UserContext(BaseModel):
    """Snapshot of the sender used to personalise AI replies and drive escalation heuristics."""
    user_id: str
    first_name: Optional[str] = None
    email: str = ""
    photo: str = ""
    roles: List[str] = Field(default_factory=list)
    caixinhas: List[CaixinhaSummary] = Field(default_factory=list)

    @property
    def total_balance(self) -> float:
        return sum(c.balance or 0 for c in self.caixinhas)

    def has_role(self, role: str) -> bool:
        return role in self.roles
