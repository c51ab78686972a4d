"""Streak model"""
from datetime import date
from typing import Optional

from pydantic import BaseModel


class StreakState(BaseModel):
    """Consecutive-day activity count for one user"""
    user_id: str
    consecutive_days: int = 0
    best_streak: int = 0
    last_active_day: Optional[date] = None
