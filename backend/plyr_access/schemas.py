from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class TimeRemainingResponse(BaseModel):
    days: int = Field(..., ge=0)
    hours: int = Field(..., ge=0, le=23)
    minutes: int = Field(..., ge=0, le=59)
    seconds: int = Field(..., ge=0, le=59)
    totalHours: int = Field(..., ge=0)
    totalMinutes: int = Field(..., ge=0)
    totalSeconds: int = Field(..., ge=0)


class AccessStatusResponse(BaseModel):
    isInTrial: bool
    daysRemaining: int = Field(..., ge=0)
    timeRemaining: TimeRemainingResponse
    isPaidUser: bool
    canGenerateAllTimeCard: bool
    canShareGrindCard: bool
    canViewWeeklyMonthlyCards: bool
    canAppearOnLeaderboard: bool
    canViewLeaderboard: bool
    canClickIntoProfiles: bool
    canShowTrainerCode: bool
    canShowSocialLinks: bool
    hasFullAccess: bool
    isFreeMode: bool
    trialEndsAt: Optional[datetime] = None
    loading: bool


class CapabilityRow(BaseModel):
    tier: str
    canGenerateAllTimeCard: bool
    canShareGrindCard: bool
    canViewWeeklyMonthlyCards: bool
    canAppearOnLeaderboard: bool
    canViewLeaderboard: bool
    canClickIntoProfiles: bool
    canShowTrainerCode: bool
    canShowSocialLinks: bool


class AccessPolicyResponse(BaseModel):
    trialWindowDays: int
    refreshPublishSeconds: float
    isFreeMode: bool
    tiers: list[CapabilityRow]
