from liubai.models.user import User
from liubai.models.check_in import EnergyCheckIn
from liubai.models.daily_summary import DailyEnergySummary
from liubai.models.coach_message import CoachMessage, TriggerType
from liubai.models.refresh_token import RefreshToken

__all__ = [
    "User",
    "EnergyCheckIn",
    "DailyEnergySummary",
    "CoachMessage",
    "TriggerType",
    "RefreshToken",
]
