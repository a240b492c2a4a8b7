"""
SQLAlchemy models for members, waivers and check-ins.
"""

from src.models.base import Base, TimeStampedModel, UTCDateTime, UUIDModel
from src.models.check_in import CheckInRecord
from src.models.member import MemberRecord
from src.models.waiver import WaiverRecord

__all__ = [
    "Base",
    "TimeStampedModel",
    "UTCDateTime",
    "UUIDModel",
    "MemberRecord",
    "WaiverRecord",
    "CheckInRecord",
]
