from .base import Base
from .user import UserModel
from .event import EventModel
from .payout import PayoutModel
from .role import AdminRoleModel
from .audit_log import AuditLog

__all__ = [
    "Base",
    "UserModel",
    "EventModel",
    "PayoutModel",
    "AdminRoleModel",
    "AuditLog",
]
