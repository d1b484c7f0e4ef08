from skyline.models.user import User
from skyline.models.celebrity import Celebrity
from skyline.models.booking import Booking
from skyline.models.deposit import Deposit
from skyline.models.ledger_entry import LedgerEntry
from skyline.models.notification import Notification
from skyline.models.campaign import Campaign
from skyline.models.message import Message
from skyline.models.audit_log import AuditLog
from skyline.models.setting import Setting

__all__ = [
    "User",
    "Celebrity",
    "Booking",
    "Deposit",
    "LedgerEntry",
    "Notification",
    "Campaign",
    "Message",
    "AuditLog",
    "Setting",
]
