from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .provider import Provider
from .availability import Availability
from .service import Service
from .booking import Booking, BookingStatus
from .schedule_lock import ScheduleLock
from .transaction import Transaction, TransactionStatus
