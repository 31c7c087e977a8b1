"""
Centralized constants for scheduling, carts and the scheduler.

Change job IDs, formats or enumerations here instead of scattering literals across
services and routes. Tunable durations (expiry, timeouts, horizon) live in config.Settings.
"""
import re
from datetime import date

# Scheduler job IDs (must match ids used in main.py add_job)
CART_EXPIRY_JOB_ID = "cart_expiry_sweep"
PAYMENT_RECOVERY_JOB_ID = "payment_recovery_sweep"
TEMPLATE_HORIZON_JOB_ID = "template_horizon_extend"

# HH:MM, 24h clock
TIME_PATTERN = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")

# "00:00" as a window end means end of day
END_OF_DAY_TIME = "00:00"
END_OF_DAY_MINUTE = 1439

# Sunday-first weekday numbering (0=Sunday .. 6=Saturday)
WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

# Upper cap for open-ended validity windows; the horizon setting usually cuts earlier
FAR_FUTURE_DATE = date(2100, 1, 1)

# Cart / payment enumerations
CART_PENDING = "pending"
CART_CONFIRMED = "confirmed"
CART_CANCELLED = "cancelled"
CART_STATUSES = (CART_PENDING, CART_CONFIRMED, CART_CANCELLED)

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"
PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PAID, PAYMENT_FAILED, PAYMENT_REFUNDED)

PAYMENT_METHODS = ("credit_card", "paypal", "crypto", "edahabia", "cib")

# Roles that may manage templates/instances ("sous admin" is scoped to one park)
ROLE_ADMIN = "admin"
ROLE_PARK_ADMIN = "sous admin"
ADMIN_ROLES = (ROLE_ADMIN, ROLE_PARK_ADMIN)

TICKET_CODE_PREFIX = "FA-"
