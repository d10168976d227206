# backend/config/constants.py

# -----------------------------
# COMMISSION DEFAULTS (PERCENT)
# -----------------------------

DEFAULT_SELLER_COMMISSION_RATE = 10.0
DEFAULT_DELIVERY_COMMISSION_RATE = 5.0

MIN_COMMISSION_RATE = 0
MAX_COMMISSION_RATE = 100

# -----------------------------
# WITHDRAWALS (INR)
# -----------------------------

DEFAULT_MINIMUM_WITHDRAWAL_AMOUNT = 100

# -----------------------------
# ORDER LIFECYCLE
# -----------------------------

ORDER_STATUS_DELIVERED = "Delivered"

# order statuses that undo already distributed commissions
COMMISSION_REVERSAL_STATUSES = {"Cancelled", "Returned", "Failed", "Rejected"}

ORDER_STATUS_TRANSITIONS = {
    "Received": ["Pending", "Cancelled", "Rejected"],
    "Pending": ["Processed", "Cancelled", "Rejected"],
    "Processed": ["Shipped", "Cancelled", "Rejected"],
    "Shipped": ["Out for Delivery", "Cancelled", "Rejected", "Failed"],
    "Out for Delivery": ["Delivered", "Cancelled", "Rejected", "Failed"],
    "Delivered": ["Returned"],
    "Cancelled": [],
    "Rejected": [],
    "Returned": [],
    "Failed": [],
}
