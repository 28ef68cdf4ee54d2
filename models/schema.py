# Centralized collection names to prevent drift.

COL_PRODUCTS = "products"
COL_CATEGORIES = "categories"
COL_VENDORS = "vendors"
COL_ORDERS = "orders"
COL_INVENTORY = "inventory"
COL_NOTIFICATIONS = "notifications"
COL_AUDIT_LOGS = "audit_logs"
COL_REPORTS = "reports"

# Separate from live notifications: toast/history feed with its own cap.
COL_NOTIFICATION_HISTORY = "notification_history"

# backups/{backup_<millis>} holds snapshot metadata only, never the data.
COL_BACKUPS = "backups"

# users/{uid} role profiles keyed by Firebase uid.
COL_USERS = "users"

# Collections included in a full backup, in snapshot order.
BACKUP_COLLECTIONS = (
    COL_PRODUCTS,
    COL_CATEGORIES,
    COL_VENDORS,
    COL_ORDERS,
    COL_INVENTORY,
    COL_NOTIFICATIONS,
    COL_AUDIT_LOGS,
    COL_REPORTS,
)

# Order lifecycle
ORDER_PENDING = "pending"
ORDER_ORDERED = "ordered"
ORDER_RECEIVED = "received"
ORDER_STATUSES = (ORDER_PENDING, ORDER_ORDERED, ORDER_RECEIVED)

ORDER_SEASONS = ("july-4th", "new-years", "christmas", "halloween", "general")

# Notification types
NOTIFY_LOW_INVENTORY = "low_inventory"
NOTIFY_ORDER_UPDATE = "order_update"
NOTIFY_GENERAL = "general"
NOTIFICATION_TYPES = (NOTIFY_LOW_INVENTORY, NOTIFY_ORDER_UPDATE, NOTIFY_GENERAL)

# Audit actions
AUDIT_CREATE = "create"
AUDIT_UPDATE = "update"
AUDIT_DELETE = "delete"
AUDIT_VIEW = "view"
AUDIT_RESTORE = "restore"
AUDIT_ACTIONS = (AUDIT_CREATE, AUDIT_UPDATE, AUDIT_DELETE, AUDIT_VIEW, AUDIT_RESTORE)
