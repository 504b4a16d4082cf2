from enum import Enum


class PeriodStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"
    LOCKED = "locked"


class PeriodType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class SnapshotType(str, Enum):
    BEGINNING = "beginning"
    ENDING = "ending"


class TransactionType(str, Enum):
    PURCHASE = "purchase"
    USAGE = "usage"
    WASTE = "waste"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CalculationMethod(str, Enum):
    RECIPE_BASED = "recipe_based"
    HISTORICAL_AVERAGE = "historical_average"
    MANUAL = "manual"
    AI_PREDICTED = "ai_predicted"


class InvestigationStatus(str, Enum):
    PENDING = "pending"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    ACCEPTED = "accepted"
    ESCALATED = "escalated"


class UploadType(str, Enum):
    INVENTORY = "inventory"
    SALES = "sales"


class UploadStatus(str, Enum):
    UPLOADED = "uploaded"
    VALIDATED = "validated"
    FAILED = "failed"
    TRANSFORMED = "transformed"


class TransformStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    UNMATCHED = "unmatched"


PERIOD_BLOCKING_STATUSES = (PeriodStatus.ACTIVE, PeriodStatus.CLOSED, PeriodStatus.LOCKED)
HISTORY_STATUSES = (PeriodStatus.CLOSED, PeriodStatus.LOCKED)
CSV_PROVIDER = "csv"
