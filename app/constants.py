"""
Centralized magic constants organized by domain.

All hardcoded numbers/strings used throughout the lifecycle code should be
defined here with documentation explaining their purpose.
"""


class RetentionDefaults:
    """Storage durations granted by each purchase."""

    EVIDENCE_PACK_MONTHS = 12           # checkin / moveout / bundle
    SHORT_STAY_DAYS = 30                # counted from departure date
    GRACE_PERIOD_DAYS = 30              # pending_deletion -> purge
    DEFAULT_STORAGE_YEARS = 1
    MAX_EXTENSION_YEARS = 3             # largest storage extension sold


class ReminderThresholds:
    """
    Retention reminder levels by days remaining.

    Level N fires when days remaining drops to or below LEVEL_N_DAYS.
    """

    LEVEL_1_DAYS = 60
    LEVEL_2_DAYS = 30
    LEVEL_3_DAYS = 7
    MAX_LEVEL = 3

    # Level at which expiry_notified_at / final_expiry_notified_at get stamped
    EXPIRY_NOTICE_LEVEL = 2
    FINAL_NOTICE_LEVEL = 3


class DeadlineDefaults:
    """Lease-deadline reminder defaults."""

    OFFSETS = (7, 1, 0)                 # days before the deadline


class ScanDefaults:
    """Transition scan batching."""

    BATCH_SIZE = 500
    PROGRESS_LOG_EVERY = 50


class WebhookDefaults:
    """Payment webhook verification."""

    SIGNATURE_HEADER = "X-Payment-Signature"
    TOLERANCE_SECONDS = 300             # reject replays older than 5 min
    COMPLETED_EVENT_TYPE = "checkout.session.completed"

