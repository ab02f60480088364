"""Global enums — must match DB CHECK constraints exactly.

See alembic/versions/ for the corresponding CHECK constraints.
"""

from enum import Enum


class TargetKind(str, Enum):
    COMPANY = "COMPANY"
    USER = "USER"


class ConnectionStatus(str, Enum):
    """Revenue-source link state, driven by the verification collaborator."""
    DISCONNECTED = "DISCONNECTED"
    CONNECTED = "CONNECTED"


class PeriodState(str, Enum):
    OPEN = "OPEN"
    LOCKED = "LOCKED"
    RESOLVING = "RESOLVING"
    RESOLVED = "RESOLVED"


class VoidReason(str, Enum):
    """Why a period could not be judged; recorded on the period at claim time."""
    DISCONNECTED = "DISCONNECTED"
    NO_MRR = "NO_MRR"
    ZERO_BASELINE = "ZERO_BASELINE"


class BetDirection(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class BetStatus(str, Enum):
    PENDING = "PENDING"
    WON = "WON"
    LOST = "LOST"
    CANCELLED = "CANCELLED"
    VOID = "VOID"


TERMINAL_BET_STATUSES = frozenset(
    {BetStatus.WON, BetStatus.LOST, BetStatus.CANCELLED, BetStatus.VOID}
)


class CoinEntryType(str, Enum):
    # Coin issuance
    GRANT = "GRANT"
    WELCOME_BONUS = "WELCOME_BONUS"
    DAILY_BONUS = "DAILY_BONUS"
    # Escrow
    BET_STAKE = "BET_STAKE"
    BET_CANCEL_REFUND = "BET_CANCEL_REFUND"
    # Settlement
    BET_VOID_REFUND = "BET_VOID_REFUND"
    BET_PAYOUT = "BET_PAYOUT"


ISSUANCE_ENTRY_TYPES = frozenset(
    {CoinEntryType.GRANT, CoinEntryType.WELCOME_BONUS, CoinEntryType.DAILY_BONUS}
)
