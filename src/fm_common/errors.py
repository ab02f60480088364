"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth / caller identity
  2xxx: Coins
  3xxx: Forecasting targets (settings registry)
  4xxx: Periods
  5xxx: Bets
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired token", 401)


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1006, "Admin privileges required", 403)


class CollaboratorAuthError(AppError):
    def __init__(self) -> None:
        super().__init__(1007, "Invalid collaborator token", 401)


# --- 2xxx: Coins ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required} coins, available {available} coins",
            422,
        )


class BonusAlreadyClaimedError(AppError):
    def __init__(self, bonus: str) -> None:
        super().__init__(2002, f"{bonus} already claimed", 409)


class InvalidAmountError(AppError):
    def __init__(self, amount: int) -> None:
        super().__init__(2003, f"Amount must be positive, got {amount}", 422)


# --- 3xxx: Targets ---

class NotConfiguredError(AppError):
    def __init__(self, target_id: str) -> None:
        super().__init__(3001, f"Forecasting is not configured for target {target_id}", 404)


class NotTargetOwnerError(AppError):
    def __init__(self, target_id: str) -> None:
        super().__init__(3002, f"Only the owner may change target {target_id}", 403)


class InvalidBoundsError(AppError):
    def __init__(self, min_stake: int, max_stake: int, ceiling: int) -> None:
        super().__init__(
            3003,
            f"Invalid stake bounds [{min_stake}, {max_stake}]: "
            f"require 1 <= min <= max <= {ceiling}",
            422,
        )


class ForecastingUnavailableError(AppError):
    def __init__(self, target_id: str) -> None:
        super().__init__(
            3004,
            f"Forecasting is not available for target {target_id} "
            "(inactive or revenue source disconnected)",
            422,
        )


# --- 4xxx: Periods ---

class PeriodNotFoundError(AppError):
    def __init__(self, period_id: str) -> None:
        super().__init__(4001, f"Period not found: {period_id}", 404)


class AlreadyOpenError(AppError):
    def __init__(self, target_id: str) -> None:
        super().__init__(4002, f"Target {target_id} already has an open period", 409)


class NoBaselineError(AppError):
    def __init__(self, target_id: str) -> None:
        super().__init__(4003, f"No verified MRR to use as baseline for target {target_id}", 422)


class AlreadyClaimedError(AppError):
    def __init__(self, period_id: str) -> None:
        super().__init__(4004, f"Period {period_id} is not LOCKED; already claimed", 409)


class NoOpenPeriodError(AppError):
    def __init__(self, target_id: str) -> None:
        super().__init__(4005, f"No open period for target {target_id}", 422)


class PeriodLockedError(AppError):
    def __init__(self, period_id: str) -> None:
        super().__init__(4006, f"Period {period_id} is locked", 409)


# --- 5xxx: Bets ---

class StakeOutOfRangeError(AppError):
    def __init__(self, stake: int, min_stake: int, max_stake: int) -> None:
        super().__init__(
            5001, f"Stake {stake} outside allowed range [{min_stake}, {max_stake}]", 422
        )


class InvalidTargetPercentageError(AppError):
    def __init__(self, target_bps: int) -> None:
        super().__init__(5002, f"Target percentage out of range: {target_bps} bps", 422)


class DuplicateBetError(AppError):
    def __init__(self, target_id: str) -> None:
        super().__init__(5003, f"A pending bet on target {target_id} already exists", 409)


class DuplicateClientBetIdError(AppError):
    def __init__(self, client_bet_id: str) -> None:
        super().__init__(5004, f"Duplicate client_bet_id: {client_bet_id}", 409)


class BetNotFoundError(AppError):
    def __init__(self, bet_id: str) -> None:
        super().__init__(5005, f"Bet not found: {bet_id}", 404)


class NotBetOwnerError(AppError):
    def __init__(self, bet_id: str) -> None:
        super().__init__(5006, f"Bet {bet_id} belongs to another user", 403)


class BetNotCancellableError(AppError):
    def __init__(self, bet_id: str, status: str) -> None:
        super().__init__(5007, f"Bet {bet_id} in status {status} cannot be cancelled", 409)


class SelfBetError(AppError):
    def __init__(self) -> None:
        super().__init__(5008, "You cannot bet on a target you own", 422)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class IntegrityViolationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(9003, f"Integrity violation: {detail}", 500)
