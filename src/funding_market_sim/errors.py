"""Typed errors raised by the market core.

Error code ranges:
  1xxx: Accounts / permissions
  2xxx: Ledger (balance, shares)
  3xxx: Market lifecycle
  4xxx: Request validation

Every error is raised before any state is mutated. The calling layer turns
the code and context attributes into a user-facing message.
"""


class MarketError(Exception):
    """Base error for all market operations."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


# --- 1xxx: Accounts ---

class UnauthorizedError(MarketError):
    def __init__(self, account_id: str, operation: str) -> None:
        self.account_id = account_id
        self.operation = operation
        super().__init__(1001, f"Account {account_id} is not allowed to {operation}")


class AccountNotFoundError(MarketError):
    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        super().__init__(1002, f"Account not found: {account_id}")


# --- 2xxx: Ledger ---

class InsufficientBalanceError(MarketError):
    def __init__(self, account_id: str, required: float, available: float) -> None:
        self.account_id = account_id
        self.required = required
        self.available = available
        super().__init__(
            2001,
            f"Insufficient balance for {account_id}: required {required:.6f}, available {available:.6f}",
        )


class InsufficientSharesError(MarketError):
    def __init__(
        self,
        account_id: str,
        project_id: str,
        scenario: str,
        side: str,
        requested: float,
        held: float,
    ) -> None:
        self.account_id = account_id
        self.project_id = project_id
        self.scenario = scenario
        self.side = side
        self.requested = requested
        self.held = held
        super().__init__(
            2002,
            f"Insufficient {side} shares in {project_id}/{scenario} for {account_id}: "
            f"requested {requested}, held {held}",
        )


# --- 3xxx: Lifecycle ---

class MarketFrozenError(MarketError):
    def __init__(self, project_id: str, scenario: str) -> None:
        self.project_id = project_id
        self.scenario = scenario
        super().__init__(3001, f"Market {project_id}/{scenario} is frozen")


class MarketClosedError(MarketError):
    def __init__(self, phase: str) -> None:
        self.phase = phase
        super().__init__(3002, f"Market is closed for trading in phase {phase}")


class InvalidPhaseTransitionError(MarketError):
    def __init__(self, operation: str, phase: str) -> None:
        self.operation = operation
        self.phase = phase
        super().__init__(3003, f"Cannot {operation} while market is {phase}")


class SnapshotNotFoundError(MarketError):
    def __init__(self, index: int, available: int) -> None:
        self.index = index
        self.available = available
        super().__init__(3004, f"Snapshot {index} not found ({available} recorded)")


class UnknownProjectError(MarketError):
    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(3005, f"Unknown project: {project_id}")


# --- 4xxx: Validation ---

class InvalidAmountError(MarketError):
    def __init__(self, field: str, value: float) -> None:
        self.field = field
        self.value = value
        super().__init__(4001, f"{field} must be a positive finite number, got {value}")


class InvalidRequestError(MarketError):
    def __init__(self, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(4002, f"Invalid {field}: {value!r}")
