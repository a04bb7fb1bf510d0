"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth
  2xxx: Price oracle
  3xxx: Round lifecycle
  4xxx: Ledger / transaction submission
  5xxx: Claims
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        detail: str | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.detail = detail
        super().__init__(message)


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired operator token", 401)


# --- 2xxx: Price oracle ---

class OracleUnavailableError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2001, f"Price oracle unavailable: {detail}", 502, detail)


class OracleMalformedError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2002, f"Malformed price oracle response: {detail}", 502, detail)


class OraclePriceInvalidError(AppError):
    def __init__(self, price: object) -> None:
        super().__init__(2003, f"Invalid oracle price: {price}", 502)


# --- 3xxx: Round lifecycle ---

class NoRoundsExistError(AppError):
    def __init__(self) -> None:
        super().__init__(3001, "No rounds exist: start the first round manually", 400)


class RoundNotFoundError(AppError):
    def __init__(self, round_id: int) -> None:
        super().__init__(3002, f"Round not found: {round_id}", 404)


class RoundNotExpiredError(AppError):
    def __init__(self, round_id: int, remaining_secs: int) -> None:
        super().__init__(
            3003, f"Round {round_id} has not expired yet ({remaining_secs}s remaining)", 422
        )


class RoundAlreadySettledError(AppError):
    """Non-fatal: callers treat an already settled round as success-equivalent."""

    def __init__(self, round_id: int) -> None:
        super().__init__(3004, f"Round {round_id} is already settled", 409)


class RoundStillActiveError(AppError):
    def __init__(self, round_id: int) -> None:
        super().__init__(3005, f"Round {round_id} is not settled yet", 409)


# --- 4xxx: Ledger ---

class StaleSequenceNumberError(AppError):
    def __init__(self, attempts: int, detail: str) -> None:
        super().__init__(
            4001,
            f"Sequence number still stale after {attempts} attempts",
            503,
            detail,
        )


class LedgerRejectedError(AppError):
    """Ledger refused or failed a transaction. ``detail`` is the node's message verbatim."""

    def __init__(self, detail: str) -> None:
        super().__init__(4002, f"Ledger rejected transaction: {detail}", 502, detail)


class ConfirmationTimeoutError(AppError):
    def __init__(self, transaction_hash: str, timeout_secs: float) -> None:
        super().__init__(
            4003,
            f"Transaction {transaction_hash} not confirmed within {timeout_secs:g}s;"
            " outcome unknown, check the ledger before resubmitting",
            504,
            transaction_hash,
        )


class KeeperNotConfiguredError(AppError):
    def __init__(self) -> None:
        super().__init__(4004, "Keeper private key not configured", 400)


class LedgerUnavailableError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4005, f"Ledger query failed: {detail}", 502, detail)


# --- 5xxx: Claims ---

class NoWinningsError(AppError):
    """HTTP rendering of the NO_WINNINGS claim outcome."""

    def __init__(self, round_id: int, user_address: str) -> None:
        super().__init__(
            5001, f"No winnings to claim for {user_address} in round {round_id}", 400
        )


class RoundNotSettledError(AppError):
    def __init__(self, round_id: int) -> None:
        super().__init__(5002, f"Round {round_id} is not settled yet", 422)


class BetNotFoundError(AppError):
    def __init__(self, round_id: int, user_address: str) -> None:
        super().__init__(5003, f"No bet from {user_address} in round {round_id}", 404)


class AlreadyClaimedError(AppError):
    def __init__(self, round_id: int, user_address: str) -> None:
        super().__init__(
            5004, f"Winnings already claimed for {user_address} in round {round_id}", 409
        )


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)

