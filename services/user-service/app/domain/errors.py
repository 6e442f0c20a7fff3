"""Account domain specific exceptions."""


class AccountError(Exception):
    """Base class for account domain errors."""


class AccountNotFoundError(AccountError):
    """Raised when the referenced account does not exist."""


class AccountAlreadyExistsError(AccountError):
    """Raised when a username or email is already registered."""


class InvalidCredentialsError(AccountError):
    """Raised when login fails or a login gate blocks the account."""


class ForbiddenError(AccountError):
    """Raised when the actor role lacks authority for the action or target."""


class InvalidStateError(AccountError):
    """Raised when a transition is requested from a state that does not allow it."""
