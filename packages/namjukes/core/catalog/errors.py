"""Errors raised by catalog backends."""


class PersistenceError(RuntimeError):
    """A catalog read or write failed."""
