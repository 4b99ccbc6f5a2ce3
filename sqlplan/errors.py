"""Errors raised by the SQL layer."""


class SqlError(Exception):
    pass


class InternalError(SqlError):
    pass


class InvalidValueError(SqlError, ValueError):
    pass