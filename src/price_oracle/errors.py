from __future__ import annotations


class PriceOracleError(Exception):
    pass


class SourceUnavailableError(PriceOracleError):
    pass


class PersistenceError(PriceOracleError):
    pass


class InvalidQueryError(PriceOracleError, ValueError):
    pass
