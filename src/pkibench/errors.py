from __future__ import annotations


class PkiBenchError(Exception):
    pass


class ConfigError(PkiBenchError):
    pass


class PayloadError(PkiBenchError):
    pass
