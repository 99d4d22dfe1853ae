"""
Errors that stop a scan before it starts
"""


class ScanError(Exception):
    """Base class for scan-level failures"""


class ValidationError(ScanError, ValueError):
    """Invalid subnet or address text"""

    MISSING = "missing"
    MALFORMED = "malformed"
    NON_NUMERIC = "non_numeric"
    OUT_OF_RANGE = "out_of_range"
    RESERVED = "reserved"

    def __init__(self, message: str, reason: str = MALFORMED):
        super().__init__(message)
        self.reason = reason


class ConnectivityError(ScanError):
    """No usable local IPv4 network"""
