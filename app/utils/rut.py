"""
DTE-CL Bridge — RUT Utilities
Validation and formatting of the Chilean taxpayer identifier (RUT).
"""

import re

_NON_RUT_CHARS = re.compile(r"[^0-9kK]")

MIN_RUT_LENGTH = 7


def clean_rut(rut: str | None) -> str:
    """Strip separators (dots, hyphens, spaces) and uppercase the check character."""
    if not rut:
        return ""
    return _NON_RUT_CHARS.sub("", rut).upper()


def compute_dv(body: str) -> str:
    """
    Compute the modulus-11 check character for a RUT body.
    Weights 2..7 cycle from the least significant digit.
    11 → "0", 10 → "K".
    """
    total = 0
    weight = 2
    for digit in reversed(body):
        total += int(digit) * weight
        weight = 2 if weight == 7 else weight + 1
    dv = 11 - (total % 11)
    if dv == 11:
        return "0"
    if dv == 10:
        return "K"
    return str(dv)


def validate_rut(rut: str | None) -> bool:
    """
    RUT checksum validation.
    Accepts "12.345.678-5", "12345678-5" or "123456785".
    """
    cleaned = clean_rut(rut)
    if len(cleaned) < MIN_RUT_LENGTH:
        return False
    body, dv = cleaned[:-1], cleaned[-1]
    if not body.isdigit():
        return False
    return compute_dv(body) == dv


def format_rut(rut: str) -> str:
    """Format a RUT as XX.XXX.XXX-D."""
    cleaned = clean_rut(rut)
    if len(cleaned) < 2:
        return cleaned
    body, dv = cleaned[:-1], cleaned[-1]
    groups = []
    while body:
        groups.insert(0, body[-3:])
        body = body[:-3]
    return f"{'.'.join(groups)}-{dv}"
