"""
Checked integer arithmetic for persisted u64/i64 fields.

Python integers never overflow, so every ledger update goes through these
helpers to keep values inside the width of the stored field.
"""
from protocol.config.params import U64_MAX, I64_MIN, I64_MAX
from protocol.types.common import EngineError, ErrorCode


def require_u64(value: int, name: str = "amount") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0 or value > U64_MAX:
        raise EngineError(ErrorCode.INVALID_AMOUNT, f"{name}={value!r}")
    return value


def require_positive(value: int, name: str = "amount") -> int:
    require_u64(value, name)
    if value == 0:
        raise EngineError(ErrorCode.INVALID_AMOUNT, f"{name} must be greater than zero")
    return value


def checked_add(a: int, b: int) -> int:
    result = a + b
    if result > U64_MAX:
        raise EngineError(ErrorCode.OVERFLOW)
    if result < 0:
        raise EngineError(ErrorCode.UNDERFLOW)
    return result


def checked_sub(a: int, b: int) -> int:
    result = a - b
    if result < 0:
        raise EngineError(ErrorCode.UNDERFLOW)
    return result


def checked_mul(a: int, b: int) -> int:
    result = a * b
    if result > U64_MAX:
        raise EngineError(ErrorCode.OVERFLOW)
    return result


def checked_add_i64(a: int, b: int) -> int:
    result = a + b
    if result > I64_MAX:
        raise EngineError(ErrorCode.OVERFLOW)
    if result < I64_MIN:
        raise EngineError(ErrorCode.UNDERFLOW)
    return result
