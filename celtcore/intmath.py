"""Branch-free style integer helpers used by the entropy coder."""


def ec_maxi(a: int, b: int) -> int:
    """Maximum of two integers."""
    return a - ((a - b) & -int(b > a))


def ec_mini(a: int, b: int) -> int:
    """Minimum of two integers."""
    return a + ((b - a) & -int(b < a))


def ec_signi(a: int) -> int:
    """Sign of an integer: -1, 0 or 1."""
    return int(a > 0) - int(a < 0)


def ec_signmask(a: int) -> int:
    """-1 (all bits set) when `a` is negative, otherwise 0."""
    return -int(a < 0)


def ec_clampi(a: int, b: int, c: int) -> int:
    """Clamp `b` into [a, c]; the lower bound wins when a > c."""
    return ec_maxi(a, ec_mini(b, c))


def ec_ilog(v: int) -> int:
    """Number of bits needed to represent an unsigned 32-bit value (0 for 0)."""
    if v < 0 or v > 0xFFFFFFFF:
        raise ValueError(f"value {v} is not an unsigned 32-bit integer")
    return int(v).bit_length()