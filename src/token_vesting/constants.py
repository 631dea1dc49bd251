"""
Token Vesting Constants

Time and fixed-point constants shared by the evaluator, the controller and
the display helpers.

NOTE: Values marked [DETERMINISTIC] feed the vesting arithmetic. Changing
them changes the output of every evaluation for existing schedules.
"""

from typing import Final

# =============================================================================
# TIME CONSTANTS (in seconds)
# =============================================================================

SECONDS_PER_MINUTE: Final[int] = 60
SECONDS_PER_HOUR: Final[int] = 3600  # 60 * 60
SECONDS_PER_DAY: Final[int] = 86400  # 60 * 60 * 24
SECONDS_PER_YEAR: Final[int] = 31536000  # 365 days

# =============================================================================
# FIXED-POINT CONSTANTS [DETERMINISTIC]
# =============================================================================

# Basis points (1 basis point = 0.01%)
BASIS_POINTS_DIVISOR: Final[int] = 10000  # 10000 bps = 100%
MAX_BASIS_POINTS: Final[int] = 10000
BASIS_POINTS_PER_PERCENT: Final[int] = 100

# =============================================================================
# TOKEN DISPLAY
# =============================================================================

# Base units per whole token are 10 ** decimals (display only)
DEFAULT_TOKEN_DECIMALS: Final[int] = 9
MAX_TOKEN_DECIMALS: Final[int] = 18

# =============================================================================
# LEDGER DEFAULTS
# =============================================================================

DEFAULT_PROGRAM_ID: Final[str] = "vest111111111111111111111111111111111111111"
DEFAULT_NETWORK: Final[str] = "testnet"
