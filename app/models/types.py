"""
Standard type definitions for database models.

Provides consistent types for monetary and score fields across all models.
"""

from sqlalchemy import DECIMAL

# Standard money type for amounts, balances, rewards
# Precision: 18 digits total, 8 after decimal point
# Suitable for: entry values, cash balances, payouts, pool balances
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Queue priority score
# Precision: 18 digits total, 4 after decimal point
# Suitable for: wait-hour weights (x2), reentry weights (x1.5), referral points
ScoreType = DECIMAL(18, 4)
