"""
merkledrop/protocol/payout.py

Proportional payout arithmetic.

    payout = floor(total_amount * stake / total_stake)

Python integers are unbounded, so the intermediate product never overflows.
Flooring means the payouts of a round can never add up to more than its
total; the remainder (dust) stays unclaimed and rolls into the next round.
"""

from ..errors import AirdropArithmeticError


def compute_claim(stake: int, total_stake: int, total_amount: int) -> int:
    """
    Calculate a participant's share of the round total.

    Examples:
        stake=100, total_stake=400, total_amount=800 -> 200
        stake=1, total_stake=3, total_amount=10 -> 3 (1 unit of dust)

    Args:
        stake: Participant's stake from the snapshot
        total_stake: Sum of all stakes in the snapshot
        total_amount: Reward available in the round

    Returns:
        Payout in reward token units

    Raises:
        AirdropArithmeticError: If total_stake is zero or any input is negative
    """
    if total_stake == 0:
        raise AirdropArithmeticError("Total stake is zero")
    if stake < 0 or total_stake < 0 or total_amount < 0:
        raise AirdropArithmeticError("Payout inputs must be non-negative")
    return total_amount * stake // total_stake
