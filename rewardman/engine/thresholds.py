"""Gift card threshold rule."""


def multiples(points: int, threshold: int) -> int:
    """floor(points / threshold); zero when issuance is disabled."""
    if threshold <= 0 or points <= 0:
        return 0
    return points // threshold


def cards_to_issue(old_points: int, new_points: int, threshold: int) -> int:
    """
    Gift cards owed for a transition old_points -> new_points.

    floor(new/t) - floor(old/t), never negative. A single award crossing
    several multiples owes several cards; a decrease owes none.
    """
    return max(0, multiples(new_points, threshold) - multiples(old_points, threshold))


def missing_sequences(points: int, threshold: int, issued: set[int]) -> list[int]:
    """
    Threshold multiples 1..floor(points/t) with no card yet.

    Used to re-derive cards from ledger state after a failed issuance.
    """
    return [seq for seq in range(1, multiples(points, threshold) + 1) if seq not in issued]
