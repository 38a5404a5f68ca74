from __future__ import annotations

from typing import Any, Dict, Iterable, List, Literal, Tuple

BLOOD_GROUPS = ["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]
UNIVERSAL_DONOR = "O-"
UNIVERSAL_ACCEPTOR = "AB+"

MatchType = Literal["exact", "universal_donor", "universal_match", "compatible"]
MatchMode = Literal["exact", "compatible"]

# recipient group -> donor groups it can receive from
RECEIVES_FROM: Dict[str, List[str]] = {
    "O-": ["O-"],
    "O+": ["O-", "O+"],
    "A-": ["O-", "A-"],
    "A+": ["O-", "O+", "A-", "A+"],
    "B-": ["O-", "B-"],
    "B+": ["O-", "O+", "B-", "B+"],
    "AB-": ["O-", "A-", "B-", "AB-"],
    "AB+": ["O-", "O+", "A-", "A+", "B-", "B+", "AB-", "AB+"],
}

RANK_EXACT = 0
RANK_UNIVERSAL = 1
RANK_COMPATIBLE = 2


def _validate(blood_group: str) -> str:
    if blood_group not in RECEIVES_FROM:
        raise ValueError(f"Unknown blood group: {blood_group}")
    return blood_group


def is_compatible(donor_group: str, requested_group: str) -> bool:
    return donor_group in RECEIVES_FROM.get(requested_group, [])


def compatible_groups(requested_group: str, mode: MatchMode = "compatible") -> List[Tuple[str, int, MatchType]]:
    """
    Donor blood groups that can fulfil a request, best first.

    Returns ``(group, rank, match_type)`` tuples:
        rank 0  the requested group itself ("exact")
        rank 1  every other group when AB+ is requested ("universal_match"),
                otherwise O- ("universal_donor")
        rank 2  the remaining ABO/Rh compatible groups ("compatible")

    In ``exact`` mode only the rank 0 entry is returned.
    """
    requested_group = _validate(requested_group)
    groups: List[Tuple[str, int, MatchType]] = [(requested_group, RANK_EXACT, "exact")]
    if mode == "exact":
        return groups

    seen = {requested_group}
    if requested_group == UNIVERSAL_ACCEPTOR:
        for group in BLOOD_GROUPS:
            if group not in seen:
                groups.append((group, RANK_UNIVERSAL, "universal_match"))
                seen.add(group)
    elif UNIVERSAL_DONOR not in seen:
        groups.append((UNIVERSAL_DONOR, RANK_UNIVERSAL, "universal_donor"))
        seen.add(UNIVERSAL_DONOR)

    for group in RECEIVES_FROM[requested_group]:
        if group not in seen:
            groups.append((group, RANK_COMPATIBLE, "compatible"))
            seen.add(group)
    return groups


def rank_donors(
    requested_group: str,
    donors: Iterable[Dict[str, Any]],
    mode: MatchMode = "compatible",
) -> List[Dict[str, Any]]:
    """Attach ``match_rank``/``match_type`` to compatible donors and sort by rank.

    Each donor appears at most once; incompatible donors are dropped. The sort
    is stable so donors keep their incoming order within a rank.
    """
    ranking = {group: (rank, match_type) for group, rank, match_type in compatible_groups(requested_group, mode)}
    ranked: List[Dict[str, Any]] = []
    seen_ids = set()
    for donor in donors:
        key = donor.get("_id")
        if key is not None:
            if key in seen_ids:
                continue
            seen_ids.add(key)
        entry = ranking.get(donor.get("blood_group"))
        if entry is None:
            continue
        rank, match_type = entry
        ranked.append({**donor, "match_rank": rank, "match_type": match_type})
    ranked.sort(key=lambda item: item["match_rank"])
    return ranked
