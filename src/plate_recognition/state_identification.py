# Malaysian registration prefixes
STATE_PREFIXES = {
    "A": "Perak",
    "B": "Selangor",
    "C": "Pahang",
    "D": "Kelantan",
    "J": "Johor",
    "V": "Kuala Lumpur",
    "W": "Kuala Lumpur",
    "P": "Penang",
    "S": "Sabah",
    "Q": "Sarawak",
    "R": "Perlis",
    "M": "Melaka",
    "N": "Negeri Sembilan",
    "F": "Putrajaya",
    "T": "Terengganu",
    "K": "Kedah",
}

MILITARY_PREFIX = "Z"
UNKNOWN_STATE = "Unknown"


def identify_state(plate_text: str) -> str:
    """Map the leading letter of a plate to its state"""
    if not plate_text:
        return UNKNOWN_STATE
    prefix = plate_text[0].upper()
    if prefix in STATE_PREFIXES:
        return STATE_PREFIXES[prefix]
    if prefix == MILITARY_PREFIX:
        return "Military"
    return UNKNOWN_STATE
