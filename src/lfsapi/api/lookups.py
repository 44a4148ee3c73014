"""Labels for the numeric codes the LFS API returns."""

from __future__ import annotations

VEHICLE_CLASS_TYPES: dict[int, str] = {
    0: "Object",
    1: "Touring car",
    2: "Saloon car",
    3: "Buggy",
    4: "Formula",
    5: "GT",
    6: "Hire kart",
    7: "Kart, 100cc",
    8: "Kart, 125cc",
    9: "Kart, 250cc",
    10: "Formula 1",
    11: "Formula SAE",
    12: "Bike",
    13: "Van",
    14: "Truck",
}

VEHICLE_ICE_LAYOUT_TYPES: dict[int, str] = {
    0: "Inline",
    1: "Flat",
    2: "V",
}

VEHICLE_DRIVE_TYPES: dict[int, str] = {
    0: "None",
    1: "Rear wheel drive",
    2: "Front wheel drive",
    3: "All wheel drive",
}

VEHICLE_SHIFT_TYPES: dict[int, str] = {
    0: "None",
    1: "H-pattern gearbox",
    2: "Motorbike",
    3: "Sequential",
    4: "Sequential with ignition cut",
    5: "Paddle",
    6: "Electric motor",
    7: "Centrifugal clutch",
}

HOST_STATUSES: dict[int, str] = {
    0: "Off",
    1: "On",
    2: "Expired",
    3: "Discarded",
    4: "Suspended",
}

HOST_LOCATIONS: dict[int, str] = {
    0: "Europe (Rotterdam)",
    1: "America (Ashburn)",
    2: "Asia (Tokyo)",
}


def lookup(table: dict[int, str], code: int | str) -> str | None:
    """Label for `code`, accepting ints or numeric strings.

    Returns None for unknown codes and anything that is not a whole number.
    """
    if isinstance(code, bool):
        return None
    if isinstance(code, str) and code.isascii() and code.isdigit():
        code = int(code)
    if not isinstance(code, int):
        return None
    return table.get(code)
