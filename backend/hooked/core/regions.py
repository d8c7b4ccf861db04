"""
Regional partitions: one independent database per geography.

PARTITIONS is also the fixed probe order used when an event id has no routing-index entry.
"""
DEFAULT_PARTITION = "default"  # Middle East (Israel)

PARTITIONS: tuple[str, ...] = (
    DEFAULT_PARTITION,
    "au-southeast2",
    "us-nam5",
    "eu-eur3",
    "asia-ne1",
    "southamerica-east1",
)

PARTITION_DISPLAY_NAMES: dict[str, str] = {
    DEFAULT_PARTITION: "Middle East (Israel)",
    "au-southeast2": "Australia (Sydney)",
    "us-nam5": "US Multi-Region (NAM5)",
    "eu-eur3": "Europe Multi-Region (EUR3)",
    "asia-ne1": "Asia (Tokyo)",
    "southamerica-east1": "South America (Sao Paulo)",
}

_EUROPE = (
    "United Kingdom", "Germany", "France", "Spain", "Italy", "Netherlands", "Belgium",
    "Portugal", "Austria", "Switzerland", "Ireland", "Poland", "Czech Republic",
    "Sweden", "Norway", "Denmark",
)
_ASIA = ("Japan", "Singapore", "South Korea", "Thailand", "Malaysia", "Indonesia")
_SOUTH_AMERICA = (
    "Brazil", "Argentina", "Chile", "Colombia", "Peru", "Venezuela", "Uruguay",
    "Paraguay", "Bolivia", "Ecuador",
)

COUNTRY_PARTITIONS: dict[str, str] = {
    "Israel": DEFAULT_PARTITION,
    "Australia": "au-southeast2",
    "New Zealand": "au-southeast2",
    "United States": "us-nam5",
    "Canada": "us-nam5",
    **{c: "eu-eur3" for c in _EUROPE},
    **{c: "asia-ne1" for c in _ASIA},
    **{c: "southamerica-east1" for c in _SOUTH_AMERICA},
}


def is_partition(name: str | None) -> bool:
    return name in PARTITIONS
