from typing import Any, Mapping

def normalize_address(addr: str) -> str:
    """
    Minimal normalization so cache keys & seeds are stable:
    - trim whitespace
    - lowercase
    - collapse multiple spaces
    """
    return " ".join(addr.strip().lower().split())

def format_address(address: Any) -> str:
    """
    Render a stored address as one line. Parcels keep their address as a
    mapping ({street, city, state, zipcode}); comps may already be strings.
    """
    if address is None:
        return ""
    if isinstance(address, str):
        return address.strip()
    if isinstance(address, Mapping):
        street = address.get("street") or address.get("streetAddress") or ""
        city = address.get("city") or ""
        state_zip = " ".join(p for p in (address.get("state"), address.get("zipcode")) if p)
        return ", ".join(p for p in (street, city, state_zip) if p)
    return str(address)

def format_currency(value: float) -> str:
    """Whole-dollar USD, e.g. 25000.4 -> '$25,000'."""
    return f"${value:,.0f}"

def fnv1a_32(s: str) -> int:
    """Deterministic, fast hash for seed generation."""
    h = 0x811c9dc5
    for c in s.encode("utf-8"):
        h ^= c
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h

def seeded_rand(seed: int, n: int = 1) -> list[float]:
    """
    Stateless pseudo-random generator (Mulberry32-like) so
    same seed → same outputs without storing PRNG state.
    """
    out = []
    t = (seed + 0x6D2B79F5) & 0xFFFFFFFF
    for _ in range(n):
        t = (t ^ (t >> 15)) * (t | 1) & 0xFFFFFFFF
        t ^= t + ((t ^ (t >> 7)) * (t | 61) & 0xFFFFFFFF)
        r = ((t ^ (t >> 14)) & 0xFFFFFFFF) / 4294967296.0
        out.append(r)
    return out
