"""Input normalisers for agricultural and personal data."""
import re


def format_phone(text: str) -> str:
    """Digits only, capped at 10."""
    return re.sub(r"\D", "", text)[:10]


def format_date(text: str) -> str:
    """Progressively formats typed digits as YYYY-MM-DD."""
    cleaned = re.sub(r"\D", "", text)[:8]
    if len(cleaned) > 6:
        return f"{cleaned[:4]}-{cleaned[4:6]}-{cleaned[6:]}"
    if len(cleaned) > 4:
        return f"{cleaned[:4]}-{cleaned[4:]}"
    return cleaned


def format_npk(text: str) -> str:
    """102010 -> 10:20:10"""
    cleaned = re.sub(r"\D", "", text)[:6]
    if len(cleaned) > 4:
        return f"{cleaned[:2]}:{cleaned[2:4]}:{cleaned[4:]}"
    if len(cleaned) > 2:
        return f"{cleaned[:2]}:{cleaned[2:]}"
    return cleaned


def format_numeric(text: str, precision: int = 2) -> str:
    cleaned = re.sub(r"[^0-9.]", "", text)
    parts = cleaned.split(".")
    if len(parts) > 2:
        cleaned = f"{parts[0]}.{''.join(parts[1:])}"

    if "." in cleaned:
        whole, dec = cleaned.split(".")
        return f"{whole}.{dec[:precision]}"
    return cleaned
