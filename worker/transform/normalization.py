import re

from bs4 import BeautifulSoup

SLUG_MAX_LENGTH = 70
DELIVERY_PATTERNS = [
    re.compile(r"(\d+)\s*-\s*(\d+)\s*(?:business days|days|day)", re.IGNORECASE),
    re.compile(r"delivery[:\s]*(\d+)\s*-\s*(\d+)", re.IGNORECASE),
    re.compile(r"ships\s*in\s*(\d+)\s*-\s*(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)\s*to\s*(\d+)\s*(?:days|day)", re.IGNORECASE),
]


def strip_html(value: str | None) -> str:
    if not value:
        return ""
    text = BeautifulSoup(value, "html.parser").get_text(" ")
    return re.sub(r"\s+", " ", text).strip()


def clean_text(value: str | None) -> str:
    text = strip_html(value)
    text = re.sub(r"[^\w\s]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def strip_markdown(value: str) -> str:
    text = re.sub(r"^\s*#+\s*", "", value, flags=re.MULTILINE)
    text = text.replace("*", "").replace("__", "")
    text = re.sub(r"^```\w*\s*|```\s*$", "", text.strip())
    return text.strip()


def single_line(value: str) -> str:
    text = value.replace("\n", " ").strip().strip('"').strip("'").strip()
    return re.sub(r"\s+", " ", text)


def truncate_text(value: str, max_length: int) -> str:
    text = single_line(value)
    if len(text) <= max_length:
        return text
    cut = text[:max_length]
    if " " in cut and not text[max_length].isspace():
        cut = cut.rsplit(" ", 1)[0]
    return cut.rstrip(" ,;:-")


def slugify(value: str | None, max_length: int = SLUG_MAX_LENGTH) -> str:
    if not value:
        return ""
    slug = value.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug.strip())
    slug = re.sub(r"-{2,}", "-", slug)
    return slug[:max_length].strip("-")


def extract_delivery_days(value: str | None) -> tuple[int, int] | None:
    text = strip_html(value)
    if not text:
        return None
    for pattern in DELIVERY_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1)), int(match.group(2))
    return None
