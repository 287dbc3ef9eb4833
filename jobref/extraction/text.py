"""
Text helpers shared by the extraction strategies.

Strategies read one shared BeautifulSoup tree concurrently, so nothing in
here mutates the tree.
"""

import re
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from jobref.common.types import MIN_COMPANY_LENGTH, MIN_TITLE_LENGTH

_WHITESPACE = re.compile(r"\s+")
_BLANK_LINES = re.compile(r"\n\s*\n+")

# Titles that are page chrome rather than a posting title
_GENERIC_TITLES = {"job details", "job position", "jobs", "careers", "page not found", "not found"}
_GENERIC_COMPANIES = {"company", "company on", "the company", "unknown"}

MAX_TITLE_LENGTH = 150
MAX_COMPANY_LENGTH = 100


def clean_text(text: Optional[str]) -> str:
    """Collapse all whitespace runs to single spaces."""
    return _WHITESPACE.sub(" ", text or "").strip()


def element_text(element: Optional[Tag]) -> str:
    """Single-line visible text of an element."""
    if element is None:
        return ""
    return clean_text(element.get_text(" ", strip=True))


def block_text(element: Optional[Tag]) -> str:
    """
    Multi-line text of an element: one line per text node, blank runs collapsed.

    Keeps list items and paragraphs on their own lines, which reads much
    better in a prompt than one run-on line.
    """
    if element is None:
        return ""
    lines = [clean_text(line) for line in element.get_text("\n", strip=True).split("\n")]
    text = "\n".join(line for line in lines if line)
    return _BLANK_LINES.sub("\n\n", text).strip()


def html_to_text(fragment: Optional[str]) -> str:
    """Plain text of an HTML fragment (used for JSON-LD descriptions)."""
    if not fragment:
        return ""
    if "<" not in fragment:
        return fragment.strip()
    soup = BeautifulSoup(fragment, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return block_text(soup)


def strip_brand(text: str, brand: Optional[str]) -> str:
    """Remove every case-insensitive occurrence of the site brand."""
    if not brand:
        return text
    return re.sub(re.escape(brand), "", text, flags=re.IGNORECASE)


def contains_brand(text: str, brand: Optional[str]) -> bool:
    return bool(brand) and brand.lower() in (text or "").lower()


def normalize_title(title: Optional[str], brand: Optional[str]) -> str:
    """
    Strip site artifacts from a title.

    Removes reply/forward prefixes, a leading "<Company> is hiring for",
    a trailing "| site name" suffix, the brand token and the site's
    "Explore tech jobs globally" banner prefix.
    """
    text = clean_text(title)
    if not text:
        return ""

    previous = None
    while previous != text:
        previous = text
        text = re.sub(r"^(re|fwd?|fw)\s*:\s*", "", text, flags=re.IGNORECASE)

    text = re.sub(r"^.*?\bis\s+hiring\s+for\s*", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\s*\|.*$", "", text)
    text = strip_brand(text, brand)
    text = re.sub(r"^explore\s+tech\s+jobs\s+globally\s*", "", text, flags=re.IGNORECASE)
    return clean_text(text).strip(" -|:–")


def normalize_company(company: Optional[str], brand: Optional[str]) -> str:
    """Strip the brand, leading "at"/"is" and a trailing "Company on" artifact."""
    text = strip_brand(clean_text(company), brand)
    text = re.sub(r"^\s*at\s+", "", text, flags=re.IGNORECASE)
    text = re.sub(r"^\s*is\s+", "", text, flags=re.IGNORECASE)
    text = re.sub(r"company\s+on\s*$", "", text, flags=re.IGNORECASE)
    return clean_text(text).strip(" -|:–,")


def is_plausible_title(title: str, brand: Optional[str] = None) -> bool:
    """Minimum-length and blacklist filter for a normalized title candidate."""
    if not title or not (MIN_TITLE_LENGTH <= len(title) < MAX_TITLE_LENGTH):
        return False
    lowered = title.lower()
    if "404" in lowered or lowered in _GENERIC_TITLES:
        return False
    return not contains_brand(title, brand)


def is_plausible_company(company: str, brand: Optional[str] = None) -> bool:
    """Minimum-length and blacklist filter for a normalized company candidate."""
    if not company or not (MIN_COMPANY_LENGTH <= len(company) <= MAX_COMPANY_LENGTH):
        return False
    if company.lower() in _GENERIC_COMPANIES:
        return False
    return not contains_brand(company, brand)


def split_title_at_company(text: str) -> tuple:
    """Split "<Title> at <Company>" into its parts; company is "" when absent."""
    if " at " not in text:
        return text.strip(), ""
    title, company = text.split(" at ", 1)
    return title.strip(), company.strip()


def unique(values: Iterable[str]) -> List[str]:
    """De-duplicate while preserving order (case-insensitive)."""
    seen = set()
    result = []
    for value in values:
        key = value.strip().lower()
        if key and key not in seen:
            seen.add(key)
            result.append(value.strip())
    return result
