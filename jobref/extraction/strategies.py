"""
Independent extraction strategies.

Each strategy reads the same parsed page and returns a partial
ExtractionSignal. None of them is trusted on its own; the fusion engine
combines them by explicit precedence. Strategies must not mutate the soup:
they run concurrently over one shared tree.

Strategy signature: (soup, html, brand) -> ExtractionSignal
"""

import json
import logging
import re
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from jobref.common.types import ExtractionSignal, SignalSource
from jobref.extraction.text import (
    block_text,
    clean_text,
    contains_brand,
    element_text,
    html_to_text,
    split_title_at_company,
    unique,
)

logger = logging.getLogger(__name__)

Strategy = Callable[[BeautifulSoup, str, Optional[str]], ExtractionSignal]

HIRING_ANCHOR = re.compile(r"\s+is\s+hiring\s+for\s+", re.IGNORECASE)
HIRING_TEXT_LIMIT = 150

# Known section headings, in the order their text is assembled
SECTION_NAMES = [
    "Responsibilities",
    "Requirements",
    "Qualifications",
    "About the company",
    "Skills",
    "Your competencies",
]
HEADING_TAGS = ["h2", "h3", "h4", "strong", "b"]
BLOCK_HEADINGS = {"h1", "h2", "h3", "h4"}
SECTION_HEADING_LIMIT = 80

BADGE_SEPARATOR = "•"
BADGE_TEXT_LIMIT = 100
BADGE_MARKERS = ("lpa", "fulltime", "full-time", "full time", "part-time", "contract", "internship", "years")
_JOB_TYPE_MARKERS = ("fulltime", "full-time", "full time", "part-time", "part time", "contract", "internship", "freelance")
_SALARY_MARKERS = ("lpa", "salary", "ctc", "₹", "$", "€", "£", "/month", "per annum")

COMPANY_SELECTORS = [
    '[class*="company-name"]',
    'h2[class*="company"]',
    '[class*="employer"]',
    '[class*="organization"]',
    '[itemprop="hiringOrganization"]',
]
LOCATION_SELECTORS = ['[class*="location"]']
SALARY_SELECTORS = ['[class*="salary"]']
JOB_TYPE_SELECTORS = ['[class*="job-type"]', '[class*="employment-type"]']
DESCRIPTION_SELECTORS = [
    '[class*="job-description"]',
    '[class*="description-content"]',
    '[id*="job-description"]',
    'section[class*="job-details"]',
    'div[class*="details"]',
    "article",
    "main",
]
MIN_CANDIDATE_LENGTH = 50


# ===== HiringPattern =====


def extract_hiring_pattern(soup: BeautifulSoup, html: str, brand: Optional[str] = None) -> ExtractionSignal:
    """
    Find a "<Company> is hiring for <Title>" sentence.

    The innermost (shortest) matching element wins, so a wrapping div does
    not drag unrelated text into the company name.
    """
    signal = ExtractionSignal(source=SignalSource.HIRING_PATTERN)

    best: Optional[str] = None
    for element in soup.find_all(["title", "h1", "h2", "h3", "div", "p", "span"]):
        text = element_text(element)
        if len(text) >= HIRING_TEXT_LIMIT or not HIRING_ANCHOR.search(text):
            continue
        if best is None or len(text) < len(best):
            best = text

    if best is None:
        return signal

    company, title = HIRING_ANCHOR.split(best, maxsplit=1)
    signal.company = company.strip() or None
    signal.title = title.split("|")[0].strip() or None
    logger.debug(f"Hiring pattern: company={signal.company!r}, title={signal.title!r}")
    return signal


# ===== MetaTags =====


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return clean_text(tag.get("content", ""))


def extract_meta_tags(soup: BeautifulSoup, html: str, brand: Optional[str] = None) -> ExtractionSignal:
    """<title>, og:title and description meta tags, split on "<Title> at <Company>"."""
    signal = ExtractionSignal(source=SignalSource.META_TAGS)

    page_title = element_text(soup.title) if soup.title else ""
    if page_title:
        # Drop a trailing "| Site Name" before splitting
        page_title = re.sub(r"\s*\|[^|]*$", "", page_title).strip()
        title, company = split_title_at_company(page_title)
        signal.title = title or None
        signal.company = company or None

    og_title = _meta_content(soup, property="og:title")
    if og_title and og_title.lower() != (brand or "").lower() and "404" not in og_title:
        title, company = split_title_at_company(re.sub(r"\s*\|[^|]*$", "", og_title))
        if not signal.title:
            signal.title = title or None
        if not signal.company:
            signal.company = company or None

    for description in (
        _meta_content(soup, property="og:description"),
        _meta_content(soup, name="description"),
    ):
        if description:
            signal.candidates.append(description)

    return signal


# ===== StructuredData =====


def _iter_json_ld(soup: BeautifulSoup) -> Iterator[Dict[str, Any]]:
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            logger.warning("Failed to parse JSON-LD structured data")
            continue

        stack: List[Any] = [data]
        while stack:
            item = stack.pop(0)
            if isinstance(item, list):
                stack.extend(item)
            elif isinstance(item, dict):
                if "@graph" in item:
                    stack.extend(item["@graph"] if isinstance(item["@graph"], list) else [item["@graph"]])
                yield item


def _is_job_posting(item: Dict[str, Any]) -> bool:
    kind = item.get("@type")
    if isinstance(kind, list):
        return "JobPosting" in kind
    return kind == "JobPosting"


def _location_text(location: Any) -> Optional[str]:
    if isinstance(location, str):
        return location.strip() or None
    if isinstance(location, list):
        for item in location:
            text = _location_text(item)
            if text:
                return text
        return None
    if isinstance(location, dict):
        address = location.get("address", location)
        if isinstance(address, str):
            return address.strip() or None
        if isinstance(address, dict):
            for key in ("addressLocality", "addressRegion", "addressCountry"):
                value = address.get(key)
                if isinstance(value, dict):
                    value = value.get("name")
                if isinstance(value, str) and value.strip():
                    return value.strip()
    return None


def _salary_text(salary: Any) -> Optional[str]:
    if isinstance(salary, (int, float)):
        return str(salary)
    if isinstance(salary, str):
        return salary.strip() or None
    if not isinstance(salary, dict):
        return None

    currency = salary.get("currency") or ""
    value = salary.get("value")
    unit = ""
    if isinstance(value, dict):
        unit = value.get("unitText") or ""
        if value.get("value") is not None:
            amount = str(value["value"])
        elif value.get("minValue") is not None or value.get("maxValue") is not None:
            amount = "-".join(str(v) for v in (value.get("minValue"), value.get("maxValue")) if v is not None)
        else:
            amount = ""
    elif value is not None:
        amount = str(value)
    else:
        return None

    text = clean_text(f"{currency} {amount} {unit}")
    return text or None


def _employment_type_text(employment_type: Any) -> Optional[str]:
    if isinstance(employment_type, list):
        parts = [_employment_type_text(item) for item in employment_type]
        joined = ", ".join(p for p in parts if p)
        return joined or None
    if not isinstance(employment_type, str) or not employment_type.strip():
        return None
    value = employment_type.strip()
    if value.isupper():
        # FULL_TIME -> Full Time
        value = value.replace("_", " ").title()
    return value


def extract_structured_data(soup: BeautifulSoup, html: str, brand: Optional[str] = None) -> ExtractionSignal:
    """JSON-LD JobPosting blocks; the highest-trust source when present."""
    signal = ExtractionSignal(source=SignalSource.STRUCTURED_DATA)

    for item in _iter_json_ld(soup):
        if not _is_job_posting(item):
            continue

        if not signal.title and isinstance(item.get("title"), str):
            signal.title = clean_text(item["title"]) or None

        organization = item.get("hiringOrganization")
        if not signal.company and organization:
            name = organization if isinstance(organization, str) else (
                organization.get("name") if isinstance(organization, dict) else None
            )
            if isinstance(name, str):
                signal.company = clean_text(name) or None

        description = item.get("description")
        if not signal.description and description:
            if not isinstance(description, str):
                description = json.dumps(description)
            signal.description = html_to_text(description) or None

        if not signal.location:
            signal.location = _location_text(item.get("jobLocation"))
            if not signal.location and item.get("jobLocationType") == "TELECOMMUTE":
                signal.location = "Remote"
        if not signal.salary:
            signal.salary = _salary_text(item.get("baseSalary"))
        if not signal.job_type:
            signal.job_type = _employment_type_text(item.get("employmentType"))
        if not signal.posted_date and isinstance(item.get("datePosted"), str):
            signal.posted_date = item["datePosted"].strip() or None

    return signal


# ===== DomHeuristic =====


def _first_selector_text(soup: BeautifulSoup, selectors: List[str], min_length: int = 1) -> Optional[str]:
    for selector in selectors:
        for element in soup.select(selector):
            text = element_text(element)
            if len(text) >= min_length and len(text) < 200:
                return text
    return None


def extract_dom_heuristic(soup: BeautifulSoup, html: str, brand: Optional[str] = None) -> ExtractionSignal:
    """Heading tags, company-ish class selectors and description containers."""
    signal = ExtractionSignal(source=SignalSource.DOM_HEURISTIC)

    for tag_name in ("h1", "h2"):
        for heading in soup.find_all(tag_name):
            text = element_text(heading)
            if 3 < len(text) < 100 and not contains_brand(text, brand) and "404" not in text:
                signal.title = text
                break
        if signal.title:
            break

    signal.company = _first_selector_text(soup, COMPANY_SELECTORS, min_length=2)
    signal.location = _first_selector_text(soup, LOCATION_SELECTORS)
    signal.salary = _first_selector_text(soup, SALARY_SELECTORS)
    signal.job_type = _first_selector_text(soup, JOB_TYPE_SELECTORS)

    for selector in DESCRIPTION_SELECTORS:
        for element in soup.select(selector):
            text = block_text(element)
            if len(text) > MIN_CANDIDATE_LENGTH:
                signal.candidates.append(text)

    return signal


# ===== SectionHeaders =====


def _section_name(text: str) -> Optional[str]:
    if not text or len(text) > SECTION_HEADING_LIMIT:
        return None
    lowered = text.lower()
    for name in SECTION_NAMES:
        if name.lower() in lowered:
            return name
    return None


def _starts_new_section(element: Tag) -> bool:
    if element.name in BLOCK_HEADINGS:
        return True
    if element.name in HEADING_TAGS and _section_name(element_text(element)):
        return True
    # <p><strong>Requirements</strong></p>
    first = element.find(HEADING_TAGS)
    return (
        first is not None
        and element_text(first) == element_text(element)
        and _section_name(element_text(element)) is not None
    )


def _section_anchor(heading: Tag) -> Tag:
    """Climb out of wrappers that contain nothing but the heading text."""
    anchor = heading
    heading_text = element_text(heading)
    while (
        anchor.find_next_sibling(True) is None
        and isinstance(anchor.parent, Tag)
        and anchor.parent.name not in ("body", "html", "[document]")
        and element_text(anchor.parent) == heading_text
    ):
        anchor = anchor.parent
    return anchor


def _collect_section(heading: Tag) -> str:
    parts = []
    for sibling in _section_anchor(heading).find_next_siblings(True):
        if _starts_new_section(sibling):
            break
        text = block_text(sibling)
        if text:
            parts.append(text)
    return "\n".join(parts).strip()


def _skills_list(soup: BeautifulSoup) -> List[str]:
    for container in soup.find_all(["ul", "ol"]):
        previous = container.find_previous_sibling(True)
        if "Skills Required" in element_text(container) or (
            previous is not None and "skills" in element_text(previous).lower()
        ):
            skills = [element_text(li) for li in container.find_all("li")]
            skills = [s for s in skills if s and "skills required" not in s.lower()]
            if skills:
                return unique(skills)

    # Chip layout: a "Skills Required" label followed by a container of short tags
    label_pattern = re.compile(r"^(top\s+)?skills\s+required:?$", re.IGNORECASE)
    for label in soup.find_all(["h2", "h3", "h4", "strong", "b", "p", "div", "span"]):
        if not label_pattern.match(element_text(label)):
            continue
        container = label.find_next_sibling(True)
        if container is None:
            continue
        chips = [element_text(child) for child in container.find_all(["li", "span", "a", "div"], recursive=False)]
        chips = [c for c in chips if c and len(c) < 50]
        if chips:
            return unique(chips)
    return []


def extract_section_headers(soup: BeautifulSoup, html: str, brand: Optional[str] = None) -> ExtractionSignal:
    """Known section headings and the sibling text that follows each one."""
    signal = ExtractionSignal(source=SignalSource.SECTION_HEADERS)

    used = set()
    headings = soup.find_all(HEADING_TAGS)
    for name in SECTION_NAMES:
        for heading in headings:
            if id(heading) in used or _section_name(element_text(heading)) != name:
                continue
            content = _collect_section(heading)
            if content:
                used.add(id(heading))
                signal.sections[name] = content
                break

    signal.skills = _skills_list(soup)
    return signal


# ===== MetaDataBadges =====


def classify_badge(part: str) -> Tuple[str, str]:
    """
    Classify one badge fragment.

    Returns:
        (kind, text) with kind in "job_type", "salary", "experience", "other"
    """
    lowered = part.lower()
    if any(marker in lowered for marker in _SALARY_MARKERS):
        return "salary", part
    if any(marker in lowered for marker in _JOB_TYPE_MARKERS):
        return "job_type", part
    if "year" in lowered:
        return "experience", part
    return "other", part


def extract_metadata_badges(soup: BeautifulSoup, html: str, brand: Optional[str] = None) -> ExtractionSignal:
    """Short bullet-separated badges: compensation, employment type, experience."""
    signal = ExtractionSignal(source=SignalSource.METADATA_BADGES)

    best: Optional[str] = None
    for element in soup.find_all(["div", "span", "p", "li"]):
        text = element_text(element)
        if BADGE_SEPARATOR not in text or len(text) >= BADGE_TEXT_LIMIT:
            continue
        if not any(marker in text.lower() for marker in BADGE_MARKERS):
            continue
        if best is None or len(text) < len(best):
            best = text

    if best is None:
        return signal

    parts = unique(part for part in best.split(BADGE_SEPARATOR) if part.strip())
    for part in parts:
        kind, text = classify_badge(part)
        if kind == "job_type" and not signal.job_type:
            signal.job_type = text
        elif kind == "salary" and not signal.salary:
            signal.salary = text
        elif kind == "experience":
            signal.badges.append(f"Experience Required: {text}")
        elif kind == "other" and not signal.location and len(text) > 2:
            # Leftover badge on these pages is the work location
            signal.location = text
    return signal


DEFAULT_STRATEGIES: List[Tuple[SignalSource, Strategy]] = [
    (SignalSource.HIRING_PATTERN, extract_hiring_pattern),
    (SignalSource.META_TAGS, extract_meta_tags),
    (SignalSource.STRUCTURED_DATA, extract_structured_data),
    (SignalSource.DOM_HEURISTIC, extract_dom_heuristic),
    (SignalSource.SECTION_HEADERS, extract_section_headers),
    (SignalSource.METADATA_BADGES, extract_metadata_badges),
]
