"""
Extraction Fusion Engine.

Runs every strategy over one parsed document and merges their signals by
explicit per-field precedence. A field is taken from the highest-priority
source whose normalized value passes that field's plausibility filter; a
later, lower-trust source never overwrites it.

The engine never fabricates values: if the fused record does not clear the
JobPosting minimums, extraction fails with ExtractionError.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from jobref.common.config import Config
from jobref.common.error_handling import ExtractionError, safe_execute
from jobref.common.types import (
    MIN_DESCRIPTION_LENGTH,
    ExtractionSignal,
    JobPosting,
    SignalSource,
)
from jobref.extraction.strategies import DEFAULT_STRATEGIES, Strategy
from jobref.extraction.text import (
    clean_text,
    is_plausible_company,
    is_plausible_title,
    normalize_company,
    normalize_title,
    split_title_at_company,
    unique,
)

logger = logging.getLogger(__name__)

TITLE_PRIORITY = [
    SignalSource.HIRING_PATTERN,
    SignalSource.STRUCTURED_DATA,
    SignalSource.META_TAGS,
    SignalSource.DOM_HEURISTIC,
]
COMPANY_PRIORITY = TITLE_PRIORITY
DETAIL_PRIORITY = [
    SignalSource.STRUCTURED_DATA,
    SignalSource.METADATA_BADGES,
    SignalSource.DOM_HEURISTIC,
]
CANDIDATE_SOURCES = [SignalSource.DOM_HEURISTIC, SignalSource.META_TAGS]

ADDITIONAL_INFO_HEADING = "Additional Information:"
SKILLS_HEADING = "Skills Required:"


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def run_strategy(
    source: SignalSource,
    strategy: Strategy,
    soup: BeautifulSoup,
    html: str,
    brand: Optional[str],
) -> ExtractionSignal:
    """Run one strategy; any exception degrades to an empty signal of that source."""
    return safe_execute(
        strategy,
        soup,
        html,
        brand,
        operation_name=f"strategy:{source.value}",
        logger=logger,
        fallback=lambda: ExtractionSignal(source=source),
    )


class FusionEngine:
    """
    Multi-strategy job posting extractor.

    Usage:
        engine = FusionEngine(brand="HireJobs")
        posting = await engine.extract(html)
    """

    def __init__(
        self,
        brand: Optional[str] = None,
        strategies: Optional[Sequence[Tuple[SignalSource, Strategy]]] = None,
    ):
        self.brand = brand if brand is not None else Config.SITE_BRAND
        self.strategies = list(strategies) if strategies is not None else list(DEFAULT_STRATEGIES)

    async def extract(self, html: str) -> JobPosting:
        """
        Extract a validated posting, running strategies concurrently.

        BeautifulSoup parsing and tree walking are CPU-bound, so each
        strategy runs in a worker thread over the shared, read-only tree.

        Raises:
            ExtractionError: empty document or insufficient confidence
        """
        soup = await asyncio.to_thread(self._parse, html)
        signals = await asyncio.gather(*[
            asyncio.to_thread(run_strategy, source, strategy, soup, html, self.brand)
            for source, strategy in self.strategies
        ])
        return self.fuse(signals)

    def extract_sync(self, html: str) -> JobPosting:
        """Same as extract(), strategies run one after another."""
        soup = self._parse(html)
        signals = [
            run_strategy(source, strategy, soup, html, self.brand)
            for source, strategy in self.strategies
        ]
        return self.fuse(signals)

    @staticmethod
    def _parse(html: str) -> BeautifulSoup:
        if not html or not html.strip():
            raise ExtractionError("Empty HTML document", field="html")
        return parse_html(html)

    # ===== Merge =====

    def fuse(self, signals: Sequence[ExtractionSignal]) -> JobPosting:
        """
        Merge signals by precedence, normalize, enrich and validate.

        Raises:
            ExtractionError: naming the first required field that fails
        """
        by_source: Dict[SignalSource, ExtractionSignal] = {}
        for signal in signals:
            by_source.setdefault(signal.source, signal)

        title = self._resolve_title(by_source)
        company = self._resolve_company(by_source)

        # "<Title> at <Company>" surviving normalization
        if title and " at " in title:
            split_title, split_company = split_title_at_company(title)
            if is_plausible_title(split_title, self.brand):
                title = split_title
                if not company:
                    candidate = normalize_company(split_company, self.brand)
                    if is_plausible_company(candidate, self.brand):
                        company = candidate

        posting = JobPosting(
            title=title or "",
            company=company or "",
            description=self._resolve_description(by_source),
            location=self._resolve_detail(by_source, "location"),
            salary=self._resolve_detail(by_source, "salary"),
            job_type=self._resolve_detail(by_source, "job_type"),
            posted_date=self._resolve_detail(by_source, "posted_date"),
        )

        # Validate before enrichment so the appended block cannot carry a
        # too-short description over the minimum
        posting.validate()

        badges = by_source.get(SignalSource.METADATA_BADGES)
        posting.description = enrich_description(posting, badges.badges if badges else ())
        logger.info(
            f"Extracted posting: title={posting.title!r}, company={posting.company!r}, "
            f"description={len(posting.description)} chars"
        )
        return posting

    def _resolve_title(self, by_source: Dict[SignalSource, ExtractionSignal]) -> Optional[str]:
        for source in TITLE_PRIORITY:
            signal = by_source.get(source)
            if signal is None or not signal.title:
                continue
            title = normalize_title(signal.title, self.brand)
            if is_plausible_title(title, self.brand):
                logger.debug(f"Title from {source.value}: {title!r}")
                return title
        return None

    def _resolve_company(self, by_source: Dict[SignalSource, ExtractionSignal]) -> Optional[str]:
        for source in COMPANY_PRIORITY:
            signal = by_source.get(source)
            if signal is None or not signal.company:
                continue
            company = normalize_company(signal.company, self.brand)
            if is_plausible_company(company, self.brand):
                logger.debug(f"Company from {source.value}: {company!r}")
                return company
        return None

    @staticmethod
    def _resolve_detail(by_source: Dict[SignalSource, ExtractionSignal], field_name: str) -> Optional[str]:
        for source in DETAIL_PRIORITY:
            signal = by_source.get(source)
            value = clean_text(getattr(signal, field_name, None)) if signal else ""
            if value:
                return value
        return None

    @staticmethod
    def _resolve_description(by_source: Dict[SignalSource, ExtractionSignal]) -> str:
        sections = by_source.get(SignalSource.SECTION_HEADERS)
        description = ""
        if sections is not None:
            description = sections_description(sections)
        if len(description) >= MIN_DESCRIPTION_LENGTH:
            return description

        structured = by_source.get(SignalSource.STRUCTURED_DATA)
        if structured is not None and structured.description:
            if len(structured.description.strip()) >= MIN_DESCRIPTION_LENGTH:
                return structured.description.strip()

        candidates: List[str] = []
        for source in CANDIDATE_SOURCES:
            signal = by_source.get(source)
            if signal is not None:
                candidates.extend(c.strip() for c in signal.candidates if c and c.strip())
        if candidates:
            longest = max(candidates, key=len)
            if len(longest) > len(description):
                return longest
        return description


def sections_description(signal: ExtractionSignal) -> str:
    """Join known sections as "<Heading>:\\n<text>" blocks, plus the skills list."""
    blocks = [f"{heading}:\n{text}" for heading, text in signal.sections.items() if text]
    description = "\n\n".join(blocks)

    lowered = description.lower()
    missing = [skill for skill in signal.skills if skill.lower() not in lowered]
    if missing and SKILLS_HEADING.lower() not in lowered:
        skills = "\n".join(f"- {skill}" for skill in signal.skills)
        description = f"{description}\n\n{SKILLS_HEADING}\n{skills}".strip()
    return description


def enrich_description(posting: JobPosting, experience: Sequence[str] = ()) -> str:
    """
    Append an "Additional Information:" block with the optional fields.

    Lines whose value already appears in the description are skipped, and
    nothing is appended when the heading is already present.
    """
    description = posting.description or ""
    if ADDITIONAL_INFO_HEADING.lower() in description.lower():
        return description

    lowered = description.lower()
    lines = []
    for label, value in (
        ("Location", posting.location),
        ("Salary", posting.salary),
        ("Job Type", posting.job_type),
        ("Posted", posting.posted_date),
    ):
        if value and value.lower() not in lowered:
            lines.append(f"{label}: {value}")
    for badge in experience:
        value = badge.split(":", 1)[-1].strip()
        if value and value.lower() not in lowered:
            lines.append(badge)

    lines = unique(lines)
    if not lines:
        return description
    return f"{description}\n\n{ADDITIONAL_INFO_HEADING}\n" + "\n".join(lines)
