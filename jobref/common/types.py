"""
Canonical Types for the Referral Service

Defines the data structures shared by the extraction engine, the job cache
and the message generator: the validated JobPosting, the per-strategy
ExtractionSignal, the ActorScope partitioning caches by requesting identity,
and the message Template.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from jobref.common.error_handling import ExtractionError
from jobref.common.fingerprint import credential_digest

# Minimum lengths a fused posting must clear to be considered real data
MIN_TITLE_LENGTH = 3
MIN_COMPANY_LENGTH = 2
MIN_DESCRIPTION_LENGTH = 100


class SignalSource(str, Enum):
    """Independent extraction strategies feeding the fusion engine."""

    HIRING_PATTERN = "hiring_pattern"
    META_TAGS = "meta_tags"
    STRUCTURED_DATA = "structured_data"
    DOM_HEURISTIC = "dom_heuristic"
    SECTION_HEADERS = "section_headers"
    METADATA_BADGES = "metadata_badges"


@dataclass
class ExtractionSignal:
    """
    Partial job record produced by one extraction strategy.

    Ephemeral: produced and consumed within a single extraction call.
    """

    source: SignalSource
    title: Optional[str] = None
    company: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[str] = None
    job_type: Optional[str] = None
    posted_date: Optional[str] = None

    # Strategy-specific evidence
    sections: Dict[str, str] = field(default_factory=dict)  # heading -> text, in page order
    skills: List[str] = field(default_factory=list)
    badges: List[str] = field(default_factory=list)
    candidates: List[str] = field(default_factory=list)  # description blocks

    def is_empty(self) -> bool:
        return not any((
            self.title, self.company, self.description, self.location,
            self.salary, self.job_type, self.posted_date,
            self.sections, self.skills, self.badges, self.candidates,
        ))


@dataclass
class JobPosting:
    """Validated structured job posting."""

    title: str
    company: str
    description: str
    location: Optional[str] = None
    salary: Optional[str] = None
    job_type: Optional[str] = None
    posted_date: Optional[str] = None

    def validate(self) -> "JobPosting":
        """
        Enforce the minimum-length invariants.

        Returns:
            self, for chaining

        Raises:
            ExtractionError: naming the first field that fails
        """
        if len((self.title or "").strip()) < MIN_TITLE_LENGTH:
            raise ExtractionError(
                f"Could not extract a job title (got {self.title!r})", field="title"
            )
        if len((self.company or "").strip()) < MIN_COMPANY_LENGTH:
            raise ExtractionError(
                f"Could not extract a company name (got {self.company!r})", field="company"
            )
        if len((self.description or "").strip()) < MIN_DESCRIPTION_LENGTH:
            raise ExtractionError(
                f"Job description too short ({len((self.description or '').strip())} chars, "
                f"need {MIN_DESCRIPTION_LENGTH})",
                field="description",
            )
        return self

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "title": self.title,
            "company": self.company,
            "description": self.description,
            "location": self.location,
            "salary": self.salary,
            "jobType": self.job_type,
            "postedDate": self.posted_date,
        }


class ActorKind(str, Enum):
    """Who is asking: decides which cache partition a request lands in."""

    ANONYMOUS = "anonymous"
    USER = "user"
    CUSTOM_CREDENTIAL = "custom_credential"


@dataclass(frozen=True)
class ActorScope:
    """
    Requesting identity / credential context.

    Results generated under different credentials or templates must never
    collide, so every cache key carries scope_key(). The raw credential is
    kept out of the key; only its SHA-256 digest is used.
    """

    kind: ActorKind = ActorKind.ANONYMOUS
    user_id: Optional[str] = None
    credential_fingerprint: Optional[str] = None
    # Not part of equality/hash: the secret itself travels with the scope
    # only so the credential resolver can use it.
    api_key: Optional[str] = field(default=None, compare=False, repr=False)

    @classmethod
    def anonymous(cls) -> "ActorScope":
        return cls()

    @classmethod
    def for_user(cls, user_id: str) -> "ActorScope":
        return cls(kind=ActorKind.USER, user_id=user_id)

    @classmethod
    def with_credential(cls, api_key: str, user_id: Optional[str] = None) -> "ActorScope":
        return cls(
            kind=ActorKind.CUSTOM_CREDENTIAL,
            user_id=user_id,
            credential_fingerprint=credential_digest(api_key),
            api_key=api_key,
        )

    @property
    def is_anonymous(self) -> bool:
        return self.kind == ActorKind.ANONYMOUS

    def scope_key(self) -> str:
        if self.kind == ActorKind.USER:
            return f"user:{self.user_id}"
        if self.kind == ActorKind.CUSTOM_CREDENTIAL:
            if self.user_id:
                return f"user:{self.user_id}:key:{self.credential_fingerprint}"
            return f"key:{self.credential_fingerprint}"
        return "anon"


@dataclass
class Template:
    """Referral message template with {jobTitle}, {companyName}, {skills} placeholders."""

    id: str
    content: str
    name: str = "Template"
    is_default: bool = False
    owner_id: Optional[str] = None  # None = system-wide

    @property
    def is_system(self) -> bool:
        return self.owner_id is None


@dataclass
class ReferralResult:
    """Output of one fetch -> extract -> generate run."""

    title: str
    company: str
    referral_message: str
    posting: Optional[JobPosting] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "jobTitle": self.title,
            "company": self.company,
            "referralMessage": self.referral_message,
        }
