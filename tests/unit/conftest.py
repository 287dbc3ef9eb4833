"""
Global fixtures for all unit tests.

This conftest provides autouse fixtures that prevent real external service calls:
- MongoDB connection attempts (would cause 5-30s timeout per test)
- Environment variable isolation (prevents credential leakage)

These fixtures apply automatically to ALL tests in tests/unit/.
"""

import os

# Set test environment BEFORE any imports to prevent Config from loading real values
os.environ["ENVIRONMENT"] = "development"
os.environ["MONGODB_URI"] = ""
os.environ["OPENAI_API_KEY"] = "sk-test-mock-key"
os.environ["FETCHER_BACKEND"] = "direct"
os.environ["DEBUG_SCREENSHOT_DIR"] = ""
os.environ["SITE_BRAND"] = "HireJobs"

import pytest
from unittest.mock import patch, MagicMock

from jobref.common.types import JobPosting, Template


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def mock_mongodb():
    """
    Prevent MongoDB connection attempts in all unit tests.

    MongoClient("") defaults to localhost:27017, causing 5-30s timeout per test.
    """
    with patch("jobref.common.repositories.template_repository.MongoClient") as mock_client:
        mock_instance = MagicMock()
        mock_db = MagicMock()
        mock_collection = MagicMock()

        # Setup chain: client["db"]["collection"]
        mock_instance.__getitem__ = MagicMock(return_value=mock_db)
        mock_db.__getitem__ = MagicMock(return_value=mock_collection)
        mock_collection.find_one = MagicMock(return_value=None)
        mock_collection.find = MagicMock(return_value=[])

        mock_client.return_value = mock_instance
        yield mock_client


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """
    Isolate test environment from real credentials and configurations.

    Use mock API keys to prevent accidental real API calls.
    """
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-mock-key")
    monkeypatch.delenv("LLM_BASE_URL", raising=False)
    monkeypatch.delenv("MONGODB_URI", raising=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def job_page_html():
    """A job page as rendered by the job board."""
    return """
<html>
<head>
  <title>Backend Engineer at Acme Corp | HireJobs</title>
  <meta property="og:title" content="Backend Engineer at Acme Corp">
  <meta name="description" content="Acme Corp is looking for a Backend Engineer to build APIs.">
</head>
<body>
  <nav><a href="/">HireJobs</a></nav>
  <div class="job-container">
    <h1>Acme Corp is hiring for Backend Engineer | HireJobs</h1>
    <div class="badges"><span>12-18 LPA • Fulltime • 3-5 years • Bangalore</span></div>
    <h2>Responsibilities</h2>
    <ul>
      <li>Design and build scalable REST APIs for the payments platform</li>
      <li>Own services end to end, from design to production monitoring</li>
    </ul>
    <h2>Requirements</h2>
    <ul>
      <li>3+ years of backend development experience with Python or Go</li>
      <li>Solid understanding of relational databases and caching</li>
    </ul>
    <h3>Skills Required</h3>
    <ul>
      <li>Python</li>
      <li>PostgreSQL</li>
      <li>Redis</li>
      <li>Docker</li>
    </ul>
  </div>
</body>
</html>
"""


@pytest.fixture
def json_ld_page_html():
    """A page whose only reliable source is its JSON-LD JobPosting block."""
    return """
<html>
<head>
  <title>Careers</title>
  <script type="application/ld+json">
  {
    "@context": "https://schema.org",
    "@graph": [
      {"@type": "Organization", "name": "Globex"},
      {
        "@type": "JobPosting",
        "title": "Data Engineer",
        "hiringOrganization": {"@type": "Organization", "name": "Globex Corporation"},
        "description": "<p>Build and maintain batch and streaming data pipelines.</p><ul><li>Model data for analytics in the warehouse</li><li>Work with Spark, Airflow and Kafka daily</li></ul>",
        "jobLocation": {"@type": "Place", "address": {"addressLocality": "Berlin", "addressCountry": "DE"}},
        "baseSalary": {"currency": "EUR", "value": {"minValue": 70000, "maxValue": 85000, "unitText": "YEAR"}},
        "employmentType": "FULL_TIME",
        "datePosted": "2024-05-01"
      }
    ]
  }
  </script>
</head>
<body>
  <h1>Join our team</h1>
</body>
</html>
"""


@pytest.fixture
def posting():
    return JobPosting(
        title="Backend Engineer",
        company="Acme Corp",
        description=(
            "Responsibilities:\nDesign and build scalable REST APIs for the payments platform\n\n"
            "Skills Required:\n- Python\n- PostgreSQL\n- Redis\n- Docker"
        ),
        location="Bangalore",
    )


@pytest.fixture
def template():
    return Template(
        id="tpl-1",
        name="Mine",
        content="Hi, I'd love a referral for {jobTitle} at {companyName}. I know {skills}.",
        is_default=True,
        owner_id="user-1",
    )
