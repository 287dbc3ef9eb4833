"""
Job referral service.

Fetches a job-board posting, fuses several extraction strategies into one
validated JobPosting, and turns it into a referral request message.
"""

__version__ = "1.0.0"
