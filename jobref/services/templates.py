"""
Referral template resolution.

Lookup order for an actor: the owner's default template, then the stored
system default (no owner), then the built-in DEFAULT_TEMPLATE_CONTENT.
"""

import logging
from typing import Optional

from jobref.common.repositories import TemplateRepositoryInterface
from jobref.common.types import ActorScope, Template

logger = logging.getLogger(__name__)

BUILTIN_TEMPLATE_ID = "builtin-default"

DEFAULT_TEMPLATE_CONTENT = """
Applying for {jobTitle} at {companyName}

Hey [RECIPIENT],

I'm a skilled developer with expertise in {skills}, and I'm reaching out about the {jobTitle} role at {companyName} ([JOB POST LINK]). Given your connection to the company, I wanted to ask if you would consider helping me with a referral.

Work that I am most proud of:
- Developed a comprehensive dashboard application for performance monitoring
- Built a user-friendly web application with modern frontend technologies
- Contributed to open-source projects focused on developer productivity

Beyond professional experience, I've created several personal projects which demonstrate my abilities and passion for technology.

My resume and portfolio provide further details about my experience and skills.

Your time and consideration would mean a lot to me. Would you be open to referring me for this position?

Thank you,
[YOUR NAME]
""".strip()


def builtin_template() -> Template:
    return Template(
        id=BUILTIN_TEMPLATE_ID,
        name="System Default Template",
        content=DEFAULT_TEMPLATE_CONTENT,
        is_default=True,
    )


class TemplateResolver:
    """Picks the template a referral message is generated from."""

    def __init__(self, repository: Optional[TemplateRepositoryInterface] = None):
        self.repository = repository

    def resolve(self, scope: ActorScope) -> Template:
        """
        Resolve the active template for an actor.

        Args:
            scope: Requesting actor; anonymous actors get the system default

        Returns:
            Owner default, else system default, else the built-in template
        """
        if self.repository is None:
            return builtin_template()

        if scope.user_id:
            template = self.repository.find_default(scope.user_id)
            if template is not None:
                logger.debug(f"Using template {template.id} of user {scope.user_id}")
                return template

        template = self.repository.find_default(None)
        if template is not None:
            return template

        logger.debug("No stored default template; using built-in template")
        return builtin_template()

    def install_system_default(self, content: str = DEFAULT_TEMPLATE_CONTENT) -> Template:
        """
        Create or update the stored system default template.

        Returns:
            The stored template
        """
        if self.repository is None:
            raise ValueError("No template repository configured")

        existing = self.repository.find_default(None)
        if existing is not None:
            existing.content = content
            logger.info("System default template already exists, updating content")
            return self.repository.save(existing)

        logger.info("Creating new system default template")
        return self.repository.save(Template(
            id="",
            name="System Default Template",
            content=content,
            is_default=True,
        ))
