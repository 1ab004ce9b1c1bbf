"""
Visit classification used on the ingestion hot path.

Combines user-agent parsing and referrer classification into the handful of
fields stored on every visit. This function must never raise: a visit with
an odd header is still a visit.
"""

import logging

from pydantic import BaseModel

from .referrer import DIRECT_SOURCE, ReferrerType, classify_referrer
from .user_agent import UNKNOWN, DeviceClass, parse_user_agent

logger = logging.getLogger(__name__)


class Classification(BaseModel, frozen=True):
    """Derived fields computed once at ingestion."""
    device_class: DeviceClass = DeviceClass.UNKNOWN
    browser: str = UNKNOWN
    os: str = UNKNOWN
    referrer_source: str = DIRECT_SOURCE
    referrer_type: ReferrerType = ReferrerType.DIRECT


def classify(
    user_agent: str | None,
    referrer_url: str | None,
    site_domain: str | None = None,
) -> Classification:
    """Classify a visit from its User-Agent and Referer headers.

    Args:
        user_agent: Raw User-Agent header (may be empty)
        referrer_url: Raw Referer header (may be empty)
        site_domain: The site's own domain, so same-site navigation is internal

    Returns:
        Classification with device class, browser, OS and referrer source.
        Falls back to the unknown defaults on any parsing problem.
    """
    try:
        ua = parse_user_agent(user_agent)
        ref = classify_referrer(referrer_url, current_domain=site_domain)
        return Classification(
            device_class=ua.device_class,
            browser=ua.browser,
            os=ua.os,
            referrer_source=ref.source,
            referrer_type=ref.type,
        )
    except Exception:
        logger.debug("Classification failed, using defaults", exc_info=True)
        return Classification()
