"""Text fragment extraction from rendered calendar markup."""
import logging
import re
from typing import List
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from processor.models import TextFragment

logger = logging.getLogger(__name__)

CANDIDATE_SELECTOR = (
    '[data-event], [class*="event" i], [class*="calendar" i], article, li'
)
TITLE_SELECTOR = 'h1, h2, h3, .title, [class*="title" i]'
WHEN_SELECTOR = '[class*="date" i], [class*="time" i], time'
WHERE_SELECTOR = '[class*="location" i], [class*="place" i]'
RANGE_LABEL_SELECTOR = (
    '[class*="toolbar" i] h2, [class*="range" i], [class*="header" i] h2, h2, h1'
)

DATE_HINT = re.compile(
    r'\d{1,2}:\d{2}|\b(?:am|pm|Mon|Tue|Wed|Thu|Fri|Sat|Sun|Jan|Feb|Mar|Apr|'
    r'May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)',
    re.IGNORECASE
)


def extract_fragments(html_content: str, base_url: str = '') -> List[TextFragment]:
    """
    Find event-like elements in rendered HTML.

    Args:
        html_content: Page HTML after client-side rendering
        base_url: URL used to resolve relative links

    Returns:
        List of TextFragment objects
    """
    soup = BeautifulSoup(html_content, 'html.parser')
    fragments = []

    for element in soup.select(CANDIDATE_SELECTOR):
        title_elem = element.select_one(TITLE_SELECTOR)
        title = title_elem.get_text(' ', strip=True) if title_elem else ''
        if not title:
            continue

        text = element.get_text(' ', strip=True)
        when_elem = element.select_one(WHEN_SELECTOR)
        when = when_elem.get_text(' ', strip=True) if when_elem else ''
        if not when and not DATE_HINT.search(text):
            continue

        where_elem = element.select_one(WHERE_SELECTOR)
        link_elem = element.find('a', href=True)

        fragments.append(TextFragment(
            title=title,
            when_text=when or text,
            location_text=where_elem.get_text(' ', strip=True) if where_elem else '',
            href=urljoin(base_url, link_elem['href']) if link_elem else None
        ))

    logger.debug(f"Found {len(fragments)} text fragments in page markup")
    return fragments
