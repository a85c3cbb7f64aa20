"""Portal page knowledge: selectors, form filling and result-table parsing.

Everything site-specific about the SENATRAN lookup form lives here so the
engine module only deals with browser lifecycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from bs4 import BeautifulSoup

if TYPE_CHECKING:
    from playwright.async_api import Page

    from core.domain.models import DriverQuery


SELECTOR_CPF = 'br-input[formcontrolname="cpf"] input'
SELECTOR_BIRTH_DATE = 'br-date-picker[formcontrolname="dataNascimento"] input'
SELECTOR_EXPIRY_DATE = 'br-date-picker[formcontrolname="dataValidade"] input'
SELECTOR_PROCEED = "button.br-button.primary"

SELECTOR_SUCCESS = "h3.text-primary"
SELECTOR_REJECTION = ".br-message.is-danger"
SELECTOR_REJECTION_TITLE = ".br-message.is-danger .title"
SELECTOR_RESULT_ROWS = "app-consulta-toxicologico table tr"

# Per-keystroke delay; the portal's masked inputs drop characters typed faster.
TYPING_DELAY_MS = 120

BLOCKED_RESOURCE_TYPES = frozenset({"image", "font"})
BLOCKED_URL_PARTS: tuple[str, ...] = ("googlesyndication", "doubleclick", "analytics")


def should_block(*, url: str, resource_type: str) -> bool:
    """True for requests the lookup does not need (images, fonts, trackers)."""

    if resource_type in BLOCKED_RESOURCE_TYPES:
        return True
    url_l = url.lower()
    return any(part in url_l for part in BLOCKED_URL_PARTS)


def parse_result_table(html: str) -> dict[str, str]:
    """Label -> value for every two-cell row of the result table."""

    if not html:
        return {}

    soup = BeautifulSoup(html, "html.parser")
    rows: dict[str, str] = {}
    for row in soup.select(SELECTOR_RESULT_ROWS):
        cells = row.find_all("td")
        if len(cells) != 2:
            continue
        label = cells[0].get_text(" ", strip=True)
        if label:
            rows[label] = cells[1].get_text(" ", strip=True)
    return rows


async def _type_into(page: "Page", selector: str, value: str) -> None:
    field = page.locator(selector)
    await field.click(click_count=3)
    await field.press_sequentially(value, delay=TYPING_DELAY_MS)


async def fill_lookup_form(page: "Page", query: "DriverQuery", *, timeout_ms: float) -> None:
    await page.locator(SELECTOR_CPF).wait_for(state="visible", timeout=timeout_ms)
    await _type_into(page, SELECTOR_CPF, str(query.subject_identifier))
    await _type_into(page, SELECTOR_BIRTH_DATE, str(query.birth_date))
    await _type_into(page, SELECTOR_EXPIRY_DATE, str(query.document_expiry_date))
    await page.locator(SELECTOR_PROCEED).click()
