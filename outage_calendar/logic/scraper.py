"""
Web scraper for DTEK outage schedules.

Reads the hourly fact table embedded in the shutdowns page and the
per-house current-outage status served by the site's AJAX endpoint.
"""

import json
import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from outage_calendar.core.models import AddressConfig

logger = logging.getLogger(__name__)


class Scraper:
    """
    Scraper for the DTEK shutdowns page.

    Page structure:
        <meta name="csrf-token"> - token for AJAX requests
        <script>DisconSchedule.fact = {...}</script> - hourly table for all queues
        .modal - site-wide announcement (classification)
        #showCurOutage - current outage text for the searched address
        div.discon-fact-table[rel=<day_epoch>] - rendered hourly rows
        "Дата оновлення інформації – HH:MM DD.MM.YYYY" - update time

    Attributes:
        HEADERS: HTTP headers for requests
        AJAX_PATH: Endpoint for per-house status
        FACT_PATTERN: Regex for the embedded fact table
    """

    HEADERS = {"User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"}
    AJAX_PATH = "/ua/ajax"

    FACT_PATTERN = re.compile(r'DisconSchedule\.fact\s*=\s*(?=\{)')

    def __init__(self, url: str, timeout: int = 30) -> None:
        self.url = url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(self.HEADERS)

    def fetch(self) -> Optional[str]:
        """
        Fetch HTML content of the shutdowns page.

        Returns:
            HTML content as string, or None if request failed.
        """
        try:
            response = self.session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            logger.info(f"Successfully fetched page ({len(response.text)} bytes)")
            return response.text
        except requests.RequestException as e:
            logger.error(f"Error fetching page: {e}")
            return None

    def extract_fact(self, html: str) -> Optional[dict]:
        """Extract the DisconSchedule.fact JSON from inline scripts."""
        match = self.FACT_PATTERN.search(html)
        if not match:
            logger.warning("Fact table not found on page")
            return None
        try:
            fact, _ = json.JSONDecoder().raw_decode(html, match.end())
            return fact
        except json.JSONDecodeError as e:
            logger.warning(f"Fact table is not valid JSON: {e}")
            return None

    def extract_announcement(self, html: str) -> Optional[str]:
        """Text of the site-wide announcement popup, if present."""
        soup = BeautifulSoup(html, "html.parser")
        modal = soup.select_one(".modal, .popup, [role='dialog']")
        if not modal:
            return None
        text = modal.get_text(separator="\n", strip=True)
        return text or None

    def extract_current_outage(self, html: str) -> Optional[str]:
        """Text of the #showCurOutage block, if present."""
        soup = BeautifulSoup(html, "html.parser")
        block = soup.select_one("#showCurOutage")
        if not block:
            return None
        text = block.get_text(separator="\n", strip=True)
        return text or None

    def extract_tables(self, html: str) -> List[Tuple[int, List[str]]]:
        """
        Rendered schedule tables.

        Returns:
            (day_epoch, cell classes) per div.discon-fact-table; the first
            two cells of each table are headers and are skipped.
        """
        soup = BeautifulSoup(html, "html.parser")
        tables = []
        for table in soup.select("div.discon-fact-table"):
            try:
                day_epoch = int(table.get_attribute_list("rel")[0])
            except (TypeError, ValueError):
                continue
            cells = table.select("tbody tr td")[2:]
            classes = [" ".join(cell.get("class") or []) for cell in cells]
            if classes:
                tables.append((day_epoch, classes))
        return tables

    def extract_update_text(self, html: str) -> Optional[str]:
        """Page text around the update timestamp."""
        soup = BeautifulSoup(html, "html.parser")
        text = soup.get_text(separator="\n")
        for line in text.split("\n"):
            if "Дата оновлення інформації" in line:
                return line.strip()
        return None

    def extract_csrf(self, html: str) -> Optional[str]:
        soup = BeautifulSoup(html, "html.parser")
        meta = soup.find("meta", attrs={"name": "csrf-token"})
        return meta.get("content") if meta else None

    def fetch_house(self, address: AddressConfig, csrf: Optional[str]) -> Optional[dict]:
        """
        Request the status of all houses on the address's street.

        Returns:
            Parsed JSON ({"data": {"<house>": {...}}, "updateTimestamp": ...})
            or None if the request failed.
        """
        form = {
            "method": "getHomeNum",
            "data[0][name]": "city",
            "data[0][value]": address.city,
            "data[1][name]": "street",
            "data[1][value]": address.street,
        }
        headers = {"X-Requested-With": "XMLHttpRequest"}
        if csrf:
            headers["X-CSRF-Token"] = csrf
        try:
            response = self.session.post(
                urljoin(self.url, self.AJAX_PATH), data=form, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Error fetching status for {address.id}: {e}")
            return None
