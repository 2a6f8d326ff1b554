"""
Client-side form validation mirroring the backend's constraints.

These checks run before a request is sent so obvious mistakes never cost
a round trip. The backend re-validates everything and answers 422 when it
disagrees; see :class:`seo_dashboard.client.ValidationError`.
"""

from __future__ import annotations

import csv
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union
from urllib.parse import urlparse

from seo_dashboard.models import Device, KeywordTargetCreate, ProjectCreate, ProjectUpdate

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PROJECT_NAME_MAX_LENGTH = 255
PROJECT_DESCRIPTION_MAX_LENGTH = 1000

DOMAIN_PATTERN = re.compile(r"^([a-z0-9]+(-[a-z0-9]+)*\.)+[a-z]{2,}$", re.IGNORECASE)
DEFAULT_MAX_COMPETITORS = 5

CSV_EXTENSION = ".csv"
CSV_IMPORT_COLUMNS = ("date", "ga4_sessions", "ga4_users", "gsc_clicks", "lcp", "cls")

DEFAULT_KEYWORD_LOCALE = "us"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class FormValidationError(ValueError):
    """Raised when user input fails client-side validation.

    ``errors`` maps each offending field to its message.
    """

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        summary = "; ".join(f"{name}: {msg}" for name, msg in self.errors.items())
        super().__init__(summary or "Invalid input")


# ---------------------------------------------------------------------------
# Primitive checks
# ---------------------------------------------------------------------------


def is_valid_url(value: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc) and " " not in value


def validate_competitor_domain(domain: str) -> bool:
    """Basic domain check: ``example.com`` passes, ``not a domain`` fails."""
    return bool(DOMAIN_PATTERN.match(domain.strip()))


# ---------------------------------------------------------------------------
# Project form
# ---------------------------------------------------------------------------


def _project_field_errors(name: Optional[str], seed_url: Optional[str], description: Optional[str], partial: bool) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if name is not None or not partial:
        name = (name or "").strip()
        if not name:
            errors["name"] = "Name is required"
        elif len(name) > PROJECT_NAME_MAX_LENGTH:
            errors["name"] = f"Name must be at most {PROJECT_NAME_MAX_LENGTH} characters"

    if seed_url is not None or not partial:
        seed_url = (seed_url or "").strip()
        if not seed_url:
            errors["seed_url"] = "Seed URL is required"
        elif not is_valid_url(seed_url):
            errors["seed_url"] = "Must be a valid URL"

    if description is not None and len(description) > PROJECT_DESCRIPTION_MAX_LENGTH:
        errors["description"] = f"Description must be at most {PROJECT_DESCRIPTION_MAX_LENGTH} characters"

    return errors


def validate_project_form(name: str, seed_url: str, description: Optional[str] = None) -> ProjectCreate:
    """
    Validate the new-project form and build the create payload.

    An empty description is sent as ``None``.

    Raises
    ------
    FormValidationError
        With one message per invalid field.
    """
    errors = _project_field_errors(name, seed_url, description, partial=False)
    if errors:
        raise FormValidationError(errors)
    return ProjectCreate(
        name=name.strip(),
        seed_url=seed_url.strip(),
        description=description or None,
    )


def validate_project_update(
    name: Optional[str] = None,
    seed_url: Optional[str] = None,
    description: Optional[str] = None,
) -> ProjectUpdate:
    """Validate only the fields being changed on the settings form."""
    errors = _project_field_errors(name, seed_url, description, partial=True)
    if errors:
        raise FormValidationError(errors)
    return ProjectUpdate(
        name=name.strip() if name is not None else None,
        seed_url=seed_url.strip() if seed_url is not None else None,
        description=description,
    )


# ---------------------------------------------------------------------------
# Competitor input
# ---------------------------------------------------------------------------


class CompetitorList:
    """
    Ordered set of competitor domains with a size cap.

    >>> comps = CompetitorList(max_competitors=2)
    >>> comps.add("rival.com")
    True
    """

    def __init__(self, competitors: Iterable[str] = (), max_competitors: int = DEFAULT_MAX_COMPETITORS):
        self.max_competitors = max_competitors
        self._domains: List[str] = []
        for domain in competitors:
            self.add(domain)

    @property
    def domains(self) -> List[str]:
        return list(self._domains)

    @property
    def is_full(self) -> bool:
        return len(self._domains) >= self.max_competitors

    def add(self, domain: str) -> bool:
        """
        Add a competitor domain.

        Returns False for blank input. Raises FormValidationError when the
        domain is malformed, already present, or the list is full.
        """
        trimmed = (domain or "").strip()
        if not trimmed:
            return False
        if not validate_competitor_domain(trimmed):
            raise FormValidationError({"competitor": f"Invalid domain format: {trimmed!r}"})
        if trimmed in self._domains:
            raise FormValidationError({"competitor": f"{trimmed} is already in the list"})
        if self.is_full:
            raise FormValidationError(
                {"competitor": f"At most {self.max_competitors} competitors can be compared"}
            )
        self._domains.append(trimmed)
        return True

    def remove(self, domain: str) -> bool:
        if domain in self._domains:
            self._domains.remove(domain)
            return True
        return False

    def __contains__(self, domain: object) -> bool:
        return domain in self._domains

    def __iter__(self):
        return iter(self._domains)

    def __len__(self) -> int:
        return len(self._domains)

    def __repr__(self) -> str:
        return f"CompetitorList({self._domains!r}, max={self.max_competitors})"


# ---------------------------------------------------------------------------
# CSV upload
# ---------------------------------------------------------------------------


def validate_csv_upload(path: Union[str, Path]) -> Path:
    """Accept only existing files whose name ends in ``.csv``."""
    path = Path(path)
    if not path.name.lower().endswith(CSV_EXTENSION):
        raise FormValidationError({"file": "Please select a CSV file"})
    if not path.is_file():
        raise FormValidationError({"file": f"File not found: {path}"})
    return path


def check_csv_header(path: Union[str, Path]) -> List[str]:
    """Return the expected import columns missing from the CSV header row."""
    with open(path, "r", encoding="utf-8-sig", newline="") as fh:
        reader = csv.reader(fh)
        header = next(reader, [])
    present = {col.strip().lower() for col in header}
    return [col for col in CSV_IMPORT_COLUMNS if col not in present]


# ---------------------------------------------------------------------------
# Keyword dialog
# ---------------------------------------------------------------------------


def validate_keyword_form(
    keyword: str,
    locale: str = DEFAULT_KEYWORD_LOCALE,
    device: Union[Device, str] = Device.DESKTOP,
) -> KeywordTargetCreate:
    errors: Dict[str, str] = {}
    keyword = (keyword or "").strip()
    if not keyword:
        errors["keyword"] = "Keyword is required"
    locale = (locale or "").strip().lower() or DEFAULT_KEYWORD_LOCALE
    try:
        device = Device(device)
    except ValueError:
        errors["device"] = "Device must be one of: " + ", ".join(d.value for d in Device)
    if errors:
        raise FormValidationError(errors)
    return KeywordTargetCreate(keyword=keyword, locale=locale, device=device)
