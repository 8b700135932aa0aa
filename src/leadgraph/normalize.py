"""Normalizers for scraped identifying attributes.

Every function takes a nullable raw string and returns its canonical form
or ``None``.  None of them raise on bad input.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from urllib.parse import urlsplit

import pandas as pd
from unidecode import unidecode

PLACEHOLDER_DOMAIN = "finn.no"

_WWW_PREFIX = re.compile(r"^(?:www\d*\.)+", re.IGNORECASE)
_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_NON_DIGITS = re.compile(r"\D+")
_WHITESPACE = re.compile(r"\s+")
_COUNTRY_CODE_MARKER = re.compile(r"^\s*(?:\+47|0047|47[\s-])")
_FINN_ID = re.compile(r"/job/ad/(\d+)", re.IGNORECASE)
_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_NORWEGIAN_DATE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})")

NON_DATE_TOKENS = frozenset({"snarest", "asap", "immediately"})
# Relative keywords pandas would resolve to the current time
_RELATIVE_DATE_TOKENS = frozenset({"now", "today"})

# ---------------------------------------------------------------------------
# Legal-entity suffixes, stripped one per tier (Norwegian, international,
# generic) in this order
# ---------------------------------------------------------------------------

_SUFFIX_TIERS = [
    re.compile(r"\s+(?:asa|as|a/s|ans|da|ba|sa|nuf|ks)$", re.IGNORECASE),
    re.compile(
        r"\s+(?:corporation|incorporated|limited|company|corp\.?|inc\.?|ltd\.?"
        r"|llc|llp|gmbh|ag|bv|nv|plc|co\.?)$",
        re.IGNORECASE,
    ),
    re.compile(r"\s+(?:group|holding|holdings)$", re.IGNORECASE),
]
_NON_ALNUM_NORDIC = re.compile(r"[^a-z0-9æøåäöü]+")


def normalize_domain_host(value: str | None) -> str | None:
    """Reduce a URL or bare domain to its lowercase host without ``www`` prefixes."""
    if not value:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None

    host: str | None
    try:
        parts = urlsplit(trimmed if "://" in trimmed else f"https://{trimmed}")
        host = parts.hostname
    except ValueError:
        host = None
    if not host:
        host = _SCHEME.sub("", trimmed).split("/")[0].split(":")[0]

    host = _WWW_PREFIX.sub("", host.lower())
    return host or None


def normalize_email(value: str | None) -> str | None:
    if not value:
        return None
    return value.strip().lower() or None


def normalize_phone(value: str | None) -> str | None:
    """Strip a phone number to digits, dropping an explicit +47 country code.

    The code is only dropped when the raw string itself carries a marker
    (``+47``, ``0047``, ``47 `` or ``47-``), so an eight-digit number that
    happens to start with 47 stays intact.
    """
    if not value:
        return None
    digits = _NON_DIGITS.sub("", value)
    if not digits:
        return None

    if digits.startswith("0047") and len(digits) == 12:
        return digits[4:]
    if _COUNTRY_CODE_MARKER.match(value) and digits.startswith("47") and len(digits) == 10:
        return digits[2:]
    return digits


def canonicalize_linkedin_url(value: str | None) -> str | None:
    """Canonical LinkedIn profile URL, or ``None`` for anything that is not LinkedIn."""
    if not value:
        return None
    trimmed = value.strip().lower()
    if not trimmed:
        return None
    try:
        parts = urlsplit(trimmed)
        host = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or not host or "linkedin." not in host:
        return None

    # Country variants (no.linkedin.com, uk.linkedin.com) share one profile space
    if "linkedin.com" in host:
        host = "www.linkedin.com"
    return f"{parts.scheme}://{host}{parts.path}".rstrip("/")


def normalize_orgnr(value: str | None) -> str | None:
    if not value:
        return None
    return _WHITESPACE.sub("", value) or None


def name_slug(value: str | None) -> str | None:
    """Lowercase ASCII alphanumerics only, at most 80 characters."""
    if not value:
        return None
    slug = re.sub(r"[^a-z0-9]+", "", unidecode(value.strip()).lower())[:80]
    return slug or None


def normalize_name_for_key(value: str | None) -> str | None:
    if not value:
        return None
    return _WHITESPACE.sub(" ", value.strip().lower())[:100] or None


def normalize_name_for_comparison(value: str | None) -> str | None:
    """Like :func:`normalize_name_for_key` but with punctuation removed."""
    if not value:
        return None
    text = _WHITESPACE.sub(" ", value.strip().lower())
    text = re.sub(r"[^\w\s]", "", text)
    return text[:100] or None


def normalize_company_name_for_matching(value: str | None) -> str | None:
    """Comparison key for fuzzy company identity (the stored ``clean_name``).

    ``"Acme Energy AS"`` and ``"ACME Energy"`` both become ``"acmeenergy"``.
    Nordic letters survive; everything else non-alphanumeric is dropped.
    """
    if not value:
        return None
    text = value.strip()
    for tier in _SUFFIX_TIERS:
        text = tier.sub("", text)
    text = _NON_ALNUM_NORDIC.sub("", text.lower())
    return text or None


def extract_finn_id(url: str | None) -> str | None:
    """Posting identifier: the numeric segment following ``/job/ad/``."""
    if not url:
        return None
    match = _FINN_ID.search(url)
    return match.group(1) if match else None


def _to_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


def normalize_date(value: str | None) -> str | None:
    """Convert a scraped date to an ISO 8601 UTC timestamp string.

    Accepts ISO-prefixed strings, Norwegian ``DD.MM.YYYY`` and anything
    pandas can parse.  Placeholders such as ``"Snarest"`` map to ``None``.
    """
    if not value:
        return None
    trimmed = value.strip()
    if not trimmed or trimmed.lower() in NON_DATE_TOKENS:
        return None

    if _ISO_PREFIX.match(trimmed):
        try:
            return _to_iso(datetime.fromisoformat(trimmed))
        except ValueError:
            pass

    match = _NORWEGIAN_DATE.match(trimmed)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return _to_iso(datetime.combine(date(year, month, day), datetime.min.time()))
        except ValueError:
            pass

    if trimmed.lower() in _RELATIVE_DATE_TOKENS:
        return None
    try:
        parsed = pd.to_datetime(trimmed, utc=True)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return _to_iso(parsed.to_pydatetime())


# ---------------------------------------------------------------------------
# Role classification
# ---------------------------------------------------------------------------

CONTACT_PERSON = "contact_person"
DECISION_MAKER = "decision_maker"
RECRUITER = "recruiter"
OTHER = "other"
PERSON_ROLES = (CONTACT_PERSON, DECISION_MAKER, RECRUITER, OTHER)

# Checked in order; decision-maker keywords win over recruiter keywords.
DECISION_MAKER_KEYWORDS = [
    r"\bdaglig leder\b",
    r"\badm(?:\.|inistrerende)? ?dir",
    r"\bdirektør",
    r"\bdirector\b",
    r"\bceo\b",
    r"\bcto\b",
    r"\bcfo\b",
    r"\bcoo\b",
    r"\bcio\b",
    r"\bchief\b",
    r"\bfounder\b",
    r"\bco-founder\b",
    r"\bgründer\b",
    r"\bgrunnlegger\b",
    r"\beier\b",
    r"\bowner\b",
    r"(?<!talent )\bpartner\b",
    r"\bstyreleder\b",
    r"\bchairman\b",
    r"\bpresident\b",
    r"\bhead of\b",
    r"\bvp\b",
    r"\bvice president\b",
    r"\bleder\b",
    r"\bavdelingsleder\b",
    r"\bseksjonsleder\b",
    r"\bteamleder\b",
    r"\bprosjektleder\b",
    r"\bmanager\b",
    r"sjef\b",
]
RECRUITER_KEYWORDS = [
    r"rekrutter",
    r"recruit",
    r"\btalent acquisition\b",
    r"\btalent partner\b",
    r"\bheadhunter\b",
    r"\bhr\b",
    r"\bhuman resources\b",
    r"\bpersonalrådgiver\b",
    r"\bpersonalkonsulent\b",
    r"\bbemanning",
]

_DECISION_MAKER_PATTERNS = [re.compile(p, re.IGNORECASE) for p in DECISION_MAKER_KEYWORDS]
_RECRUITER_PATTERNS = [re.compile(p, re.IGNORECASE) for p in RECRUITER_KEYWORDS]


def classify_person_role(title: str | None) -> str:
    """Map a free-text job title to a link role."""
    if not title or not title.strip():
        return CONTACT_PERSON
    if any(p.search(title) for p in _DECISION_MAKER_PATTERNS):
        return DECISION_MAKER
    if any(p.search(title) for p in _RECRUITER_PATTERNS):
        return RECRUITER
    return CONTACT_PERSON


def is_valid_person_name(name: str | None) -> bool:
    """A usable identifying name has at least two whitespace-separated tokens."""
    if not name:
        return False
    return len(name.split()) >= 2
