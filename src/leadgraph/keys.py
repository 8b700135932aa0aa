"""Natural-key builders for companies and people.

Keys are derived from the entity's own normalized attributes in a fixed
priority order, so re-ingesting the same data converges on the same row.
A missing strongest signal on first sighting is handled by the resolver's
match-by-any-identifier lookups, not here.
"""

from __future__ import annotations

from leadgraph.errors import KeyDerivationError
from leadgraph.normalize import (
    PLACEHOLDER_DOMAIN,
    canonicalize_linkedin_url,
    name_slug,
    normalize_domain_host,
    normalize_email,
    normalize_name_for_key,
    normalize_orgnr,
    normalize_phone,
)


def _usable_domain(value: str | None, placeholder_domain: str) -> str | None:
    host = normalize_domain_host(value)
    if host and host != placeholder_domain:
        return host
    return None


def build_company_key(
    *,
    orgnr: str | None = None,
    clean_domain: str | None = None,
    domain_host: str | None = None,
    name: str | None = None,
    placeholder_domain: str = PLACEHOLDER_DOMAIN,
) -> str:
    """Derive ``company_key``: orgnr, then clean domain, then domain, then name slug.

    Raises:
        KeyDerivationError: If none of the four signals yields a value.
    """
    key = (
        normalize_orgnr(orgnr)
        or _usable_domain(clean_domain, placeholder_domain)
        or _usable_domain(domain_host, placeholder_domain)
        or name_slug(name)
    )
    if not key:
        msg = f"Unable to derive company_key (name={name!r})"
        raise KeyDerivationError(msg)
    return key


def build_person_key(
    *,
    linkedin_url: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    full_name: str | None = None,
    company_domain: str | None = None,
    company_name: str | None = None,
    company_key: str | None = None,
    placeholder_domain: str = PLACEHOLDER_DOMAIN,
) -> str:
    """Derive ``person_key``.

    Priority: LinkedIn URL, email, phone, ``{domain}_{name}``, then
    ``{company name or company key}_{name}``.  The domain variant comes
    first among the name fallbacks because it survives company renames.

    Raises:
        KeyDerivationError: If there is no strong signal and either no name
            or nothing to anchor the name to a company.
    """
    strong = (
        canonicalize_linkedin_url(linkedin_url)
        or normalize_email(email)
        or normalize_phone(phone)
    )
    if strong:
        return strong

    person_name = normalize_name_for_key(full_name)
    if not person_name:
        msg = "Unable to derive person_key: no identifier and no name"
        raise KeyDerivationError(msg)

    domain = _usable_domain(company_domain, placeholder_domain)
    if domain:
        return f"{domain}_{person_name}"

    anchor = normalize_name_for_key(company_name) if company_name else company_key
    if anchor:
        return f"{anchor}_{person_name}"

    msg = f"Unable to derive person_key for {full_name!r}: no company signal"
    raise KeyDerivationError(msg)
