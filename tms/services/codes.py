"""
Job codes, LPNs, container numbers and tenant subdomains.

Codes are a prefix plus random A-Z0-9 characters. Uniqueness is checked
against the database and retried; after the last attempt a
timestamp-suffixed code is returned so callers never block.
"""
import random
import re
import string
import time
from typing import Callable

from sqlalchemy.orm import Session

from tms.config import get_settings
from tms.models.container import ContainerBooking
from tms.models.tenant import Tenant
from tms.models.warehouse import InboundInventory, OutboundInventory, PutAwayStock
from tms.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

CODE_ALPHABET = string.ascii_uppercase + string.digits

INBOUND_PREFIX = "INB-"
OUTBOUND_PREFIX = "OUT-"
IMPORT_PREFIX = "IMP-"
EXPORT_PREFIX = "EXP-"
CONTAINER_PREFIX = "CN-"
LPN_PREFIX = "LPN"

MAX_SUBDOMAIN_LENGTH = 63
MAX_SUBDOMAIN_SUFFIX = 999


def generate_code(prefix: str, length: int = 6) -> str:
    return prefix + "".join(random.choice(CODE_ALPHABET) for _ in range(length))


def _fallback_code(prefix: str) -> str:
    return generate_code(prefix, 4) + str(int(time.time() * 1000))[-6:]


def _unique(candidate: Callable[[], str], taken: Callable[[str], bool], prefix: str) -> str:
    for _ in range(settings.JOB_CODE_MAX_ATTEMPTS):
        code = candidate()
        if not taken(code):
            return code
    logger.warning(f"No free {prefix} code after {settings.JOB_CODE_MAX_ATTEMPTS} attempts, using fallback")
    return _fallback_code(prefix)


def job_code_exists(db: Session, tenant_id: str, code: str) -> bool:
    """True when any job collection of the tenant already uses the code."""
    if db.query(InboundInventory.id).filter(
        InboundInventory.tenant_id == tenant_id, InboundInventory.job_code == code
    ).first():
        return True
    if db.query(OutboundInventory.id).filter(
        OutboundInventory.tenant_id == tenant_id, OutboundInventory.job_code == code
    ).first():
        return True
    return db.query(ContainerBooking.id).filter(
        ContainerBooking.tenant_id == tenant_id, ContainerBooking.booking_code == code
    ).first() is not None


def generate_unique_job_code(db: Session, tenant_id: str, prefix: str) -> str:
    """Job code unique across inbound, outbound and container bookings of the tenant."""
    return _unique(
        lambda: generate_code(prefix),
        lambda code: job_code_exists(db, tenant_id, code),
        prefix,
    )


def generate_unique_lpn(db: Session, tenant_id: str) -> str:
    """LPN number unique within the tenant's put-away stock."""
    return _unique(
        lambda: generate_code(LPN_PREFIX, 8),
        lambda code: db.query(PutAwayStock.id).filter(
            PutAwayStock.tenant_id == tenant_id, PutAwayStock.lpn_number == code
        ).first() is not None,
        LPN_PREFIX,
    )


def generate_container_number() -> str:
    return generate_code(CONTAINER_PREFIX, 8)


def slugify(value: str) -> str:
    """Lowercase, non-alphanumerics to single dashes, no leading/trailing dash."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower())
    return slug.strip("-")[:MAX_SUBDOMAIN_LENGTH].strip("-")


def subdomain_taken(db: Session, subdomain: str) -> bool:
    return db.query(Tenant.id).filter(
        (Tenant.subdomain == subdomain) | (Tenant.slug == subdomain)
    ).first() is not None


def generate_subdomain(db: Session, name: str) -> str:
    """
    Subdomain for a new tenant, derived from the company name.

    Collisions get -1 .. -999 appended. Raises ValueError when the name
    has no usable characters or every suffix is taken.
    """
    base = slugify(name)
    if not base:
        raise ValueError("Company name does not produce a valid subdomain")

    if not subdomain_taken(db, base):
        return base

    for counter in range(1, MAX_SUBDOMAIN_SUFFIX + 1):
        suffix = f"-{counter}"
        candidate = base[:MAX_SUBDOMAIN_LENGTH - len(suffix)].rstrip("-") + suffix
        if not subdomain_taken(db, candidate):
            return candidate

    raise ValueError(f"Could not find an available subdomain for {name!r}")
