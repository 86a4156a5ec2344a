"""Human-readable document codes such as ``ORD-261019-4821``."""

import random
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from restopos.errors import Internal
from restopos.utils.time_utils import now_local

MAX_CODE_ATTEMPTS = 10


def generate_code(prefix: str, now: Optional[datetime] = None) -> str:
    """Return ``{prefix}-{YYMMDD}-{4 random digits}`` using the local date."""
    now = now or now_local()
    return f"{prefix}-{now:%y%m%d}-{random.randint(1000, 9999)}"


def unique_code(session: Session, column, prefix: str) -> str:
    """Generate a code not yet present in ``column``."""
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_code(prefix)
        exists = session.execute(select(column).where(column == code).limit(1)).first()
        if exists is None:
            return code
    raise Internal(f"Could not allocate a unique {prefix} code", code="code_exhausted")
