"""Append-only change log.

Entries are written by callers that want an audit trail. The HTTP routes hand
`record_change` to `OrderItemService`, which writes the entry inside the unit of
work of the item mutation; the triggers and the total recomputation never write here.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ecommerce_store.db.models import ChangeLog

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def record_change(
    session: Session,
    who: Optional[str],
    object_type: str,
    object_id: Any,
    change_type: str,
    data: Optional[dict] = None,
) -> ChangeLog:
    """
    Add a ChangeLog row to the session. The caller commits.

    `object_id` is stored as text so composite keys such as "12/3" fit.
    """
    entry = ChangeLog(
        who=who,
        object_type=object_type,
        object_id=str(object_id),
        change_type=change_type,
        change_data=data,
    )
    session.add(entry)
    logger.debug("Audit %s %s %s by %s", change_type, object_type, object_id, who)
    return entry


def changes_for(session: Session, object_type: str, object_id: Any) -> List[ChangeLog]:
    """Return the entries recorded for one object, oldest first."""
    stmt = (
        select(ChangeLog)
        .where(ChangeLog.object_type == object_type, ChangeLog.object_id == str(object_id))
        .order_by(ChangeLog.id)
    )
    return list(session.execute(stmt).scalars())
