from __future__ import annotations
from typing import Any, Dict, Optional
from flask import g, has_app_context
from sqlalchemy.exc import SQLAlchemyError
from storefront import get_db
from storefront.models.audit import AuditLog


def current_actor() -> Optional[str]:
    """Actor id stored on flask.g by the auth decorators, if any."""
    if not has_app_context():
        return None
    return g.get('actor_id')


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None,
              meta: Optional[Dict[str, Any]] = None, actor: Optional[str] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. ROLE.GRANT, ROLE.BOOTSTRAP, VIP.TIER.PIN
      entity: optional entity name (user_roles, vip_members, ...)
      entity_id: optional identifier string
      meta: additional JSON-safe dictionary (will be shallow copied)
      actor: acting user id; defaults to the request's authenticated actor
    """
    session = get_db()
    log = AuditLog(
        actor_user_id=actor or current_actor(),
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log


def record_change(key: str, event: str, payload: Dict[str, Any]):
    """Change feed subscriber: one audit row per committed change."""
    action = payload.pop('action', f'{key}.{event}'.upper())
    entity_id = payload.pop('id', None)
    actor = payload.pop('actor', None)
    session = get_db()
    add_audit(action, key, entity_id, payload, actor=actor)
    try:
        session.commit()
    except SQLAlchemyError:
        # Leave the thread's session usable for the next request
        session.rollback()
        raise
