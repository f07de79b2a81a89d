from functools import wraps
from flask import abort, current_app, g
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity
from storefront.constants.roles import CAPABILITY_SET
from storefront.errors import AccessStoreError, UnknownCapability
from storefront.services.access import resolve_role, has_capability, anonymous_resolution
from storefront.services.stores import SqlRoleStore, SqlProfileStore


def resolve_for_actor(actor_id):
    """Resolve the actor's role, failing closed to ``user`` on store errors.

    The store error detail is kept on g.access_error for the response.
    """
    role_store = SqlRoleStore(bootstrap_strategy=current_app.config['BOOTSTRAP_STRATEGY'])
    try:
        res = resolve_role(actor_id, role_store, SqlProfileStore())
    except AccessStoreError as e:
        current_app.logger.error('role resolution failed for %s, treating as user: %s', actor_id, e.detail)
        g.access_error = e.detail
        res = anonymous_resolution()
    g.actor_id = actor_id
    g.resolution = res
    return res


def current_resolution(optional: bool = False):
    """Verify the JWT and resolve the caller; None when optional and unauthenticated."""
    verify_jwt_in_request(optional=optional)
    actor_id = get_jwt_identity()
    if actor_id is None:
        return None
    return resolve_for_actor(actor_id)


def require_capability(*capabilities: str):
    unknown = [c for c in capabilities if c not in CAPABILITY_SET]
    if unknown:
        raise UnknownCapability(unknown[0])

    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            res = current_resolution()
            if not all(has_capability(res.permissions, c) for c in capabilities):
                abort(403, description='Missing capability')
            return fn(*args, **kwargs)
        return wrapper
    return outer
