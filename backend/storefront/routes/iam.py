from flask import Blueprint, request, abort, current_app, g
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from sqlalchemy import select
from storefront import get_db
from storefront.constants.roles import ROLE_ORDER, ROLE_RANK, ROLE_ADMIN, granted_capabilities, highest_role
from storefront.models.authz import Profile
from storefront.models.audit import AuditLog
from storefront.services.access import grantable_roles
from storefront.services.settings import LOCALES
from storefront.services.stores import SqlRoleStore, InsertOutcome
from storefront.decorators.auth import require_capability, resolve_for_actor
from storefront.utils.listing import apply_pagination, list_response

iam_bp = Blueprint('iam', __name__)


def _resolution_payload(res):
    body = res.to_dict()
    if g.get('access_error'):
        body['error'] = g.access_error
    return body


def _profile_or_404(user_id: str) -> Profile:
    profile = get_db().execute(select(Profile).where(Profile.user_id==user_id)).scalar_one_or_none()
    if not profile:
        abort(404)
    return profile


@iam_bp.post('/auth/register')
def register():
    data = request.json or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')
    full_name = (data.get('full_name') or '').strip()
    if not email or not password or not full_name:
        abort(400, description='email, password & full_name required')
    locale = data.get('locale') or current_app.config['DEFAULT_LOCALE']
    if locale not in LOCALES:
        abort(400, description=f'locale must be one of {list(LOCALES)}')
    session = get_db()
    if session.execute(select(Profile).where(Profile.email==email)).scalar_one_or_none():
        abort(400, description='email in use')
    profile = Profile(full_name=full_name, email=email, phone=data.get('phone'), locale=locale, password_hash='')
    profile.set_password(password)
    session.add(profile)
    session.commit()
    return {'user_id': profile.user_id, 'email': profile.email}, 201


@iam_bp.post('/auth/login')
def login():
    data = request.json or {}
    email = (data.get('email') or '').strip().lower(); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    profile = session.execute(select(Profile).where(Profile.email==email)).scalar_one_or_none()
    if not profile or not profile.is_active or not profile.verify_password(password):
        abort(401, description='invalid credentials')
    # First authentication is where the bootstrap admin grant happens
    res = resolve_for_actor(profile.user_id)
    token = create_access_token(identity=profile.user_id, additional_claims={'role': res.role, 'locale': profile.locale})
    body = _resolution_payload(res)
    body['access_token'] = token
    return body


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    user_id = get_jwt_identity()
    profile = _profile_or_404(user_id)
    res = resolve_for_actor(user_id)
    body = _resolution_payload(res)
    body.update({
        'user_id': profile.user_id,
        'full_name': profile.full_name,
        'email': profile.email,
        'locale': profile.locale,
    })
    return body


@iam_bp.get('/roles')
@require_capability('view_users')
def list_roles():
    return {
        'data': [
            {'name': name, 'rank': ROLE_RANK[name], 'capabilities': sorted(granted_capabilities(name))}
            for name in reversed(ROLE_ORDER)
        ]
    }


@iam_bp.get('/assignments')
@require_capability('view_users')
def list_assignments():
    """Staff directory: every explicit role row joined to its profile."""
    rows = SqlRoleStore().list_assignments()
    profiles = {
        p.user_id: p for p in get_db().execute(
            select(Profile).where(Profile.user_id.in_(sorted({r['user_id'] for r in rows})))
        ).scalars().all()
    } if rows else {}
    for r in rows:
        p = profiles.get(r['user_id'])
        r['email'] = p.email if p else None
        r['full_name'] = p.full_name if p else None
    return {'data': rows}


@iam_bp.get('/users/<user_id>/roles')
@require_capability('view_users')
def get_user_roles(user_id: str):
    _profile_or_404(user_id)
    assigned = SqlRoleStore().roles_for_actor(user_id)
    return {'user_id': user_id, 'roles': sorted(assigned, key=lambda r: -ROLE_RANK.get(r, -1)), 'effective_role': highest_role(assigned)}


@iam_bp.post('/users/<user_id>/roles')
@require_capability('edit_user_roles')
def grant_role(user_id: str):
    role = (request.json or {}).get('role')
    if role not in grantable_roles():
        abort(400, description=f'role must be one of {grantable_roles()}')
    _profile_or_404(user_id)
    outcome = SqlRoleStore().insert_role_if_absent(user_id, role, granted_by=g.actor_id)
    if outcome is InsertOutcome.CONFLICT:
        abort(409, description='role already assigned')
    return {'user_id': user_id, 'role': role}, 201


@iam_bp.delete('/users/<user_id>/roles/<role>')
@require_capability('edit_user_roles')
def revoke_role(user_id: str, role: str):
    if role not in grantable_roles():
        abort(400, description=f'role must be one of {grantable_roles()}')
    store = SqlRoleStore()
    if role not in store.roles_for_actor(user_id):
        abort(404)
    if role == ROLE_ADMIN and store.count_role(ROLE_ADMIN) <= 1:
        abort(400, description='Cannot remove last admin')
    store.delete_role(user_id, role, revoked_by=g.actor_id)
    return {'status': 'revoked', 'user_id': user_id, 'role': role}


# --- Audit Log Listing ---
@iam_bp.get('/audit/logs')
@require_capability('edit_settings')
def list_audit_logs():
    session = get_db()
    q = session.query(AuditLog)
    for arg, col in (('actor_user_id', AuditLog.actor_user_id), ('action', AuditLog.action),
                     ('entity', AuditLog.entity), ('entity_id', AuditLog.entity_id)):
        val = request.args.get(arg)
        if val:
            q = q.filter(col==val)
    paged, total, limit, offset = apply_pagination(q.order_by(AuditLog.id.desc()))
    rows = paged.all()
    data = [
        {
            'id': r.id,
            'actor_user_id': r.actor_user_id,
            'action': r.action,
            'entity': r.entity,
            'entity_id': r.entity_id,
            'meta': r.meta,
            'created_at': r.created_at.isoformat() if r.created_at else None
        } for r in rows
    ]
    return list_response(data, total, limit, offset, rows[0].created_at if rows else None)
