from __future__ import annotations
from flask import Blueprint, request, g
from storefront import get_db, change_feed
from storefront.decorators.auth import require_capability
from storefront.services.settings import load_settings, save_settings, SHIPPING_KEY, VIP_KEY

settings_bp = Blueprint('settings', __name__)


def _store(key: str):
    stored = save_settings(key, request.json)
    get_db().commit()
    change_feed.publish('site_settings', 'update', {
        'action': 'SETTINGS.UPDATE', 'id': key, 'version': stored.version, 'actor': g.actor_id,
    })
    return stored.to_document()


@settings_bp.get('/shipping')
def get_shipping():
    return load_settings(SHIPPING_KEY).to_document()


@settings_bp.put('/shipping')
@require_capability('edit_settings')
def put_shipping():
    return _store(SHIPPING_KEY)


@settings_bp.get('/vip')
def get_vip_program():
    return load_settings(VIP_KEY).to_document()


@settings_bp.put('/vip')
@require_capability('manage_vip')
def put_vip_program():
    return _store(VIP_KEY)
