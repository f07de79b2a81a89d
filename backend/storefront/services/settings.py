"""Versioned configuration structs parsed from site_settings JSON documents.

Documents are validated at the boundary: unknown keys, wrong types and
negative amounts raise InvalidSettingsDocument instead of flowing into the
threshold arithmetic. Missing keys take the defaults below.
"""
from __future__ import annotations
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, Optional

from storefront.errors import InvalidSettingsDocument

SHIPPING_KEY = 'shipping'
VIP_KEY = 'vip'
LOCALES = ('en', 'ar')


def _bool(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise InvalidSettingsDocument(f'{name} must be boolean')
    return value


def _amount(name: str, value: Any) -> float:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidSettingsDocument(f'{name} must be a number')
    if value < 0:
        raise InvalidSettingsDocument(f'{name} must be >= 0')
    return float(value)


def _count(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidSettingsDocument(f'{name} must be an integer')
    if value < 0:
        raise InvalidSettingsDocument(f'{name} must be >= 0')
    return value


def _i18n(name: str, value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        raise InvalidSettingsDocument(f'{name} must be an object keyed by locale')
    for k, v in value.items():
        if k not in LOCALES or not isinstance(v, str):
            raise InvalidSettingsDocument(f'{name} supports only {list(LOCALES)} string values')
    return dict(value)


def _check_document(cls, doc: Any) -> Dict[str, Any]:
    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise InvalidSettingsDocument(f'{cls.__name__} document must be an object')
    known = {f.name for f in fields(cls)}
    unknown = set(doc) - known
    if unknown:
        raise InvalidSettingsDocument(f'unknown keys: {sorted(unknown)}')
    return doc


@dataclass(frozen=True)
class ShippingPolicy:
    enabled: bool = True
    threshold: float = 200.0
    min_items: int = 0
    shipping_cost: float = 25.0
    show_progress_bar: bool = True
    label_i18n: Dict[str, str] = field(default_factory=lambda: {'en': 'Shipping', 'ar': 'الشحن'})
    version: int = 1

    @classmethod
    def from_document(cls, doc: Optional[Dict[str, Any]]) -> 'ShippingPolicy':
        doc = _check_document(cls, doc)
        kwargs: Dict[str, Any] = {}
        if 'enabled' in doc:
            kwargs['enabled'] = _bool('enabled', doc['enabled'])
        if 'threshold' in doc:
            kwargs['threshold'] = _amount('threshold', doc['threshold'])
        if 'min_items' in doc:
            kwargs['min_items'] = _count('min_items', doc['min_items'])
        if 'shipping_cost' in doc:
            kwargs['shipping_cost'] = _amount('shipping_cost', doc['shipping_cost'])
        if 'show_progress_bar' in doc:
            kwargs['show_progress_bar'] = _bool('show_progress_bar', doc['show_progress_bar'])
        if 'label_i18n' in doc:
            kwargs['label_i18n'] = _i18n('label_i18n', doc['label_i18n'])
        if 'version' in doc:
            kwargs['version'] = _count('version', doc['version'])
        return cls(**kwargs)

    def to_document(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class VipProgramSettings:
    is_enabled: bool = True
    points_per_unit: float = 1.0
    validity_months: int = 12
    program_name_i18n: Dict[str, str] = field(default_factory=lambda: {'en': 'VIP Program', 'ar': 'برنامج VIP'})
    version: int = 1

    @classmethod
    def from_document(cls, doc: Optional[Dict[str, Any]]) -> 'VipProgramSettings':
        doc = _check_document(cls, doc)
        kwargs: Dict[str, Any] = {}
        if 'is_enabled' in doc:
            kwargs['is_enabled'] = _bool('is_enabled', doc['is_enabled'])
        if 'points_per_unit' in doc:
            kwargs['points_per_unit'] = _amount('points_per_unit', doc['points_per_unit'])
        if 'validity_months' in doc:
            months = _count('validity_months', doc['validity_months'])
            if months < 1:
                raise InvalidSettingsDocument('validity_months must be >= 1')
            kwargs['validity_months'] = months
        if 'program_name_i18n' in doc:
            kwargs['program_name_i18n'] = _i18n('program_name_i18n', doc['program_name_i18n'])
        if 'version' in doc:
            kwargs['version'] = _count('version', doc['version'])
        return cls(**kwargs)

    def to_document(self) -> Dict[str, Any]:
        return asdict(self)


SETTINGS_TYPES = {
    SHIPPING_KEY: ShippingPolicy,
    VIP_KEY: VipProgramSettings,
}


def load_settings(key: str):
    """Load and validate the stored document for key, or the defaults if absent."""
    from storefront.models.settings import SiteSetting
    from storefront import get_db
    from sqlalchemy import select
    cls = SETTINGS_TYPES[key]
    row = get_db().execute(select(SiteSetting).where(SiteSetting.key == key)).scalar_one_or_none()
    if not row:
        return cls()
    doc = dict(row.value or {})
    doc['version'] = row.version
    return cls.from_document(doc)


def save_settings(key: str, doc: Dict[str, Any]):
    """Validate doc, merge over current values and persist with version + 1.

    Returns the stored struct. Caller commits.
    """
    from storefront.models.settings import SiteSetting
    from storefront import get_db
    from sqlalchemy import select
    cls = SETTINGS_TYPES[key]
    if not isinstance(doc, dict):
        raise InvalidSettingsDocument('settings document must be an object')
    incoming = {k: v for k, v in doc.items() if k != 'version'}
    session = get_db()
    row = session.execute(select(SiteSetting).where(SiteSetting.key == key)).scalar_one_or_none()
    current = dict(row.value or {}) if row else {}
    merged = cls.from_document({**current, **incoming})
    value = merged.to_document()
    value.pop('version')
    if row is None:
        row = SiteSetting(key=key, version=1, value=value)
        session.add(row)
    else:
        row.version = row.version + 1
        row.value = value
    session.flush()
    return cls.from_document({**value, 'version': row.version})


__all__ = ['ShippingPolicy', 'VipProgramSettings', 'SHIPPING_KEY', 'VIP_KEY', 'load_settings', 'save_settings']
