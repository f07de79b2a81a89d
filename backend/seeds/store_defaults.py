"""Seed definitions for the VIP ladder and site settings.
(Not an executable script; scripts/seed_store.py reads these as the single source of truth.)
"""

# Ascending, contiguous; the last tier is unbounded
VIP_TIERS = [
    {
        'name_i18n': {'en': 'Green', 'ar': 'الأخضر'},
        'min_spend': 0, 'max_spend': 2000, 'discount_percent': 5,
        'benefits_i18n': {'en': ['5% off every order'], 'ar': ['خصم 5% على كل طلب']},
    },
    {
        'name_i18n': {'en': 'Gold', 'ar': 'الذهبي'},
        'min_spend': 2000, 'max_spend': 10000, 'discount_percent': 10,
        'benefits_i18n': {'en': ['10% off every order', 'Early access to new plants'], 'ar': ['خصم 10% على كل طلب', 'وصول مبكر للنباتات الجديدة']},
    },
    {
        'name_i18n': {'en': 'Platinum', 'ar': 'البلاتيني'},
        'min_spend': 10000, 'max_spend': None, 'discount_percent': 15,
        'benefits_i18n': {'en': ['15% off every order', 'Free delivery', 'Personal plant advisor'], 'ar': ['خصم 15% على كل طلب', 'توصيل مجاني', 'مستشار نباتات شخصي']},
    },
]

SHIPPING = {
    'enabled': True,
    'threshold': 200,
    'min_items': 0,
    'shipping_cost': 25,
    'show_progress_bar': True,
    'label_i18n': {'en': 'Shipping', 'ar': 'الشحن'},
}

VIP_PROGRAM = {
    'is_enabled': True,
    'points_per_unit': 1,
    'validity_months': 12,
    'program_name_i18n': {'en': 'Green Grass VIP', 'ar': 'كبار عملاء جرين جراس'},
}
