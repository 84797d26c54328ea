"""
Shared test fixtures.
"""

import sys
from pathlib import Path

# Add project root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

import pytest

from pricing_config import get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch):
    """Settings are cached per process; each test sees its own environment."""
    for name in ("PRICING_DEFAULT_METHOD", "PRICING_DEFAULT_TARGET", "PRICING_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def raw_rows():
    """Shopify-style export rows, cells still text."""
    return [
        {"Handle": "blue-mug", "Title": " Blue Mug ", "Variant SKU": "MUG-BLU", "Variant Price": "$12.00",
         "Cost per item": "6.00", "Vendor": "Acme"},
        {"Handle": "", "Title": "Red Mug", "Variant SKU": "MUG RED/XL", "Variant Price": "80",
         "Cost per item": "$60", "Vendor": "Acme"},
        {"Handle": "", "Title": "", "Variant SKU": "TEE-01", "Variant Price": "25.5",
         "Cost per item": "", "Vendor": "Tees Ltd"},
    ]


@pytest.fixture
def catalog_csv():
    """A small export as the bytes an upload would carry."""
    return (
        "Handle,Title,Variant SKU,Variant Price,Cost per item,Vendor\n"
        "blue-mug,Blue Mug,MUG-BLU,$12.00,6.00,Acme\n"
        ",Red Mug,MUG RED/XL,80,$60,Acme\n"
        "\n"
        ",Orphan,,19.99,10,Acme\n"
        ",,TEE-01,25.5,,Tees Ltd\n"
    ).encode("utf-8")
