# pricing_config.py
import logging
import os
from dataclasses import dataclass
from functools import lru_cache

# ------------------------------------------------------------------------------
# Fixed column set (Shopify product export, case-sensitive)
# ------------------------------------------------------------------------------
@dataclass(frozen=True)
class ColumnConfig:
    sku: str = "Variant SKU"
    price: str = "Variant Price"
    cost: str = "Cost per item"
    title: str = "Title"
    handle: str = "Handle"

    @property
    def required(self) -> tuple[str, ...]:
        return (self.sku, self.price)


@dataclass(frozen=True)
class CsvParseConfig:
    """How delimited input is read. Cells stay text until the normalizer runs."""
    has_header: bool = True
    trim_headers: bool = True
    infer_types: bool = False
    skip_empty_lines: bool = True


COLUMNS = ColumnConfig()
CSV_PARSE = CsvParseConfig()

# ------------------------------------------------------------------------------
# Defaults
# ------------------------------------------------------------------------------
METHODS = ("margin", "markup")
DEFAULT_METHOD = "margin"
DEFAULT_TARGET_PERCENT = 40.0
PREVIEW_LIMIT = 50
TITLE_PLACEHOLDER = "Unknown Product"
SKU_PLACEHOLDER_PREFIX = "ROW-"
IMPORT_FILE_PREFIX = "shopify_import"

# Derived columns appended to every row after a calculation pass
DERIVED_COLUMNS = ["new_price", "margin_percent", "price_change", "new_price_shopify"]
IMPORT_COLUMNS = ["Handle", "Title", "Variant SKU", "Variant Price", "Cost per item"]


@dataclass(frozen=True)
class PricingSettings:
    default_method: str
    default_target_percent: float
    log_level: int


def _env_method() -> str:
    raw = os.getenv("PRICING_DEFAULT_METHOD")
    if raw is None or not raw.strip():
        return DEFAULT_METHOD
    method = raw.strip().lower()
    if method not in METHODS:
        raise RuntimeError(
            f"PRICING_DEFAULT_METHOD '{raw.strip()}' is not valid. Allowed values: {list(METHODS)}."
        )
    return method


def _env_target() -> float:
    raw = os.getenv("PRICING_DEFAULT_TARGET")
    if raw is None or not raw.strip():
        return DEFAULT_TARGET_PERCENT
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"PRICING_DEFAULT_TARGET must be a number, got '{raw}'.") from None


def _env_log_level() -> int:
    raw = (os.getenv("PRICING_LOG_LEVEL") or "INFO").strip().upper()
    level = logging.getLevelName(raw)
    if not isinstance(level, int):
        raise RuntimeError(f"PRICING_LOG_LEVEL '{raw}' is not a logging level.")
    return level


@lru_cache(maxsize=1)
def get_settings() -> PricingSettings:
    """Defaults for the UI, with optional environment overrides."""
    return PricingSettings(
        default_method=_env_method(),
        default_target_percent=_env_target(),
        log_level=_env_log_level(),
    )
