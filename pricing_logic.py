# pricing_logic.py
import io
import logging
import math
import os
import re
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Iterable, Mapping

import numpy as np
import pandas as pd

from pricing_config import (
    COLUMNS,
    CSV_PARSE,
    DERIVED_COLUMNS,
    IMPORT_COLUMNS,
    IMPORT_FILE_PREFIX,
    METHODS,
    PREVIEW_LIMIT,
    SKU_PLACEHOLDER_PREFIX,
    TITLE_PLACEHOLDER,
    ColumnConfig,
    CsvParseConfig,
)

logger = logging.getLogger(__name__)

BASE_COLUMNS = ["sku", "title", "current_price", "cost_price"]

# ------------------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------------------
class PricingInputError(ValueError):
    """Input the user has to fix and re-upload. Carries enough detail to message them."""
    code = "invalid_input"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class EmptyDatasetError(PricingInputError):
    code = "empty_dataset"

    def __init__(self, message: str = "CSV file is empty"):
        super().__init__(message)


class MissingColumnsError(PricingInputError):
    code = "missing_columns"

    def __init__(self, missing: list[str], found: list[str]):
        self.missing = list(missing)
        self.found = list(found)
        super().__init__(
            f"Missing columns: {', '.join(self.missing)}. Found: {', '.join(self.found)}",
            {"missing": self.missing, "found": self.found},
        )


class NoValidRowsError(PricingInputError):
    code = "no_valid_rows"

    def __init__(self, sku_column: str = COLUMNS.sku):
        super().__init__(
            f"No valid products found. Check your CSV has data in the {sku_column} column.",
            {"sku_column": sku_column},
        )


class InvalidTargetError(PricingInputError):
    code = "invalid_target"


# ------------------------------------------------------------------------------
# Row model
# ------------------------------------------------------------------------------
@dataclass(frozen=True)
class ProductRow:
    sku: str
    title: str
    current_price: float
    cost_price: float
    new_price: float | None = None
    margin_percent: float | None = None
    price_change: float | None = None
    # original input row, verbatim, for re-export
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_calculated(self) -> bool:
        return self.new_price is not None

    def to_record(self) -> dict[str, Any]:
        rec = dict(self.extra)
        rec.update(sku=self.sku, title=self.title,
                   current_price=self.current_price, cost_price=self.cost_price)
        if self.is_calculated:
            rec.update(new_price=self.new_price, margin_percent=self.margin_percent,
                       price_change=self.price_change, new_price_shopify=f"{self.new_price:.2f}")
        return rec


@dataclass(frozen=True)
class PricingParams:
    method: str
    target_percent: float

    def __post_init__(self):
        _check_params(self.target_percent, self.method)
        object.__setattr__(self, "target_percent", float(self.target_percent))


# ------------------------------------------------------------------------------
# Numeric normalizer
# ------------------------------------------------------------------------------
_MONEY_JUNK = re.compile(r"[$,\s\"']")
_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def normalize_money(raw) -> float:
    """'$1,234.50' -> 1234.5. Empty, junk, negative or non-finite input -> 0.0."""
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float, np.number)):
        value = float(raw)
    else:
        s = _MONEY_JUNK.sub("", str(raw))
        m = _LEADING_NUMBER.match(s)
        if not m:
            return 0.0
        value = float(m.group(0))
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def _round2(x: float) -> float:
    # half-up at the cent, same as Math.round(x * 100) / 100 in the exported sheets
    return math.floor(x * 100 + 0.5) / 100


def _clean_text(x) -> str:
    if x is None:
        return ""
    if isinstance(x, float) and math.isnan(x):
        return ""
    return str(x).strip()


# ------------------------------------------------------------------------------
# CSV reading
# ------------------------------------------------------------------------------
def _read_frame(data: bytes, config: CsvParseConfig) -> pd.DataFrame:
    kwargs = dict(
        header=0 if config.has_header else None,
        skip_blank_lines=config.skip_empty_lines,
    )
    if not config.infer_types:
        kwargs.update(dtype=str, keep_default_na=False)

    # try common encodings
    for enc in ["utf-8-sig", "cp1252", "latin1"]:
        try:
            return pd.read_csv(io.BytesIO(data), encoding=enc, **kwargs)
        except UnicodeDecodeError:
            continue
    return pd.read_csv(io.BytesIO(data), encoding="latin1", **kwargs)


def read_catalog_csv(source, config: CsvParseConfig = CSV_PARSE) -> tuple[list[dict[str, Any]], list[str]]:
    """
    Parse delimited text into (records, headers).
    `source` may be raw bytes, CSV text, a file-like object or a path.
    """
    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
    elif isinstance(source, str) and "\n" not in source and os.path.exists(source):
        with open(source, "rb") as fh:
            data = fh.read()
    elif isinstance(source, str):
        data = source.encode("utf-8")
    elif isinstance(source, os.PathLike):
        with open(source, "rb") as fh:
            data = fh.read()
    else:
        data = source.read()
        if isinstance(data, str):
            data = data.encode("utf-8")

    try:
        df = _read_frame(data, config)
    except pd.errors.EmptyDataError:
        raise EmptyDatasetError() from None
    except pd.errors.ParserError as e:
        raise PricingInputError(f"Could not parse CSV: {e}") from e

    if config.trim_headers:
        df.columns = [str(c).strip() for c in df.columns]
    else:
        df.columns = [str(c) for c in df.columns]
    if not config.infer_types:
        df = df.fillna("")

    if config.skip_empty_lines and len(df):
        blank = df.apply(lambda r: all(_clean_text(v) == "" for v in r), axis=1)
        df = df[~blank]

    headers = list(df.columns)
    return df.to_dict(orient="records"), headers


# ------------------------------------------------------------------------------
# Row validator / ingestion
# ------------------------------------------------------------------------------
def ingest_rows(
    raw_rows: Iterable[Mapping[str, Any]],
    headers: list[str] | None = None,
    columns: ColumnConfig = COLUMNS,
) -> tuple[list[ProductRow], dict[str, Any]]:
    """
    Returns:
      - list[ProductRow] in input order
      - debug info (columns, counts, duplicate skus)
    Raises EmptyDatasetError / MissingColumnsError / NoValidRowsError.
    """
    rows = list(raw_rows)
    if not rows:
        raise EmptyDatasetError()

    found = list(headers) if headers is not None else list(rows[0].keys())
    missing = [c for c in columns.required if c not in found]
    if missing:
        raise MissingColumnsError(missing, found)

    out: list[ProductRow] = []
    dropped = 0
    for index, raw in enumerate(rows, start=1):
        placeholder = f"{SKU_PLACEHOLDER_PREFIX}{index}"
        sku = _clean_text(raw.get(columns.sku)) or placeholder
        if sku == placeholder:
            dropped += 1
            continue

        out.append(ProductRow(
            sku=sku,
            title=_clean_text(raw.get(columns.title)) or TITLE_PLACEHOLDER,
            current_price=normalize_money(raw.get(columns.price)),
            cost_price=normalize_money(raw.get(columns.cost)),
            extra=dict(raw),
        ))

    if not out:
        raise NoValidRowsError(columns.sku)

    dupes = sorted(s for s, n in Counter(r.sku for r in out).items() if n > 1)
    if dropped:
        logger.warning("Dropped %d row(s) without a %s", dropped, columns.sku)
    if dupes:
        logger.warning("Duplicate SKUs kept as separate rows: %s", ", ".join(dupes))

    info = {
        "columns": found,
        "rows_total": len(rows),
        "rows_parsed": len(out),
        "rows_dropped": dropped,
        "duplicate_skus": dupes,
    }
    logger.info("Ingested %d of %d rows", len(out), len(rows))
    return out, info


# ------------------------------------------------------------------------------
# Pricing engine
# ------------------------------------------------------------------------------
def _check_params(target_percent: float, method: str):
    if method not in METHODS:
        raise InvalidTargetError(
            f"Unknown calculation method '{method}'. Use one of: {', '.join(METHODS)}",
            {"method": method},
        )
    try:
        target = float(target_percent)
    except (TypeError, ValueError):
        raise InvalidTargetError(f"Target must be a number, got {target_percent!r}",
                                 {"target_percent": target_percent}) from None
    if not math.isfinite(target):
        raise InvalidTargetError("Target must be a finite number", {"target_percent": target})
    if method == "margin" and target >= 100:
        raise InvalidTargetError(
            f"A gross margin of {target:g}% is not reachable; use a target below 100%",
            {"target_percent": target, "method": method},
        )


def compute_price(row: ProductRow, target_percent: float, method: str) -> ProductRow:
    """New row with new_price / margin_percent / price_change. Never mutates `row`."""
    _check_params(target_percent, method)
    target = float(target_percent)
    cost = row.cost_price

    # unknown cost: leave the price alone
    if cost == 0:
        return replace(row, new_price=row.current_price, margin_percent=0.0, price_change=0.0)

    if method == "margin":
        ideal = cost / (1 - target / 100)
    else:
        ideal = cost * (1 + target / 100)

    new_price = _round2(ideal)
    margin = _round2((new_price - cost) / new_price * 100) if new_price > 0 else 0.0
    return replace(
        row,
        new_price=new_price,
        margin_percent=margin,
        price_change=_round2(new_price - row.current_price),
    )


def calculate_prices(rows: Iterable[ProductRow], params: PricingParams) -> list[ProductRow]:
    out = [compute_price(r, params.target_percent, params.method) for r in rows]
    logger.info("Calculated %d prices (%s, target %.2f%%)", len(out), params.method, params.target_percent)
    return out


# ------------------------------------------------------------------------------
# Aggregator
# ------------------------------------------------------------------------------
@dataclass(frozen=True)
class Stats:
    total: int
    avg_margin: float
    price_increases: int
    price_decreases: int
    zero_cost_count: int

    @property
    def avg_margin_display(self) -> str:
        return f"{self.avg_margin:.1f}"


def summarize(rows: Iterable[ProductRow]) -> Stats:
    df = pd.DataFrame(
        [(r.margin_percent, r.price_change, r.cost_price) for r in rows],
        columns=["margin_percent", "price_change", "cost_price"],
        dtype=float,
    ).fillna(0.0)
    if df.empty:
        return Stats(total=0, avg_margin=0.0, price_increases=0, price_decreases=0, zero_cost_count=0)
    return Stats(
        total=int(len(df)),
        avg_margin=float(df["margin_percent"].mean()),
        price_increases=int((df["price_change"] > 0).sum()),
        price_decreases=int((df["price_change"] < 0).sum()),
        zero_cost_count=int((df["cost_price"] == 0).sum()),
    )


# ------------------------------------------------------------------------------
# Exports
# ------------------------------------------------------------------------------
def handle_for(sku: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", str(sku).lower())


def full_report_frame(rows: list[ProductRow], headers: list[str] | None = None) -> pd.DataFrame:
    """Every original column, then the normalized fields, then the derived ones."""
    records = [r.to_record() for r in rows]
    order = list(headers or [])
    for rec in records:
        for k in rec:
            if k not in order:
                order.append(k)
    # derived columns go last even when the input already carried one of them
    tail = [c for c in BASE_COLUMNS + DERIVED_COLUMNS if c in order]
    order = [c for c in order if c not in tail] + tail
    return pd.DataFrame.from_records(records, columns=order).fillna("")


def shopify_import_frame(rows: list[ProductRow], columns: ColumnConfig = COLUMNS) -> pd.DataFrame:
    out = []
    for r in rows:
        handle = r.extra.get(columns.handle)
        if not isinstance(handle, str) or handle == "":
            handle = handle_for(r.sku)
        price = r.new_price if r.is_calculated else r.current_price
        out.append([handle, r.title, r.sku, f"{price:.2f}", f"{r.cost_price:.2f}"])
    return pd.DataFrame(out, columns=IMPORT_COLUMNS)


def preview_frame(rows: list[ProductRow], limit: int = PREVIEW_LIMIT) -> pd.DataFrame:
    head = rows[:limit]
    d = pd.DataFrame({
        "Variant SKU": [r.sku for r in head],
        "Title": [r.title for r in head],
        "Cost": [r.cost_price for r in head],
        "Current Price": [r.current_price for r in head],
    })
    if rows and rows[0].is_calculated:
        d["New Price"] = [r.new_price for r in head]
        d["Margin %"] = [r.margin_percent for r in head]
        d["Change"] = [r.price_change for r in head]
    return d


def to_csv_bytes(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")


def source_label(filename: str | None) -> str:
    name = os.path.basename(filename or "")
    return re.sub(r"\.csv$", "", name, flags=re.IGNORECASE)


def export_filenames(label: str, today: date | None = None) -> tuple[str, str]:
    stamp = (today or date.today()).isoformat()
    return f"{label}_updated_{stamp}.csv", f"{IMPORT_FILE_PREFIX}_{stamp}.csv"
