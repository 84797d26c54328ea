# pricing_session.py
import logging
from datetime import date
from enum import Enum
from typing import Any, Iterable, Mapping

import pandas as pd

import pricing_logic as pl
from pricing_config import get_settings

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    EMPTY = "empty"
    LOADED = "loaded"
    CALCULATED = "calculated"


class PricingSession:
    """
    One uploaded catalog and its pricing parameters.

    Empty -> Loaded (load_*) -> Calculated (calculate); calculate again replaces
    the derived fields; reset() goes back to Empty from anywhere. A failed load
    leaves whatever was there before untouched.
    """

    def __init__(self, method: str | None = None, target_percent: float | None = None):
        settings = get_settings()
        self.method = method or settings.default_method
        self.target_percent = settings.default_target_percent if target_percent is None else float(target_percent)
        self.rows: list[pl.ProductRow] = []
        self.headers: list[str] = []
        self.source_label = ""
        self.info: dict[str, Any] = {}
        self.state = SessionState.EMPTY

    # --- transitions ----------------------------------------------------------
    def load_csv(self, data, filename: str = "") -> list[pl.ProductRow]:
        records, headers = pl.read_catalog_csv(data)
        return self.load_rows(records, headers, label=pl.source_label(filename))

    def load_rows(
        self,
        raw_rows: Iterable[Mapping[str, Any]],
        headers: list[str] | None = None,
        label: str = "",
    ) -> list[pl.ProductRow]:
        rows, info = pl.ingest_rows(raw_rows, headers)
        self.rows = rows
        self.headers = list(info["columns"])
        self.info = info
        self.source_label = label
        self.state = SessionState.LOADED
        return rows

    def calculate(self, method: str | None = None, target_percent: float | None = None) -> list[pl.ProductRow]:
        if self.state is SessionState.EMPTY:
            raise RuntimeError("No catalog loaded; upload a CSV before calculating prices.")
        params = pl.PricingParams(
            method=method or self.method,
            target_percent=self.target_percent if target_percent is None else target_percent,
        )
        self.rows = pl.calculate_prices(self.rows, params)
        self.method, self.target_percent = params.method, params.target_percent
        self.state = SessionState.CALCULATED
        return self.rows

    def reset(self):
        self.rows, self.headers, self.info = [], [], {}
        self.source_label = ""
        self.state = SessionState.EMPTY
        logger.info("Session reset")

    # --- views ----------------------------------------------------------------
    def summary(self) -> pl.Stats:
        return pl.summarize(self.rows)

    def preview(self, limit: int | None = None) -> pd.DataFrame:
        return pl.preview_frame(self.rows) if limit is None else pl.preview_frame(self.rows, limit)

    def full_report(self) -> pd.DataFrame:
        return pl.full_report_frame(self.rows, self.headers)

    def import_format(self) -> pd.DataFrame:
        return pl.shopify_import_frame(self.rows)

    def filenames(self, today: date | None = None) -> tuple[str, str]:
        return pl.export_filenames(self.source_label or "catalog", today)
