from __future__ import annotations

import logging
from datetime import date
from typing import Optional

import requests

from stocksuite.domain.errors import FxUnavailableError

log = logging.getLogger("stocksuite.fx")

PRIMARY_URL = "https://cdn.jsdelivr.net/npm/@fawazahmed0/currency-api@latest/v1/currencies/{base}.json"
FALLBACK_URL = "https://latest.currency-api.pages.dev/v1/currencies/{base}.json"


class FxService:
    def __init__(self, repo):
        self.repo = repo

    def _fetch_json(self, url: str) -> dict:
        r = requests.get(url, timeout=10)
        r.raise_for_status()
        return r.json()

    def _extract_rate(self, data: dict, base: str, quote: str) -> float:
        # common structure: {"date":"YYYY-MM-DD","usd":{"eur":0.92, ...}}
        rates = data.get(base)
        if isinstance(rates, dict) and rates.get(quote) is not None:
            return self._validate_rate(rates[quote])

        for _k, v in data.items():
            if isinstance(v, dict) and quote in v:
                return self._validate_rate(v[quote])

        raise FxUnavailableError(f"FX API response missing {quote.upper()} rate. Raw: {data}")

    def _validate_rate(self, value: object) -> float:
        rate = float(value)
        if rate <= 0:
            raise FxUnavailableError(f"FX rate must be > 0. Received: {rate}")
        return rate

    def get_rate(self, base: str, quote: str, day: Optional[date] = None) -> float:
        """Units of `quote` per one unit of `base` for `day` (today by default)."""
        base = (base or "").strip().lower()
        quote = (quote or "").strip().lower()
        if not base or not quote:
            raise FxUnavailableError("Currency codes are required.")
        if base == quote:
            return 1.0

        d_iso = (day or date.today()).isoformat()
        cached = self.repo.get_fx_rate(d_iso, base, quote)
        if cached is not None:
            return float(cached)

        last_err = None
        for url in (PRIMARY_URL.format(base=base), FALLBACK_URL.format(base=base)):
            try:
                data = self._fetch_json(url)
                rate = self._extract_rate(data, base, quote)
                self.repo.set_fx_rate(d_iso, base, quote, rate)
                log.info("fx_rate_fetched base=%s quote=%s rate=%.6f", base, quote, rate)
                return float(rate)
            except (requests.RequestException, ValueError, FxUnavailableError) as e:
                last_err = e
                log.warning("fx_source_failed url=%s error=%s", url, e)

        latest = self.repo.get_latest_fx_rate(base, quote)
        if latest is not None:
            log.warning("fx_fallback_cached base=%s quote=%s rate=%.6f", base, quote, float(latest))
            self.repo.set_fx_rate(d_iso, base, quote, float(latest))
            return float(latest)

        raise FxUnavailableError(f"FX fetch failed and no cached rate available. Last error: {last_err}")

    def convert(self, amount: float, base: str, quote: str, day: Optional[date] = None) -> float:
        return float(amount) * self.get_rate(base, quote, day)
