from datetime import date
from pathlib import Path

import pytest
import requests

from stocksuite.domain.errors import FxUnavailableError
from stocksuite.repositories.sqlite_repo import SqliteRepository
from stocksuite.services.fx_service import FxService


def make_fx(tmp_path: Path) -> tuple[SqliteRepository, FxService]:
    repo = SqliteRepository(tmp_path / "fx.db")
    repo.init_db()
    return repo, FxService(repo)


def fail(_url: str):
    raise requests.RequestException("network down")


def test_fx_uses_latest_cached_rate_when_remote_fails(tmp_path: Path):
    repo, fx = make_fx(tmp_path)
    repo.set_fx_rate("2024-01-01", "usd", "eur", 0.9)
    fx._fetch_json = fail  # type: ignore[method-assign]

    rate = fx.get_rate("USD", "EUR", date(2024, 1, 2))

    assert rate == 0.9
    assert repo.get_fx_rate("2024-01-02", "usd", "eur") == 0.9


def test_fx_fetches_and_caches_pair(tmp_path: Path):
    repo, fx = make_fx(tmp_path)
    calls = []

    def fetch(url: str):
        calls.append(url)
        return {"date": "2024-01-02", "usd": {"eur": 0.91, "ars": 1000.0}}

    fx._fetch_json = fetch  # type: ignore[method-assign]

    assert fx.get_rate("usd", "eur", date(2024, 1, 2)) == 0.91
    assert fx.get_rate("usd", "eur", date(2024, 1, 2)) == 0.91
    assert len(calls) == 1
    assert "currencies/usd.json" in calls[0]


def test_fx_tries_fallback_source(tmp_path: Path):
    repo, fx = make_fx(tmp_path)
    calls = []

    def fetch(url: str):
        calls.append(url)
        if len(calls) == 1:
            return {"usd": {"eur": -1}}
        return {"usd": {"eur": 0.95}}

    fx._fetch_json = fetch  # type: ignore[method-assign]

    assert fx.get_rate("USD", "EUR", date(2024, 5, 1)) == 0.95
    assert len(calls) == 2


def test_fx_without_any_rate_raises(tmp_path: Path):
    _, fx = make_fx(tmp_path)
    fx._fetch_json = fail  # type: ignore[method-assign]

    with pytest.raises(FxUnavailableError):
        fx.get_rate("USD", "EUR", date(2024, 1, 2))


def test_same_currency_is_identity(tmp_path: Path):
    _, fx = make_fx(tmp_path)
    fx._fetch_json = fail  # type: ignore[method-assign]

    assert fx.get_rate("USD", "usd") == 1.0
    assert fx.convert(12.5, "EUR", "EUR") == 12.5
