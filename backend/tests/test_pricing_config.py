import pytest

from catalog_sync.config import settings
from catalog_sync.services.catalog_store import CatalogStore
from catalog_sync.services.pricing_config import load_pricing_config, save_pricing_config


@pytest.fixture(autouse=True)
def default_pricing(monkeypatch):
    monkeypatch.setattr(settings, "currency_rate", 18.0)
    monkeypatch.setattr(settings, "price_markup", 1.12)


def test_falls_back_to_settings(db_session):
    config = load_pricing_config(CatalogStore(db_session))

    assert (config.currency_rate, config.markup) == (18.0, 1.12)


def test_site_config_overrides_settings(db_session):
    store = CatalogStore(db_session)
    save_pricing_config(store, currency_rate=19.25)

    config = load_pricing_config(store)

    assert (config.currency_rate, config.markup) == (19.25, 1.12)


@pytest.mark.parametrize("raw", ["abc", "0", "-3"])
def test_invalid_stored_values_are_ignored(db_session, raw):
    store = CatalogStore(db_session)
    store.set_config_value("price_markup", raw)

    assert load_pricing_config(store).markup == 1.12
