from __future__ import annotations

from contextlib import contextmanager
from unittest.mock import MagicMock

import pytest

from phim_backend.db.store import CatalogStore, PostgresStoreProvider
from phim_backend.repositories import crawl_logs, sources


class _Database:
    def __init__(self) -> None:
        self.cursor = MagicMock()
        self.calls: list[str] = []

    @contextmanager
    def transaction(self):
        self.calls.append("transaction")
        yield self.cursor

    @contextmanager
    def autocommit(self):
        self.calls.append("autocommit")
        yield self.cursor


def test_provider_binds_store_to_scope_cursor() -> None:
    database = _Database()
    provider = PostgresStoreProvider(database)

    with provider.transaction() as store:
        assert isinstance(store, CatalogStore)
        assert store.cur is database.cursor
    with provider.autocommit() as store:
        assert store.cur is database.cursor

    assert database.calls == ["transaction", "autocommit"]


def test_store_delegates_to_repositories() -> None:
    cur = MagicMock()
    cur.fetchone.return_value = {"id": 2, "code": "kkphim", "base_url": "", "is_active": True}
    store = CatalogStore(cur)

    record = store.get_source_by_code("kkphim")

    assert record is not None
    assert (record.id, record.code, record.base_url, record.is_active) == (2, "kkphim", None, True)
    assert cur.execute.call_args.args[1] == ("kkphim",)


def test_seed_source_without_row_raises() -> None:
    cur = MagicMock()
    cur.fetchone.return_value = None

    with pytest.raises(sources.SourceRepositoryError):
        sources.seed_source(cur, "ophim", "https://ophim1.com")


def test_crawl_log_validates_level_and_truncates_message() -> None:
    cur = MagicMock()

    with pytest.raises(crawl_logs.CrawlLogRepositoryError):
        crawl_logs.insert_crawl_log(cur, level="debug", message="x")

    crawl_logs.insert_crawl_log(cur, level="error", message="m" * 2000, meta={"source": "ophim"}, source_item_id=4)

    _, params = cur.execute.call_args.args
    assert params[0] is None
    assert params[1] == 4
    assert params[2] == "error"
    assert len(params[3]) == 1000
    assert params[4].adapted == {"source": "ophim"}
