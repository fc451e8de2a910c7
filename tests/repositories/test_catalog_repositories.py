from __future__ import annotations

from unittest.mock import MagicMock

import psycopg2
import pytest

from phim_backend.models.sources import DiscoveredItem
from phim_backend.repositories import movies, source_items, streams, taxonomies


def _cursor(*, one=None, many=None, rowcount: int = 0) -> MagicMock:
    cur = MagicMock()
    cur.fetchone.return_value = one
    cur.fetchall.return_value = many or []
    cur.rowcount = rowcount
    return cur


def test_update_movie_fields_skips_none_values() -> None:
    cur = _cursor()

    movies.update_movie_fields(cur, 7, {"title": "Phim", "plot": None, "year": 2024, "unknown_column": "x"})

    sql, params = cur.execute.call_args.args
    assert "title = %s" in sql
    assert "year = %s" in sql
    assert "plot" not in sql
    assert "unknown_column" not in sql
    assert params == ["Phim", 2024, 7]


def test_update_movie_fields_without_values_does_nothing() -> None:
    cur = _cursor()

    movies.update_movie_fields(cur, 7, {"plot": None})

    cur.execute.assert_not_called()


def test_insert_movie_wraps_json_columns_and_returns_id() -> None:
    cur = _cursor(one={"id": 12})

    movie_id = movies.insert_movie(cur, "phim", {"title": "Phim", "other_titles": ["Film"]})

    sql, params = cur.execute.call_args.args
    assert movie_id == 12
    assert sql.startswith("INSERT INTO movies (slug, title, other_titles, is_active)")
    assert params[0] == "phim"
    assert params[2].adapted == ["Film"]
    assert params[-1] is True


def test_insert_movie_without_returned_id_raises() -> None:
    with pytest.raises(movies.MovieRepositoryError):
        movies.insert_movie(_cursor(one=None), "phim", {"title": "Phim"})


def test_database_errors_are_wrapped_with_context() -> None:
    cur = _cursor()
    cur.execute.side_effect = psycopg2.Error("boom")

    with pytest.raises(movies.MovieRepositoryError) as excinfo:
        movies.find_movie_id_by_imdb_id(cur, "tt1")

    assert "finding movie by imdb id" in str(excinfo.value)


def test_upsert_discovered_item_never_touches_payload() -> None:
    cur = _cursor(one={"id": 3})

    item_id = source_items.upsert_discovered_item(cur, 1, DiscoveredItem(external_id="a", title="A"))

    sql, params = cur.execute.call_args.args
    assert item_id == 3
    assert "payload" not in sql
    assert "ON CONFLICT (source_id, external_id)" in sql
    assert params == (1, "a", None, None, "A", None)


def test_get_source_item_maps_row() -> None:
    cur = _cursor(one={"id": 5, "source_id": 1, "source_code": "ophim", "external_id": "a", "crawl_status": "ok", "year": 2020})

    record = source_items.get_source_item(cur, 1, "a")

    assert record is not None
    assert (record.id, record.source_code, record.crawl_status, record.year) == (5, "ophim", "ok", 2020)


def test_unknown_taxonomy_tables_are_rejected() -> None:
    cur = _cursor()

    with pytest.raises(taxonomies.TaxonomyRepositoryError):
        taxonomies.upsert_taxonomy_by_slug(cur, "movies; drop table", "x", "x")
    with pytest.raises(taxonomies.TaxonomyRepositoryError):
        taxonomies.link_movie_taxonomy(cur, "movie_people", 1, [1])
    cur.execute.assert_not_called()


def test_country_without_code_reuses_row_by_name() -> None:
    cur = _cursor(one={"id": 9})

    assert taxonomies.upsert_country(cur, "Khác", None) == 9
    sql, params = cur.execute.call_args.args
    assert "SELECT id FROM countries WHERE name" in sql
    assert params == ("Khác",)


def test_country_code_is_truncated() -> None:
    cur = _cursor(one={"id": 4})

    taxonomies.upsert_country(cur, "Somewhere", "x" * 20)

    _, params = cur.execute.call_args.args
    assert params == ("x" * 16, "Somewhere")


def test_deactivate_streams_except_uses_sorted_keep_list() -> None:
    cur = _cursor(rowcount=2)

    changed = streams.deactivate_streams_except(cur, 4, ["b", "a", "a", ""])

    sql, params = cur.execute.call_args.args
    assert changed == 2
    assert "NOT (checksum = ANY(%s))" in sql
    assert params == (4, ["a", "b"])


def test_deactivate_streams_except_with_empty_batch_deactivates_server() -> None:
    cur = _cursor(rowcount=1)

    streams.deactivate_streams_except(cur, 4, [])

    sql, params = cur.execute.call_args.args
    assert "ANY" not in sql
    assert params == (4,)
