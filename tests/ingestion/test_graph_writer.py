from __future__ import annotations

import pytest

from phim_backend.ingestion.graph_writer import (
    INT32_MAX,
    apply_merged,
    clamp_int32,
    clamp_int64,
    clamp_rating,
    create_movie,
    link_external_people,
    movie_values,
    resolve_unique_slug,
    role_for_department,
)
from phim_backend.models.normalized import (
    EpisodeItem,
    ExternalPerson,
    MovieNormalized,
    PeopleBlock,
    PersonItem,
    SeasonItem,
    StreamItem,
    TaxonomyItem,
)
from tests.fakes import FakeCatalog


def _with_streams(*urls: str, server: str = "Main") -> MovieNormalized:
    return MovieNormalized(
        slug_suggested="phim",
        title="Phim",
        type="series",
        seasons=[
            SeasonItem(
                season_number=1,
                episodes=[
                    EpisodeItem(
                        episode_number=1,
                        name="Tập 1",
                        streams=[StreamItem(server, "hls", "m3u8", url, priority=100) for url in urls],
                    )
                ],
            )
        ],
    )


def _movie(catalog: FakeCatalog) -> int:
    return catalog.insert_movie("phim", {"title": "Phim"})


def test_streams_missing_from_a_batch_are_deactivated() -> None:
    catalog = FakeCatalog()
    movie_id = _movie(catalog)

    apply_merged(catalog, movie_id, _with_streams("https://a", "https://b"))
    apply_merged(catalog, movie_id, _with_streams("https://a", "https://c"))

    server = catalog.video_servers[(1, "Main")]
    streams = catalog.streams_for_server(server["id"])
    assert {url: row["is_active"] for url, row in streams.items()} == {
        "https://a": True,
        "https://b": False,
        "https://c": True,
    }
    assert len(catalog.episodes) == 1
    assert len(catalog.seasons) == 1


def test_reappearing_stream_is_reactivated() -> None:
    catalog = FakeCatalog()
    movie_id = _movie(catalog)

    apply_merged(catalog, movie_id, _with_streams("https://a", "https://b"))
    apply_merged(catalog, movie_id, _with_streams("https://a"))
    apply_merged(catalog, movie_id, _with_streams("https://a", "https://b"))

    streams = catalog.streams_for_server(catalog.video_servers[(1, "Main")]["id"])
    assert all(row["is_active"] for row in streams.values())


def test_other_servers_are_untouched_by_a_server_batch() -> None:
    catalog = FakeCatalog()
    movie_id = _movie(catalog)

    apply_merged(catalog, movie_id, _with_streams("https://a", server="Main"))
    apply_merged(catalog, movie_id, _with_streams("https://z", server="Backup"))

    main = catalog.streams_for_server(catalog.video_servers[(1, "Main")]["id"])
    assert main["https://a"]["is_active"] is True


def test_taxonomy_links_accumulate_across_syncs() -> None:
    catalog = FakeCatalog()
    movie_id = _movie(catalog)
    first = MovieNormalized(slug_suggested="phim", title="Phim", genres=[TaxonomyItem(name="Hành Động")])
    second = MovieNormalized(
        slug_suggested="phim",
        title="Phim",
        genres=[TaxonomyItem(name="Chính kịch", slug="chinh-kich")],
        countries=[TaxonomyItem(name="Hàn Quốc", code="han-quoc"), TaxonomyItem(name="Khác")],
    )

    apply_merged(catalog, movie_id, first)
    apply_merged(catalog, movie_id, second)

    assert set(catalog.taxonomies["genres"]) == {"hanh-dong", "chinh-kich"}
    assert len(catalog.linked("movie_genres", movie_id)) == 2
    assert len(catalog.linked("movie_countries", movie_id)) == 2
    assert [c["code"] for c in catalog.countries] == ["han-quoc", None]


def test_people_are_linked_by_role() -> None:
    catalog = FakeCatalog()
    movie_id = _movie(catalog)
    merged = MovieNormalized(
        slug_suggested="phim",
        title="Phim",
        people=PeopleBlock(actors=[PersonItem(name="Lee Ji-eun")], directors=[PersonItem(name="Kim Jee-woon")]),
    )

    apply_merged(catalog, movie_id, merged)

    roles = {(catalog_person_slug(catalog, pid), role) for (_, pid, role) in catalog.movie_people}
    assert roles == {("lee-ji-eun", "actor"), ("kim-jee-woon", "director")}


def test_people_keep_source_cast_order_per_role() -> None:
    catalog = FakeCatalog()
    movie_id = _movie(catalog)
    merged = MovieNormalized(
        slug_suggested="phim",
        title="Phim",
        people=PeopleBlock(
            actors=[PersonItem(name="Park Seo-joon"), PersonItem(name="Lee Ji-eun"), PersonItem(name="Song Kang-ho")],
            directors=[PersonItem(name="Kim Jee-woon")],
        ),
    )

    apply_merged(catalog, movie_id, merged)

    order = {
        (catalog_person_slug(catalog, pid), role): row["order_index"]
        for (_, pid, role), row in catalog.movie_people.items()
    }
    assert order == {
        ("park-seo-joon", "actor"): 0,
        ("lee-ji-eun", "actor"): 1,
        ("song-kang-ho", "actor"): 2,
        ("kim-jee-woon", "director"): 0,
    }


def catalog_person_slug(catalog: FakeCatalog, person_id: int) -> str:
    return next(slug for slug, row in catalog.people.items() if row["id"] == person_id)


def test_external_people_reuse_known_names_and_keep_order() -> None:
    catalog = FakeCatalog()
    movie_id = _movie(catalog)
    known_id = catalog.upsert_person("Park Seo-joon", "park-seo-joon")

    linked = link_external_people(
        catalog,
        movie_id,
        [
            ExternalPerson(name=" Park Seo-joon ", tmdb_people_id="1", department="Acting", profile_url="/park.jpg"),
            ExternalPerson(name="Song Kang-ho", tmdb_people_id="20", character="Boss", department="Directing"),
            ExternalPerson(name="Crew Member", department="Lighting"),
        ],
    )

    assert linked == 3
    assert catalog.people["park-seo-joon"]["avatar_url"] == "/park.jpg"
    assert "song-kang-ho-20" in catalog.people
    song_id = catalog.people["song-kang-ho-20"]["id"]
    crew_id = catalog.people["crew-member"]["id"]
    assert catalog.movie_people[(movie_id, known_id, "actor")]["order_index"] == 0
    assert catalog.movie_people[(movie_id, song_id, "director")] == {"character_name": "Boss", "order_index": 1}
    assert catalog.movie_people[(movie_id, crew_id, "other")]["order_index"] == 2


def test_create_movie_resolves_slug_collisions_and_sets_defaults() -> None:
    catalog = FakeCatalog()
    catalog.insert_movie("phim", {"title": "Phim"})
    catalog.insert_movie("phim-2020", {"title": "Phim"})

    movie_id = create_movie(catalog, MovieNormalized(slug_suggested="phim", title="Phim", year=2020))

    row = catalog.movies[movie_id]
    assert row["slug"] == "phim-2"
    assert (row["status"], row["view_count"], row["rating_avg"], row["rating_count"]) == ("unknown", 0, 0, 0)
    assert resolve_unique_slug(catalog, "phim", 2021) == "phim-2021"
    assert resolve_unique_slug(catalog, "fresh", None) == "fresh"


def test_update_leaves_stored_values_when_merged_value_is_missing() -> None:
    catalog = FakeCatalog()
    movie_id = catalog.insert_movie("phim", {"title": "Phim", "plot": "kept", "year": 2001})

    apply_merged(catalog, movie_id, MovieNormalized(slug_suggested="phim", title="Phim Mới"))

    row = catalog.movies[movie_id]
    assert (row["title"], row["plot"], row["year"]) == ("Phim Mới", "kept", 2001)
    assert row["updated_at"] == catalog.clock


@pytest.mark.parametrize(
    ("value", "expected"),
    [(12.345, 9.99), (-1, 0.0), (7.5, 7.5), (float("nan"), None), ("abc", None), (None, None)],
)
def test_clamp_rating(value, expected) -> None:
    assert clamp_rating(value) == expected


def test_integer_clamps() -> None:
    assert clamp_int32(10**12) == INT32_MAX
    assert clamp_int32(-5) == 0
    assert clamp_int32(42.9) == 42
    assert clamp_int64(float("inf")) is None
    assert clamp_int64(10**30) == 9_223_372_036_854_775_807


def test_movie_values_clamp_numeric_fields() -> None:
    values = movie_values(
        MovieNormalized(slug_suggested="x", title="X", duration_min=-3, view_count=10**20, rating_avg=11, rating_count=5)
    )

    assert values["duration_min"] == 0
    assert values["view_count"] == 9_223_372_036_854_775_807
    assert values["rating_avg"] == 9.99
    assert values["rating_count"] == 5


def test_role_for_department() -> None:
    assert role_for_department("Acting") == "actor"
    assert role_for_department(" writing ") == "writer"
    assert role_for_department("Production") == "producer"
    assert role_for_department(None) == "other"
