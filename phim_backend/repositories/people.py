from __future__ import annotations

from typing import Any

from phim_backend.repositories._sql import execute, fetch_one, returning_id


class PeopleRepositoryError(RuntimeError):
    pass


def upsert_person(
    cur: Any,
    name: str,
    slug: str,
    *,
    avatar_url: str | None = None,
    bio: str | None = None,
) -> int:
    row = fetch_one(
        cur,
        """
        INSERT INTO people (name, slug, avatar_url, bio)
        VALUES (%s, %s, %s, %s)
        ON CONFLICT (slug)
        DO UPDATE SET
            name = EXCLUDED.name,
            avatar_url = COALESCE(EXCLUDED.avatar_url, people.avatar_url),
            bio = COALESCE(EXCLUDED.bio, people.bio)
        RETURNING id
        """,
        (name, slug, avatar_url, bio),
        error_cls=PeopleRepositoryError,
        context=f"upserting person slug={slug}",
    )
    return returning_id(row, error_cls=PeopleRepositoryError, context=f"person slug={slug}")


def find_person_id_by_name(cur: Any, name: str) -> int | None:
    row = fetch_one(
        cur,
        "SELECT id FROM people WHERE trim(name) = trim(%s) LIMIT 1",
        (name,),
        error_cls=PeopleRepositoryError,
        context=f"finding person name={name}",
    )
    return int(row["id"]) if row else None


def fill_person_avatar(cur: Any, person_id: int, avatar_url: str) -> None:
    execute(
        cur,
        """
        UPDATE people
        SET avatar_url = %s
        WHERE id = %s AND (avatar_url IS NULL OR avatar_url = '')
        """,
        (avatar_url, person_id),
        error_cls=PeopleRepositoryError,
        context=f"filling avatar for person_id={person_id}",
    )


def link_movie_person(
    cur: Any,
    movie_id: int,
    person_id: int,
    role_type: str,
    *,
    character_name: str | None = None,
    order_index: int = 0,
) -> None:
    execute(
        cur,
        """
        INSERT INTO movie_people (movie_id, person_id, role_type, character_name, order_index)
        VALUES (%s, %s, %s, %s, %s)
        ON CONFLICT DO NOTHING
        """,
        (movie_id, person_id, role_type, character_name, order_index),
        error_cls=PeopleRepositoryError,
        context=f"linking person_id={person_id} to movie_id={movie_id}",
    )
