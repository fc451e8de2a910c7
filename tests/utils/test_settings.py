from __future__ import annotations

from phim_backend.config import DEFAULT_PEOPLE_PATH, load_settings, load_source_configs


def test_source_configs_require_base_list_and_detail() -> None:
    configs = load_source_configs(
        {
            "OPHIM_BASE_URL": "https://ophim1.com",
            "OPHIM_LIST_PATH": "/danh-sach/phim-moi-cap-nhat?page={page}",
            "OPHIM_DETAIL_PATH": "/phim/{slug}",
            "KKPHIM_BASE_URL": "https://phimapi.com",
            "KKPHIM_LIST_PATH": "/danh-sach/phim-moi-cap-nhat?page={page}",
        }
    )

    assert [c.code for c in configs] == ["ophim"]
    assert configs[0].people_path == DEFAULT_PEOPLE_PATH


def test_settings_read_queue_overrides(monkeypatch) -> None:
    monkeypatch.setenv("PHIM_DETAIL_CONCURRENCY", "8")
    monkeypatch.setenv("PHIM_JOB_MAX_ATTEMPTS", "0")
    monkeypatch.setenv("PHIM_JOB_BACKOFF_SECONDS", "not-a-number")
    monkeypatch.delenv("OPHIM_BASE_URL", raising=False)
    monkeypatch.delenv("KKPHIM_BASE_URL", raising=False)

    settings = load_settings()

    assert settings.detail_queue.concurrency == 8
    assert settings.detail_queue.max_attempts == 1
    assert settings.detail_queue.backoff_seconds == 5.0
    assert settings.discover_queue.concurrency == 2
    assert settings.sources == ()
