import platformdirs
import pytest

from niku.common import (
    format_bytes_with_unit,
    get_backend_address_from_prefix,
    get_cache_path,
    get_recommended_backend_address,
)


def test_format_bytes_with_unit_byte():
    assert format_bytes_with_unit(876) == "876.00 B"


def test_format_bytes_with_unit_kibibyte():
    assert format_bytes_with_unit(1500) == "1.46 KiB"


def test_format_bytes_with_unit_mebibyte():
    assert format_bytes_with_unit(8_000_000) == "7.63 MiB"


def test_format_bytes_with_unit_gibibyte():
    assert format_bytes_with_unit(7_800_000_000) == "7.26 GiB"


def test_format_bytes_two_kibibytes_reported_in_mebibytes():
    assert format_bytes_with_unit(2048) == "0.00 MiB"


def test_format_bytes_zero():
    assert format_bytes_with_unit(0) == "0.00 B"


def test_format_bytes_rejects_negative():
    with pytest.raises(ValueError):
        format_bytes_with_unit(-1)


def test_format_bytes_rejects_non_integer():
    with pytest.raises(TypeError):
        format_bytes_with_unit(1.5)


def test_backend_address_from_known_prefixes():
    assert get_backend_address_from_prefix("test") == "http://localhost:8080"
    assert get_backend_address_from_prefix("the") == "https://eu1.backend.niku.app"


def test_backend_address_from_unknown_prefix():
    assert get_backend_address_from_prefix("other") is None


def test_recommended_backend_in_debug_mode(monkeypatch):
    monkeypatch.setenv("APP_NIKU_DEBUG", "1")
    assert get_recommended_backend_address() == "http://localhost:8080"


def test_recommended_backend_in_release_mode(monkeypatch):
    monkeypatch.delenv("APP_NIKU_DEBUG", raising=False)
    assert get_recommended_backend_address() == "https://eu1.backend.niku.app"


def test_cache_path_under_user_cache(monkeypatch, tmp_path):
    monkeypatch.setattr(platformdirs, "user_cache_dir", lambda *a, **k: str(tmp_path))
    assert get_cache_path() == tmp_path / "app.niku"