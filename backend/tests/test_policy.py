"""Policy resolution: typed decode, per-field defaults, strict vs fail-open on an unreachable store."""
import pytest

from upload_admission.core.errors import SettingsSourceError
from upload_admission.services.policy import MB, PolicyDefaults, PolicyResolver
from upload_admission.services.settings_store import StaticSettingsSource

DEFAULT_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".apng", ".svg",
    ".ico", ".jp2", ".tiff", ".tif", ".tga", ".heic", ".heif",
}


@pytest.mark.asyncio
async def test_resolve_reads_configured_values(resolver):
    policy = await resolver.resolve()
    assert policy.max_file_size_bytes == 10 * MB
    assert policy.max_batch_size_bytes == 25 * MB
    assert policy.allowed_extensions == {".jpg", ".png", ".webp"}
    assert policy.daily_upload_limit == 50


@pytest.mark.asyncio
async def test_resolve_empty_group_uses_builtin_defaults():
    policy = await PolicyResolver(StaticSettingsSource({})).resolve()
    assert policy.max_file_size_bytes == 100 * MB
    assert policy.max_batch_size_bytes == 100 * MB
    assert policy.allowed_extensions == DEFAULT_EXTENSIONS
    assert policy.daily_upload_limit == 50


@pytest.mark.asyncio
async def test_fractional_megabytes_are_converted():
    src = StaticSettingsSource({"upload": {"max_file_size": 1.5, "max_batch_size": 0.5}})
    policy = await PolicyResolver(src).resolve()
    assert policy.max_file_size_bytes == 1572864
    assert policy.max_batch_size_bytes == 524288


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["20", True, None, [5], {"mb": 5}, float("nan"), float("inf"), 1e303, -1e303])
async def test_malformed_size_falls_back_to_default(bad):
    src = StaticSettingsSource({"upload": {"max_file_size": bad, "max_batch_size": bad}})
    policy = await PolicyResolver(src).resolve()
    assert policy.max_file_size_bytes == 100 * MB
    assert policy.max_batch_size_bytes == 100 * MB


@pytest.mark.asyncio
async def test_zero_size_means_unlimited_and_is_kept():
    src = StaticSettingsSource({"upload": {"max_file_size": 0, "max_batch_size": 0.0}})
    policy = await PolicyResolver(src).resolve()
    assert policy.max_file_size_bytes == 0
    assert policy.max_batch_size_bytes == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("value,expected", [(20, 20), (20.0, 20), (7.9, 7), (-1, -1), (-1.0, -1), (0, 0)])
async def test_daily_limit_accepts_int_and_float(value, expected):
    src = StaticSettingsSource({"upload": {"daily_upload_limit": value}})
    policy = await PolicyResolver(src).resolve()
    assert policy.daily_upload_limit == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["10", False, -5, [1]])
async def test_daily_limit_malformed_uses_default(bad):
    src = StaticSettingsSource({"upload": {"daily_upload_limit": bad}})
    policy = await PolicyResolver(src).resolve()
    assert policy.daily_upload_limit == 50


@pytest.mark.asyncio
async def test_absent_formats_use_default_set_exactly():
    src = StaticSettingsSource({"upload": {"max_file_size": 5}})
    policy = await PolicyResolver(src).resolve()
    assert policy.allowed_extensions == DEFAULT_EXTENSIONS


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["jpg,png", {"jpg": True}, 42])
async def test_non_list_formats_reject_everything(bad):
    src = StaticSettingsSource({"upload": {"allowed_file_formats": bad}})
    policy = await PolicyResolver(src).resolve()
    assert policy.allowed_extensions == frozenset()
    for ext in (".jpg", ".png", ".pdf", ""):
        assert not policy.allows_extension(ext)


@pytest.mark.asyncio
async def test_formats_skip_non_strings_and_normalize():
    src = StaticSettingsSource({"upload": {"allowed_file_formats": ["PNG", 3, " .Gif ", None, ""]}})
    policy = await PolicyResolver(src).resolve()
    assert policy.allowed_extensions == {".png", ".gif"}


@pytest.mark.asyncio
async def test_empty_formats_list_allows_nothing():
    src = StaticSettingsSource({"upload": {"allowed_file_formats": []}})
    policy = await PolicyResolver(src).resolve()
    assert policy.allowed_extensions == frozenset()


@pytest.mark.asyncio
async def test_unreachable_store_returns_defaults_when_not_strict(caplog):
    src = StaticSettingsSource({"upload": None})
    with caplog.at_level("WARNING"):
        policy = await PolicyResolver(src).resolve()
    assert policy.max_file_size_bytes == 100 * MB
    assert policy.allowed_extensions == DEFAULT_EXTENSIONS
    assert "unavailable" in caplog.text


@pytest.mark.asyncio
async def test_unreachable_store_raises_when_strict():
    src = StaticSettingsSource({"upload": None})
    with pytest.raises(SettingsSourceError):
        await PolicyResolver(src).resolve(strict=True)


@pytest.mark.asyncio
async def test_policy_is_resolved_fresh_each_call(source, upload_group, resolver):
    first = await resolver.resolve()
    upload_group["max_file_size"] = 1
    second = await resolver.resolve()
    assert first.max_file_size_bytes == 10 * MB
    assert second.max_file_size_bytes == 1 * MB
    assert source.reads == ["upload", "upload"]


@pytest.mark.asyncio
async def test_named_group_override():
    src = StaticSettingsSource({"upload": {"max_file_size": 1}, "upload_guest": {"max_file_size": 2}})
    policy = await PolicyResolver(src).resolve("upload_guest")
    assert policy.max_file_size_bytes == 2 * MB


@pytest.mark.asyncio
async def test_injected_defaults_replace_builtins():
    defaults = PolicyDefaults(
        max_file_size_bytes=1 * MB,
        max_batch_size_bytes=2 * MB,
        allowed_extensions=frozenset({".txt"}),
        daily_upload_limit=3,
    )
    policy = await PolicyResolver(StaticSettingsSource({}), defaults=defaults).resolve()
    assert policy == defaults.as_policy()


@pytest.mark.asyncio
async def test_defaults_come_from_env(monkeypatch):
    monkeypatch.setenv("DEFAULT_MAX_FILE_SIZE_MB", "5")
    monkeypatch.setenv("DEFAULT_ALLOWED_FILE_FORMATS", "pdf, TXT")
    monkeypatch.setenv("DEFAULT_DAILY_UPLOAD_LIMIT", "-1")
    policy = await PolicyResolver(StaticSettingsSource({})).resolve()
    assert policy.max_file_size_bytes == 5 * MB
    assert policy.allowed_extensions == {".pdf", ".txt"}
    assert policy.daily_upload_limit == -1
