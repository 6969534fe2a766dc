"""Unit tests for secure_fs.sandbox.validator module.

Uses real directories and real symlinks: the sandbox is only as good as its
behaviour against the actual filesystem.
"""

import os
import sys
from pathlib import Path

import pytest

from secure_fs.exceptions import AccessDeniedError, PathNotFoundError
from secure_fs.sandbox import DenialKind, PathDenial, PathSandbox, PathValidationCache

requires_symlinks = pytest.mark.skipif(
    sys.platform == "win32", reason="symlinks need elevated privileges on Windows"
)


class StepClock:
    """Clock advanced by hand, in seconds."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.unit
@pytest.mark.sandbox
class TestSandboxConstruction:
    """Tests for allowed directory handling."""

    def test_requires_at_least_one_directory(self):
        with pytest.raises(ValueError):
            PathSandbox([])

    def test_roots_are_canonical_and_deduplicated(self, allowed_dir):
        sandbox = PathSandbox([allowed_dir, str(allowed_dir) + "/", str(allowed_dir / "x" / "..")])
        assert sandbox.allowed_directories == (str(allowed_dir),)

    @requires_symlinks
    def test_symlinked_root_is_resolved(self, tmp_path, allowed_dir):
        link = tmp_path / "link-to-allowed"
        link.symlink_to(allowed_dir, target_is_directory=True)
        sandbox = PathSandbox([link])
        assert sandbox.allowed_directories == (str(allowed_dir),)

    def test_home_directory_expanded(self, monkeypatch, allowed_dir):
        monkeypatch.setenv("HOME", str(allowed_dir.parent))
        sandbox = PathSandbox([f"~/{allowed_dir.name}"])
        assert sandbox.allowed_directories == (str(allowed_dir),)

    @requires_symlinks
    def test_paths_spelled_through_symlinked_root(self, tmp_path, sample_tree, outside_dir):
        link = tmp_path / "link-to-allowed"
        link.symlink_to(sample_tree, target_is_directory=True)
        sandbox = PathSandbox([link])

        assert sandbox.validate(str(link / "notes.txt")) == sample_tree / "notes.txt"
        assert sandbox.validate(str(link / "new.txt")) == link / "new.txt"

        escaped = sandbox.validate(str(link / ".." / "outside" / "secret.txt"))
        assert isinstance(escaped, PathDenial)
        assert escaped.kind is DenialKind.ACCESS_DENIED

    @requires_symlinks
    def test_symlinked_root_spelling_still_checks_targets(
        self, tmp_path, allowed_dir, outside_dir
    ):
        link = tmp_path / "link-to-allowed"
        link.symlink_to(allowed_dir, target_is_directory=True)
        (allowed_dir / "escape").symlink_to(outside_dir / "secret.txt")
        sandbox = PathSandbox([link])

        result = sandbox.validate(str(link / "escape"))
        assert isinstance(result, PathDenial)
        assert result.kind is DenialKind.ACCESS_DENIED


@pytest.mark.unit
@pytest.mark.sandbox
class TestExistingPaths:
    """Tests for paths that exist on disk."""

    def test_file_inside_root_is_allowed(self, sandbox, sample_tree):
        result = sandbox.validate(str(sample_tree / "notes.txt"))
        assert result == sample_tree / "notes.txt"

    def test_root_itself_is_allowed(self, sandbox, allowed_dir):
        assert sandbox.validate(str(allowed_dir)) == allowed_dir

    def test_path_outside_root_is_denied(self, sandbox, outside_dir, allowed_dir):
        result = sandbox.validate(str(outside_dir / "secret.txt"))

        assert isinstance(result, PathDenial)
        assert result.kind is DenialKind.ACCESS_DENIED
        assert result.allowed_directories == (str(allowed_dir),)
        assert "outside allowed directories" in result.message

    def test_traversal_out_of_root_is_denied(self, sandbox, allowed_dir, outside_dir):
        result = sandbox.validate(str(allowed_dir / ".." / "outside" / "secret.txt"))
        assert isinstance(result, PathDenial)
        assert result.kind is DenialKind.ACCESS_DENIED

    def test_traversal_that_stays_inside_is_allowed(self, sandbox, sample_tree):
        result = sandbox.validate(str(sample_tree / "src" / ".." / "notes.txt"))
        assert result == sample_tree / "notes.txt"

    def test_sibling_sharing_name_prefix_is_denied(self, tmp_path, sandbox, allowed_dir):
        sibling = tmp_path / f"{allowed_dir.name}-old"
        sibling.mkdir()
        (sibling / "data.txt").write_text("x")

        result = sandbox.validate(str(sibling / "data.txt"))
        assert isinstance(result, PathDenial)
        assert result.kind is DenialKind.ACCESS_DENIED

    def test_relative_path_resolved_against_cwd(self, monkeypatch, sandbox, sample_tree):
        monkeypatch.chdir(sample_tree)
        assert sandbox.validate("notes.txt") == sample_tree / "notes.txt"

    def test_home_relative_path(self, monkeypatch, sandbox, sample_tree):
        monkeypatch.setenv("HOME", str(sample_tree))
        assert sandbox.validate("~/notes.txt") == sample_tree / "notes.txt"

    def test_nul_byte_is_denied(self, sandbox, path_cache, allowed_dir):
        result = sandbox.validate(str(allowed_dir / "b\x00.txt"))

        assert isinstance(result, PathDenial)
        assert result.kind is DenialKind.ACCESS_DENIED
        assert "NUL" in result.message
        assert "\x00" not in result.path
        assert path_cache.size() == 0


@requires_symlinks
@pytest.mark.unit
@pytest.mark.sandbox
class TestSymlinks:
    """Tests for symlink resolution."""

    def test_symlink_escaping_root_is_denied(self, sandbox, allowed_dir, outside_dir):
        link = allowed_dir / "escape"
        link.symlink_to(outside_dir / "secret.txt")

        result = sandbox.validate(str(link))
        assert isinstance(result, PathDenial)
        assert result.kind is DenialKind.ACCESS_DENIED
        assert "symlink target outside" in result.message

    def test_symlinked_directory_escaping_root_is_denied(self, sandbox, allowed_dir, outside_dir):
        (allowed_dir / "escape-dir").symlink_to(outside_dir, target_is_directory=True)

        result = sandbox.validate(str(allowed_dir / "escape-dir" / "secret.txt"))
        assert isinstance(result, PathDenial)
        assert result.kind is DenialKind.ACCESS_DENIED

    def test_symlink_inside_root_resolves_to_target(self, sandbox, sample_tree):
        link = sample_tree / "alias.txt"
        link.symlink_to(sample_tree / "notes.txt")

        assert sandbox.validate(str(link)) == sample_tree / "notes.txt"

    def test_symlinks_disabled_denies_internal_link(self, allowed_dir, sample_tree):
        link = sample_tree / "alias.txt"
        link.symlink_to(sample_tree / "notes.txt")
        sandbox = PathSandbox([allowed_dir], allow_symlinks=False)

        result = sandbox.validate(str(link))
        assert isinstance(result, PathDenial)
        assert result.kind is DenialKind.ACCESS_DENIED
        assert sandbox.validate(str(sample_tree / "notes.txt")) == sample_tree / "notes.txt"

    def test_new_file_under_escaping_directory_link_is_denied(
        self, sandbox, allowed_dir, outside_dir
    ):
        (allowed_dir / "escape-dir").symlink_to(outside_dir, target_is_directory=True)

        result = sandbox.validate(str(allowed_dir / "escape-dir" / "new.txt"))
        assert isinstance(result, PathDenial)
        assert result.kind is DenialKind.ACCESS_DENIED
        assert not (outside_dir / "new.txt").exists()

    def test_dangling_link_pointing_outside_is_denied(self, sandbox, allowed_dir, outside_dir):
        link = allowed_dir / "dangling"
        link.symlink_to(outside_dir / "not-yet-created.txt")

        result = sandbox.validate(str(link))
        assert isinstance(result, PathDenial)
        assert result.kind is DenialKind.ACCESS_DENIED

    def test_symlink_loop_fails_closed(self, sandbox, allowed_dir):
        (allowed_dir / "loop-a").symlink_to(allowed_dir / "loop-b")
        (allowed_dir / "loop-b").symlink_to(allowed_dir / "loop-a")

        result = sandbox.validate(str(allowed_dir / "loop-a"))
        assert isinstance(result, PathDenial)
        assert result.kind is DenialKind.ACCESS_DENIED


@pytest.mark.unit
@pytest.mark.sandbox
class TestMissingPaths:
    """Tests for paths that do not exist yet."""

    def test_new_file_with_existing_parent_is_allowed(self, sandbox, allowed_dir):
        result = sandbox.validate(str(allowed_dir / "new.txt"))
        assert result == allowed_dir / "new.txt"

    def test_missing_parent_reports_parent(self, sandbox, allowed_dir):
        result = sandbox.validate(str(allowed_dir / "a" / "b" / "new.txt"))

        assert isinstance(result, PathDenial)
        assert result.kind is DenialKind.PATH_NOT_FOUND
        assert result.path == str(allowed_dir / "a" / "b")
        assert result.message == f"Path not found: {allowed_dir / 'a' / 'b'}"
        assert result.allowed_directories == ()

    def test_missing_path_outside_root_is_denied_before_lookup(self, sandbox, outside_dir):
        result = sandbox.validate(str(outside_dir / "missing" / "new.txt"))
        assert isinstance(result, PathDenial)
        assert result.kind is DenialKind.ACCESS_DENIED


@pytest.mark.unit
@pytest.mark.sandbox
class TestValidationCacheIntegration:
    """Tests for cache usage by the sandbox."""

    def test_success_is_cached(self, sandbox, path_cache, sample_tree):
        candidate = str(sample_tree / "notes.txt")
        sandbox.validate(candidate)
        assert path_cache.get(candidate) == candidate

    def test_denial_is_not_cached(self, sandbox, path_cache, outside_dir):
        candidate = str(outside_dir / "secret.txt")
        sandbox.validate(candidate)
        assert path_cache.get(candidate) is None

    def test_cache_hit_skips_resolution(self, monkeypatch, sandbox, sample_tree):
        candidate = str(sample_tree / "notes.txt")
        sandbox.validate(candidate)

        calls = []
        real_realpath = os.path.realpath

        def counting_realpath(path, *args, **kwargs):
            calls.append(path)
            return real_realpath(path, *args, **kwargs)

        monkeypatch.setattr(os.path, "realpath", counting_realpath)

        assert sandbox.validate(candidate) == Path(candidate)
        assert calls == []

    def test_validation_without_caching(self, sandbox, path_cache, sample_tree):
        candidate = str(sample_tree / "notes.txt")

        assert sandbox.validate(candidate, use_cache=False) == sample_tree / "notes.txt"
        assert path_cache.size() == 0

    @requires_symlinks
    def test_changed_link_observed_after_ttl(self, allowed_dir, sample_tree, outside_dir):
        clock = StepClock()
        cache = PathValidationCache(max_size=10, ttl_seconds=5, clock=clock)
        sandbox = PathSandbox([allowed_dir], cache=cache)
        link = sample_tree / "current"
        link.symlink_to(sample_tree / "notes.txt")
        try:
            assert sandbox.validate(str(link)) == sample_tree / "notes.txt"

            link.unlink()
            link.symlink_to(outside_dir / "secret.txt")

            # Within the TTL the remembered answer is served
            clock.now += 4
            assert sandbox.validate(str(link)) == sample_tree / "notes.txt"

            clock.now += 1
            result = sandbox.validate(str(link))
            assert isinstance(result, PathDenial)
            assert result.kind is DenialKind.ACCESS_DENIED
        finally:
            cache.close()

    def test_sandbox_without_cache(self, allowed_dir, sample_tree):
        sandbox = PathSandbox([allowed_dir], cache=None)
        assert sandbox.validate(str(sample_tree / "notes.txt")) == sample_tree / "notes.txt"

    def test_independent_caches_per_sandbox(self, allowed_dir, sample_tree):
        first = PathValidationCache()
        second = PathValidationCache()
        try:
            PathSandbox([allowed_dir], cache=first).validate(str(sample_tree / "notes.txt"))
            assert first.size() == 1
            assert second.size() == 0
        finally:
            first.close()
            second.close()


@pytest.mark.unit
@pytest.mark.sandbox
class TestValidateOrRaise:
    """Tests for the exception form."""

    def test_returns_path_on_success(self, sandbox, sample_tree):
        assert sandbox.validate_or_raise(str(sample_tree / "notes.txt")) == sample_tree / "notes.txt"

    def test_raises_access_denied(self, sandbox, outside_dir, allowed_dir):
        with pytest.raises(AccessDeniedError) as exc_info:
            sandbox.validate_or_raise(str(outside_dir / "secret.txt"))

        assert exc_info.value.code == "ACCESS_DENIED"
        assert exc_info.value.details["allowed_directories"] == [str(allowed_dir)]

    def test_raises_path_not_found(self, sandbox, allowed_dir):
        with pytest.raises(PathNotFoundError) as exc_info:
            sandbox.validate_or_raise(str(allowed_dir / "missing" / "new.txt"))

        assert exc_info.value.code == "PATH_NOT_FOUND"
        assert exc_info.value.path == str(allowed_dir / "missing")
