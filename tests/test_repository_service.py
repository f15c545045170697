"""Tests for RepositoryService with git mocked out."""

import asyncio
import io
import json
import os
from unittest.mock import MagicMock, patch

import pytest

from repokeeper.config import get_default_config
from repokeeper.domain.progress import CLONE_COMPLETE, CLONE_PROGRESS
from repokeeper.domain.tag import TagEntry
from repokeeper.exit_codes import (
    FilesystemError,
    GitCommandError,
    GitNotFoundError,
    RepositoryNotFoundError,
    ValidationError,
)
from repokeeper.infra.file_store import FileStore
from repokeeper.infra.git_client import GitClient, GitResult
from repokeeper.services.event_sink import CallbackSink
from repokeeper.services.registry_service import RepositoryRegistry
from repokeeper.services.repository_service import RepositoryService, validate_name

URL = "https://example.com/studio/game.git"
TAG_LIST = b"v1.2.0-dev\nrelease-1.0\nv1.1.0-qa\n"


@pytest.fixture
def root(tmp_path):
    path = tmp_path / "root"
    path.mkdir()
    return path


@pytest.fixture
def git():
    git = MagicMock(spec=GitClient)
    git.current_branch.return_value = "main"
    git.fetch_tags.return_value = True
    git.remote_branches.return_value = ["origin/HEAD -> origin/main", "origin/main", "origin/dev"]
    git.tags.return_value = GitResult(True, stdout=TAG_LIST)
    git.reset_hard.return_value = True
    git.pull.return_value = True
    return git


@pytest.fixture
def events():
    return []


@pytest.fixture
def service(tmp_path, root, git, events):
    registry = RepositoryRegistry(store=FileStore(tmp_path / "db.json"), root_path=str(root))
    sink = CallbackSink(lambda name, payload: events.append((name, payload)))
    service = RepositoryService(registry, git=git, sink=sink, config=get_default_config())
    yield service
    service.close()


def cloning(fake_process, output, returncode=0):
    """spawn_clone side effect that creates the target like git would."""
    def spawn(remote_url, target_dir, cwd="."):
        os.makedirs(target_dir)
        with open(os.path.join(target_dir, "README"), "w") as f:
            f.write("game")
        return fake_process(output, returncode)
    return spawn


def completions(events):
    return [payload for name, payload in events if name == CLONE_COMPLETE]


def progress_percents(events):
    return [payload["percent"] for name, payload in events if name == CLONE_PROGRESS]


class TestValidateName:
    @pytest.mark.parametrize("name", ["game", "Game_2", "game-qa", "A1"])
    def test_valid(self, name):
        assert validate_name(name)

    def test_empty(self):
        with pytest.raises(ValidationError, match="cannot be empty"):
            validate_name("")

    @pytest.mark.parametrize("name", ["my game", "game.git", "../game", "gäme"])
    def test_invalid_characters(self, name):
        with pytest.raises(ValidationError, match="letters, numbers, underscores, and dashes"):
            RepositoryService.validate_name(name)


class TestClone:
    def test_success(self, service, git, root, events, tmp_path, fake_process, clone_output):
        git.spawn_clone.side_effect = cloning(fake_process, clone_output)

        record = asyncio.run(service.clone_repository(URL, "game"))

        final = root / "game"
        assert record.id == 1
        assert record.path == str(final)
        assert record.remote_url == URL
        assert record.branch == "main"
        assert record.versions == ("dev-latest", "dev-1.2.0", "qa-1.1.0")
        assert record.current_version == "dev-latest"
        assert record.last_sync_time is not None
        assert (final / "README").exists()
        assert not (root / ".tmp_game").exists()

        args, kwargs = git.spawn_clone.call_args
        assert args == (URL, str(root / ".tmp_game"))
        assert kwargs == {"cwd": str(root)}
        git.fetch_tags.assert_called_once_with(str(final))

        percents = progress_percents(events)
        assert percents[0] == 0
        assert percents[-4:] == [91, 94, 97, 100]
        assert percents == sorted(percents)
        assert 35 in percents and 90 in percents

        assert events[-1] == (CLONE_COMPLETE, {"repoName": "game", "success": True})
        assert len(completions(events)) == 1
        assert all(payload["repoName"] == "game" for _, payload in events)

        stored = json.loads((tmp_path / "db.json").read_text())
        assert stored["local_repositories"][0]["remoteUrl"] == URL
        assert stored["local_repositories"][0]["gameVersions"] == list(record.versions)

    def test_stage_messages(self, service, git, events, fake_process, clone_output):
        git.spawn_clone.side_effect = cloning(fake_process, clone_output)
        asyncio.run(service.clone_repository(URL, "game"))

        messages = [p["stageMessage"] for name, p in events if name == CLONE_PROGRESS]
        assert messages[0] == "Starting..."
        assert "Receiving objects..." in messages
        assert messages[-4:] == [
            "Moving to final location...",
            "Fetching tags...",
            "Saving repository info...",
            "Clone complete!",
        ]

    def test_git_failure_cleans_up(self, service, git, root, events, fake_process):
        git.spawn_clone.side_effect = cloning(
            fake_process, b"fatal: repository not found\n", returncode=128
        )

        with pytest.raises(GitCommandError) as exc_info:
            asyncio.run(service.clone_repository(URL, "game"))

        assert "repository not found" in exc_info.value.stderr
        assert not (root / ".tmp_game").exists()
        assert not (root / "game").exists()
        assert completions(events) == [{
            "repoName": "game",
            "success": False,
            "errorMessage": "Failed to clone repository",
        }]
        assert asyncio.run(service.list_repositories()) == []

    def test_git_missing(self, service, git, events):
        git.spawn_clone.side_effect = GitNotFoundError()

        with pytest.raises(GitNotFoundError):
            asyncio.run(service.clone_repository(URL, "game"))

        assert completions(events)[0]["success"] is False

    def test_broken_stderr_pipe_cleans_up(self, service, git, root, events, fake_process):
        class BrokenPipe(io.BytesIO):
            def read1(self, size=-1):
                raise OSError("pipe broke")

        def spawn(remote_url, target_dir, cwd="."):
            os.makedirs(target_dir)
            process = fake_process()
            process.stderr = BrokenPipe()
            return process

        git.spawn_clone.side_effect = spawn

        with pytest.raises(OSError, match="pipe broke"):
            asyncio.run(service.clone_repository(URL, "game"))

        assert not (root / ".tmp_game").exists()
        assert not (root / "game").exists()
        assert completions(events) == [{
            "repoName": "game",
            "success": False,
            "errorMessage": "pipe broke",
        }]
        assert asyncio.run(service.list_repositories()) == []

    def test_unrunnable_git_cleans_up(self, service, git, root, events):
        def spawn(remote_url, target_dir, cwd="."):
            os.makedirs(target_dir)
            raise GitNotFoundError("Cannot run git: [Errno 8] Exec format error")

        git.spawn_clone.side_effect = spawn

        with pytest.raises(GitNotFoundError):
            asyncio.run(service.clone_repository(URL, "game"))

        assert not (root / ".tmp_game").exists()
        assert completions(events)[0]["success"] is False

    def test_invalid_name_never_spawns(self, service, git, events):
        with pytest.raises(ValidationError):
            asyncio.run(service.clone_repository(URL, "bad name"))

        git.spawn_clone.assert_not_called()
        assert [name for name, _ in events] == [CLONE_COMPLETE]
        assert completions(events)[0]["success"] is False

    def test_existing_directory(self, service, git, root):
        (root / "game").mkdir()

        with pytest.raises(ValidationError, match="already exists"):
            asyncio.run(service.clone_repository(URL, "game"))
        git.spawn_clone.assert_not_called()

    def test_root_path_not_set(self, git, events):
        service = RepositoryService(RepositoryRegistry(), git=git, config=get_default_config())
        try:
            with pytest.raises(ValidationError, match="Root path is not set"):
                asyncio.run(service.clone_repository(URL, "game"))
        finally:
            service.close()

    def test_stale_temp_directory_is_replaced(self, service, git, root, fake_process, clone_output):
        stale = root / ".tmp_game"
        stale.mkdir()
        (stale / "partial").write_text("x")
        git.spawn_clone.side_effect = cloning(fake_process, clone_output)

        record = asyncio.run(service.clone_repository(URL, "game"))

        assert not (root / "game" / "partial").exists()
        assert record.path == str(root / "game")

    def test_rename_failure(self, service, git, root, events, fake_process, clone_output):
        git.spawn_clone.side_effect = cloning(fake_process, clone_output)

        with patch("os.rename", side_effect=OSError("device busy")):
            with pytest.raises(FilesystemError, match="Failed to move repository"):
                asyncio.run(service.clone_repository(URL, "game"))

        assert not (root / ".tmp_game").exists()
        assert completions(events)[0]["success"] is False

    def test_tag_listing_failure_still_registers(self, service, git, fake_process, clone_output):
        git.spawn_clone.side_effect = cloning(fake_process, clone_output)
        git.tags.return_value = GitResult(False, stderr=b"fatal: bad object")

        record = asyncio.run(service.clone_repository(URL, "game"))

        assert record.versions == ()
        assert record.current_version == ""

    def test_unknown_branch_defaults_to_main(self, service, git, fake_process, clone_output):
        git.spawn_clone.side_effect = cloning(fake_process, clone_output)
        git.current_branch.return_value = None

        assert asyncio.run(service.clone_repository(URL, "game")).branch == "main"

    def test_cancel_kills_git_and_cleans_up(self, service, git, root, events, hanging_process):
        process = hanging_process()

        def spawn(remote_url, target_dir, cwd="."):
            os.makedirs(target_dir)
            return process

        git.spawn_clone.side_effect = spawn

        async def main():
            task = asyncio.create_task(service.clone_repository(URL, "game"))
            await asyncio.sleep(0.3)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(main())

        assert process.killed
        assert not (root / ".tmp_game").exists()
        assert completions(events) == [{
            "repoName": "game",
            "success": False,
            "errorMessage": "Clone cancelled",
        }]

    def test_concurrent_clones_get_distinct_ids(self, service, git, fake_process, clone_output):
        git.spawn_clone.side_effect = cloning(fake_process, clone_output)

        async def main():
            return await asyncio.gather(
                service.clone_repository(URL, "game"),
                service.clone_repository("https://example.com/studio/tools.git", "tools"),
            )

        records = asyncio.run(main())
        assert sorted(r.id for r in records) == [1, 2]


@pytest.fixture
def repo_dir(tmp_path):
    path = tmp_path / "root" / "game"
    path.mkdir(parents=True)
    return path


def register(service, path, entries=()):
    return asyncio.run(service.registry.register("game", URL, str(path), entries=entries))


class TestRefresh:
    def test_rebuilds_versions(self, service, git, repo_dir):
        record = register(service, repo_dir)

        refreshed = asyncio.run(service.refresh_repository(record.id))

        git.fetch_tags.assert_called_once_with(str(repo_dir))
        assert refreshed.versions == ("dev-latest", "dev-1.2.0", "qa-1.1.0")
        assert refreshed.current_version == "dev-latest"
        assert refreshed.last_sync_time is not None

    def test_tag_failure_leaves_record_unchanged(self, service, git, repo_dir):
        record = register(service, repo_dir, [TagEntry("v0.1-dev", "dev-0.1")])
        git.tags.return_value = GitResult(False, stderr=b"fatal")

        with pytest.raises(GitCommandError, match="Failed to get tags"):
            asyncio.run(service.refresh_repository(record.id))

        assert asyncio.run(service.registry.get(record.id)) == record

    def test_fetch_failure_is_not_fatal(self, service, git, repo_dir):
        record = register(service, repo_dir)
        git.fetch_tags.return_value = False

        assert asyncio.run(service.refresh_repository(record.id)).versions

    def test_missing_path(self, service, tmp_path):
        record = register(service, tmp_path / "gone")
        with pytest.raises(ValidationError, match="does not exist"):
            asyncio.run(service.refresh_repository(record.id))

    def test_unknown_id(self, service):
        with pytest.raises(RepositoryNotFoundError):
            asyncio.run(service.refresh_repository(99))


ENTRIES = [
    TagEntry.for_branch("dev"),
    TagEntry("v1.2.0-dev", "dev-1.2.0"),
    TagEntry("v1.1.0-qa", "qa-1.1.0"),
]


class TestChangeVersion:
    def test_checkout_tag(self, service, git, repo_dir):
        record = register(service, repo_dir, ENTRIES)
        git.checkout_tag.return_value = GitResult(True)

        updated = asyncio.run(service.change_version(record.id, "v1.1.0-qa"))

        git.reset_hard.assert_called_once_with(str(repo_dir))
        git.checkout_tag.assert_called_once_with(str(repo_dir), "v1.1.0-qa")
        assert updated.current_version == "qa-1.1.0"

    def test_checkout_failure(self, service, git, repo_dir):
        record = register(service, repo_dir, ENTRIES)
        git.checkout_tag.return_value = GitResult(False, stderr=b"error: pathspec did not match")

        with pytest.raises(GitCommandError, match="Failed to checkout to tag") as exc_info:
            asyncio.run(service.change_version(record.id, "v9.9.9-dev"))

        assert "pathspec" in exc_info.value.stderr
        assert asyncio.run(service.registry.get(record.id)).current_version == "dev-latest"

    def test_branch_marker_switches_branch(self, service, git, repo_dir):
        record = register(service, repo_dir, ENTRIES)
        git.checkout.return_value = GitResult(True)

        updated = asyncio.run(service.change_version(record.id, "BRANCH:dev"))

        git.checkout.assert_called_once_with(str(repo_dir), "dev")
        git.checkout_tag.assert_not_called()
        git.pull.assert_called_once_with(str(repo_dir))
        assert updated.current_version == "dev-latest"
        assert updated.branch == "dev"


class TestSwitchBranch:
    def test_falls_back_to_tracking_branch(self, service, git, repo_dir):
        record = register(service, repo_dir, ENTRIES)
        git.checkout.return_value = GitResult(False, stderr=b"error: pathspec 'qa'")
        git.checkout_tracking_branch.return_value = GitResult(True)
        git.pull.return_value = False

        updated = asyncio.run(service.switch_branch(record.id, "qa"))

        git.checkout_tracking_branch.assert_called_once_with(str(repo_dir), "qa")
        assert updated.branch == "qa"
        # qa has no synthetic entry in this record, so the label stays
        assert updated.current_version == "dev-latest"

    def test_both_checkouts_fail(self, service, git, repo_dir):
        record = register(service, repo_dir, ENTRIES)
        git.checkout.return_value = GitResult(False)
        git.checkout_tracking_branch.return_value = GitResult(False, stderr=b"fatal: invalid reference")

        with pytest.raises(GitCommandError) as exc_info:
            asyncio.run(service.switch_branch(record.id, "nope"))

        assert exc_info.value.stderr == "fatal: invalid reference"
        git.pull.assert_not_called()


class TestImport:
    def test_registers_existing_clone(self, service, git, repo_dir):
        git.is_git_directory.return_value = True
        git.remote_url.return_value = URL
        git.current_branch.return_value = "dev"

        record = asyncio.run(service.import_repository(str(repo_dir)))

        assert record.name == "game"
        assert record.path == str(repo_dir)
        assert record.branch == "dev"
        assert record.current_version == "dev-latest"

    def test_rejects_duplicate_remote(self, service, git, repo_dir):
        git.is_git_directory.return_value = True
        git.remote_url.return_value = URL
        asyncio.run(service.add_repository(URL, "game"))

        with pytest.raises(ValidationError, match="already registered"):
            asyncio.run(service.import_repository(str(repo_dir), name="game2"))

    def test_not_a_git_directory(self, service, git, tmp_path):
        git.is_git_directory.return_value = False
        with pytest.raises(ValidationError, match="Not a git repository"):
            asyncio.run(service.import_repository(str(tmp_path)))

    def test_no_remote(self, service, git, repo_dir):
        git.is_git_directory.return_value = True
        git.remote_url.return_value = None
        with pytest.raises(ValidationError, match="no origin remote"):
            asyncio.run(service.import_repository(str(repo_dir)))


class TestMisc:
    def test_get_tags(self, service, repo_dir):
        entries = asyncio.run(service.get_tags(str(repo_dir), limit=2))
        assert [e.raw for e in entries] == ["BRANCH:dev", "v1.2.0-dev"]

    def test_get_tags_missing_path(self, service, tmp_path):
        with pytest.raises(ValidationError):
            asyncio.run(service.get_tags(str(tmp_path / "missing")))

    def test_delete_removes_directory(self, service, repo_dir):
        record = register(service, repo_dir)

        asyncio.run(service.delete_repository(record.id))

        assert not repo_dir.exists()
        assert asyncio.run(service.list_repositories()) == []

    def test_root_path(self, service, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        assert asyncio.run(service.set_root_path(str(other))) == str(other)
        assert asyncio.run(service.get_root_path()) == str(other)

    def test_check_git(self, service, git):
        git.version.return_value = "git version 2.43.0"
        assert asyncio.run(service.check_git()) == "git version 2.43.0"

    def test_check_git_missing(self, service, git):
        git.version.side_effect = GitNotFoundError()
        with pytest.raises(GitNotFoundError):
            asyncio.run(service.check_git())

    def test_broken_sink_does_not_break_clone(self, tmp_path, root, git, fake_process, clone_output):
        def explode(name, payload):
            raise RuntimeError("listener crashed")

        registry = RepositoryRegistry(root_path=str(root))
        git.spawn_clone.side_effect = cloning(fake_process, clone_output)
        service = RepositoryService(registry, git=git, sink=CallbackSink(explode), config=get_default_config())
        try:
            record = asyncio.run(service.clone_repository(URL, "game"))
        finally:
            service.close()
        assert record.path == str(root / "game")
