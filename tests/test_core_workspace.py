import pytest
import pygit2
from pathlib import Path

from gitpublish_core.exceptions import BranchNotFoundError, CloneError, WorkspaceUnusableError
from gitpublish_core.resolver import RepoResolver
from gitpublish_core.workspace import INITIAL_COMMIT_MESSAGE, ORIGIN, WorkspaceReconciler, remove_untracked_files


@pytest.fixture
def reconciler(hosting, credentials):
    return WorkspaceReconciler(hosting, credentials)


@pytest.fixture
def resolve(hosting, workdir):
    def _resolve(repository="widgets", **kwargs):
        kwargs.setdefault("working_directory", workdir)
        return RepoResolver(hosting).resolve("acme", repository, **kwargs)
    return _resolve


class TestCloneAndTrack:
    def test_clones_into_missing_workdir(self, reconciler, resolve, hosting, seeded_remote, workdir):
        repo = reconciler.reconcile(resolve())

        assert Path(repo.workdir).resolve() == workdir.resolve()
        assert repo.head.shorthand == "main"
        assert str(repo.head.target) == hosting.tip(seeded_remote, "main")
        assert (workdir / "README.md").read_text() == "# Widgets\n"
        assert repo.remotes[ORIGIN].url == seeded_remote.clone_url

    def test_existing_branch_is_checked_out(self, reconciler, resolve, hosting, seeded_remote, workdir):
        feature_tip = hosting.commit_files(seeded_remote, "feature", {"feature.txt": "on\n"}, "Add feature")

        repo = reconciler.reconcile(resolve(branch="feature"))

        assert repo.head.shorthand == "feature"
        assert str(repo.head.target) == feature_tip
        assert (workdir / "feature.txt").exists()

    def test_missing_branch_starts_from_base(self, reconciler, resolve, hosting, seeded_remote, workdir):
        repo = reconciler.reconcile(resolve(branch="bump", base="main"))

        assert repo.head.shorthand == "bump"
        assert str(repo.head.target) == hosting.tip(seeded_remote, "main")
        assert hosting.tip(seeded_remote, "bump") is None

    def test_missing_base_is_fatal(self, reconciler, resolve, hosting, seeded_remote, workdir):
        with pytest.raises(BranchNotFoundError):
            reconciler.reconcile(resolve(branch="feature", base="mian"))

        assert hosting.tip(seeded_remote, "feature") is None
        assert not workdir.exists()

    def test_empty_remote_is_initialized(self, reconciler, resolve, hosting, workdir):
        hosting.add_repository("acme", "blank")

        repo = reconciler.reconcile(resolve("blank"))

        assert repo.head.shorthand == "main"
        commit = repo.head.peel(pygit2.Commit)
        assert commit.message == INITIAL_COMMIT_MESSAGE
        assert len(commit.tree) == 0


class TestExistingWorkdir:
    def test_discards_local_edits_and_untracked_files(self, reconciler, resolve, seeded_remote, workdir):
        reconciler.reconcile(resolve())
        (workdir / "README.md").write_text("scribbled\n")
        (workdir / "junk.txt").write_text("left over\n")
        (workdir / "scratch").mkdir()
        (workdir / "scratch" / "notes.txt").write_text("temp\n")

        repo = reconciler.reconcile(resolve())

        assert (workdir / "README.md").read_text() == "# Widgets\n"
        assert not (workdir / "junk.txt").exists()
        assert not (workdir / "scratch" / "notes.txt").exists()
        assert repo.status() == {}

    def test_unpushed_commits_are_dropped(self, reconciler, resolve, hosting, seeded_remote, workdir, make_commit):
        repo = reconciler.reconcile(resolve())
        make_commit(repo, "local.txt", "local only\n", "Local commit")

        repo = reconciler.reconcile(resolve())

        assert str(repo.head.target) == hosting.tip(seeded_remote, "main")
        assert not (workdir / "local.txt").exists()

    def test_picks_up_new_remote_commits(self, reconciler, resolve, hosting, seeded_remote, workdir):
        reconciler.reconcile(resolve())
        new_tip = hosting.commit_files(seeded_remote, "main", {"config.txt": "size = 2\n"}, "Grow")

        repo = reconciler.reconcile(resolve())

        assert str(repo.head.target) == new_tip
        assert (workdir / "config.txt").read_text() == "size = 2\n"

    def test_origin_is_repointed(self, reconciler, resolve, seeded_remote, workdir):
        repo = reconciler.reconcile(resolve())
        repo.remotes.set_url(ORIGIN, "https://example.invalid/elsewhere.git")

        repo = reconciler.reconcile(resolve())

        assert repo.remotes[ORIGIN].url == seeded_remote.clone_url

    def test_corrupt_workdir_is_recloned(self, reconciler, resolve, hosting, seeded_remote, workdir):
        workdir.mkdir(parents=True)
        (workdir / ".git").write_text("not a repository\n")
        (workdir / "stray.txt").write_text("stray\n")

        repo = reconciler.reconcile(resolve())

        assert str(repo.head.target) == hosting.tip(seeded_remote, "main")
        assert not (workdir / "stray.txt").exists()

    def test_open_existing_requires_repository(self, reconciler, seeded_remote, tmp_path):
        with pytest.raises(WorkspaceUnusableError):
            reconciler.open_existing(tmp_path / "nothing-here", seeded_remote.clone_url, "main")

    def test_open_existing_does_not_search_parents(self, reconciler, seeded_remote, tmp_path):
        pygit2.init_repository(str(tmp_path / "outer"))
        nested = tmp_path / "outer" / "nested"
        nested.mkdir()
        with pytest.raises(WorkspaceUnusableError):
            reconciler.open_existing(nested, seeded_remote.clone_url, "main")


class TestClone:
    def test_failed_clone_is_retried_once(self, reconciler, seeded_remote, workdir, monkeypatch):
        real_clone = pygit2.clone_repository
        calls = []

        def flaky_clone(url, path, **kwargs):
            calls.append(path)
            if len(calls) == 1:
                Path(path).mkdir(parents=True, exist_ok=True)
                (Path(path) / "partial").write_text("half a clone")
                raise pygit2.GitError("connection reset")
            return real_clone(url, path, **kwargs)

        monkeypatch.setattr(pygit2, "clone_repository", flaky_clone)

        repo = reconciler.clone(seeded_remote.clone_url, workdir)

        assert len(calls) == 2
        assert not (workdir / "partial").exists()
        assert repo.head.shorthand == "main"

    def test_second_failure_raises(self, reconciler, tmp_path, workdir):
        with pytest.raises(CloneError):
            reconciler.clone(str(tmp_path / "missing.git"), workdir)


class TestInitialize:
    def test_created_repository_gets_empty_initial_commit(self, reconciler, resolve, hosting, workdir):
        resolution = resolve("gadgets")
        assert resolution.repo_was_created

        repo = reconciler.reconcile(resolution)

        assert repo.head.shorthand == "master"
        commit = repo.head.peel(pygit2.Commit)
        assert commit.message == INITIAL_COMMIT_MESSAGE
        assert commit.parents == []
        assert len(commit.tree) == 0
        assert commit.author.name == hosting.identity.login
        assert commit.author.email == hosting.identity.email
        assert repo.remotes[ORIGIN].url == resolution.remote_repository.clone_url

    def test_stale_workdir_is_replaced(self, reconciler, resolve, workdir):
        pygit2.init_repository(str(workdir))
        (workdir / "old.txt").write_text("old\n")

        reconciler.reconcile(resolve("gadgets"))

        assert not (workdir / "old.txt").exists()

    def test_refuses_to_replace_unrelated_directory(self, reconciler, resolve, workdir):
        workdir.mkdir(parents=True)
        (workdir / "notes.txt").write_text("keep me\n")

        with pytest.raises(WorkspaceUnusableError):
            reconciler.reconcile(resolve("gadgets"))

        assert (workdir / "notes.txt").read_text() == "keep me\n"


def test_remove_untracked_files_keeps_tracked(reconciler, resolve, seeded_remote, workdir):
    repo = reconciler.reconcile(resolve())
    (workdir / "new.txt").write_text("new\n")

    assert remove_untracked_files(repo) == 1
    assert (workdir / "README.md").exists()
    assert not (workdir / "new.txt").exists()
