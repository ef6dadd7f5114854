"""Tests for the release stages in relwright.stages."""

import hashlib
import sys
import tarfile
import zipfile
from pathlib import Path

import pytest
from helpers import FakeRepo, make_ctx

from relwright.artifacts import Artifact, ArtifactKind
from relwright.config import (
    Announcer,
    Archive,
    Build,
    ChangelogConfig,
    Checksum,
    Publisher,
    Sign,
    SnapshotConfig,
)
from relwright.errors import DirtyTreeError, ValidationError
from relwright.stage import Outcome
from relwright.stages import (
    AnnounceStage,
    ArchiveStage,
    BuildStage,
    ChangelogStage,
    ChecksumStage,
    ReleaseStage,
    SignStage,
    ValidateStage,
    defaults,
)
from relwright.stages.changelog import filter_entries
from relwright.stages.checksum import digest
from relwright.targets import Target

COPY = "import shutil, sys; shutil.copy(sys.argv[1], sys.argv[2])"


def _binary(ctx, target, build_id="default", name="fake"):
    path = ctx.dist / f"{build_id}_{target}" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"binary for {target}")
    artifact = Artifact(
        name=name, path=path, kind=ArtifactKind.BINARY, target=target, build_id=build_id
    )
    ctx.artifacts.add(artifact)
    return artifact


def _file_artifact(ctx, name, kind=ArtifactKind.ARCHIVE, content="data"):
    path = ctx.dist / name
    path.write_text(content)
    artifact = Artifact(name=name, path=path, kind=kind)
    ctx.artifacts.add(artifact)
    return artifact


class TestDefaults:
    def test_fixed_order(self):
        assert [s.name for s in defaults()] == [
            "validate",
            "build",
            "archive",
            "checksum",
            "sign",
            "changelog",
            "release",
            "announce",
        ]


class TestValidateStage:
    def test_clean_tagged_tree_passes(self, tmp_path):
        assert ValidateStage()(make_ctx(tmp_path)) is Outcome.SUCCESS

    def test_skipped(self, tmp_path):
        ctx = make_ctx(tmp_path, FakeRepo(dirty=["main.py"]))
        ctx.skip_validate = True
        assert ValidateStage()(ctx) is Outcome.SKIP

    def test_dirty_tree(self, tmp_path):
        ctx = make_ctx(tmp_path, FakeRepo(dirty=["main.py", "util.py"]))
        with pytest.raises(DirtyTreeError) as info:
            ValidateStage()(ctx)
        assert str(info.value) == "git is currently in a dirty state:\n  main.py\n  util.py"

    def test_untagged_head(self, tmp_path):
        ctx = make_ctx(tmp_path, FakeRepo(tag=None))
        with pytest.raises(ValidationError, match="no semantic version tag"):
            ValidateStage()(ctx)

    def test_deprecated_fields_rejected(self, tmp_path):
        ctx = make_ctx(tmp_path, snapshot=SnapshotConfig(name_template="${tag}-dev"))
        with pytest.raises(ValidationError, match="snapshot.name_template"):
            ValidateStage()(ctx)

    def test_deprecated_fields_allowed(self, tmp_path):
        ctx = make_ctx(tmp_path, snapshot=SnapshotConfig(name_template="${tag}-dev"))
        ctx.deprecated = True
        assert ValidateStage()(ctx) is Outcome.SUCCESS


class StaticBuilder:
    def compile(self, ctx, build, target):
        path = ctx.dist / f"{build.id}_{target}" / "fake"
        return Artifact(
            name="fake", path=path, kind=ArtifactKind.BINARY, target=target, build_id=build.id
        )


class TestBuildStage:
    def test_builds_every_target(self, tmp_path):
        ctx = make_ctx(
            tmp_path,
            builds=[
                Build(id="a", os=["linux", "darwin"], arch=["amd64"]),
                Build(id="b", os=["linux"], arch=["arm64"]),
            ],
        )
        stage = BuildStage(builders={"zipapp": StaticBuilder()})
        assert stage(ctx) is Outcome.SUCCESS
        assert [(a.build_id, str(a.target)) for a in ctx.artifacts] == [
            ("a", "linux_amd64"),
            ("a", "darwin_amd64"),
            ("b", "linux_arm64"),
        ]

    def test_skip_flagged_builds(self, tmp_path):
        ctx = make_ctx(
            tmp_path,
            builds=[Build(id="a", skip=True), Build(id="b", os=["linux"], arch=["amd64"])],
        )
        BuildStage(builders={"zipapp": StaticBuilder()})(ctx)
        assert [a.build_id for a in ctx.artifacts] == ["b"]

    def test_all_builds_skipped(self, tmp_path):
        ctx = make_ctx(tmp_path, builds=[Build(skip=True)])
        assert BuildStage()(ctx) is Outcome.SKIP


class TestArchiveStage:
    def test_nothing_to_archive(self, tmp_path):
        assert ArchiveStage()(make_ctx(tmp_path)) is Outcome.SKIP

    def test_tar_gz_per_target(self, tmp_path):
        ctx = make_ctx(tmp_path)
        _binary(ctx, Target("linux", "amd64"))
        _binary(ctx, Target("darwin", "arm64"))

        assert ArchiveStage()(ctx) is Outcome.SUCCESS

        archives = ctx.artifacts.filter(ArtifactKind.ARCHIVE)
        assert [a.name for a in archives] == [
            "fake_1.0.0_linux_amd64.tar.gz",
            "fake_1.0.0_darwin_arm64.tar.gz",
        ]
        with tarfile.open(archives[0].path) as tar:
            assert tar.getnames() == ["fake"]

    def test_zip_with_extra_files_wrapped(self, tmp_path):
        (tmp_path / "LICENSE").write_text("MIT")
        ctx = make_ctx(
            tmp_path,
            archives=[Archive(format="zip", files=["LICENSE"], wrap_in_directory=True)],
        )
        _binary(ctx, Target("windows", "amd64"))

        ArchiveStage()(ctx)

        (archive,) = ctx.artifacts.filter(ArtifactKind.ARCHIVE)
        assert archive.name == "fake_1.0.0_windows_amd64.zip"
        with zipfile.ZipFile(archive.path) as zf:
            assert sorted(zf.namelist()) == [
                "fake_1.0.0_windows_amd64/LICENSE",
                "fake_1.0.0_windows_amd64/fake",
            ]

    def test_binary_format(self, tmp_path):
        ctx = make_ctx(tmp_path, archives=[Archive(format="binary")])
        _binary(ctx, Target("linux", "amd64"))

        ArchiveStage()(ctx)

        (uploadable,) = ctx.artifacts.filter(ArtifactKind.UPLOADABLE_BINARY)
        assert uploadable.name == "fake_1.0.0_linux_amd64"
        assert uploadable.path.read_text() == "binary for linux_amd64"

    def test_variant_in_default_name(self, tmp_path):
        ctx = make_ctx(tmp_path, archives=[Archive()])
        _binary(ctx, Target("linux", "arm", "v7"))

        ArchiveStage()(ctx)

        (archive,) = ctx.artifacts.filter(ArtifactKind.ARCHIVE)
        assert archive.name == "fake_1.0.0_linux_arm_v7.tar.gz"

    def test_archive_selects_builds(self, tmp_path):
        ctx = make_ctx(tmp_path, archives=[Archive(id="cli", builds=["cli"])])
        _binary(ctx, Target("linux", "amd64"), build_id="cli")
        _binary(ctx, Target("linux", "arm64"), build_id="other")

        ArchiveStage()(ctx)

        assert [a.name for a in ctx.artifacts.filter(ArtifactKind.ARCHIVE)] == [
            "fake_1.0.0_linux_amd64.tar.gz"
        ]

    def test_missing_extra_files(self, tmp_path):
        ctx = make_ctx(tmp_path, archives=[Archive(files=["README*"])])
        _binary(ctx, Target("linux", "amd64"))
        with pytest.raises(ValueError, match="no files match 'README\\*'"):
            ArchiveStage()(ctx)

    def test_colliding_names(self, tmp_path):
        ctx = make_ctx(tmp_path, archives=[Archive(name_template="${project_name}")])
        _binary(ctx, Target("linux", "amd64"))
        _binary(ctx, Target("darwin", "amd64"))
        with pytest.raises(ValueError, match="produced fake.tar.gz twice"):
            ArchiveStage()(ctx)


class TestChecksumStage:
    def test_nothing_to_checksum(self, tmp_path):
        assert ChecksumStage()(make_ctx(tmp_path)) is Outcome.SKIP

    def test_disabled(self, tmp_path):
        ctx = make_ctx(tmp_path, checksum=Checksum(disable=True))
        _file_artifact(ctx, "a.tar.gz")
        assert ChecksumStage()(ctx) is Outcome.SKIP

    def test_single_sorted_file(self, tmp_path):
        ctx = make_ctx(tmp_path)
        b = _file_artifact(ctx, "b.tar.gz", content="bbb")
        a = _file_artifact(ctx, "a", kind=ArtifactKind.UPLOADABLE_BINARY, content="aaa")
        _file_artifact(ctx, "skip.txt", kind=ArtifactKind.SIGNATURE)

        assert ChecksumStage()(ctx) is Outcome.SUCCESS

        (checksum,) = ctx.artifacts.filter(ArtifactKind.CHECKSUM)
        assert checksum.name == "fake_1.0.0_checksums.txt"
        assert checksum.path.read_text() == (
            f"{hashlib.sha256(b'aaa').hexdigest()}  {a.name}\n"
            f"{hashlib.sha256(b'bbb').hexdigest()}  {b.name}\n"
        )

    def test_algorithm(self, tmp_path):
        path = tmp_path / "f"
        path.write_bytes(b"payload")
        assert digest(path, "md5") == hashlib.md5(b"payload").hexdigest()


class TestSignStage:
    def _ctx(self, tmp_path, **sign):
        sign.setdefault("cmd", sys.executable)
        sign.setdefault("args", ["-c", COPY, "${artifact}", "${signature}"])
        return make_ctx(tmp_path, signs=[Sign(**sign)])

    def test_signs_checksum(self, tmp_path):
        ctx = self._ctx(tmp_path)
        _file_artifact(ctx, "a.tar.gz")
        _file_artifact(ctx, "sums.txt", kind=ArtifactKind.CHECKSUM, content="sums")

        assert SignStage()(ctx) is Outcome.SUCCESS

        (signature,) = ctx.artifacts.filter(ArtifactKind.SIGNATURE)
        assert signature.name == "sums.txt.sig"
        assert signature.path.read_text() == "sums"
        assert signature.extra["signs"] == "sums.txt"

    def test_signs_all(self, tmp_path):
        ctx = self._ctx(tmp_path, artifacts="all")
        _file_artifact(ctx, "a.tar.gz")
        _file_artifact(ctx, "sums.txt", kind=ArtifactKind.CHECKSUM)
        SignStage()(ctx)
        assert len(ctx.artifacts.filter(ArtifactKind.SIGNATURE)) == 2

    def test_skipped(self, tmp_path):
        ctx = self._ctx(tmp_path)
        ctx.skip_sign = True
        assert SignStage()(ctx) is Outcome.SKIP

    def test_not_configured(self, tmp_path):
        assert SignStage()(make_ctx(tmp_path)) is Outcome.SKIP

    def test_missing_signature(self, tmp_path):
        ctx = self._ctx(tmp_path, args=["-c", "pass"])
        _file_artifact(ctx, "sums.txt", kind=ArtifactKind.CHECKSUM)
        with pytest.raises(ValueError, match="did not produce"):
            SignStage()(ctx)


class TestChangelog:
    ENTRIES = ["abc1234 fix: two", "def5678 docs: readme", "0123456 feat: one"]

    def test_filter_entries(self):
        cfg = ChangelogConfig(exclude=["^docs:"], sort="asc")
        assert filter_entries(self.ENTRIES, cfg) == ["0123456 feat: one", "abc1234 fix: two"]

    def test_filter_keeps_order_without_sort(self):
        assert filter_entries(self.ENTRIES, ChangelogConfig()) == self.ENTRIES

    def test_generated_from_history(self, tmp_path):
        repo = FakeRepo(entries=self.ENTRIES)
        ctx = make_ctx(tmp_path, repo, changelog=ChangelogConfig(exclude=["^docs:"], sort="desc"))

        assert ChangelogStage()(ctx) is Outcome.SUCCESS

        assert repo.log_calls == ["v0.9.0"]
        expected = "## Changelog\n\n* abc1234 fix: two\n* 0123456 feat: one\n"
        assert ctx.release_notes == expected
        assert (ctx.dist / "CHANGELOG.md").read_text() == expected

    def test_notes_file_with_templated_header(self, tmp_path):
        (tmp_path / "notes.md").write_text("Hand written notes.\n")
        (tmp_path / "header.md.j2").write_text("# {{ project_name }} {{ version }}\n")
        ctx = make_ctx(tmp_path)
        ctx.release_notes_file = Path("notes.md")
        ctx.release_header_tmpl = Path("header.md.j2")

        ChangelogStage()(ctx)

        assert ctx.release_notes == "# fake 1.0.0\n\nHand written notes.\n"
        assert ctx.repo.log_calls == []

    def test_notes_file_wins_over_template(self, tmp_path):
        (tmp_path / "notes.md").write_text("file")
        (tmp_path / "notes.md.j2").write_text("template")
        ctx = make_ctx(tmp_path)
        ctx.release_notes_file = Path("notes.md")
        ctx.release_notes_tmpl = Path("notes.md.j2")
        ChangelogStage()(ctx)
        assert ctx.release_notes == "file\n"

    def test_footer_file(self, tmp_path):
        (tmp_path / "footer.md").write_text("-- the team")
        ctx = make_ctx(tmp_path, FakeRepo(entries=["abc1234 fix: two"]))
        ctx.release_footer_file = Path("footer.md")
        ChangelogStage()(ctx)
        assert ctx.release_notes.endswith("* abc1234 fix: two\n\n-- the team\n")

    def test_template_error(self, tmp_path):
        (tmp_path / "notes.md.j2").write_text("{{ undefined_field }}")
        ctx = make_ctx(tmp_path)
        ctx.release_notes_tmpl = Path("notes.md.j2")
        with pytest.raises(ValueError, match="undefined_field"):
            ChangelogStage()(ctx)

    def test_skipped(self, tmp_path):
        ctx = make_ctx(tmp_path, changelog=ChangelogConfig(skip=True))
        assert ChangelogStage()(ctx) is Outcome.SKIP


class TestReleaseStage:
    def test_directory_publisher(self, tmp_path):
        ctx = make_ctx(tmp_path, publishers=[Publisher(name="local", path="out/${version}")])
        _binary(ctx, Target("linux", "amd64"))
        _file_artifact(ctx, "a.tar.gz")
        _file_artifact(ctx, "sums.txt", kind=ArtifactKind.CHECKSUM)
        ctx.release_notes = "notes\n"

        assert ReleaseStage()(ctx) is Outcome.SUCCESS

        dest = tmp_path / "out" / "1.0.0"
        assert sorted(p.name for p in dest.iterdir()) == [
            "RELEASE_NOTES.md",
            "a.tar.gz",
            "sums.txt",
        ]

    def test_command_publisher(self, tmp_path):
        script = "import sys; open(sys.argv[1] + '.seen', 'w').write(sys.argv[2])"
        publisher = Publisher(
            name="upload",
            kind="command",
            cmd=[sys.executable, "-c", script, "${artifact_path}", "${artifact_kind}"],
            kinds=["archive"],
        )
        ctx = make_ctx(tmp_path, publishers=[publisher])
        _file_artifact(ctx, "a.tar.gz")
        _file_artifact(ctx, "sums.txt", kind=ArtifactKind.CHECKSUM)

        ReleaseStage()(ctx)

        assert (ctx.dist / "a.tar.gz.seen").read_text() == "archive"
        assert not (ctx.dist / "sums.txt.seen").exists()

    def test_skipped(self, tmp_path):
        ctx = make_ctx(tmp_path, publishers=[Publisher(path="out")])
        ctx.skip_publish = True
        assert ReleaseStage()(ctx) is Outcome.SKIP

    def test_not_configured(self, tmp_path):
        assert ReleaseStage()(make_ctx(tmp_path)) is Outcome.SKIP


class TestAnnounceStage:
    def test_message_on_stdin(self, tmp_path):
        out = tmp_path / "announced.txt"
        script = "import sys; open(sys.argv[1], 'w').write(sys.stdin.read())"
        ctx = make_ctx(
            tmp_path, announcers=[Announcer(name="chat", cmd=[sys.executable, "-c", script, str(out)])]
        )
        assert AnnounceStage()(ctx) is Outcome.SUCCESS
        assert out.read_text() == "fake v1.0.0 is out!"

    def test_message_as_argument(self, tmp_path):
        out = tmp_path / "announced.txt"
        script = "import sys; open(sys.argv[1], 'w').write(sys.argv[2])"
        announcer = Announcer(
            cmd=[sys.executable, "-c", script, str(out), "${message}"],
            message_template="${project_name} ${version} released",
        )
        AnnounceStage()(make_ctx(tmp_path, announcers=[announcer]))
        assert out.read_text() == "fake 1.0.0 released"

    def test_skipped(self, tmp_path):
        ctx = make_ctx(tmp_path, announcers=[Announcer(cmd=["false"])])
        ctx.skip_announce = True
        assert AnnounceStage()(ctx) is Outcome.SKIP
