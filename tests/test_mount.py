"""Tests for smb_backup.backup.mount."""

import os
import signal

import pytest

from conftest import SignallingCommandRunner
from smb_backup.backup.mount import (
    SmbMount,
    TerminatedError,
    deferred_signals,
    read_mount_points,
    teardown_on_signals,
)
from smb_backup.exceptions import MountError

REMOTE = "//nas.test/ConfigBackups/router1"
OPTIONS = "vers=3.0,credentials=/root/.private/.nas.test"


@pytest.fixture
def mount_point(tmp_path):
    return tmp_path / "mnt" / "nas.test-backup-to-smb"


@pytest.fixture
def make_mount(mount_point, fake_runner, logger, mounts_file):
    def _make(**kwargs):
        return SmbMount(
            REMOTE,
            mount_point,
            OPTIONS,
            kwargs.get("runner", fake_runner),
            logger,
            mounts_path=mounts_file,
        )

    return _make


class TestReadMountPoints:
    """Tests for mount table parsing."""

    def test_reads_second_field(self, tmp_path):
        table = tmp_path / "mounts"
        table.write_text(
            "proc /proc proc rw 0 0\n"
            "//nas/share /mnt/nas-backup-to-smb cifs rw,vers=3.0 0 0\n"
        )
        assert read_mount_points(table) == ["/proc", "/mnt/nas-backup-to-smb"]

    def test_decodes_octal_escapes(self, tmp_path):
        """Spaces in mount points appear as \\040 in the mount table."""
        table = tmp_path / "mounts"
        table.write_text("//nas/share /mnt/my\\040share cifs rw 0 0\n")
        assert read_mount_points(table) == ["/mnt/my share"]

    def test_missing_table(self, tmp_path):
        assert read_mount_points(tmp_path / "absent") == []


class TestSmbMount:
    """Tests for the scoped mount."""

    def test_mount_creates_directory_and_mounts(self, make_mount, mount_point, fake_runner, logger):
        with make_mount() as share:
            assert share.is_mounted()
            assert mount_point.is_dir()

        assert fake_runner.calls[0] == ["mount", "-t", "cifs", REMOTE, str(mount_point), "-o", OPTIONS]
        assert logger.contains(f"Mount point did not exist. Created {mount_point}")
        assert logger.contains(f"Mounted successfully: {REMOTE} > {mount_point}")

    def test_exit_unmounts_and_removes_directory(self, make_mount, mount_point, logger):
        with make_mount():
            pass

        assert not mount_point.exists()
        assert logger.contains(f"Unmounted {mount_point}")
        assert logger.contains(f"Force-removed {mount_point}")

    def test_exception_in_scope_still_tears_down(self, make_mount, mount_point):
        with pytest.raises(RuntimeError):
            with make_mount():
                raise RuntimeError("export exploded")

        assert not mount_point.exists()

    def test_remote_files_survive_teardown(self, make_mount, remote_dir):
        """Only the empty mount point is removed; share content stays remote."""
        with make_mount() as share:
            (share.path / "Journal.txt").write_text("entry\n")

        assert (remote_dir / "Journal.txt").read_text() == "entry\n"

    def test_stale_mount_is_unmounted_then_remounted(self, make_mount, mount_point, mounts_file,
                                                      fake_runner, logger):
        """A mount left over from an earlier run is released, not reused."""
        mount_point.mkdir(parents=True)
        with open(mounts_file, "a") as f:
            f.write(f"{REMOTE} {mount_point} cifs rw 0 0\n")

        with make_mount():
            pass

        assert fake_runner.commands()[:2] == ["umount", "mount"]
        assert logger.contains(f"Pre-existing mount at {mount_point} unmounted")

    def test_stale_mount_that_cannot_be_released(self, make_mount, mount_point, mounts_file, fake_runner):
        mount_point.mkdir(parents=True)
        with open(mounts_file, "a") as f:
            f.write(f"{REMOTE} {mount_point} cifs rw 0 0\n")
        fake_runner.failing.add("umount")

        with pytest.raises(MountError) as exc_info:
            with make_mount():
                pass

        assert exc_info.value.code == "STALE_MOUNT"
        assert "mount" not in fake_runner.commands()

    def test_mount_failure_raises_and_skips_removal(self, make_mount, mount_point, fake_runner, logger):
        """Failed mount: teardown is a no-op, the directory is not removed."""
        fake_runner.failing.add("mount")

        with pytest.raises(MountError) as exc_info:
            with make_mount():
                pytest.fail("body must not run")

        assert exc_info.value.code == "MOUNT_FAILED"
        assert logger.contains(f"Backup failed: could not mount {REMOTE}", level="ERROR")
        assert "umount" not in fake_runner.commands()
        assert mount_point.is_dir()

    def test_unmount_failure_leaves_directory(self, make_mount, mount_point, fake_runner, logger):
        """If unmount fails the directory is left alone to protect remote files."""
        with make_mount() as share:
            (share.path / "Journal.txt").write_text("entry\n")
            fake_runner.failing.add("umount")

        assert mount_point.is_dir()
        assert (mount_point / "Journal.txt").exists()
        assert logger.contains("Failed to unmount", level="ERROR")
        assert not logger.contains("Force-removed")

    def test_teardown_runs_once(self, make_mount, fake_runner):
        mount = make_mount()
        with mount:
            pass
        mount.teardown()
        mount.teardown()

        assert fake_runner.commands().count("umount") == 1

    def test_teardown_without_mount_is_noop(self, make_mount, fake_runner, mount_point):
        make_mount().teardown()

        assert fake_runner.calls == []
        assert not mount_point.exists()


class TestTeardownOnSignals:
    """Tests for signal-driven teardown."""

    @pytest.mark.parametrize("signum", [signal.SIGTERM, signal.SIGHUP, signal.SIGINT])
    def test_signal_unwinds_mount_scope(self, make_mount, mount_point, signum):
        """A termination signal tears the mount down like a normal exit."""
        with pytest.raises(TerminatedError) as exc_info:
            with teardown_on_signals():
                with make_mount():
                    os.kill(os.getpid(), signum)

        assert exc_info.value.signum == signum
        assert exc_info.value.code == "TERMINATED"
        assert not mount_point.exists()

    def test_previous_handlers_restored(self):
        before = signal.getsignal(signal.SIGTERM)

        with teardown_on_signals():
            assert signal.getsignal(signal.SIGTERM) is not before

        assert signal.getsignal(signal.SIGTERM) is before

    def test_signal_during_unmount_waits_for_teardown(self, mount_point, mounts_file, remote_dir, logger):
        """A signal arriving while umount runs is delivered once the share is released."""
        runner = SignallingCommandRunner(mounts_file, remote_dir)
        share = SmbMount(REMOTE, mount_point, OPTIONS, runner, logger, mounts_path=mounts_file)

        with pytest.raises(TerminatedError):
            with teardown_on_signals():
                with share:
                    pass

        assert runner.signalled
        assert runner.commands().count("umount") == 1
        assert str(mount_point) not in read_mount_points(mounts_file)
        assert not mount_point.exists()


class TestDeferredSignals:
    """Tests for holding signals back during critical sections."""

    def test_signal_delivered_after_block(self):
        reached = []

        with pytest.raises(TerminatedError):
            with teardown_on_signals():
                with deferred_signals():
                    os.kill(os.getpid(), signal.SIGTERM)
                    reached.append("end of block")

        assert reached == ["end of block"]

    def test_mask_restored(self):
        before = signal.pthread_sigmask(signal.SIG_BLOCK, [])

        with deferred_signals():
            assert signal.SIGHUP in signal.pthread_sigmask(signal.SIG_BLOCK, [])

        assert signal.pthread_sigmask(signal.SIG_BLOCK, []) == before
