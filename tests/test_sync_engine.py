"""
Tests for differential sync in both directions.

The remote side is a local temp directory; fingerprints are computed by the
real `split … && sha256sum` pipeline run through the local shell.
"""
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fakes import connect_manager, shell_tools_available
from sshmirror.core.chunks import remote_digest
from sshmirror.core.sync_engine import backup_name, client_sync_to_server, server_sync_to_client

MTIME = 1_600_000_000
ATIME = 1_600_000_100


@unittest.skipUnless(shell_tools_available(), "coreutils (split, sha256sum) not available")
class SyncTestCase(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)
        self.mgr = connect_manager(self.root)
        self.local = self.root / "local"
        self.local.mkdir()
        self.client_file = self.local / "data.bin"
        self.server_path = self.root / "remote" / "data.bin"
        self.server_file = str(self.server_path)

    def tearDown(self):
        self.mgr.close()
        self.tmpdir.cleanup()

    def write(self, path, data, mtime=MTIME, atime=ATIME):
        Path(path).write_bytes(data)
        os.utime(path, (atime, mtime))


class TestRemoteDigest(SyncTestCase):

    def test_remote_and_local_fingerprints_agree(self):
        from sshmirror.core.chunks import local_digest
        self.write(self.server_path, b"ABCDEFGHIJ")
        self.write(self.client_file, b"ABCDEFGHIJ")
        remote = remote_digest(self.mgr, self.server_file, 4)
        local = local_digest(self.client_file, 4)
        self.assertEqual([c.fingerprint for c in remote.chunks], [c.fingerprint for c in local.chunks])
        self.assertEqual([(c.start, c.end) for c in remote.chunks], [(0, 4), (4, 8), (8, 10)])
        self.assertEqual(remote.size, 10)
        self.assertEqual(remote.mtime, MTIME)

    def test_chunk_directory_is_cleaned_up(self):
        self.write(self.server_path, b"ABCDEFGHIJ")
        scratch = self.root / "remote" / ".data.bin_4.chunks"
        scratch.mkdir()
        (scratch / "chunk_zz").write_bytes(b"stale")
        digest = remote_digest(self.mgr, self.server_file, 4)
        self.assertEqual(len(digest.chunks), 3)
        self.assertFalse(scratch.exists())

    def test_user_directory_with_plain_name_survives(self):
        self.write(self.server_path, b"ABCDEFGHIJ")
        user_dir = self.root / "remote" / "data.bin_4"
        user_dir.mkdir()
        (user_dir / "keep.txt").write_bytes(b"mine")
        remote_digest(self.mgr, self.server_file, 4)
        self.assertEqual((user_dir / "keep.txt").read_bytes(), b"mine")

    def test_path_with_spaces_and_metacharacters(self):
        odd = self.root / "remote" / "my data; (v2).bin"
        self.write(odd, b"ABCDEFGHIJ")
        self.write(self.client_file, b"ABCDEFGHIJ")
        from sshmirror.core.chunks import local_digest
        remote = remote_digest(self.mgr, str(odd), 4)
        self.assertEqual([c.fingerprint for c in remote.chunks],
                         [c.fingerprint for c in local_digest(self.client_file, 4).chunks])

    def test_empty_file_runs_no_pipeline(self):
        self.write(self.server_path, b"")
        transport = self.mgr._transport
        before = len(transport.commands)
        digest = remote_digest(self.mgr, self.server_file, 4)
        self.assertEqual(digest.chunks, [])
        self.assertEqual(transport.commands[before:], [])

    def test_pipeline_text(self):
        self.write(self.server_path, b"ABCD")
        remote_digest(self.mgr, self.server_file, 4)
        prefix = f"{self.root}/remote/.data.bin_4.chunks/chunk_"
        self.assertIn(
            f'split -b 4 {self.server_file} {prefix} && for f in {prefix}*; do sha256sum "$f"; done',
            self.mgr._transport.commands)


class TestClientToServer(SyncTestCase):

    def test_only_differing_chunk_is_written(self):
        self.write(self.client_file, b"ABCDEFGH")
        self.write(self.server_path, b"ABCDXYGH", mtime=MTIME - 50)
        report = client_sync_to_server(self.mgr, self.client_file, self.server_file, chunk_size=4, backup=False)
        self.assertEqual(report.chunks, [1])
        self.assertEqual(report.bytes_written, 4)
        self.assertEqual(self.server_path.read_bytes(), b"ABCDEFGH")

    def test_second_run_writes_nothing(self):
        self.write(self.client_file, b"ABCDEFGHIJ")
        self.write(self.server_path, b"0123456789")
        first = client_sync_to_server(self.mgr, self.client_file, self.server_file, chunk_size=4, backup=False)
        second = client_sync_to_server(self.mgr, self.client_file, self.server_file, chunk_size=4, backup=False)
        self.assertEqual(first.chunks, [0, 1, 2])
        self.assertEqual(second.chunks, [])
        self.assertEqual(second.bytes_written, 0)

    def test_longer_destination_is_truncated(self):
        self.write(self.client_file, b"ABCDEF")
        self.write(self.server_path, b"ABCDEFGHIJKLMN")
        report = client_sync_to_server(self.mgr, self.client_file, self.server_file, chunk_size=4, backup=False)
        self.assertTrue(report.truncated)
        self.assertEqual(self.server_path.read_bytes(), b"ABCDEF")

    def test_shorter_destination_grows(self):
        self.write(self.client_file, b"ABCDEFGHIJ")
        self.write(self.server_path, b"ABCD")
        report = client_sync_to_server(self.mgr, self.client_file, self.server_file, chunk_size=4, backup=False)
        self.assertEqual(report.chunks, [1, 2])
        self.assertFalse(report.truncated)
        self.assertEqual(self.server_path.read_bytes(), b"ABCDEFGHIJ")

    def test_timestamps_follow_source(self):
        self.write(self.client_file, b"ABCDEFGH", mtime=MTIME, atime=ATIME)
        self.write(self.server_path, b"ABCDXYGH", mtime=MTIME + 999, atime=ATIME + 999)
        client_sync_to_server(self.mgr, self.client_file, self.server_file, chunk_size=4, backup=False)
        st = self.server_path.stat()
        self.assertEqual(int(st.st_mtime), MTIME)
        self.assertEqual(int(st.st_atime), ATIME)

    def test_backup_keeps_previous_version(self):
        self.write(self.client_file, b"new content!")
        self.write(self.server_path, b"old content!")
        report = client_sync_to_server(self.mgr, self.client_file, self.server_file, chunk_size=4)
        self.assertEqual(report.backup, backup_name(self.server_file, MTIME))
        self.assertIn("data-sync-backup-", Path(report.backup).name)
        self.assertTrue(report.backup.endswith(".bin"))
        self.assertEqual(Path(report.backup).read_bytes(), b"old content!")
        self.assertEqual(self.server_path.read_bytes(), b"new content!")

    def test_backup_failure_aborts(self):
        self.write(self.client_file, b"new content!")
        self.write(self.server_path, b"old content!")
        with mock.patch.object(self.mgr, "copy", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                client_sync_to_server(self.mgr, self.client_file, self.server_file, chunk_size=4)
        self.assertEqual(self.server_path.read_bytes(), b"old content!")

    def test_missing_destination_is_created(self):
        self.write(self.client_file, b"ABCDEFGHIJ")
        report = client_sync_to_server(self.mgr, self.client_file, self.server_file, chunk_size=4)
        self.assertIsNone(report.backup)
        self.assertEqual(self.server_path.read_bytes(), b"ABCDEFGHIJ")

    def test_write_failure_propagates(self):
        self.write(self.client_file, b"ABCDEFGH")
        self.write(self.server_path, b"ABCDXYGH")
        with mock.patch.object(self.mgr, "open", side_effect=PermissionError("read-only")):
            with self.assertRaises(PermissionError):
                client_sync_to_server(self.mgr, self.client_file, self.server_file, chunk_size=4, backup=False)


class TestServerToClient(SyncTestCase):

    def test_only_differing_chunk_is_fetched(self):
        self.write(self.server_path, b"ABCDEFGH")
        self.write(self.client_file, b"ABCDXYGH")
        report = server_sync_to_client(self.mgr, self.client_file, self.server_file, chunk_size=4, backup=False)
        self.assertEqual(report.chunks, [1])
        self.assertEqual(self.client_file.read_bytes(), b"ABCDEFGH")

    def test_idempotent_and_truncating(self):
        self.write(self.server_path, b"ABCDEF")
        self.write(self.client_file, b"ABCDEFGHIJKLMNOP")
        first = server_sync_to_client(self.mgr, self.client_file, self.server_file, chunk_size=4, backup=False)
        second = server_sync_to_client(self.mgr, self.client_file, self.server_file, chunk_size=4, backup=False)
        self.assertTrue(first.truncated)
        self.assertEqual(second.chunks, [])
        self.assertFalse(second.truncated)
        self.assertEqual(self.client_file.read_bytes(), b"ABCDEF")

    def test_timestamps_follow_source(self):
        self.write(self.server_path, b"remote!!", mtime=MTIME, atime=ATIME)
        self.write(self.client_file, b"local!!!", mtime=MTIME + 10)
        server_sync_to_client(self.mgr, self.client_file, self.server_file, chunk_size=4, backup=False)
        st = self.client_file.stat()
        self.assertEqual(int(st.st_mtime), MTIME)
        self.assertEqual(int(st.st_atime), ATIME)

    def test_local_backup(self):
        self.write(self.server_path, b"remote version")
        self.write(self.client_file, b"local version!")
        report = server_sync_to_client(self.mgr, self.client_file, self.server_file, chunk_size=4)
        self.assertEqual(Path(report.backup).read_bytes(), b"local version!")
        self.assertEqual(Path(report.backup).parent, self.local)

    def test_missing_local_file_is_created(self):
        self.write(self.server_path, b"ABCDEFGHIJ")
        target = self.local / "nested" / "copy.bin"
        server_sync_to_client(self.mgr, target, self.server_file, chunk_size=4)
        self.assertEqual(target.read_bytes(), b"ABCDEFGHIJ")


if __name__ == "__main__":
    unittest.main()
