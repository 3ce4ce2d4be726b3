"""
Tests for the connection lifecycle: connect, sub-channel memoization,
close, auto-reconnect with back-off and retry exhaustion.
"""
import tempfile
import unittest
from pathlib import Path

from fakes import TransportFactory, connect_manager
from sshmirror.config import ConnectOptions
from sshmirror.core.ssh_manager import LONG_SFTP, SSHManager
from sshmirror.events import EventBus, EventKind
from sshmirror.exceptions import (ChannelClosedError, ConnectError, ReconnectError,
                                  RemoteCommandError, RetriesExhaustedError)
from sshmirror.utils.retry import backoff_delay, backoff_schedule


class Recorder:
    def __init__(self, bus):
        self.events = []
        for kind in EventKind:
            bus.on(kind, self.events.append)

    def kinds(self):
        return [e.kind if hasattr(e, "kind") else "progress" for e in self.events]

    def errors(self):
        return [e.error for e in self.events if getattr(e, "kind", None) is EventKind.ERROR]


class TestConnect(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)
        self.bus = EventBus()
        self.rec = Recorder(self.bus)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_connect_provisions_roots_and_emits_open(self):
        mgr = connect_manager(self.root, events=self.bus)
        self.assertTrue(mgr.connected)
        self.assertFalse(mgr.user_closed)
        self.assertTrue((self.root / "remote" / "trashcan").is_dir())
        self.assertEqual(mgr.cache_root, self.root / "client" / "testhost")
        self.assertTrue(mgr.cache_root.is_dir())
        self.assertEqual(mgr.log_path, self.root / "client" / "logs" / "testhost")
        self.assertEqual(self.rec.kinds(), [EventKind.OPEN])

    def test_options_are_snapshotted(self):
        opts = ConnectOptions(host="testhost", trashcan_path=str(self.root / "t"), root=self.root / "c")
        mgr = SSHManager(transport_factory=TransportFactory())
        mgr.connect(opts)
        opts.host = "elsewhere"
        self.assertEqual(mgr.options.host, "testhost")

    def test_connect_failure_raises_connect_error(self):
        factory = TransportFactory(failures=[True])
        with self.assertRaises(ConnectError) as ctx:
            connect_manager(self.root, factory=factory, events=self.bus)
        self.assertIsInstance(ctx.exception.internal_error, ConnectionRefusedError)
        self.assertEqual(self.rec.kinds(), [EventKind.ERROR])
        self.assertIsInstance(self.rec.errors()[0], ConnectError)

    def test_execute_raises_on_stderr_failure(self):
        mgr = connect_manager(self.root)
        self.assertEqual(mgr.execute("echo hello").strip(), "hello")
        with self.assertRaises(RemoteCommandError) as ctx:
            mgr.execute("ls /definitely/not/here")
        self.assertNotEqual(ctx.exception.exit_status, 0)

    def test_open_connection_as_context_manager(self):
        opts = ConnectOptions(host="testhost", trashcan_path=str(self.root / "t"), root=self.root / "c")
        with SSHManager.open_connection(opts, transport_factory=TransportFactory(), events=self.bus) as mgr:
            self.assertTrue(mgr.connected)
        self.assertTrue(mgr.user_closed)
        self.assertEqual(self.rec.kinds(), [EventKind.OPEN, EventKind.CLOSE])

    def test_execute_tolerates_silent_nonzero_exit(self):
        mgr = connect_manager(self.root)
        self.assertEqual(mgr.execute("false"), "")


class TestSubChannels(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_same_tag_returns_same_channel(self):
        mgr = connect_manager(self.root)
        self.assertIs(mgr.sftp(), mgr.sftp())
        self.assertIsNot(mgr.sftp(), mgr.sftp(LONG_SFTP))
        self.assertIs(mgr.sftp(LONG_SFTP), mgr.sftp(LONG_SFTP))

    def test_reconnect_invalidates_channels(self):
        factory = TransportFactory()
        mgr = connect_manager(self.root, factory=factory, sleep=lambda s: None)
        first = mgr.sftp()
        factory.created[0].drop()
        second = mgr.sftp()
        self.assertIsNot(first, second)
        self.assertTrue(first.closed)
        self.assertIn(second, factory.created[1].channels)

    def test_close_discards_channels(self):
        mgr = connect_manager(self.root)
        channel = mgr.sftp()
        mgr.close()
        self.assertTrue(channel.closed)
        with self.assertRaises(ChannelClosedError):
            mgr.sftp()


class TestReconnect(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)
        self.bus = EventBus()
        self.rec = Recorder(self.bus)
        self.sleeps = []

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_backoff_schedule(self):
        self.assertEqual(backoff_delay(1, 5.0), 10.0)
        self.assertEqual(backoff_delay(2, 5.0), 20.0)
        self.assertEqual(backoff_delay(3, 5.0), 40.0)
        self.assertEqual(backoff_schedule(3, 5.0), [10.0, 20.0])

    def test_unexpected_close_reconnects(self):
        factory = TransportFactory(failures=[False, True, False])
        mgr = connect_manager(self.root, factory=factory, events=self.bus, sleep=self.sleeps.append)
        factory.created[0].drop()

        self.assertEqual(len(factory.created), 3)
        self.assertEqual(self.sleeps, [10.0])
        self.assertTrue(mgr.connected)
        self.assertEqual(mgr.execute("echo ok").strip(), "ok")
        reconnects = [e.attempt for e in self.rec.events if e.kind is EventKind.RECONNECT]
        self.assertEqual(reconnects, [1, 2])
        self.assertTrue(any(isinstance(e, ReconnectError) and e.attempt == 1 for e in self.rec.errors()))
        self.assertEqual(self.rec.kinds()[-1], EventKind.OPEN)
        self.assertEqual(mgr.try_count, 0)

    def test_retries_exhausted(self):
        factory = TransportFactory(failures=[False, True, True, True, False])
        mgr = connect_manager(self.root, factory=factory, events=self.bus, sleep=self.sleeps.append)
        factory.created[0].drop()

        self.assertEqual(len(factory.created), 4, "no attempt after the budget is spent")
        self.assertEqual(self.sleeps, [10.0, 20.0])
        self.assertFalse(mgr.connected)
        exhausted = [e for e in self.rec.errors() if isinstance(e, RetriesExhaustedError)]
        self.assertEqual(len(exhausted), 1)
        self.assertEqual(exhausted[0].attempts, 3)
        self.assertEqual(mgr.try_count, 3)
        with self.assertRaises(RetriesExhaustedError):
            mgr.execute("true")

    def test_explicit_reconnect_raises_when_exhausted(self):
        factory = TransportFactory(failures=[False, True, True])
        mgr = connect_manager(self.root, factory=factory, sleep=self.sleeps.append, max_try_count=2)
        with self.assertRaises(RetriesExhaustedError) as ctx:
            mgr.reconnect()
        self.assertNotIsInstance(ctx.exception, ReconnectError)
        self.assertEqual(self.sleeps, [10.0])

    def test_user_close_suppresses_reconnect(self):
        factory = TransportFactory()
        mgr = connect_manager(self.root, factory=factory, events=self.bus, sleep=self.sleeps.append)
        mgr.close()
        factory.created[0].drop()

        self.assertEqual(len(factory.created), 1)
        closes = [e for e in self.rec.events if e.kind is EventKind.CLOSE]
        self.assertTrue(all(e.user_closed for e in closes))
        self.assertNotIn(EventKind.RECONNECT, self.rec.kinds())

    def test_auto_reconnect_disabled(self):
        factory = TransportFactory()
        mgr = connect_manager(self.root, factory=factory, events=self.bus,
                              sleep=self.sleeps.append, auto_reconnect=False)
        factory.created[0].drop()

        self.assertEqual(len(factory.created), 1)
        closes = [e for e in self.rec.events if e.kind is EventKind.CLOSE]
        self.assertEqual(len(closes), 1)
        self.assertFalse(closes[0].user_closed)
        self.assertNotIn(EventKind.RECONNECT, self.rec.kinds())
        self.assertFalse(mgr.user_closed)


if __name__ == "__main__":
    unittest.main()
