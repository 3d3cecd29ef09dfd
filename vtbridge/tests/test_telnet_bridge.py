"""Test the telnet bridge plugin against a live TCP peer."""
# std imports
import socket
import time

# 3rd party
import pytest

# local
from vtbridge.plugin import MessageRejected
from vtbridge.shell import HostShell
from vtbridge.telnet_bridge import TelnetBridge
from vtbridge.telopt import DO, IAC, IS, SB, SE, SEND, TSPEED, TTYPE, WILL
from vtbridge.tests.accessories import (  # pytest fixtures
    MemoryTerminal,
    bind_host,
    terminal,
    telnet_peer,
    wait_until,
)

ESC3 = b'\x1b\x1b\x1b'


@pytest.fixture
def bridge():
    """Yield a fast-polling :class:`TelnetBridge`, stopped on teardown."""
    plugin = TelnetBridge(poll_interval=0.01, connect_timeout=2.0)
    yield plugin
    plugin.stop()


def _open(bridge, terminal, peer):
    bridge.rec_message(None, peer.address)
    assert bridge.start(terminal)
    assert peer.connected.wait(5)


def test_registration_reply():
    shell, bridge = HostShell(), TelnetBridge()
    shell.install(bridge)
    assert shell.registry.resolve('NET') == (bridge, None)
    assert shell.registry.help_entries() == [('NET', 'Poor mans telnet')]


def test_ttype_answered_before_data(bridge, terminal, telnet_peer):
    """IAC DO TTYPE is answered with exactly IAC WILL TTYPE."""
    telnet_peer.greeting = IAC + DO + TTYPE + b'hello'
    _open(bridge, terminal, telnet_peer)
    assert terminal.wait_output('hello')
    assert telnet_peer.wait_received(3)
    time.sleep(0.05)
    assert telnet_peer.received == IAC + WILL + TTYPE
    assert b'\xff' not in terminal.output


def test_subnegotiation_replies(bridge, terminal, telnet_peer):
    telnet_peer.greeting = (IAC + DO + TSPEED +
                            IAC + SB + TSPEED + SEND + IAC + SE +
                            IAC + SB + TTYPE + SEND + IAC + SE)
    _open(bridge, terminal, telnet_peer)
    expected = (IAC + WILL + TSPEED +
                IAC + SB + TSPEED + IS + b'9600,9600' + IAC + SE +
                IAC + SB + TTYPE + IS + b'vt100' + IAC + SE)
    assert telnet_peer.wait_received(len(expected))
    assert telnet_peer.received == expected


def test_remote_bytes_forwarded_verbatim(bridge, terminal, telnet_peer):
    telnet_peer.greeting = b'\x1b[2Jlogin:\x00\r\n'
    _open(bridge, terminal, telnet_peer)
    assert wait_until(lambda: b'\x1b[2Jlogin:\x00\r\n' in terminal.output)


def test_keys_forwarded(bridge, terminal, telnet_peer):
    _open(bridge, terminal, telnet_peer)
    terminal.feed(b'ls -l\r')
    assert telnet_peer.wait_received(6)
    assert telnet_peer.received == b'ls -l\r'


def test_triple_escape_ends_session(bridge, terminal, telnet_peer):
    _open(bridge, terminal, telnet_peer)
    terminal.feed(b'abc' + ESC3)
    assert terminal.wait_output('Connection closed.')
    assert telnet_peer.disconnected.wait(5)
    assert telnet_peer.received == b'abc'
    # back at the prompt, plugin still running
    assert terminal.wait_output('NET>')
    assert bridge.is_running
    assert bridge.sock is None


def test_interrupted_escapes_do_not_end_session(bridge, terminal, telnet_peer):
    _open(bridge, terminal, telnet_peer)
    terminal.feed(b'\x1bx\x1b\x1b')
    assert telnet_peer.wait_received(1)
    assert not telnet_peer.disconnected.wait(0.2)
    assert 'Connection closed' not in terminal.text
    assert telnet_peer.received == b'x'

    # a third consecutive escape does
    terminal.feed(b'\x1b')
    assert telnet_peer.disconnected.wait(5)
    assert terminal.wait_output('Connection closed.')


def test_remote_close_returns_to_prompt(bridge, terminal, telnet_peer):
    _open(bridge, terminal, telnet_peer)
    telnet_peer.hangup()
    assert terminal.wait_output('Connection closed by foreign host.')
    assert terminal.wait_output('NET>')
    assert bridge.is_running


def test_end_of_terminal_input_ends_session(bridge, terminal, telnet_peer):
    _open(bridge, terminal, telnet_peer)
    terminal.at_eof = True
    assert telnet_peer.disconnected.wait(5)
    assert bridge.block(5)


def test_open_typed_at_prompt(bridge, terminal, telnet_peer):
    telnet_peer.greeting = b'welcome'
    assert bridge.start(terminal)
    assert terminal.wait_output('NET>')
    terminal.feed('open {0}\r'.format(telnet_peer.address))
    assert telnet_peer.connected.wait(5)
    assert terminal.wait_output('welcome')


def test_connect_failure_reported(bridge, terminal, bind_host):
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind((bind_host, 0))
    port = sock.getsockname()[1]
    sock.close()

    bridge.rec_message(None, '{0}:{1}'.format(bind_host, port))
    bridge.start(terminal)
    assert terminal.wait_output("Can't connect to {0}:{1}".format(bind_host, port))
    assert terminal.wait_output('NET>')
    assert bridge.is_running


def test_resolve_failure_reported(bridge, terminal, monkeypatch):
    def getaddrinfo(*args, **kwargs):
        raise socket.gaierror(socket.EAI_NONAME, 'Name or service not known')

    monkeypatch.setattr(socket, 'getaddrinfo', getaddrinfo)
    bridge.rec_message(None, 'nowhere.invalid')
    bridge.start(terminal)
    assert terminal.wait_output("Cannot resolve host name 'nowhere.invalid'")
    assert terminal.wait_output('NET>')
    assert bridge.is_running


@pytest.mark.parametrize('target', ['localhost:telnet', 'localhost:0',
                                    'localhost:70000'])
def test_invalid_port_reported(bridge, terminal, target):
    bridge.start(terminal)
    terminal.feed('OPEN {0}\r'.format(target))
    assert terminal.wait_output('specified Port is invalid')


def test_help_and_exit(bridge, terminal):
    bridge.start(terminal)
    terminal.feed('help\r')
    assert terminal.wait_output('Press [ESC] 3 times during a connection')
    terminal.feed('OPEN\r')
    assert terminal.wait_output('Opens a connection to the specified host')
    terminal.feed('dial 555\r')
    assert terminal.wait_output('Command not understood. Type HELP')
    terminal.feed('exit\r')
    assert bridge.block(5)


def test_escape_at_prompt_exits(bridge, terminal):
    bridge.start(terminal)
    assert terminal.wait_output('NET>')
    terminal.feed(b'\x1b')
    assert bridge.block(5)
    assert terminal.output.endswith(b'\r\n\x07')


def test_stop_during_session_closes_socket(bridge, terminal, telnet_peer):
    _open(bridge, terminal, telnet_peer)
    assert wait_until(lambda: bridge.sock is not None)
    stime = time.monotonic()
    bridge.stop()
    assert time.monotonic() - stime < bridge.GRACE_PERIOD
    assert telnet_peer.disconnected.wait(5)
    assert bridge.sock is None
    assert not bridge.is_running


def test_messages_rejected_once_started(bridge, terminal):
    bridge.start(terminal)
    assert terminal.wait_output('NET>')
    with pytest.raises(MessageRejected):
        bridge.rec_message(None, 'example.com')


def test_binary_messages_rejected():
    with pytest.raises(MessageRejected):
        TelnetBridge().rec_binary(None, b'data', 0, 4)


class RecordingSocket(object):
    """Socket wrapper recording what is sent into a shared journal."""

    def __init__(self, sock, journal):
        self.sock = sock
        self.journal = journal

    def fileno(self):
        return self.sock.fileno()

    def settimeout(self, value):
        self.sock.settimeout(value)

    def recv(self, size):
        return self.sock.recv(size)

    def sendall(self, data):
        self.journal.append(('send', data))
        self.sock.sendall(data)

    def close(self):
        self.sock.close()


class RecordingTerminal(MemoryTerminal):
    """Terminal recording what is written into a shared journal."""

    def __init__(self, journal):
        super().__init__()
        self.journal = journal

    def _write_bytes(self, data):
        self.journal.append(('write', data))
        super()._write_bytes(data)


class RecordingBridge(TelnetBridge):
    def __init__(self, journal, **kwargs):
        super().__init__(**kwargs)
        self.journal = journal

    def connect(self, address, port):
        sock = super().connect(address, port)
        return RecordingSocket(sock, self.journal) if sock else sock


def test_pending_key_sent_before_remote_burst(telnet_peer):
    burst = b'~' + b'0123456789' * 400
    journal = []
    term = RecordingTerminal(journal)
    bridge = RecordingBridge(journal, poll_interval=0.01, connect_timeout=2.0)
    telnet_peer.greeting = burst
    term.feed(b'k')
    bridge.rec_message(None, telnet_peer.address)
    try:
        assert bridge.start(term)
        assert telnet_peer.wait_received(1)
        assert wait_until(lambda: burst in term.output)

        first_send = journal.index(('send', b'k'))
        first_burst = next(index for index, (kind, data) in enumerate(journal)
                           if kind == 'write' and b'~' in data)
        assert first_send < first_burst

        # both directions keep their order.
        term.feed(b'hello, world\r')
        assert telnet_peer.wait_received(14)
        assert telnet_peer.received == b'khello, world\r'
        assert term.output.count(burst) == 1
    finally:
        bridge.stop()
