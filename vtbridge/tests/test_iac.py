"""Test the telnet bridge's answers to IAC command sequences."""
# std imports
import socket

# 3rd party
import pytest

# local
from vtbridge.telnet_bridge import ConnectionClosed, TelnetBridge
from vtbridge.telopt import (DO, DONT, ECHO, IAC, IS, NAWS, SB, SE, SEND, SGA,
                             TSPEED, TTYPE, WILL, WONT)


@pytest.fixture
def sockets():
    """Yield (bridge end, remote end) of a connected socket pair."""
    local, remote = socket.socketpair()
    local.settimeout(1)
    remote.settimeout(1)
    yield local, remote
    local.close()
    remote.close()


def _recv_all(sock):
    sock.settimeout(0.1)
    buf = b''
    try:
        while True:
            data = sock.recv(1024)
            if not data:
                break
            buf += data
    except socket.timeout:
        pass
    return buf


@pytest.mark.parametrize('opt', [TTYPE, TSPEED])
def test_do_supported_answers_will(sockets, opt):
    local, remote = sockets
    remote.sendall(DO + opt)
    reply = TelnetBridge().handle_iac(local)
    assert reply == IAC + WILL + opt
    assert _recv_all(remote) == IAC + WILL + opt


def test_do_anything_else_answers_wont():
    bridge = TelnetBridge()
    for value in range(256):
        opt = bytes([value])
        if opt in (TTYPE, TSPEED):
            continue
        assert bridge.iac_reply(DO, opt) == IAC + WONT + opt


def test_sb_tspeed(sockets):
    local, remote = sockets
    remote.sendall(SB + TSPEED + SEND + IAC + SE)
    TelnetBridge().handle_iac(local)
    assert _recv_all(remote) == IAC + SB + TSPEED + IS + b'9600,9600' + IAC + SE


def test_sb_ttype(sockets):
    local, remote = sockets
    remote.sendall(SB + TTYPE + SEND + IAC + SE)
    TelnetBridge().handle_iac(local)
    assert _recv_all(remote) == IAC + SB + TTYPE + IS + b'vt100' + IAC + SE


def test_sb_ttype_configured(sockets):
    local, remote = sockets
    remote.sendall(SB + TTYPE + SEND + IAC + SE)
    TelnetBridge(ttype='ansi').handle_iac(local)
    assert _recv_all(remote) == IAC + SB + TTYPE + IS + b'ansi' + IAC + SE


def test_sb_other_option_consumed_without_reply(sockets):
    local, remote = sockets
    remote.sendall(SB + NAWS + SEND + IAC + SE + b'after')
    assert TelnetBridge().handle_iac(local) == b''
    assert _recv_all(remote) == b''
    # exactly the request was consumed, following data remains.
    assert local.recv(5) == b'after'


@pytest.mark.parametrize('cmd', [WILL, WONT, DONT])
def test_other_commands_ignored(sockets, cmd):
    local, remote = sockets
    remote.sendall(cmd + ECHO)
    assert TelnetBridge().handle_iac(local) == b''
    assert _recv_all(remote) == b''


def test_sga_refused():
    assert TelnetBridge().iac_reply(DO, SGA) == IAC + WONT + SGA


def test_truncated_sequence_closed(sockets):
    local, remote = sockets
    remote.sendall(DO)
    remote.shutdown(socket.SHUT_WR)
    with pytest.raises(ConnectionClosed):
        TelnetBridge().handle_iac(local)
