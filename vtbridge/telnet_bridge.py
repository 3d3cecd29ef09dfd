"""
A poor man's telnet: bridge the terminal to a remote TCP host.

The :class:`TelnetBridge` plugin offers a ``NET>`` prompt accepting
``OPEN host[:port]``, ``HELP`` and ``EXIT``.  Once connected, bytes are
polled from both the terminal and the socket each tick and forwarded to the
other end.  Telnet negotiation from the remote end is answered minimally:
only terminal type and terminal speed are offered, every other ``DO`` is
refused.  Pressing escape three times in a row closes the connection.
"""
# std imports
import ipaddress
import select
import socket

# local
from .accessories import name_unicode
from .lineedit import ESCAPE, PromptPlugin
from .telopt import DO, IAC, IS, SB, SE, TSPEED, TTYPE, WILL, WONT, name_commands

__all__ = ('TelnetBridge', 'ConnectionClosed')

HELP_LINES = (
    "HELP                - Get Help",
    "EXIT                - Exit plugin",
    "OPEN Host[:Port]    - Connect to 'Host' on port 'Port'",
    "Port is optional and defaults to 23",
    "",
    "Press [ESC] 3 times during a connection to close it.",
    "",
)

OPEN_USAGE = (
    "OPEN Host[:Port]",
    "Opens a connection to the specified host",
    "Port is optional and defaults to 23",
)


class ConnectionClosed(ConnectionError):
    """The remote end closed the connection."""


class TelnetBridge(PromptPlugin):
    """Plugin connecting the terminal to a telnet host."""

    command = 'NET'
    help_text = 'Poor mans telnet'
    name = 'INTERNAL:NET'
    pre_start_messages_only = True

    #: Port used when ``OPEN`` names none.
    default_port = 23

    #: Consecutive escape keys closing a connection.
    escape_limit = 3

    def __init__(self, ttype='vt100', tspeed='9600,9600', poll_interval=0.1,
                 connect_timeout=10.0, iac_timeout=5.0):
        """
        Class initializer.

        :param str ttype: terminal type answered to IAC SB TTYPE SEND.
        :param str tspeed: terminal speed ``rx,tx`` answered to
            IAC SB TSPEED SEND.
        :param float poll_interval: seconds between polls of terminal and
            socket during a connection.
        :param float connect_timeout: seconds allowed to establish TCP.
        :param float iac_timeout: seconds allowed to receive the remainder
            of a command sequence following IAC.
        """
        super().__init__()
        self.ttype = ttype
        self.tspeed = tspeed
        self.poll_interval = poll_interval
        self.connect_timeout = connect_timeout
        self.iac_timeout = iac_timeout
        self.sock = None

    @property
    def prompt(self):
        return 'NET>'

    def prepare(self):
        self.terminal.clear()
        argument = self.consume_argument()
        if argument:
            self.execute('OPEN ' + argument.strip())

    def on_terminate(self):
        self._close_socket()

    # commands

    def execute(self, line):
        upper = line.upper()
        if not line:
            return
        if upper == 'HELP':
            for text in HELP_LINES:
                self.terminal.writeline(text)
        elif upper == 'EXIT':
            self.exit()
        elif upper == 'OPEN':
            for text in OPEN_USAGE:
                self.terminal.writeline(text)
        elif upper.startswith('OPEN '):
            self.open(line[5:].strip())
        else:
            self.terminal.writeline(
                'Command not understood. Type HELP for more information')

    def open(self, target):
        """Connect to ``host[:port]`` and bridge until the session ends."""
        host, port = target, str(self.default_port)
        if ':' in target:
            host, port = target.rsplit(':', 1)
        try:
            port = int(port)
            if not 0 < port < 65536:
                raise ValueError(port)
        except ValueError:
            self.terminal.writeline('specified Port is invalid')
            return
        self.terminal.writeline('Connecting...')
        address = self.resolve(host)
        if address is None:
            self.terminal.writeline("Cannot resolve host name '{0}'".format(host))
            return
        sock = self.connect(address, port)
        if sock is None:
            self.terminal.writeline("Can't connect to {0}:{1}".format(address, port))
            return
        self.session(sock)
        self.terminal.writeline()

    def resolve(self, host):
        """Return address of ``host``, literal or by name, None if unknown."""
        try:
            return str(ipaddress.ip_address(host))
        except ValueError:
            pass
        try:
            infos = socket.getaddrinfo(host, None, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as err:
            self.log.info('resolve {0!r}: {1}'.format(host, err))
            return None
        return infos[0][4][0] if infos else None

    def connect(self, address, port):
        """Return socket connected to ``(address, port)``, None on failure."""
        try:
            sock = socket.create_connection(
                (address, port), timeout=self.connect_timeout)
        except OSError as err:
            self.log.info('connect {0}:{1}: {2}'.format(address, port, err))
            return None
        self.log.info('connected to {0}:{1}'.format(address, port))
        return sock

    # session

    def session(self, sock):
        """Bridge terminal and ``sock`` until the session ends, then close it."""
        self.sock = sock
        sock.settimeout(self.iac_timeout)
        try:
            reason = self.bridge(sock)
        except ConnectionClosed:
            reason = 'Connection closed by foreign host.'
        except OSError as err:
            self.log.info('session error: {0}'.format(err))
            reason = 'Connection lost: {0}'.format(err)
        finally:
            self._close_socket()
        self.log.info(reason)
        self.terminal.writeline()
        self.terminal.writeline(reason)

    def bridge(self, sock):
        """
        Poll terminal and socket, forwarding in both directions.

        Remote input is drained first for as long as no key is pending,
        then all pending keys are sent.  Returns a message describing why
        the session ended.
        """
        escapes = 0
        while not self.stop_requested:
            while self._remote_available(sock) and not self.terminal.key_available:
                byte = self._recv_exactly(sock, 1)[0]
                if byte == IAC[0]:
                    self.handle_iac(sock)
                else:
                    self.log.debug('recv {0}'.format(name_unicode(chr(byte))))
                    self.terminal.write(byte)

            while self.terminal.key_available:
                byte = self.terminal.read()
                if byte is None:
                    break
                if byte == ESCAPE:
                    escapes += 1
                    if escapes == self.escape_limit:
                        return 'Connection closed.'
                    continue
                escapes = 0
                self.log.debug('send {0}'.format(name_unicode(chr(byte))))
                try:
                    sock.sendall(bytes([byte]))
                except OSError as err:
                    return 'Connection lost: {0}'.format(err)

            if self.terminal.at_eof:
                break
            if self.wait(self.poll_interval):
                break
        return 'Connection closed.'

    def handle_iac(self, sock):
        """
        Process the command sequence following IAC received on ``sock``.

        Exactly two bytes, command and option, are read.  Subnegotiation
        (SB) is followed by the remote's request, ``SEND IAC SE``, which is
        read and discarded.  Returns the reply sent, if any.
        """
        buf = self._recv_exactly(sock, 2)
        cmd, opt = buf[0:1], buf[1:2]
        if cmd == SB:
            self._recv_exactly(sock, 3)
        self.log.debug('recv IAC {0}'.format(name_commands(buf)))
        reply = self.iac_reply(cmd, opt)
        if reply:
            self.log.debug('send {0!r}'.format(reply))
            sock.sendall(reply)
        return reply

    def iac_reply(self, cmd, opt):
        """Return reply to IAC ``cmd`` ``opt``, empty when none is due."""
        if cmd == DO:
            if opt in (TTYPE, TSPEED):
                return IAC + WILL + opt
            return IAC + WONT + opt
        if cmd == SB:
            if opt == TSPEED:
                value = self.tspeed
            elif opt == TTYPE:
                value = self.ttype
            else:
                return b''
            return b''.join([IAC, SB, opt, IS, value.encode('ascii'), IAC, SE])
        return b''

    @staticmethod
    def _remote_available(sock):
        readable, _, _ = select.select([sock], [], [], 0)
        return bool(readable)

    @staticmethod
    def _recv_exactly(sock, size):
        buf = b''
        while len(buf) < size:
            data = sock.recv(size - len(buf))
            if not data:
                raise ConnectionClosed('connection closed by remote end')
            buf += data
        return buf

    def _close_socket(self):
        sock, self.sock = self.sock, None
        if sock is not None:
            sock.close()
