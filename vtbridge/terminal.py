"""
Terminal channels: byte-level access to a VT100 character terminal.

:class:`TerminalChannel` formats output (text, attributes, cursor moves)
in terms of three primitives implemented by its subclasses,
:class:`SerialTerminal` for a terminal attached to a serial line, and
:class:`LocalTerminal` for the controlling tty of this process.
"""
# std imports
import collections
import logging
import select
import enum
import sys
import os

# 3rd party
import serial

__all__ = ('TerminalChannel', 'TerminalState', 'CharAttribute', 'TextSize',
           'SerialTerminal', 'LocalTerminal', 'ESC', 'CRLF')

logger = logging.getLogger('vtbridge.terminal')

ESC = '\x1b'
BEL = b'\x07'
CRLF = '\r\n'


class TerminalState(enum.Enum):
    """Link state of a terminal."""

    #: terminal is offline
    OFFLINE = 'offline'
    #: terminal is starting or stopping
    INTERMEDIATE = 'intermediate'
    #: terminal is ready
    READY = 'ready'


class CharAttribute(enum.IntFlag):
    """Text attributes for :meth:`TerminalChannel.set_attribute`."""

    RESET = 0
    UNDERLINE = 1
    INVERSE = 2
    HIGHLIGHT = 4
    BLINK = 8


class TextSize(enum.Enum):
    """Line sizes for :meth:`TerminalChannel.set_size`."""

    DOUBLE_TOP_HALF = '3'
    DOUBLE_BOTTOM_HALF = '4'
    NORMAL = '5'
    DOUBLE_WIDE = '6'


#: SGR parameter of each attribute, in the order they are sent.
_SGR_CODES = collections.OrderedDict((
    (CharAttribute.BLINK, '5'),
    (CharAttribute.HIGHLIGHT, '1'),
    (CharAttribute.INVERSE, '7'),
    (CharAttribute.UNDERLINE, '4'),
))


class TerminalChannel(object):
    """
    Base class of a VT100 terminal connection.

    Subclasses implement :meth:`_bytes_waiting`, :meth:`_read_byte`,
    :meth:`_write_bytes`, and optionally :meth:`_discard_input` and
    :meth:`_link_state`.
    """

    #: encoding of text written to and read from the terminal.
    encoding = 'latin-1'

    def __init__(self):
        self._listeners = []
        self._last_state = None
        #: set once the input stream has ended, no more keys will arrive.
        self.at_eof = False

    # primitives

    def _bytes_waiting(self):
        raise NotImplementedError

    def _read_byte(self):
        raise NotImplementedError

    def _write_bytes(self, data):
        raise NotImplementedError

    def _discard_input(self):
        while self._bytes_waiting():
            self._read_byte()

    def _link_state(self):
        return TerminalState.READY

    # input

    @property
    def key_available(self):
        """Whether a byte is waiting to be read."""
        try:
            return self._bytes_waiting() > 0
        except (OSError, serial.SerialException) as err:
            logger.debug('key_available: {0}'.format(err))
            return False

    def read(self):
        """Return next input byte as integer, or None when none is waiting."""
        if not self.key_available:
            return None
        return self._read_byte()

    def flush(self):
        """Discard pending input, returning the number of bytes dropped."""
        num_bytes = self._bytes_waiting()
        self._discard_input()
        return num_bytes

    # output

    def write(self, data=''):
        """Write ``data``: text, bytes, or a single byte value."""
        if isinstance(data, int):
            data = bytes([data])
        elif isinstance(data, str):
            data = data.encode(self.encoding, 'replace')
        if data:
            self._write_bytes(data)

    def writeline(self, data=''):
        """Write ``data`` followed by CR LF."""
        self.write(data)
        self.write(CRLF)

    def send_code(self, code):
        """Write control sequence ``ESC [ code``."""
        self.write('{0}[{1}'.format(ESC, code))

    def beep(self):
        self._write_bytes(BEL)

    def clear(self):
        """Clear the screen and home the cursor."""
        self.send_code('2J')
        self.send_code('H')

    def set_cursor_position(self, left, top):
        self.send_code('{0};{1}H'.format(top, left))

    def set_attribute(self, attribute):
        """Set text ``attribute``, clearing those previously set."""
        params = ''.join(';' + code for flag, code in _SGR_CODES.items()
                         if attribute & flag)
        self.send_code('0{0}m'.format(params))

    def set_size(self, size):
        self.write('{0}#{1}'.format(ESC, size.value))

    # link state

    @property
    def state(self):
        """Current :class:`TerminalState`."""
        return self._link_state()

    def add_state_listener(self, callback):
        """Call ``callback(state)`` whenever :meth:`check_state` sees a change."""
        self._listeners.append(callback)

    def remove_state_listener(self, callback):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def check_state(self):
        """Poll link state, notifying listeners of any change."""
        state = self.state
        if state != self._last_state:
            logger.debug('terminal state {0} -> {1}'.format(
                self._last_state, state))
            self._last_state = state
            for callback in list(self._listeners):
                callback(state)
        return state

    def close(self):
        """Release the underlying device."""


class SerialTerminal(TerminalChannel):
    """
    Terminal attached to a serial port, by :class:`serial.Serial`.

    The terminal is READY while carrier detect, clear to send and data set
    ready are all asserted, INTERMEDIATE with carrier detect only.
    """

    def __init__(self, port):
        super().__init__()
        if isinstance(port, str):
            port = serial.Serial(port, timeout=0)
        self.port = port
        if not self.port.is_open:
            self.port.open()
        self.port.dtr = True
        self.port.rts = True
        self._last_state = self.state

    def __repr__(self):
        return '<SerialTerminal {0}>'.format(self.port.port)

    def _bytes_waiting(self):
        return self.port.in_waiting

    def _read_byte(self):
        data = self.port.read(1)
        return data[0] if data else None

    def _write_bytes(self, data):
        self.port.write(data)

    def _discard_input(self):
        self.port.reset_input_buffer()

    def _link_state(self):
        try:
            if self.port.cd and self.port.cts and self.port.dsr:
                return TerminalState.READY
            if self.port.cd:
                return TerminalState.INTERMEDIATE
        except (OSError, serial.SerialException) as err:
            logger.debug('modem lines: {0}'.format(err))
        return TerminalState.OFFLINE

    def close(self):
        self.port.close()


if sys.platform == "win32":

    class LocalTerminal(TerminalChannel):
        def __init__(self, *args, **kwargs):
            raise NotImplementedError(
                "win32 not yet supported as local terminal. Please contribute!"
            )

else:
    import termios

    class LocalTerminal(TerminalChannel):
        """
        Controlling tty of this process, as a terminal that is always ready.

        Use as a context manager to put the tty in raw mode; when stdin is
        not attached to a terminal, no mode change is performed.
        """

        ModeDef = collections.namedtuple(
            "mode", ["iflag", "oflag", "cflag", "lflag", "ispeed", "ospeed", "cc"]
        )

        def __init__(self, stdin=None, stdout=None):
            super().__init__()
            self._stdin = stdin or sys.stdin
            self._stdout = stdout or sys.stdout
            self._fileno = self._stdin.fileno()
            self._istty = os.isatty(self._fileno)
            self._save_mode = None

        def __enter__(self):
            if self._istty:
                self._save_mode = self.get_mode()
                self.set_mode(self.determine_mode(self._save_mode))
            return self

        def __exit__(self, *_):
            if self._istty and self._save_mode is not None:
                termios.tcsetattr(
                    self._fileno, termios.TCSAFLUSH, list(self._save_mode)
                )

        def get_mode(self):
            return self.ModeDef(*termios.tcgetattr(self._fileno))

        def set_mode(self, mode):
            termios.tcsetattr(self._fileno, termios.TCSAFLUSH, list(mode))

        def determine_mode(self, mode):
            """Return copy of 'mode' configured for byte-at-a-time input."""
            # "Raw mode", see tty.py function setraw.  Keys such as ^C and
            # ^S arrive as input bytes rather than signals or flow control,
            # and CR is not mapped to NL.
            iflag = mode.iflag & ~(
                termios.BRKINT
                | termios.ICRNL
                | termios.INPCK
                | termios.ISTRIP
                | termios.IXON
            )
            cflag = mode.cflag & ~(termios.CSIZE | termios.PARENB)
            cflag = cflag | termios.CS8
            lflag = mode.lflag & ~(
                termios.ICANON | termios.IEXTEN | termios.ISIG | termios.ECHO
            )
            # no post-output processing, CR LF is written explicitly.
            oflag = mode.oflag & ~(termios.OPOST | termios.ONLCR)
            cc = list(mode.cc)
            cc[termios.VMIN] = 1
            cc[termios.VTIME] = 0
            return self.ModeDef(
                iflag=iflag,
                oflag=oflag,
                cflag=cflag,
                lflag=lflag,
                ispeed=mode.ispeed,
                ospeed=mode.ospeed,
                cc=cc,
            )

        def _bytes_waiting(self):
            if self.at_eof:
                return 0
            readable, _, _ = select.select([self._fileno], [], [], 0)
            return 1 if readable else 0

        def _read_byte(self):
            data = os.read(self._fileno, 1)
            if not data:
                logger.info('end of input on fd {0}'.format(self._fileno))
                self.at_eof = True
                return None
            return data[0]

        def _write_bytes(self, data):
            fileno = self._stdout.fileno()
            while data:
                data = data[os.write(fileno, data):]
