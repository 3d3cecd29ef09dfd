"""
The ``main`` function here is wired to the command line tool by name
vtbridge.  It opens the serial port given on the command line, waits for
the terminal attached to it to become ready, and runs the
:class:`~.HostShell` on it, with the :class:`~.TelnetBridge` installed,
until the shell exits or this process receives SIGINT or SIGTERM.
"""
# std imports
import collections
import argparse
import logging
import signal
import time
import sys

# 3rd party
import serial
import serial.tools.list_ports

# local
from . import accessories
from .loader import PluginLoader, PluginLoadError
from .shell import HostShell
from .telnet_bridge import TelnetBridge
from .terminal import LocalTerminal, SerialTerminal, TerminalState

__all__ = ('main', 'run_console', 'parse_args', 'parse_serial_options',
           'SerialOptions')

CONFIG = collections.namedtuple(
    "CONFIG",
    [
        "loglevel",
        "logfile",
        "logfmt",
        "plugins",
        "ttype",
        "ready_poll",
        "main_poll",
    ],
)(
    loglevel="warn",
    logfile=None,
    logfmt=accessories._DEFAULT_LOGFMT,
    plugins=(),
    ttype="vt100",
    ready_poll=2.0,
    main_poll=0.5,
)

SerialOptions = collections.namedtuple(
    "SerialOptions",
    ["port", "baudrate", "bytesize", "stopbits", "parity", "xonxoff", "rtscts"],
)

#: defaults of fields omitted from the serial options argument.
SERIAL_DEFAULTS = SerialOptions(
    port=None,
    baudrate=9600,
    bytesize=serial.EIGHTBITS,
    stopbits=serial.STOPBITS_ONE,
    parity=serial.PARITY_NONE,
    xonxoff=False,
    rtscts=False,
)

_STOPBITS = {
    "1": serial.STOPBITS_ONE,
    "1.5": serial.STOPBITS_ONE_POINT_FIVE,
    "2": serial.STOPBITS_TWO,
}

_PARITY = {
    "N": serial.PARITY_NONE,
    "E": serial.PARITY_EVEN,
    "O": serial.PARITY_ODD,
    "S": serial.PARITY_SPACE,
    "M": serial.PARITY_MARK,
}

#: handshake letter -> (xonxoff, rtscts)
_HANDSHAKE = {
    "N": (False, False),
    "X": (True, False),
    "R": (False, True),
    "B": (True, True),
}

USAGE = """\
vtbridge Port[,[Baud][,[Databits][,[Stopbits][,[Parity][,[Handshake]]]]]]

Port      - Name of Port (/dev/ttyS0, COM1, ...)
Baud      - Baud Rate (Defaults to 9600)
Databits  - Databits (5-8, defaults to 8)
Stopbits  - Stop bits: 1, 1.5, 2 (defaults to 1)
Parity    - [N]one, [O]dd, [E]ven, [S]pace, [M]ark (Defaults to N)
Handshake - Protocol handshake: [N]one, [X]on/Xoff, [R]ts, [B]oth (Default: N)

To supply parameters, do not use spaces and specify all parameters in front
of it. The parameter list looks complicated but it indicates, that you can
specify a row of commas as default. If you want to specify COM3 but only want
to specify the parity, specify 'COM3,,,,O'"""

logger = logging.getLogger("vtbridge.main")


def _available_ports():
    return [info.device for info in serial.tools.list_ports.comports()]


def parse_serial_options(value, available_ports=None):
    """
    Return :class:`SerialOptions` for argument ``value``, None if invalid.

    The port name must match (case-insensitively) one of
    ``available_ports``, by default those reported by pyserial, or name an
    existing device path.
    """
    fields = value.split(",")
    if len(fields) > 6:
        return None
    if available_ports is None:
        available_ports = _available_ports()
    options = SERIAL_DEFAULTS._asdict()

    matches = [port for port in available_ports
               if port.lower() == fields[0].lower()]
    if matches:
        options["port"] = matches[0]
    elif fields[0] and fields[0].startswith("/dev/"):
        options["port"] = fields[0]
    else:
        return None

    fields += [""] * (6 - len(fields))
    baud, databits, stopbits, parity, handshake = fields[1:]
    try:
        if baud:
            options["baudrate"] = int(baud)
        if databits:
            options["bytesize"] = int(databits)
            if options["bytesize"] not in serial.Serial.BYTESIZES:
                return None
        if stopbits:
            options["stopbits"] = _STOPBITS[stopbits]
        if parity:
            options["parity"] = _PARITY[parity.upper()]
        if handshake:
            options["xonxoff"], options["rtscts"] = _HANDSHAKE[handshake.upper()]
    except (ValueError, KeyError):
        return None
    return SerialOptions(**options)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Drive a VT100 terminal on a serial line through plugins",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "serial", nargs="?", default=None,
        help="Port[,Baud[,Databits[,Stopbits[,Parity[,Handshake]]]]]",
    )
    parser.add_argument(
        "--local", action="store_true", default=False,
        help="use the controlling tty instead of a serial port",
    )
    parser.add_argument(
        "--plugin", dest="plugins", action="append", default=list(CONFIG.plugins),
        help="plugin to load, module:Class or path to .py file (repeatable)",
    )
    parser.add_argument("--ttype", default=CONFIG.ttype,
                        help="terminal type answered by the telnet bridge")
    parser.add_argument("--version", action="version",
                        version="%(prog)s " + accessories.get_version())
    parser.add_argument("--loglevel", default=CONFIG.loglevel, help="level name")
    parser.add_argument("--logfile", default=CONFIG.logfile, help="filepath")
    parser.add_argument("--logfmt", default=CONFIG.logfmt, help="log format")
    return vars(parser.parse_args(argv))


def _sigterm_handler(signum, frame):
    # unwinds run_console through its ``finally`` clause.
    raise KeyboardInterrupt


def wait_ready(terminal, poll=CONFIG.ready_poll):
    """Block until ``terminal`` reports READY."""
    if terminal.state == TerminalState.READY:
        return
    logger.info("Waiting for terminal ready on {0!r}...".format(terminal))
    while terminal.state != TerminalState.READY:
        time.sleep(poll)
    logger.info("Terminal ready")


def build_shell(plugins=CONFIG.plugins, ttype=CONFIG.ttype, loader=None):
    """Return :class:`HostShell` with the telnet bridge and ``plugins`` installed."""
    shell = HostShell(loader=loader or PluginLoader())
    shell.install(TelnetBridge(ttype=ttype))
    for target in plugins:
        try:
            shell.install(shell.loader.load_plugin(target))
        except PluginLoadError as err:
            logger.error("plugin {0}: {1}".format(target, err))
    return shell


def run_console(terminal, plugins=CONFIG.plugins, ttype=CONFIG.ttype,
                main_poll=CONFIG.main_poll):
    """
    Run the host shell on ``terminal`` until it exits.

    Returns 0 when the shell exited, 1 when interrupted.
    """
    wait_ready(terminal)
    shell = build_shell(plugins=plugins, ttype=ttype)
    logger.info("Starting main plugin...")
    shell.start(terminal)
    status = 0
    try:
        while shell.is_running:
            terminal.check_state()
            time.sleep(main_poll)
    except KeyboardInterrupt:
        status = 1
    finally:
        shell.stop()
        terminal.clear()
    logger.info("Application terminated")
    return status


def main(argv=None):
    args = parse_args(argv)
    accessories.make_logger(
        name="vtbridge", loglevel=args["loglevel"],
        logfile=args["logfile"], logfmt=args["logfmt"])
    logger.debug("configuration: {0}".format(accessories.repr_mapping(args)))
    signal.signal(signal.SIGTERM, _sigterm_handler)

    if args["local"]:
        with LocalTerminal() as terminal:
            return run_console(terminal, plugins=args["plugins"],
                               ttype=args["ttype"])

    options = parse_serial_options(args["serial"]) if args["serial"] else None
    if options is None:
        print(USAGE)
        return 0

    try:
        port = serial.Serial(
            port=options.port,
            baudrate=options.baudrate,
            bytesize=options.bytesize,
            parity=options.parity,
            stopbits=options.stopbits,
            xonxoff=options.xonxoff,
            rtscts=options.rtscts,
            timeout=0,
        )
    except serial.SerialException as err:
        logger.error("cannot open {0}: {1}".format(options.port, err))
        return 1
    terminal = SerialTerminal(port)
    try:
        return run_console(terminal, plugins=args["plugins"], ttype=args["ttype"])
    except KeyboardInterrupt:
        return 1
    finally:
        terminal.close()


if __name__ == "__main__":
    sys.exit(main())
