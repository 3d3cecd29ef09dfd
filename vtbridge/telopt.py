# Byte values of the Telnet protocol, RFC 854 and friends.
BINARY = b"\x00"
ECHO = b"\x01"
SGA = b"\x03"
STATUS = b"\x05"
TTYPE = b"\x18"
NAWS = b"\x1f"
TSPEED = b" "
LFLOW = b"!"
LINEMODE = b'"'
XDISPLOC = b"#"
NEW_ENVIRON = b"'"
IAC = b"\xff"
DONT = b"\xfe"
DO = b"\xfd"
WONT = b"\xfc"
WILL = b"\xfb"
SB = b"\xfa"
GA = b"\xf9"
AYT = b"\xf6"
NOP = b"\xf1"
SE = b"\xf0"
theNULL = b"\x00"

(IS, SEND) = (bytes([const]) for const in range(2))

__all__ = (
    "AYT",
    "BINARY",
    "DO",
    "DONT",
    "ECHO",
    "GA",
    "IAC",
    "IS",
    "LFLOW",
    "LINEMODE",
    "NAWS",
    "NEW_ENVIRON",
    "NOP",
    "SB",
    "SE",
    "SEND",
    "SGA",
    "STATUS",
    "TSPEED",
    "TTYPE",
    "WILL",
    "WONT",
    "XDISPLOC",
    "theNULL",
    "name_command",
    "name_commands",
)

#: List of globals that may match an iac command option bytes
_DEBUG_OPTS = dict(
    [
        (value, key)
        for key, value in globals().items()
        if key
        in (
            "LINEMODE",
            "NAWS",
            "NEW_ENVIRON",
            "BINARY",
            "SGA",
            "ECHO",
            "STATUS",
            "TTYPE",
            "TSPEED",
            "LFLOW",
            "XDISPLOC",
            "IAC",
            "DONT",
            "DO",
            "WONT",
            "WILL",
            "SE",
            "NOP",
            "AYT",
            "GA",
            "SB",
        )
    ]
)


def name_command(byte):
    """Return string description for (maybe) telnet command byte."""
    return _DEBUG_OPTS.get(byte, repr(byte))


def name_commands(cmds, sep=" "):
    """Return string description for array of (maybe) telnet command bytes."""
    return sep.join([name_command(bytes([byte])) for byte in cmds])
