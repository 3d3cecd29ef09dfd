"""
Messages exchanged between plugins through :meth:`~.Plugin.rec_message`.

Plugins announce themselves to a hosting shell and receive their start
argument by synchronous message delivery.  Each message kind is a small
immutable type; the historical string form is kept as the wire
representation so that ``"GETCOMMAND:NET"`` and
``CommandRegistration('NET')`` are interchangeable::

    >>> parse_message('GETCOMMAND:NET')
    CommandRegistration(keyword='NET')
    >>> str(HelpRegistration('Poor mans telnet'))
    'GETHELP:Poor mans telnet'
"""
# std imports
import collections

__all__ = ('CommandRegistration', 'HelpRegistration', 'RegistrationQuery',
           'StartArgument', 'parse_message', 'GETCOMMAND', 'GETHELP')

GETCOMMAND = 'GETCOMMAND'
GETHELP = 'GETHELP'


class CommandRegistration(collections.namedtuple(
        'CommandRegistration', ['keyword'])):
    """Register ``keyword`` as a command owned by the sending plugin."""
    __slots__ = ()

    def __str__(self):
        return '{0}:{1}'.format(GETCOMMAND, self.keyword)


class HelpRegistration(collections.namedtuple(
        'HelpRegistration', ['text'])):
    """Register ``text`` as the help line of the sending plugin."""
    __slots__ = ()

    def __str__(self):
        return '{0}:{1}'.format(GETHELP, self.text)


class RegistrationQuery(collections.namedtuple(
        'RegistrationQuery', ['kind'])):
    """Ask the receiver to reply with its own registration of ``kind``."""
    __slots__ = ()

    def __str__(self):
        return self.kind


class StartArgument(collections.namedtuple('StartArgument', ['text'])):
    """Argument text consumed by the receiver on its next start."""
    __slots__ = ()

    def __str__(self):
        return self.text


_MESSAGE_TYPES = (CommandRegistration, HelpRegistration,
                  RegistrationQuery, StartArgument)


def parse_message(message):
    """
    Return typed message for ``message``.

    Typed messages are returned as-is; strings are classified by their
    protocol prefix, anything unrecognized is a :class:`StartArgument`.
    """
    if isinstance(message, _MESSAGE_TYPES):
        return message
    if message in (GETCOMMAND, GETHELP):
        return RegistrationQuery(message)
    if message.startswith(GETCOMMAND + ':'):
        return CommandRegistration(message[len(GETCOMMAND) + 1:])
    if message.startswith(GETHELP + ':'):
        return HelpRegistration(message[len(GETHELP) + 1:])
    return StartArgument(message)
