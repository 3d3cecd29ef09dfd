"""Command keyword and help text registry of a hosting shell."""
# std imports
import logging

__all__ = ('CommandRegistry', 'CommandNotFound')

logger = logging.getLogger('vtbridge.registry')


class CommandNotFound(LookupError):
    """No registered command matches a command line."""

    def __init__(self, line):
        self.line = line
        super().__init__("Command not found/invalid '{0}'".format(line))


class CommandRegistry(object):
    """
    Map command keywords to plugins, and plugins to their help text.

    Entries are added by the ``GETCOMMAND:<keyword>`` and ``GETHELP:<text>``
    messages a plugin sends to its host, and live as long as the registry.
    """

    def __init__(self):
        #: keyword -> plugin, in registration order.
        self.commands = {}
        #: plugin -> help text.
        self.help = {}

    def __len__(self):
        return len(self.commands)

    def __contains__(self, keyword):
        return keyword in self.commands

    def add_command(self, keyword, plugin):
        """Register ``keyword`` as a command owned by ``plugin``."""
        if keyword in self.commands and self.commands[keyword] is not plugin:
            logger.warning('command {0!r} of {1} replaced by {2}'.format(
                keyword, self.commands[keyword], plugin))
        logger.debug('register command {0!r}: {1}'.format(keyword, plugin))
        self.commands[keyword] = plugin

    def add_help(self, plugin, text):
        """Register ``text`` as the help line of ``plugin``."""
        self.help[plugin] = text

    def resolve(self, line):
        """
        Return ``(plugin, argument)`` for command ``line``.

        Keywords match case-insensitively, either the whole line, when
        ``argument`` is None, or followed by a space, when ``argument`` is
        the text after the first space.

        :raises CommandNotFound: no keyword matches.
        """
        upper = line.upper()
        for keyword, plugin in self.commands.items():
            if upper == keyword.upper():
                return plugin, None
            if upper.startswith(keyword.upper() + ' '):
                return plugin, line[line.index(' ') + 1:]
        raise CommandNotFound(line)

    def help_entries(self):
        """Return list of ``(KEYWORD, help text)`` of all commands."""
        return [(keyword.upper(), self.help.get(plugin, ''))
                for keyword, plugin in self.commands.items()]
