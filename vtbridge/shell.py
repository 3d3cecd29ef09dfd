"""
The host shell: a directory-listing prompt that delegates to plugins.

:class:`HostShell` is the main plugin started on the terminal.  Besides a
handful of builtin commands it dispatches any command keyword registered
by another plugin, handing the terminal to that plugin until it ends.
"""
# std imports
import os

# 3rd party
from wcwidth import wcswidth

# local
from .lineedit import PromptPlugin
from .loader import PluginLoader, PluginLoadError
from .messages import GETHELP, GETCOMMAND, StartArgument, RegistrationQuery
from .plugin import MessageRejected
from .registry import CommandNotFound, CommandRegistry
from .terminal import CharAttribute, TerminalState

__all__ = ('HostShell',)

BUILTIN_HELP = (
    "Internal Commands:",
    "DIR   - Show possible files to execute",
    "CLS   - Clear screen",
    "LOAD  - Loads the specified plugin (python file or module:Class)",
    "TYPE  - sends a file as is to the terminal",
    "CD    - change directory",
    "HELP  - Shows this message",
    "EXIT  - Closes this plugin",
)

#: terminal columns available to :meth:`HostShell.print_list`.
LIST_COLUMNS = 79
LIST_PAD = 2


def _width(text):
    width = wcswidth(text)
    return len(text) if width < 0 else width


class HostShell(PromptPlugin):
    """Shell plugin hosting other plugins on the terminal."""

    name = 'INTERNAL:SimpleConsole'

    #: stopping may include stopping a delegated plugin.
    GRACE_PERIOD = 5.0

    def __init__(self, cwd=None, registry=None, loader=None, delegate_tick=0.1):
        """
        Class initializer.

        :param str cwd: working directory, default is that of the process.
        :param CommandRegistry registry: command keywords of plugins.
        :param PluginLoader loader: used by the ``LOAD`` command.
        :param float delegate_tick: seconds between checks of a delegated
            plugin, and of our own stop flag, while it runs.
        """
        super().__init__()
        self.cwd = os.path.abspath(cwd or os.getcwd())
        self.registry = registry if registry is not None else CommandRegistry()
        self.loader = loader if loader is not None else PluginLoader()
        self.delegate_tick = delegate_tick
        self._hook_event = False
        self._builtins = {
            'CLS': self.do_cls,
            'DIR': self.do_dir,
            'EXIT': self.exit,
            'HELP': self.do_help,
        }

    @property
    def prompt(self):
        return self.cwd + '>'

    def install(self, plugin):
        """Query ``plugin`` for its command keyword and help text."""
        plugin.rec_message(self, RegistrationQuery(GETCOMMAND))
        plugin.rec_message(self, RegistrationQuery(GETHELP))
        return plugin

    # lifecycle

    def start(self, terminal):
        previous = self.terminal
        if not super().start(terminal):
            return False
        # a shell that exited on its own was never stopped.
        if previous is not None:
            previous.remove_state_listener(self.on_terminal_state)
        terminal.remove_state_listener(self.on_terminal_state)
        terminal.add_state_listener(self.on_terminal_state)
        return True

    def prepare(self):
        self._hook_event = True
        self.terminal.flush()
        self.terminal.clear()

    def on_terminate(self):
        self._hook_event = False
        if self.terminal is not None:
            self.terminal.remove_state_listener(self.on_terminal_state)

    def on_terminal_state(self, state):
        """Greet the operator again when the terminal becomes ready."""
        if self._hook_event and state == TerminalState.READY:
            self.terminal.clear()
            self.terminal.beep()
            self.greet()
            self.terminal.write(self.prompt)

    # messages

    def on_command_registration(self, source, keyword):
        self.registry.add_command(keyword, source)

    def on_help_registration(self, source, text):
        self.registry.add_help(source, text)

    def rec_binary(self, source, data, offset=0, length=None):
        self.log.debug('{0}: binary message from {1} ignored'.format(self, source))

    # commands

    def execute(self, line):
        upper = line.upper()
        if not line:
            return
        if upper in self._builtins:
            self._builtins[upper]()
        elif upper.startswith('LOAD '):
            self.do_load(line[5:].strip())
        elif upper.startswith('TYPE '):
            self.do_type(line[5:].strip())
        elif upper == 'CD' or upper.startswith('CD '):
            self.do_cd(line[3:].strip())
        else:
            self.dispatch(line)

    def dispatch(self, line):
        """Run the registered plugin matching command ``line``."""
        try:
            plugin, argument = self.registry.resolve(line)
        except CommandNotFound as err:
            self.terminal.writeline(str(err))
            return
        self.delegate(plugin, argument)

    def delegate(self, plugin, argument=None):
        """
        Hand the terminal to ``plugin`` until it ends, or we are stopped.

        ``argument``, when given, is delivered before the plugin starts.
        """
        if argument is not None:
            try:
                plugin.rec_message(self, StartArgument(argument))
            except MessageRejected as err:
                self.terminal.writeline('Error: {0}'.format(err))
                return
        if not plugin.start(self.terminal):
            self.terminal.writeline('{0} is already running'.format(plugin))
            return
        self.log.info('delegate terminal to {0}'.format(plugin))
        self._hook_event = False
        try:
            while not self.stop_requested and plugin.is_running:
                plugin.block(self.delegate_tick)
        finally:
            plugin.stop()
            self._hook_event = True
        self.log.info('terminal returned from {0}'.format(plugin))

    def do_cls(self):
        self.terminal.clear()

    def do_help(self):
        for text in BUILTIN_HELP:
            self.terminal.writeline(text)
        self.terminal.writeline()
        self.terminal.writeline('Loaded Plugin commands:')
        for keyword, text in self.registry.help_entries():
            self.terminal.writeline('{0} - {1}'.format(keyword, text))
        self.terminal.writeline()

    def do_dir(self):
        try:
            entries = sorted(os.scandir(self.cwd), key=lambda entry: entry.name)
        except OSError as err:
            self.terminal.writeline('Error: {0}'.format(err))
            return
        directories = [entry.name for entry in entries if entry.is_dir()]
        files = [entry.name for entry in entries if not entry.is_dir()]
        self.print_list(directories, files)
        self.terminal.writeline()

    def print_list(self, directories, files):
        """Print names in columns, directories first and in inverse video."""
        names = [name if len(name) <= LIST_COLUMNS else name[:76] + '...'
                 for name in directories + files]
        if not names:
            return
        width = max(_width(name) for name in names) + LIST_PAD
        pos = 0
        for index, name in enumerate(names):
            if pos and pos + width > LIST_COLUMNS:
                self.terminal.writeline()
                pos = 0
            padding = ' ' * (width - _width(name))
            if index < len(directories):
                self.terminal.set_attribute(CharAttribute.INVERSE)
                self.terminal.write(name)
                self.terminal.set_attribute(CharAttribute.RESET)
                self.terminal.write(padding)
            else:
                self.terminal.write(name + padding)
            pos += width
        if pos:
            self.terminal.writeline()

    def do_type(self, path):
        """Send contents of file ``path`` as-is to the terminal."""
        filepath = os.path.join(self.cwd, path)
        if not os.path.isfile(filepath):
            self.terminal.writeline('File not found: {0}'.format(path))
            return
        try:
            with open(filepath, 'rb') as fobj:
                for chunk in iter(lambda: fobj.read(80), b''):
                    self.terminal.write(chunk)
        except OSError as err:
            self.terminal.writeline('Error: {0}'.format(err))

    def do_cd(self, path):
        """Print working directory, or change it to ``path``."""
        if not path:
            self.terminal.writeline(self.cwd)
            return
        target = os.path.normpath(os.path.join(self.cwd, path))
        if not os.path.isdir(target):
            self.terminal.writeline("Error: no such directory '{0}'".format(path))
            return
        self.cwd = target

    def do_load(self, target):
        """Load plugin ``target`` and register its command."""
        if target.endswith('.py'):
            target = os.path.join(self.cwd, target)
        try:
            plugin = self.loader.load_plugin(target)
        except PluginLoadError as err:
            self.terminal.writeline(str(err))
            return
        self.install(plugin)
        self.terminal.writeline('Plugin loaded')
