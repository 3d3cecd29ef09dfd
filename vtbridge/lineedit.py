"""Line editing and command prompt loop shared by interactive plugins."""
# local
from .plugin import Plugin

__all__ = ('readline', 'PromptPlugin')

CR, LF, NUL, BS, DEL = '\r\n\x00\b\x7f'
ESCAPE = 27


def readline(terminal):
    """
    A very crude readline generator for a :class:`~.TerminalChannel`.

    Send each input character, the generator yields the command line once
    carriage return is received, otherwise None.  Printable input is echoed
    and backspace erases, beeping when there is nothing to erase.
    """
    command, last_inp = "", ""
    inp = yield None
    while True:
        if inp in (LF, NUL) and last_inp == CR:
            last_inp = inp
            inp = yield None

        elif inp in (CR, LF):
            # first CR or LF yields command
            last_inp = inp
            inp = yield command
            command = ""

        elif inp in (BS, DEL):
            # backspace over input
            if command:
                command = command[:-1]
                terminal.write("\b \b")
            else:
                terminal.beep()
            last_inp = inp
            inp = yield None

        elif inp.isprintable():
            # buffer and echo input
            command += inp
            terminal.write(inp)
            last_inp = inp
            inp = yield None

        else:
            last_inp = inp
            inp = yield None


class PromptPlugin(Plugin):
    """
    Plugin reading command lines at a prompt until EXIT, ESC, or stop.

    Subclasses implement :meth:`execute`, and may override :meth:`greet`
    and :attr:`prompt`.
    """

    #: Printed on start, and by :meth:`greet`.
    greeting = 'Type HELP for more information'

    def __init__(self):
        super().__init__()
        self._exiting = False

    @property
    def prompt(self):
        return '>'

    @property
    def exiting(self):
        """Whether the prompt loop ends after the current command."""
        return self._exiting or self.stop_requested

    def exit(self):
        """Leave the prompt loop once the current command completes."""
        self._exiting = True

    def greet(self):
        self.terminal.writeline(self.greeting)
        self.terminal.writeline()

    def execute(self, line):
        """Execute command ``line``, stripped of surrounding whitespace."""
        raise NotImplementedError

    def prepare(self):
        """Called on start, before the greeting."""
        self.terminal.clear()

    def run(self):
        self._exiting = False
        self.prepare()
        self.greet()
        self.terminal.write(self.prompt)
        linereader = readline(self.terminal)
        linereader.send(None)
        while not self.exiting:
            if not self.terminal.key_available:
                if self.terminal.at_eof:
                    self.log.info('{0}: end of terminal input'.format(self))
                    self.exit()
                    break
                self.wait()
                continue
            byte = self.terminal.read()
            if byte is None:
                continue
            if byte == ESCAPE:
                self.exit()
                self.terminal.writeline()
                self.terminal.beep()
                break
            command = linereader.send(chr(byte))
            if command is not None:
                self.terminal.writeline()
                self.execute(command.strip())
                if not self.exiting:
                    self.terminal.write(self.prompt)
