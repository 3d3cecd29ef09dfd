r"""
Plugin contract and lifecycle.

Every unit of delegated work hosted by the shell is a :class:`Plugin`.  A
plugin runs its :meth:`~Plugin.run` method on a dedicated daemon thread
bound to one :class:`~vtbridge.terminal.TerminalChannel`, and is driven
from the outside by :meth:`~Plugin.start`, :meth:`~Plugin.stop`,
:meth:`~Plugin.block` and :meth:`~Plugin.rec_message`.

Example::

    class Hello(Plugin):
        command = 'HELLO'
        help_text = 'Say hello until stopped'

        def run(self):
            self.terminal.writeline('hello, {0}'.format(
                self.consume_argument() or 'world'))
            while not self.wait():
                pass

Stopping is cooperative: :meth:`~Plugin.stop` sets a flag that
:meth:`~Plugin.run` must observe at least once per :attr:`~Plugin.TICK`,
:meth:`~Plugin.wait` both sleeps and observes it.  A plugin still alive
after :attr:`~Plugin.GRACE_PERIOD` is forcibly terminated, on a best-effort
basis, by raising :class:`PluginTerminated` inside its thread.
"""

from __future__ import annotations

# std imports
import enum
import ctypes
import logging
import threading
from typing import Any, Union, Optional

# local
from .messages import (GETHELP, GETCOMMAND, HelpRegistration,
                       RegistrationQuery, CommandRegistration, parse_message)

__all__ = ('Plugin', 'PluginState', 'PluginError', 'MessageRejected',
           'PluginTerminated')


class PluginState(enum.Enum):
    """Run state of a :class:`Plugin`."""

    IDLE = 'idle'
    RUNNING = 'running'
    STOP_REQUESTED = 'stop-requested'
    STOPPED = 'stopped'


class PluginError(Exception):
    """Base class of errors signalled by plugins."""


class MessageRejected(PluginError):
    """A plugin refused delivery of a message."""


class PluginTerminated(BaseException):
    """
    Raised asynchronously inside a plugin thread that ignored its stop flag.

    Derived from :class:`BaseException` so that ``except Exception`` clauses
    within plugin code do not swallow it.
    """


class Plugin:
    """Base class of all plugins, implementing the lifecycle contract."""

    #: Command keyword announced in reply to a ``GETCOMMAND`` query.
    command: Optional[str] = None

    #: Help line announced in reply to a ``GETHELP`` query.
    help_text: Optional[str] = None

    #: Human readable name, used for ``str(plugin)``.
    name: Optional[str] = None

    #: When True, any message delivered after :meth:`start` is rejected.
    pre_start_messages_only = False

    #: Seconds :meth:`stop` waits for cooperative exit before forcing it.
    GRACE_PERIOD = 2.0

    #: Seconds between checks of the stop flag by a well-behaved plugin.
    TICK = 0.1

    def __init__(self) -> None:
        self.log = logging.getLogger(type(self).__module__)
        self.terminal: Any = None
        self.argument: Optional[str] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._state = PluginState.IDLE
        self._lock = threading.Lock()

    def __str__(self) -> str:
        return self.name or type(self).__name__

    # lifecycle

    @property
    def is_running(self) -> bool:
        """Whether the plugin's thread is alive."""
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def state(self) -> PluginState:
        """Current :class:`PluginState`."""
        if self.is_running and self._stop_event.is_set():
            return PluginState.STOP_REQUESTED
        return self._state

    @property
    def stop_requested(self) -> bool:
        """Whether :meth:`stop` has asked this plugin to exit."""
        return self._stop_event.is_set()

    def start(self, terminal: Any) -> bool:
        """
        Begin execution bound to ``terminal``.

        Returns immediately.  When the plugin is already running, nothing
        is changed and False is returned.
        """
        with self._lock:
            if self.is_running:
                self.log.debug('{0}: start refused, already running'.format(self))
                return False
            self.terminal = terminal
            self._stop_event.clear()
            self._state = PluginState.RUNNING
            self._thread = threading.Thread(
                target=self._bootstrap, name='plugin-{0}'.format(self), daemon=True)
            self._thread.start()
        self.log.debug('{0}: started'.format(self))
        return True

    def stop(self) -> None:
        """
        Stop the plugin, waiting at most :attr:`GRACE_PERIOD` seconds.

        A plugin that does not observe its stop flag in time is terminated
        by force.  Calling this method on a plugin that is not started is a
        no-op.
        """
        thread = self._thread
        if thread is None:
            return
        self._stop_event.set()
        if thread is threading.current_thread():
            # a plugin stopping itself exits its own loop
            return
        with self._lock:
            if thread is not self._thread:
                # stopped concurrently
                return
            if thread.is_alive():
                thread.join(self.GRACE_PERIOD)
                if thread.is_alive():
                    self._terminate(thread)
            try:
                self.on_terminate()
            finally:
                # an abandoned thread still counts as running, so that
                # further starts are refused until it exits.
                if not thread.is_alive():
                    self._thread = None
                    self._state = PluginState.IDLE
        if self.is_running:
            self.log.debug('{0}: stop incomplete'.format(self))
        else:
            self.log.debug('{0}: stopped'.format(self))

    def block(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the plugin's thread to exit.

        :param timeout: maximum seconds to wait, None waits forever.
        :returns: whether the thread has exited.
        """
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Sleep for ``timeout`` seconds (default :attr:`TICK`) within :meth:`run`.

        Returns early, with True, when a stop has been requested.
        """
        return self._stop_event.wait(self.TICK if timeout is None else timeout)

    def consume_argument(self) -> Optional[str]:
        """Return start argument received by :meth:`rec_message`, clearing it."""
        argument, self.argument = self.argument, None
        return argument

    def _bootstrap(self) -> None:
        try:
            self.run()
        except PluginTerminated:
            self.log.warning('{0}: terminated by force'.format(self))
        except Exception:
            self.log.exception('{0}: unhandled error'.format(self))
        finally:
            self._state = PluginState.STOPPED
            self.log.debug('{0}: thread exit'.format(self))

    def _terminate(self, thread: threading.Thread) -> None:
        self.log.warning('{0}: no exit after {1}s, forcing termination'
                         .format(self, self.GRACE_PERIOD))
        modified = ctypes.pythonapi.PyThreadState_SetAsyncExc(
            ctypes.c_ulong(thread.ident), ctypes.py_object(PluginTerminated))
        if modified > 1:
            # more than one thread state modified; revert.
            ctypes.pythonapi.PyThreadState_SetAsyncExc(
                ctypes.c_ulong(thread.ident), None)
        thread.join(self.GRACE_PERIOD)
        if thread.is_alive():
            self.log.error('{0}: unresponsive thread abandoned'.format(self))

    def run(self) -> None:
        """Body of the plugin, executed on its own thread."""
        raise NotImplementedError

    def on_terminate(self) -> None:
        """
        Release resources held by :meth:`run`.

        Called on every :meth:`stop` of a started plugin, after its thread
        exited or was abandoned.
        """

    # messages

    def rec_message(self, source: Optional[Plugin],
                    message: Union[str, Any]) -> None:
        """
        Receive a text ``message`` from plugin ``source``.

        :param message: a string of the ``GETCOMMAND``/``GETHELP`` protocol,
            or one of the message types of :mod:`vtbridge.messages`.
        :raises MessageRejected: when :attr:`pre_start_messages_only` is set
            and the plugin has been started.
        """
        if self.pre_start_messages_only and self.is_running:
            raise MessageRejected(
                '{0} does not accept messages once started.'.format(self))
        msg = parse_message(message)
        if isinstance(msg, RegistrationQuery):
            self.on_registration_query(source, msg.kind)
        elif isinstance(msg, CommandRegistration):
            self.on_command_registration(source, msg.keyword)
        elif isinstance(msg, HelpRegistration):
            self.on_help_registration(source, msg.text)
        else:
            self.on_argument(source, msg.text)

    def rec_binary(self, source: Optional[Plugin], data: bytes,
                   offset: int = 0, length: Optional[int] = None) -> None:
        """Receive a binary message; plugins reject these by default."""
        raise MessageRejected(
            '{0} does not accept binary messages.'.format(self))

    def on_registration_query(self, source: Optional[Plugin], kind: str) -> None:
        """Answer ``GETCOMMAND`` or ``GETHELP`` with our own registration."""
        if source is None:
            return
        if kind == GETCOMMAND and self.command:
            source.rec_message(self, CommandRegistration(self.command))
        elif kind == GETHELP and self.help_text:
            source.rec_message(self, HelpRegistration(self.help_text))

    def on_command_registration(self, source: Optional[Plugin], keyword: str) -> None:
        self.log.debug('{0}: ignored command registration {1!r} from {2}'
                       .format(self, keyword, source))

    def on_help_registration(self, source: Optional[Plugin], text: str) -> None:
        self.log.debug('{0}: ignored help registration from {1}'
                       .format(self, source))

    def on_argument(self, source: Optional[Plugin], text: str) -> None:
        self.argument = text
