"""Test command line parsing and the console runner."""
# std imports
import importlib.metadata
import threading

# 3rd party
import pytest
import serial

# local
import vtbridge
from vtbridge import main
from vtbridge.telnet_bridge import TelnetBridge
from vtbridge.tests.accessories import terminal, wait_until  # pytest fixtures

PORTS = ['COM3', '/dev/ttyS0']


def test_serial_defaults():
    options = main.parse_serial_options('com3', available_ports=PORTS)
    assert options == main.SERIAL_DEFAULTS._replace(port='COM3')


def test_serial_parity_only():
    options = main.parse_serial_options('COM3,,,,O', available_ports=PORTS)
    assert options.parity == serial.PARITY_ODD
    assert options.baudrate == 9600
    assert options.bytesize == serial.EIGHTBITS


def test_serial_all_fields():
    options = main.parse_serial_options('/dev/ttyS0,19200,7,1.5,e,B',
                                        available_ports=PORTS)
    assert options == main.SerialOptions(
        port='/dev/ttyS0', baudrate=19200, bytesize=serial.SEVENBITS,
        stopbits=serial.STOPBITS_ONE_POINT_FIVE, parity=serial.PARITY_EVEN,
        xonxoff=True, rtscts=True)


def test_serial_device_path_not_listed():
    options = main.parse_serial_options('/dev/ttyUSB7,2400', available_ports=PORTS)
    assert options.port == '/dev/ttyUSB7'
    assert options.baudrate == 2400


@pytest.mark.parametrize('value', ['COM9', 'COM3,fast', 'COM3,,9', 'COM3,,,3',
                                   'COM3,,,,Q', 'COM3,,,,,Z',
                                   'COM3,1,8,1,N,N,extra'])
def test_serial_invalid(value):
    assert main.parse_serial_options(value, available_ports=PORTS) is None


def test_parse_args_defaults():
    args = main.parse_args([])
    assert args['serial'] is None
    assert args['local'] is False
    assert args['plugins'] == []
    assert args['ttype'] == 'vt100'
    assert args['loglevel'] == 'warn'


def test_parse_args_plugins():
    args = main.parse_args(['COM3,9600', '--plugin', 'a.b:C',
                            '--plugin', 'game.py'])
    assert args['serial'] == 'COM3,9600'
    assert args['plugins'] == ['a.b:C', 'game.py']


def test_build_shell():
    shell = main.build_shell(plugins=['no_such_module:X'], ttype='ansi')
    plugin, argument = shell.registry.resolve('NET')
    assert isinstance(plugin, TelnetBridge)
    assert argument is None
    assert plugin.ttype == 'ansi'
    assert shell.loader.loaded == []


def test_build_shell_plugin_replaces_keyword():
    shell = main.build_shell(plugins=['vtbridge.telnet_bridge:TelnetBridge'])
    plugin, _ = shell.registry.resolve('net')
    assert shell.loader.loaded == [plugin]


def test_usage_printed(capsys):
    assert main.main(['--loglevel', 'error', 'NOPORT']) == 0
    assert 'Port[,[Baud]' in capsys.readouterr().out


def test_run_console_until_exit(terminal):
    def type_exit():
        if wait_until(lambda: terminal.text.endswith('>')):
            terminal.feed('exit\r')

    typist = threading.Thread(target=type_exit, daemon=True)
    typist.start()
    assert main.run_console(terminal, main_poll=0.01) == 0
    typist.join()
    assert 'Type HELP for more information' in terminal.text
    assert terminal.text.endswith('\x1b[2J\x1b[H')


def test_version(capsys):
    with pytest.raises(SystemExit):
        main.parse_args(['--version'])
    assert '1.0.0' in capsys.readouterr().out


def test_distribution_metadata():
    meta = importlib.metadata.metadata('vtbridge')
    assert meta['Author'] == vtbridge.__author__
