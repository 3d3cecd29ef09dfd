"""Accessory functions."""
# std imports
import importlib
import importlib.metadata
import logging

__all__ = ('name_unicode', 'make_logger', 'repr_mapping', 'function_lookup')


def get_version():
    return importlib.metadata.version("vtbridge")


def name_unicode(ucs):
    """Return 7-bit ascii printable of any string. """
    # more or less the same as curses.ascii.unctrl -- but curses
    # module is conditionally excluded from many python distributions!
    bits = ord(ucs)
    if 32 <= bits <= 126:
        # ascii printable as one cell, as-is
        rep = chr(bits)
    elif bits == 127:
        rep = "^?"
    elif bits < 32:
        rep = "^" + chr(((bits & 0x7f) | 0x20) + 0x20)
    else:
        rep = r'\x{:02x}'.format(bits)
    return rep


_DEFAULT_LOGFMT = ' '.join(('%(asctime)s',
                            '%(levelname)s',
                            '%(threadName)s',
                            '%(filename)s:%(lineno)d',
                            '%(message)s'))


def make_logger(name, loglevel='info', logfile=None, logfmt=_DEFAULT_LOGFMT):
    """Create and return simple logger for given arguments."""
    lvl = getattr(logging, loglevel.upper())
    logging.getLogger().setLevel(lvl)

    _cfg = {'format': logfmt}
    if logfile:
        _cfg['filename'] = logfile
    logging.basicConfig(**_cfg)
    return logging.getLogger(name)


def repr_mapping(mapping):
    """Return printable string, 'key=value [key=value ...]' for mapping."""
    return ' '.join('='.join(map(str, kv)) for kv in mapping.items())


def function_lookup(pymod_path):
    """
    Return attribute target from ``module.attr`` or ``module:attr`` path.

    Example::

        >>> function_lookup('vtbridge.telnet_bridge:TelnetBridge')
        <class 'vtbridge.telnet_bridge.TelnetBridge'>
    """
    if ':' in pymod_path:
        module_name, attr_name = pymod_path.split(':', 1)
    else:
        module_name, attr_name = pymod_path.rsplit('.', 1)
    module = importlib.import_module(module_name)
    target = getattr(module, attr_name)
    assert callable(target), target
    return target
