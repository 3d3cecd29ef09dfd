"""vtbridge: drive a serial VT100 terminal through plugins, with a telnet bridge."""
# pylint: disable=wildcard-import,undefined-variable
from .messages import *         # noqa
from .plugin import *           # noqa
from .registry import *         # noqa
from .terminal import *         # noqa
from .lineedit import *         # noqa
from .telnet_bridge import *    # noqa
from .loader import *           # noqa
from .shell import *            # noqa
from .telopt import *           # noqa

__all__ = (
    messages.__all__ +
    plugin.__all__ +
    registry.__all__ +
    terminal.__all__ +
    lineedit.__all__ +
    telnet_bridge.__all__ +
    loader.__all__ +
    shell.__all__ +
    telopt.__all__
)  # noqa

__author__ = "vtbridge contributors"
__copyright__ = "Copyright 2026"
__license__ = 'ISC'
