"""
Locate and instantiate plugins.

A plugin may be named by import path, ``package.module:ClassName`` or
``package.module.ClassName``, by path to a python source file, or by the
name of an entry point of group ``vtbridge.plugins`` declared by an
installed distribution.
"""
# std imports
import importlib.metadata
import importlib.util
import inspect
import logging
import os

# local
from . import accessories
from .plugin import Plugin

__all__ = ('PluginLoader', 'PluginLoadError', 'ENTRY_POINT_GROUP')

ENTRY_POINT_GROUP = 'vtbridge.plugins'

logger = logging.getLogger('vtbridge.loader')


class PluginLoadError(Exception):
    """A plugin could not be loaded."""


class PluginLoader(object):
    """Load plugins, keeping each instance created in :attr:`loaded`."""

    def __init__(self):
        self.loaded = []

    def load_plugin(self, target):
        """
        Return plugin instance for ``target``.

        :raises PluginLoadError: target cannot be imported or is not a plugin.
        """
        if target.endswith('.py') or os.path.sep in target:
            return self.load_source(target)
        entry_point = self._find_entry_point(target)
        if entry_point is not None:
            try:
                factory = entry_point.load()
            except (ImportError, AttributeError) as err:
                raise PluginLoadError('Error: {0}'.format(err)) from err
            return self._instantiate(factory, target)
        try:
            factory = accessories.function_lookup(target)
        except (ImportError, AttributeError, ValueError, AssertionError) as err:
            raise PluginLoadError('Error: {0}'.format(err)) from err
        return self._instantiate(factory, target)

    def load_source(self, path):
        """
        Execute python source file at ``path``, instantiating its plugins.

        Every public, concrete :class:`~.Plugin` subclass defined by the
        file is instantiated; the last one is returned.
        """
        if not os.path.isfile(path):
            raise PluginLoadError('File not found')
        module_name = 'vtbridge_plugin_{0}'.format(
            os.path.splitext(os.path.basename(path))[0])
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None:
            raise PluginLoadError('Not a plugin: {0}'.format(path))
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as err:
            raise PluginLoadError('Error: {0}'.format(err)) from err

        plugin = None
        for name, value in vars(module).items():
            if (name.startswith('_') or not inspect.isclass(value)
                    or value.__module__ != module_name
                    or not issubclass(value, Plugin)
                    or inspect.isabstract(value)):
                continue
            plugin = self._instantiate(value, path)
        if plugin is None:
            raise PluginLoadError('Not a plugin: {0}'.format(path))
        return plugin

    def _instantiate(self, factory, target):
        try:
            plugin = factory()
        except Exception as err:
            raise PluginLoadError('Error: {0}'.format(err)) from err
        if not isinstance(plugin, Plugin):
            raise PluginLoadError('Not a plugin: {0}'.format(target))
        logger.info('loaded {0} from {1}'.format(plugin, target))
        self.loaded.append(plugin)
        return plugin

    @staticmethod
    def _find_entry_point(name):
        matches = importlib.metadata.entry_points(group=ENTRY_POINT_GROUP,
                                                  name=name)
        for entry_point in matches:
            return entry_point
        return None
