#!/usr/bin/env python
"""Setuptools distribution file."""
import os
from setuptools import setup


def _get_here(fname):
    return os.path.join(os.path.dirname(__file__), fname)


def _get_long_description(fname, encoding='utf8'):
    return open(fname, 'r', encoding=encoding).read()


setup(name='vtbridge',
      version='1.0.0',
      license='ISC',
      author='vtbridge contributors',
      description="Serial VT100 terminal plugin host with a telnet bridge",
      long_description=_get_long_description(fname=_get_here('README.rst')),
      packages=['vtbridge', 'vtbridge.tests'],
      package_data={'': ['README.rst'], },
      python_requires='>=3.10',
      install_requires=['pyserial', 'wcwidth'],
      extras_require={'test': ['pytest']},
      entry_points={
         'console_scripts': [
             'vtbridge = vtbridge.main:main',
         ],
         'vtbridge.plugins': [
             'NET = vtbridge.telnet_bridge:TelnetBridge',
         ]},
      platforms='any',
      zip_safe=True,
      keywords=', '.join(('telnet', 'vt100', 'serial', 'terminal',
                          'plugin', 'bridge')),
      classifiers=['License :: OSI Approved :: ISC License (ISCL)',
                   'Programming Language :: Python :: 3',
                   'Intended Audience :: Developers',
                   'Development Status :: 4 - Beta',
                   'Topic :: System :: Networking',
                   'Topic :: Terminals :: Serial',
                   'Topic :: Terminals :: Telnet',
                   'Topic :: System :: Shells',
                   ],
      )
