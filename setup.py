#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SETUP SCRIPT
============

The package is pure python (all numerics go through torch), so there is
nothing to compile. Metadata and dependencies live in setup.cfg.
"""
from setuptools import setup, find_packages
import os
from configparser import ConfigParser

SETUP_KWARGS = {}

config = ConfigParser()
rootdir = os.path.dirname(os.path.abspath(__file__))
config.read(os.path.join(rootdir, 'setup.cfg'))
INSTALL_REQUIRES = config['options']['install_requires']
INSTALL_REQUIRES = [req for req in INSTALL_REQUIRES.split('\n') if req]

SETUP_KWARGS['install_requires'] = INSTALL_REQUIRES

setup(
    packages=find_packages(include=['pspca', 'pspca.*']),
    **SETUP_KWARGS
)
