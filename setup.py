#!/usr/bin/env python

import os
import re

from setuptools import find_packages, setup

HERE = os.path.abspath(os.path.dirname(__file__))


def _read_version():
    with open(os.path.join(HERE, 'sigillum', 'version.py')) as inf:
        match = re.search(
            r"^__version__ = ['\"]([^'\"]+)['\"]", inf.read(), re.MULTILINE
        )
    if match is None:
        raise RuntimeError("Could not find __version__ in sigillum/version.py")
    return match.group(1)


setup(
    name="sigillum",
    version=_read_version(),
    description=(
        "Self-contained RSA signatures for PDF files, "
        "embedded as incremental updates"
    ),
    packages=find_packages(include=['sigillum', 'sigillum.*']),
    python_requires=">=3.8",
    install_requires=[
        "pyhanko>=0.26.0",
        "asn1crypto>=1.5.1",
        "cryptography>=42.0.1",
        "pyyaml>=6.0",
        "click>=8.1.3",
    ],
    extras_require={
        "testing": [
            "pytest>=6.1.1",
            "freezegun>=1.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "sigillum = sigillum.cli:launch",
        ],
    },
)
