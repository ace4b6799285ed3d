"""
Setup script for LAN Sweep.

Usage:
    pip install -e .            # command line and web surface
    pip install -e ".[test]"    # plus the test suite dependencies

Installs the `lansweep` command.
"""
from setuptools import find_packages, setup

setup(
    name='lan-sweep',
    version='1.0.0',
    description='Ping and ARP discovery for local IPv4 networks',
    packages=find_packages(include=['app', 'app.*', 'config', 'config.*',
                                    'discovery', 'discovery.*', 'web', 'web.*']),
    py_modules=['lansweep'],
    python_requires='>=3.9',
    install_requires=[
        'psutil>=5.9',
        'flask>=2.2',
        'click>=8.0',
        'rich>=12.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'lansweep=lansweep:main',
        ],
    },
)
