from setuptools import find_packages, setup

setup(
    name='hueprom',
    version='1.0.0',
    description='Philips Hue to Prometheus exporter',
    author='hueprom contributors',
    author_email='',
    packages=find_packages(include=['hueprom', 'hueprom.*']),
    python_requires='>=3.11',
    install_requires=[
        'aiohttp',
        'marshmallow>=3.13',
        'msgspec',
        'prometheus-client',
        'tenacity',
        'uvloop',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    entry_points={
        'console_scripts': [
            'hueprom=hueprom.cli:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
)
