"""Install the kvsessions package."""

from setuptools import setup, find_packages

setup(
    name='kvsessions',
    version='0.1.0',
    packages=find_packages(exclude=['*test*']),
    install_requires=[
        "redis>=4.1",
        "pyjwt>=2.0",
        "cryptography",
        "flask",
        "werkzeug",
        "pytz",
        "python-json-logger>=3.1",
    ],
    extras_require={
        "test": ["pytest"],
    },
    zip_safe=False
)
