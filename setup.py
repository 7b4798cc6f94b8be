"""Install the account auth core package."""

from setuptools import setup, find_packages

setup(
    name='account-auth',
    version='0.1.0',
    packages=find_packages(include=['account_auth', 'account_auth.*'],
                           exclude=['*tests*']),
    python_requires='>=3.8',
    install_requires=[
        "pyjwt>=2",
        "python-dateutil",
        "python-json-logger",
        "pytz",
    ],
    extras_require={
        'test': [
            "pytest",
            "pytest-asyncio",
        ],
    },
    zip_safe=False
)
