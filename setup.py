from setuptools import setup, find_packages
import re

# Read version from lohncalc/__init__.py
with open('lohncalc/__init__.py') as f:
    version = re.search(r'^__version__ = ["\']([^"\']+)["\']', f.read(), re.MULTILINE).group(1)

setup(
    name='lohncalc',
    version=version,
    packages=find_packages(include=['lohncalc', 'lohncalc.*']),
    package_data={
        'lohncalc': ['rate_tables/*.yaml'],
    },
    install_requires=[
        'PyYAML>=6.0',
        'click>=8.0',
        'pydantic>=2.5',
        'rich>=13.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'lohn-calc=lohncalc.cli.__main__:main',
        ],
    },
    author='Personal',
    description='German statutory payroll calculations: income tax, social insurance, multiple employments.',
    python_requires='>=3.10',
)
