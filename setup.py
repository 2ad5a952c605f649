from setuptools import find_packages, setup

from gliderlag._version import __version__

setup(
    name='gliderlag',
    version=__version__,
    description='Glider CTD thermal lag and sensor lag parameter estimation in python',
    packages=find_packages(exclude=['tests']),
    python_requires='>=3.9',
    install_requires=[
        'numpy',
        'xarray',
        'dask',
        'gsw',
        'scipy>=1.7',
        'pydantic>=2',
        'pyyaml',
    ],
    license='Apache',
    extras_require={
        'code_style': ['flake8<3.8.0,>=3.7.0', 'black', 'pre-commit==1.17.0'],
        'testing': ['pytest', 'pytest-cov'],
    },
    zip_safe=True,
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
)
