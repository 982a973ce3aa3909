from setuptools import setup, find_packages

setup(
    name='ono-ssg',
    version='0.1.0',
    py_modules=['ono', 'builder'],
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        'ono_core.runtime': ['*.js'],
    },
    python_requires='>=3.9',
    install_requires=[
        'lark',
        'pydantic>=2.0',
        'mini-racer>=0.12',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'ono = ono:main',
        ],
    },
)
