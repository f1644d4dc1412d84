from setuptools import find_packages, setup

setup(
    name="tfaws",
    version="0.1.0",
    license="Apache License 2.0",

    python_requires=">=3.11",
    description="Retry, locking and sweeper primitives shared by the "
                "resources of an AWS Terraform provider.",

    packages=find_packages(exclude=('tfaws.test', 'tfaws.test.*')),

    install_requires=[
        "sretoolbox>=2.0,<3.0",
        "Click>=7.0,<9.0",
        "boto3>=1.28,<2.0",
        "botocore>=1.31,<2.0",
        "pydantic>=2.0,<3.0",
        "prometheus-client>=0.8,<1.0",
        "sentry-sdk>=1.14,<3.0",
    ],

    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-mock>=3.10",
        ],
    },

    classifiers=[
        'Development Status :: 2 - Pre-Alpha',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.11',
    ],
    entry_points={
        'console_scripts': [
            'tfaws-sweep = tfaws.cli:sweep',
        ],
    },
)
