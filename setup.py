#!/usr/bin/env python

from setuptools import setup, find_packages

with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name="kmerjaccard",
    version="0.1.0",
    author="Jessica Bonnie",
    author_email="jbonnie@jhu.edu",
    description="Approximate k-mer cardinality and Jaccard similarity of sequence files with HyperLogLog",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["kmerjaccard", "kmerjaccard.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
    ],
    python_requires='>=3.9',
    install_requires=[
        "numpy",
        "xxhash>=2.0",  # xxh64_intdigest / xxh32_intdigest
        "biopython",
    ],
    extras_require={
        'test': [
            'pytest>=7.0.0',
        ],
        'dev': [
            'pytest>=7.0.0',
            'black>=22.0.0',
            'isort>=5.0.0',
            'mypy>=0.900',
        ],
    },
    entry_points={
        'console_scripts': [
            'kmerjaccard=kmerjaccard.kmerjaccard:main',
        ],
    },
)
