"""
Setup script for bisecting-kmeans package
"""

# Always prefer setuptools over distutils
from setuptools import setup, find_packages
# To use a consistent encoding
from codecs import open
from os import path

here = path.abspath(path.dirname(__file__))

# Get the long description from the relevant file
with open(path.join(here, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()
    long_description_content_type = 'text/markdown'

# Get the code version
version = {}
with open(path.join(here, "bisecting_kmeans/version.py")) as fp:
    exec(fp.read(), version)
__version__ = version['__version__']
# now we have a `__version__` variable

setup(
    name='bisecting-kmeans',
    version=__version__,
    description='Serving, prediction and dendrogram export for bisecting k-means cluster trees',
    long_description=long_description,
    long_description_content_type=long_description_content_type,
    license='MIT',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'Topic :: Scientific/Engineering :: Information Analysis',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
    ],
    keywords='bisecting-kmeans hierarchical-clustering dendrogram machine-learning',
    packages=find_packages(include=['bisecting_kmeans*']),
    python_requires='>=3.8',
    install_requires=[
        'numpy>=1.17',
        'scikit-learn>=0.24',  # KMeans for the bisecting splits
    ],
    extras_require={
        'plot': [
            'matplotlib>=3.1.2',
            'scipy>=1.5',
        ],
        'test': [
            'pytest',
            'scipy>=1.5',
        ],
    },
)
