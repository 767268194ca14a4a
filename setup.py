from setuptools import setup, find_packages

setup(
    name='twobody',
    version="0.0.1",
    description="Kepler two-body problem: integrators and conservation of first integrals",
    packages=find_packages(exclude=['tests', 'tests.*']),
    license='MIT',
    python_requires='>=3.9',
    install_requires=[
        'numpy',
        'sympy',
        'scipy',
        'matplotlib',
        'tqdm',
        'typing_extensions',
    ],
    extras_require={
        'notebook': ['ipython'],
        'test': ['pytest'],
    },
)
