import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name='sklearn_chains',
    version='0.0',
    packages=setuptools.find_packages(),
    license='BSD',
    description='Classifier chains, trellises and conditional dependency '
                'networks for multi-label classification with scikit-learn.',
    long_description=long_description,
    long_description_content_type="text/markdown",
    python_requires='>=3.9',
    install_requires=[
        'scikit_learn >= 1.6',
        'numpy',
        'scipy',
    ],
    extras_require={
        'tests': ['matplotlib', 'pytest >= 3.5'],
    },
)
