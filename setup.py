from setuptools import setup, find_packages

setup(
    name='ndview',
    version='0.0.1',
    description='Typed, reference counted N-dimensional views over raw memory',
    author='Philip Thomsen',
    license='MIT',
    packages=['ndview'],
    python_requires='>=3.10',
    extras_require={'test': ['numpy']},
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
)
