from setuptools import setup, find_packages

setup(
    name="ucbcore",
    version="0.1.0",
    author="Sanjan Muchandimath",
    description="Likelihood and signal-model core for ultra-compact binary gravitational-wave inference",
    packages=find_packages(include=["ucbcore", "ucbcore.*"]),
    install_requires=["numpy", "scipy"],
    extras_require={"test": ["pytest"]},
    python_requires=">=3.8",
)
