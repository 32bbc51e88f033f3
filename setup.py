import os
import setuptools

# Utility function to read the README file.
# Used for the long_description.
def read(fname):
    return open(os.path.join(os.path.dirname(__file__), fname)).read()


packages = setuptools.find_packages(include=["linops", "linops.*"])

setuptools.setup(
    name="linops",
    version="0.1.0",
    author="linops developers",
    description=("Composable linear operators for iterative reconstruction"),
    license="BSD",
    keywords="linear operator, adjoint, gradient, reconstruction",
    url="-",
    packages=packages,
    python_requires=">=3.8",
    install_requires=["numpy", "torch"],
    extras_require={"test": ["pytest"]},
    long_description=read("README.md"),
    long_description_content_type="text/markdown",
)
