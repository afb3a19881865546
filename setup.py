import io
from setuptools import setup

CLASSIFIERS = """\
Development Status :: 3 - Alpha
Intended Audience :: Science/Research
Intended Audience :: Developers
License :: OSI Approved
Programming Language :: Python
Programming Language :: Python :: 3
Topic :: Scientific/Engineering
Operating System :: POSIX
Operating System :: Unix

"""

setup(
    name="sagreg",
    description="Stochastic gradient multinomial logistic regression in Python",
    long_description=io.open("README.rst", encoding="utf-8").read(),
    version="0.1.0",
    url="http://pypi.python.org/pypi/sagreg",
    packages=["sagreg"],
    install_requires=["numpy", "scipy", "tqdm", "scikit-learn"],
    extras_require={"test": ["pytest"]},
    python_requires=">=3.7",
    classifiers=[_f for _f in CLASSIFIERS.split("\n") if _f],
    license="New BSD License",
)
