from pathlib import Path

from setuptools import setup


def read(*filenames, **kwargs):
    encoding = kwargs.get("encoding", "utf-8")
    sep = kwargs.get("sep", "\n")
    buf = []

    for filename in filenames:
        with open(filename, encoding=encoding) as f:
            buf.append(f.read())

    return sep.join(buf)


this_directory = Path(__file__).parent
long_description = read(this_directory / "README.rst")

setup(
    name="decorated_ioc",
    version="0.1.0",
    license="MIT",
    description="Decorator driven dependency graphs for an async, identifier keyed container, Python 3.10 +",
    long_description=long_description,
    long_description_content_type="text/x-rst",
    packages=["decorated_ioc"],
    include_package_data=True,
    platforms="any",
    python_requires=">=3.10",
    install_requires=["the-utility-belt"],
    extras_require={"test": ["pytest", "pytest-asyncio", "assertive<1.0"]},
    classifiers=[
        "Programming Language :: Python",
        "Development Status :: 4 - Beta",
        "Natural Language :: English",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
)
