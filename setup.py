# -*- coding: utf-8 -*-
import setuptools
import pathlib
import site
import sys

# odd bug with develop (editable) installs, see: https://github.com/pypa/pip/issues/7953
site.ENABLE_USER_SITE = "--user" in sys.argv[1:]

required = [
    "numpy",
    "simplejson>=3.19.2",
    "pyserial>=3.5",
    "mashumaro",
    "loguru",
    "rich>=13.0.0",
    "click>=8.0.0",
]

extras = {
    "test": ["pytest"],
    "dev": ["pytest", "doit", "ruff"],
}

here = pathlib.Path(__file__).parent.resolve()
long_description = (here / "README.md").read_text(encoding="utf-8")

version = {}
exec((here / "src" / "ut181a" / "_version.py").read_text(), version)

if __name__ == "__main__":
    setuptools.setup(
        name="ut181a",
        version=version["__version__"],
        description="USB communication tool for the UNI-T UT181A multimeter.",
        long_description=long_description,
        long_description_content_type="text/markdown",
        keywords=["UT181A", "UNI-T", "multimeter", "DMM", "serial", "data logging"],
        classifiers=[
            "License :: OSI Approved :: MIT License",
            "Development Status :: 3 - Alpha",
            "Topic :: Scientific/Engineering",
            "Programming Language :: Python :: 3",
        ],
        license="MIT",
        package_dir={"": "src"},
        packages=setuptools.find_packages(
            where="src",
            exclude=["test", "test.*"],
        ),
        entry_points={
            "console_scripts": [
                "ut181a=ut181a.cli:cli",
            ],
        },
        install_requires=required,
        extras_require=extras,
        python_requires=">= 3.9",
        package_data={"": ["*.md"]},
    )
