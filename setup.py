"""
Setup file.
"""

from setuptools import find_packages, setup

URL = "https://github.com/zackees/ccbuild"
KEYWORDS = "c c++ cuda compiler toolchain msvc gcc clang static-library build"
VERSION = "0.1.0"


if __name__ == "__main__":
    setup(
        name="ccbuild",
        version=VERSION,
        description="Compile C, C++ and CUDA sources into a static library",
        maintainer="Zachary Vorhies",
        keywords=KEYWORDS,
        url=URL,
        python_requires=">=3.8",
        package_dir={"": "src"},
        packages=find_packages("src"),
        install_requires=[
            "psutil",
            "tqdm",
        ],
        extras_require={
            "test": ["pytest"],
        },
        entry_points={
            "console_scripts": [
                "ccbuild=ccbuild.cli:main",
            ],
        },
        include_package_data=True)
