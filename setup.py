"""
Setup file.
"""

from setuptools import setup

KEYWORDS = "embedded keil uvision armcc gcc sdcc c51 stm8 compiler toolchain scatter build"


if __name__ == "__main__":
    setup(
        keywords=KEYWORDS,
        package_data={"unifybuild": ["data/*.json", "data/verify/*.json", "data/force_include/*.h", "data/template/*"]},
        include_package_data=True)
