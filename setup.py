#! /usr/bin/env python

from setuptools import setup, find_packages

# Force distutils to use py_compile.compile() function with 'doraise' argument
# set to True, in order to raise an exception on compilation errors
import py_compile
orig_py_compile = py_compile.compile

def doraise_py_compile(file, cfile=None, dfile=None, doraise=False):
	orig_py_compile(file, cfile=cfile, dfile=dfile, doraise=True)

py_compile.compile = doraise_py_compile


# Trove classifiers for PyPI
classifiers = {"classifiers": [
	"Development Status :: 3 - Alpha",
	"Environment :: Other Environment",
	"Intended Audience :: Developers",
	"License :: OSI Approved :: BSD License",
	"Natural Language :: English",
	"Operating System :: OS Independent",
	"Programming Language :: Python",
	"Programming Language :: Python :: 3",
	"Topic :: Multimedia :: Graphics",
	"Topic :: Multimedia :: Graphics :: Graphics Conversion",
]}

long_description = """\
sfntTools is a library to transform sfnt font binaries from Python.
It instantiates OpenType variable fonts at a given design-space
position, reads and writes WOFF2 fonts (including the glyf/loca and
hmtx table transforms), and builds TrueType/OpenType Collections that
store identical tables only once.
"""


setup(
	name="sfnttools",
	version="0.1.0",
	description="Variable font instancing, WOFF2 and font collections",
	license="OpenSource, BSD-style",
	platforms=["Any"],
	long_description=long_description,
	package_dir={'': 'Lib'},
	packages=find_packages("Lib"),
	python_requires=">=3.6",
	install_requires=[
		"fonttools>=4.38",
		"brotli>=1.0.1",
	],
	extras_require={
		"testing": [
			"pytest>=3.0",
		],
	},
	**classifiers
)
