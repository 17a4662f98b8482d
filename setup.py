from setuptools import setup
from dfir_fat32 import __version__

setup(
	name = 'dfir_fat32',
	version = __version__,
	license = 'GPLv3',
	packages = [ 'dfir_fat32' ],
	provides = [ 'dfir_fat32' ],
	scripts = [ 'fat32_parser' ],
	description = 'A read-only FAT32 parser for digital forensics & incident response',
	author = 'Maxim Suhanov',
	author_email = 'no.spam.c@mail.ru',
	classifiers = [
		'License :: OSI Approved :: GNU General Public License v3 (GPLv3)',
		'Operating System :: OS Independent',
		'Programming Language :: Python :: 3',
		'Development Status :: 5 - Production/Stable'
	],
	extras_require = {
		'test': [ 'pytest' ]
	}
)
